"""Google sign-in through the Firebase Admin SDK."""

import asyncio
import json
from pathlib import Path

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

from inkwell.core.exceptions import ExternalServiceException

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None

# Tolerated clock difference between the client device and this server
CLOCK_SKEW_SECONDS = 10


def _load_credentials(
    credentials_path: str | None, config_json: str | None
) -> credentials.Base | None:
    if config_json:
        return credentials.Certificate(json.loads(config_json))
    if credentials_path and Path(credentials_path).is_file():
        return credentials.Certificate(credentials_path)
    return None


def initialize_firebase(
    credentials_path: str | None = None, config_json: str | None = None
) -> None:
    """
    Initialize the Firebase app once per process.

    An inline service-account JSON wins over a credentials file. With neither,
    the SDK falls back to Application Default Credentials.
    """
    global _firebase_app

    if _firebase_app is not None:
        return

    cred = _load_credentials(credentials_path, config_json)
    _firebase_app = firebase_admin.initialize_app(cred)
    logger.info(
        "firebase_initialized",
        source="service_account" if cred else "application_default",
        project_id=_firebase_app.project_id,
    )


def is_firebase_initialized() -> bool:
    return _firebase_app is not None


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token and return its decoded claims.

    Raises:
        ValueError: The token is malformed, expired, revoked or otherwise rejected
        ExternalServiceException: Google sign-in is not configured on this server
    """
    if _firebase_app is None:
        raise ExternalServiceException(
            "Google sign-in is not configured", code="GOOGLE_SIGNIN_UNAVAILABLE"
        )

    try:
        # Certificate fetch and signature check are blocking
        claims = await asyncio.to_thread(
            auth.verify_id_token, id_token, _firebase_app, False, CLOCK_SKEW_SECONDS
        )
    except auth.InvalidIdTokenError as e:
        logger.warning("firebase_token_rejected", error=str(e))
        raise ValueError(f"Invalid Google ID token: {e}") from e
    except (ValueError, auth.CertificateFetchError) as e:
        logger.error("firebase_token_verification_failed", error=str(e))
        raise ValueError(f"Google ID token could not be verified: {e}") from e

    logger.info("firebase_token_verified", uid=claims.get("uid"))
    return claims
