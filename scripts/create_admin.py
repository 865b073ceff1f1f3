#!/usr/bin/env python3
"""
Promote an existing account to the admin role.

Usage:
    python scripts/create_admin.py user@example.com

The cached profile of the account is dropped as well, so a running API
applies the new role on the user's next request.
"""

import argparse
import asyncio
import sys
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

import dotenv
from sqlalchemy.ext.asyncio import AsyncSession

dotenv.load_dotenv()

from inkwell.core.exceptions import AppException  # noqa: E402
from inkwell.core.redis_client import (  # noqa: E402
    CacheManager,
    close_redis_connection,
    get_redis_client,
)
from inkwell.database import AsyncSessionLocal, engine  # noqa: E402
from inkwell.services.user_service import UserService  # noqa: E402


async def promote(
    email: str,
    session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]] = AsyncSessionLocal,
    cache_manager: CacheManager | None = None,
) -> int:
    """Set ``role = admin`` on the account registered with ``email``."""
    service = UserService(cache_manager or CacheManager(get_redis_client()))
    async with session_factory() as db:
        user = await service.get_user_by_email(db, email.strip().lower())
        if not user:
            print(f"✗ No user registered with {email}", file=sys.stderr)
            return 1

        if user["role"] == "admin":
            print(f"✓ {user['username']} is already an admin")
            return 0

        try:
            await service.update_user(db, user["id"], role="admin")
        except AppException as e:
            print(f"✗ Failed to promote {email}: {e.message}", file=sys.stderr)
            return 1

    print(f"✓ {user['username']} is now an admin")
    return 0


async def run(email: str) -> int:
    try:
        return await promote(email)
    finally:
        await engine.dispose()
        close_redis_connection()


def main() -> None:
    parser = argparse.ArgumentParser(description="Promote a user to admin")
    parser.add_argument("email", help="Email address of the account to promote")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.email)))


if __name__ == "__main__":
    main()
