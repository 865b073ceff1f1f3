"""User model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Identity (stored lower-cased)
    Column("email", String(254), nullable=False, unique=True, index=True),
    Column("username", String(30), nullable=False, unique=True, index=True),
    # Always set; federated-only accounts hold a hash of a discarded random secret
    Column("password_hash", Text, nullable=False),
    # Federated identity (Google UID), unique when present
    Column("google_id", Text, nullable=True, unique=True),
    # Profile
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("bio", String(500), nullable=False, server_default=text("''")),
    Column("avatar", Text, nullable=False, server_default=text("''")),
    Column("role", String(20), nullable=False, server_default=text("'user'")),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("is_verified", Boolean, nullable=False, server_default=text("false")),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint("role IN ('user', 'moderator', 'admin')", name="users_role_check"),
)

# Columns safe to return to clients and to cache
USER_PUBLIC_COLUMNS = [c for c in users.c if c.name != "password_hash"]
