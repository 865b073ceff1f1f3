"""Article model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Table, Text, Uuid, func

from inkwell.models.users import metadata

articles = Table(
    "articles",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "author_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("title", String(200), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
