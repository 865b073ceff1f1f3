"""Comment model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Table, Text, Uuid, func

from inkwell.models.users import metadata

comments = Table(
    "comments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "article_id",
        Uuid,
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column(
        "author_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("content", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
