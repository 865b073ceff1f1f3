"""Database models."""

from inkwell.models.articles import articles
from inkwell.models.comments import comments
from inkwell.models.refresh_tokens import refresh_tokens
from inkwell.models.users import metadata, users

__all__ = [
    "articles",
    "comments",
    "metadata",
    "refresh_tokens",
    "users",
]
