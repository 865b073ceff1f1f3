"""Article and comment persistence used by ownership-gated endpoints."""

from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.models.articles import articles
from inkwell.models.comments import comments


class ArticleService:
    """Service for article and comment operations."""

    @staticmethod
    async def create_article(
        db: AsyncSession, author_id: UUID, title: str, content: str
    ) -> dict:
        query = (
            insert(articles)
            .values(author_id=author_id, title=title, content=content)
            .returning(articles)
        )
        result = await db.execute(query)
        article = result.mappings().one()
        await db.commit()
        return dict(article)

    @staticmethod
    async def get_article(db: AsyncSession, article_id: UUID) -> dict | None:
        result = await db.execute(select(articles).where(articles.c.id == article_id))
        article = result.mappings().first()
        return dict(article) if article else None

    @staticmethod
    async def delete_article(db: AsyncSession, article_id: UUID) -> bool:
        # Comments first; SQLite test databases do not enforce ON DELETE CASCADE
        await db.execute(delete(comments).where(comments.c.article_id == article_id))
        result = await db.execute(delete(articles).where(articles.c.id == article_id))
        await db.commit()
        return result.rowcount > 0  # type: ignore[attr-defined]

    @staticmethod
    async def create_comment(
        db: AsyncSession, article_id: UUID, author_id: UUID, content: str
    ) -> dict:
        query = (
            insert(comments)
            .values(article_id=article_id, author_id=author_id, content=content)
            .returning(comments)
        )
        result = await db.execute(query)
        comment = result.mappings().one()
        await db.commit()
        return dict(comment)

    @staticmethod
    async def get_comment(db: AsyncSession, comment_id: UUID) -> dict | None:
        result = await db.execute(select(comments).where(comments.c.id == comment_id))
        comment = result.mappings().first()
        return dict(comment) if comment else None

    @staticmethod
    async def delete_comment(db: AsyncSession, comment_id: UUID) -> bool:
        result = await db.execute(delete(comments).where(comments.c.id == comment_id))
        await db.commit()
        return result.rowcount > 0  # type: ignore[attr-defined]
