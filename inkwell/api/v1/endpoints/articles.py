"""Article and comment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from inkwell.core.exceptions import NotFoundException
from inkwell.dependencies import (
    CurrentAuth,
    DatabaseSession,
    OptionalAuth,
    ResourceKind,
    require_ownership_or_admin,
)
from inkwell.schemas.articles import (
    ArticleCreate,
    ArticleResponse,
    CommentCreate,
    CommentResponse,
)
from inkwell.schemas.auth import MessageResponse
from inkwell.services.article_service import ArticleService

router = APIRouter()

OwnedArticle = Annotated[
    dict, Depends(require_ownership_or_admin(ResourceKind.ARTICLE, "article_id"))
]
OwnedComment = Annotated[
    dict, Depends(require_ownership_or_admin(ResourceKind.COMMENT, "comment_id"))
]


@router.post(
    "/articles",
    response_model=ArticleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Publish an article",
)
async def create_article(
    article_data: ArticleCreate,
    db: DatabaseSession,
    auth: CurrentAuth,
) -> ArticleResponse:
    article = await ArticleService.create_article(
        db, auth.user_id, article_data.title, article_data.content
    )
    return ArticleResponse.model_validate({**article, "is_owner": True})


@router.get("/articles/{article_id}", response_model=ArticleResponse, summary="Read an article")
async def get_article(
    article_id: UUID,
    db: DatabaseSession,
    auth: OptionalAuth,
) -> ArticleResponse:
    """
    Public read; an authenticated requester additionally learns whether they
    wrote the article.
    """
    article = await ArticleService.get_article(db, article_id)
    if not article:
        raise NotFoundException("Article not found", code="ARTICLE_NOT_FOUND")

    is_owner = auth is not None and str(article["author_id"]) == str(auth.user_id)
    return ArticleResponse.model_validate({**article, "is_owner": is_owner})


@router.delete(
    "/articles/{article_id}",
    response_model=MessageResponse,
    summary="Delete an article (author or admin)",
)
async def delete_article(db: DatabaseSession, article: OwnedArticle) -> MessageResponse:
    await ArticleService.delete_article(db, article["id"])
    return MessageResponse(message="Article deleted successfully")


@router.post(
    "/articles/{article_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on an article",
)
async def create_comment(
    article_id: UUID,
    comment_data: CommentCreate,
    db: DatabaseSession,
    auth: CurrentAuth,
) -> CommentResponse:
    if not await ArticleService.get_article(db, article_id):
        raise NotFoundException("Article not found", code="ARTICLE_NOT_FOUND")

    comment = await ArticleService.create_comment(
        db, article_id, auth.user_id, comment_data.content
    )
    return CommentResponse.model_validate(comment)


@router.delete(
    "/comments/{comment_id}",
    response_model=MessageResponse,
    summary="Delete a comment (author or admin)",
)
async def delete_comment(db: DatabaseSession, comment: OwnedComment) -> MessageResponse:
    await ArticleService.delete_comment(db, comment["id"])
    return MessageResponse(message="Comment deleted successfully")
