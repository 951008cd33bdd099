"""
Comment service — comments on an article and the ownership checks that
guard them.

``assert_article_exists`` and ``assert_can_delete`` are pure predicates:
they raise or return, and never write. Deleting an article does not
delete its comments here; whatever the store does on delete is left to
the store.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, PermissionDeniedError
from app.models import Article, Comment, User, utcnow
from app.repositories import ArticleRepository, CommentRepository, UserRepository
from app.schemas import CommentCreate, CommentView
from app.services.profile_service import user_to_profile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Ownership guard
# ---------------------------------------------------------------------------

async def assert_article_exists(db: AsyncSession, slug: str) -> Article:
    """Return the article for *slug* or raise NotFoundError."""
    article = await ArticleRepository(db).find_by_slug(slug)
    if article is None:
        raise NotFoundError(f"Article not found with slug: {slug}")
    return article


def assert_can_delete(comment: Comment, current_username: str) -> None:
    """Raise PermissionDeniedError unless *current_username* wrote *comment*."""
    if comment.author.username != current_username:
        logger.warning(
            "User %s attempted to delete comment %s authored by %s",
            current_username, comment.id, comment.author.username,
        )
        raise PermissionDeniedError("You are not authorized to delete this comment.")


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _comment_to_view(comment: Comment, following_ids: set[int]) -> CommentView:
    return CommentView(
        id=comment.id,
        body=comment.body,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        author=user_to_profile(comment.author, comment.author_id in following_ids),
    )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def add_comment(
    db: AsyncSession, slug: str, data: CommentCreate, author: User
) -> CommentView:
    article = await assert_article_exists(db, slug)

    now = utcnow()
    comment = Comment(
        body=data.body.strip(),
        article_id=article.id,
        author_id=author.id,
        created_at=now,
        updated_at=now,
    )
    await CommentRepository(db).save(comment)
    comment.author = author
    logger.info("Comment %s added to %s by %s", comment.id, slug, author.username)
    # The viewer is the author here, and nobody follows themselves.
    return _comment_to_view(comment, set())


async def get_comments(
    db: AsyncSession, slug: str, viewer_id: int | None = None
) -> list[CommentView]:
    article = await assert_article_exists(db, slug)
    comments = await CommentRepository(db).find_by_article(article.id)

    following_ids: set[int] = set()
    if viewer_id is not None:
        following_ids = await UserRepository(db).following_ids(viewer_id)
    logger.debug("Fetched %d comments for %s", len(comments), slug)
    return [_comment_to_view(c, following_ids) for c in comments]


async def delete_comment(
    db: AsyncSession, slug: str, comment_id: int, current_username: str
) -> None:
    article = await assert_article_exists(db, slug)

    repo = CommentRepository(db)
    comment = await repo.find_by_id_and_article(comment_id, article.id)
    if comment is None:
        raise NotFoundError(f"Comment {comment_id} not found on article {slug}")

    assert_can_delete(comment, current_username)
    await repo.delete(comment)
    logger.info("Comment %s deleted from %s", comment_id, slug)
