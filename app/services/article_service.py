"""
Article service — listing, feed and CRUD for the Article aggregate.

Design notes
------------
- ``list_articles`` composes the optional tag / author / favorited
  predicates into a single filtered, sorted, paginated read through
  ``ArticleRepository.find``. A ``favorited`` username that does not
  resolve to a user yields an empty page rather than an error.
- ``get_feed`` is the same read restricted to the authors the viewer
  follows. A viewer id that does not resolve is treated as fatal
  (NotFoundError), unlike the soft ``favorited`` filter above.
- Pagination is page based: the page index is ``offset // limit`` and
  the store skips ``page * limit`` rows, so an offset that is not a
  multiple of ``limit`` snaps down to the start of its page.
- Every item is annotated for the viewer: ``favorited`` (viewer is in
  the article's favorites) and ``author.following`` (viewer follows the
  author). Anonymous viewers see both as false.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    InvalidOperationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models import Article, ArticleTag, User, utcnow
from app.repositories import ArticleRepository, UserRepository
from app.schemas import ArticleCreate, ArticleList, ArticleSummary, ArticleUpdate, ArticleView
from app.services.profile_service import user_to_profile
from app.services.slug import generate_unique_slug

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def page_offset(limit: int, offset: int) -> int:
    """
    Return the number of rows to skip for a ``limit``/``offset`` request.

    Raises ValidationError for ``limit < 1`` or ``offset < 0``.
    """
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    if offset < 0:
        raise ValidationError("offset must not be negative")
    return (offset // limit) * limit


def _clean_tags(tag_list: list[str]) -> list[str]:
    """Trim tags, drop blanks and duplicates, keep first-seen order."""
    seen: dict[str, None] = {}
    for tag in tag_list:
        name = tag.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ""


async def _following_ids(users: UserRepository, viewer_id: int | None) -> set[int]:
    if viewer_id is None:
        return set()
    return await users.following_ids(viewer_id)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _summary_fields(article: Article, viewer_id: int | None, following_ids: set[int]) -> dict:
    favorited_ids = {u.id for u in article.favorited_by}
    return {
        "slug": article.slug,
        "title": article.title,
        "description": article.description,
        "tag_list": article.tag_list,
        "created_at": article.created_at,
        "updated_at": article.updated_at,
        "favorited": viewer_id is not None and viewer_id in favorited_ids,
        "favorites_count": len(favorited_ids),
        "author": user_to_profile(article.author, article.author_id in following_ids),
    }


def _article_to_summary(
    article: Article, viewer_id: int | None, following_ids: set[int]
) -> ArticleSummary:
    return ArticleSummary(**_summary_fields(article, viewer_id, following_ids))


def _article_to_view(
    article: Article, viewer_id: int | None, following_ids: set[int]
) -> ArticleView:
    return ArticleView(body=article.body, **_summary_fields(article, viewer_id, following_ids))


async def _load_article(articles: ArticleRepository, slug: str) -> Article:
    article = await articles.find_by_slug(slug)
    if article is None:
        raise NotFoundError(f"Article not found with slug: {slug}")
    return article


async def _view_for(db: AsyncSession, slug: str, viewer_id: int | None) -> ArticleView:
    article = await _load_article(ArticleRepository(db), slug)
    following_ids = await _following_ids(UserRepository(db), viewer_id)
    return _article_to_view(article, viewer_id, following_ids)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_articles(
    db: AsyncSession,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
    viewer_id: int | None = None,
) -> ArticleList:
    """
    Return one page of articles, newest first, matching every supplied
    filter, plus the total number of matches.

    Empty-string filters are treated as absent.
    """
    logger.info(
        "Listing articles: tag=%s author=%s favorited=%s limit=%s offset=%s",
        tag, author, favorited, limit, offset,
    )
    skip = page_offset(limit, offset)
    users = UserRepository(db)

    favorited_by_id = None
    if favorited:
        favoriter = await users.find_by_username(favorited)
        if favoriter is None:
            logger.warning("No user found for favorited=%s, returning empty result", favorited)
            return ArticleList()
        favorited_by_id = favoriter.id

    items, total = await ArticleRepository(db).find(
        tag=tag or None,
        author=author or None,
        favorited_by=favorited_by_id,
        limit=limit,
        offset=skip,
    )
    following_ids = await _following_ids(users, viewer_id)
    logger.debug("Returning %d of %d articles", len(items), total)
    return ArticleList(
        articles=[_article_to_summary(a, viewer_id, following_ids) for a in items],
        articles_count=total,
    )


async def get_feed(
    db: AsyncSession,
    viewer_id: int,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> ArticleList:
    """
    Return the articles written by users *viewer_id* follows, newest first.

    Empty when the viewer follows nobody or none of the followed ids
    resolve to a user. Raises NotFoundError when the viewer itself does
    not exist.
    """
    logger.info("Generating feed for user %s", viewer_id)
    skip = page_offset(limit, offset)
    users = UserRepository(db)

    viewer = await users.find_by_id(viewer_id)
    if viewer is None:
        raise NotFoundError(f"Current user not found with ID: {viewer_id}")

    following_ids = await users.following_ids(viewer_id)
    if not following_ids:
        return ArticleList()

    followed_usernames = [u.username for u in await users.find_by_ids(following_ids)]
    if not followed_usernames:
        return ArticleList()

    items, total = await ArticleRepository(db).find(
        authors=followed_usernames, limit=limit, offset=skip
    )
    logger.info("Returning feed with %d articles out of %d", len(items), total)
    return ArticleList(
        articles=[_article_to_summary(a, viewer_id, following_ids) for a in items],
        articles_count=total,
    )


async def get_article(db: AsyncSession, slug: str, viewer_id: int | None = None) -> ArticleView:
    return await _view_for(db, slug, viewer_id)


async def get_tags(db: AsyncSession) -> list[str]:
    """Return every distinct tag used by at least one article."""
    tags = await ArticleRepository(db).distinct_tags()
    logger.info("Retrieved %d distinct tags", len(tags))
    return tags


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_article(db: AsyncSession, data: ArticleCreate, author: User) -> ArticleView:
    """Create an article owned by *author* under a freshly generated slug."""
    articles = ArticleRepository(db)
    title = data.title.strip()
    slug = await generate_unique_slug(title, articles.exists_by_slug)
    logger.debug("Generated slug %r for title %r", slug, title)

    tags = await articles.resolve_tags(_clean_tags(data.tag_list))
    now = utcnow()
    article = Article(
        slug=slug,
        title=title,
        description=data.description.strip(),
        body=data.body.strip(),
        author_id=author.id,
        created_at=now,
        updated_at=now,
    )
    article.tag_links = [ArticleTag(tag=tag, position=i) for i, tag in enumerate(tags)]
    await articles.save(article)

    logger.info("Article created: %s by %s", slug, author.username)
    return await _view_for(db, slug, author.id)


async def update_article(
    db: AsyncSession, slug: str, data: ArticleUpdate, current_user: User
) -> ArticleView:
    """
    Apply a partial update to an article owned by *current_user*.

    A field that is None or blank is left unchanged; other values are
    trimmed and overwrite. A changed title regenerates the slug.
    """
    articles = ArticleRepository(db)
    article = await _load_article(articles, slug)

    if article.author.username != current_user.username:
        logger.warning("User %s tried to update article by %s", current_user.username, article.author.username)
        raise PermissionDeniedError("You are not allowed to update this article.")

    if _present(data.title):
        new_title = data.title.strip()
        if new_title != article.title:
            logger.info("Title updated from %r to %r", article.title, new_title)
            article.title = new_title

            async def taken(candidate: str) -> bool:
                return await articles.exists_by_slug(candidate, exclude_id=article.id)

            article.slug = await generate_unique_slug(new_title, taken)
    if _present(data.description):
        article.description = data.description.strip()
    if _present(data.body):
        article.body = data.body.strip()

    article.updated_at = utcnow()
    await db.flush()
    logger.info("Article %s updated", article.slug)
    return await _view_for(db, article.slug, current_user.id)


async def delete_article(db: AsyncSession, slug: str, current_user: User) -> None:
    articles = ArticleRepository(db)
    article = await _load_article(articles, slug)

    if article.author.username != current_user.username:
        logger.warning("User %s attempted to delete article by %s", current_user.username, article.author.username)
        raise PermissionDeniedError("You are not allowed to delete this article.")

    await articles.delete(article)
    logger.info("Article %s deleted by %s", slug, current_user.username)


async def favorite_article(db: AsyncSession, slug: str, user_id: int) -> ArticleView:
    articles = ArticleRepository(db)
    article = await _load_article(articles, slug)

    if await articles.is_favorited_by(article.id, user_id):
        raise InvalidOperationError("Article already favorited")

    await articles.add_favorite(article.id, user_id)
    logger.info("Article %s favorited by user %s", slug, user_id)
    return await _view_for(db, slug, user_id)


async def unfavorite_article(db: AsyncSession, slug: str, user_id: int) -> ArticleView:
    articles = ArticleRepository(db)
    article = await _load_article(articles, slug)

    if not await articles.is_favorited_by(article.id, user_id):
        raise InvalidOperationError("Article is not favorited")

    await articles.remove_favorite(article.id, user_id)
    logger.info("Article %s unfavorited by user %s", slug, user_id)
    return await _view_for(db, slug, user_id)
