"""
Repository layer — the only place that builds SQL.

Each repository wraps the request's ``AsyncSession`` and exposes the
lookups the services need (``find_by_slug``, ``exists_by_slug``,
``find_by_username``, ``find`` …). Repositories flush but never commit;
the transaction boundary is owned by the ``get_db`` dependency.

Collections are declared ``lazy="noload"`` on the models, so every read
that needs them asks for them explicitly with ``selectinload`` /
``joinedload``. Reads use ``populate_existing`` so a row already in the
identity map picks up association rows written earlier in the request.
"""
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import delete, exists, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.models import (
    AccessToken,
    Article,
    ArticleTag,
    Comment,
    RefreshToken,
    Tag,
    User,
    article_favorites,
    user_follows,
)


class _Repository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def save(self, obj):
        """Add *obj* to the session and flush so generated ids are populated."""
        self.db.add(obj)
        await self.db.flush()
        return obj

    async def delete(self, obj) -> None:
        await self.db.delete(obj)
        await self.db.flush()


# ---------------------------------------------------------------------------
# Users and the follow graph
# ---------------------------------------------------------------------------

class UserRepository(_Repository):
    async def find_by_id(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_ids(self, user_ids: Iterable[int]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def exists_by_username(self, username: str) -> bool:
        q = select(exists().where(User.username == username))
        return bool((await self.db.execute(q)).scalar())

    async def exists_by_email(self, email: str) -> bool:
        q = select(exists().where(User.email == email))
        return bool((await self.db.execute(q)).scalar())

    async def following_ids(self, user_id: int) -> set[int]:
        """Return the ids of every user that *user_id* follows."""
        q = select(user_follows.c.followee_id).where(user_follows.c.follower_id == user_id)
        return set((await self.db.execute(q)).scalars().all())

    async def is_following(self, follower_id: int, followee_id: int) -> bool:
        q = select(
            exists().where(
                user_follows.c.follower_id == follower_id,
                user_follows.c.followee_id == followee_id,
            )
        )
        return bool((await self.db.execute(q)).scalar())

    async def add_following(self, follower_id: int, followee_id: int) -> None:
        await self.db.execute(
            insert(user_follows).values(follower_id=follower_id, followee_id=followee_id)
        )

    async def remove_following(self, follower_id: int, followee_id: int) -> None:
        await self.db.execute(
            delete(user_follows).where(
                user_follows.c.follower_id == follower_id,
                user_follows.c.followee_id == followee_id,
            )
        )


# ---------------------------------------------------------------------------
# Articles, tags and favorites
# ---------------------------------------------------------------------------

def _article_load_options():
    return (
        joinedload(Article.author),
        selectinload(Article.tag_links),
        selectinload(Article.favorited_by),
    )


class ArticleRepository(_Repository):
    async def find_by_slug(self, slug: str) -> Optional[Article]:
        q = (
            select(Article)
            .where(Article.slug == slug)
            .options(*_article_load_options())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(q)
        return result.unique().scalar_one_or_none()

    async def exists_by_slug(self, slug: str, exclude_id: Optional[int] = None) -> bool:
        cond = [Article.slug == slug]
        if exclude_id is not None:
            cond.append(Article.id != exclude_id)
        q = select(exists().where(*cond))
        return bool((await self.db.execute(q)).scalar())

    async def find(
        self,
        *,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        authors: Optional[list[str]] = None,
        favorited_by: Optional[int] = None,
        limit: int,
        offset: int,
    ) -> tuple[list[Article], int]:
        """
        Return one page of articles matching every supplied predicate,
        newest first, together with the total number of matches.

        ``author`` and ``authors`` are usernames; ``favorited_by`` is a
        user id. Predicates left as ``None`` are not applied. Ties on
        ``created_at`` fall back to insertion order (``id``).
        """
        conditions = []
        if author:
            conditions.append(
                Article.author_id.in_(select(User.id).where(User.username == author))
            )
        if authors is not None:
            conditions.append(
                Article.author_id.in_(select(User.id).where(User.username.in_(authors)))
            )
        if tag:
            conditions.append(
                Article.id.in_(
                    select(ArticleTag.article_id)
                    .join(Tag, Tag.id == ArticleTag.tag_id)
                    .where(Tag.name == tag)
                )
            )
        if favorited_by is not None:
            conditions.append(
                Article.id.in_(
                    select(article_favorites.c.article_id).where(
                        article_favorites.c.user_id == favorited_by
                    )
                )
            )

        count_q = select(func.count()).select_from(Article).where(*conditions)
        total: int = (await self.db.execute(count_q)).scalar_one()

        items_q = (
            select(Article)
            .where(*conditions)
            .options(*_article_load_options())
            .order_by(Article.created_at.desc(), Article.id.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(items_q)
        return list(result.unique().scalars().all()), total

    async def resolve_tags(self, names: list[str]) -> list[Tag]:
        """
        Return Tag rows for *names* in the given order, creating missing
        ones within the caller's transaction.
        """
        tags: list[Tag] = []
        for name in names:
            result = await self.db.execute(select(Tag).where(Tag.name == name))
            tag = result.scalar_one_or_none()
            if tag is None:
                tag = Tag(name=name)
                self.db.add(tag)
                await self.db.flush()
            tags.append(tag)
        return tags

    async def distinct_tags(self) -> list[str]:
        q = (
            select(Tag.name)
            .join(ArticleTag, ArticleTag.tag_id == Tag.id)
            .distinct()
            .order_by(Tag.name)
        )
        return list((await self.db.execute(q)).scalars().all())

    async def is_favorited_by(self, article_id: int, user_id: int) -> bool:
        q = select(
            exists().where(
                article_favorites.c.article_id == article_id,
                article_favorites.c.user_id == user_id,
            )
        )
        return bool((await self.db.execute(q)).scalar())

    async def add_favorite(self, article_id: int, user_id: int) -> None:
        await self.db.execute(
            insert(article_favorites).values(article_id=article_id, user_id=user_id)
        )

    async def remove_favorite(self, article_id: int, user_id: int) -> None:
        await self.db.execute(
            delete(article_favorites).where(
                article_favorites.c.article_id == article_id,
                article_favorites.c.user_id == user_id,
            )
        )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class CommentRepository(_Repository):
    async def find_by_id_and_article(self, comment_id: int, article_id: int) -> Optional[Comment]:
        q = (
            select(Comment)
            .where(Comment.id == comment_id, Comment.article_id == article_id)
            .options(joinedload(Comment.author))
        )
        result = await self.db.execute(q)
        return result.unique().scalar_one_or_none()

    async def find_by_article(self, article_id: int) -> list[Comment]:
        q = (
            select(Comment)
            .where(Comment.article_id == article_id)
            .options(joinedload(Comment.author))
            .order_by(Comment.created_at, Comment.id)
        )
        result = await self.db.execute(q)
        return list(result.unique().scalars().all())


# ---------------------------------------------------------------------------
# Access / refresh token records
# ---------------------------------------------------------------------------

class TokenRepository(_Repository):
    async def find_access(self, token_id: int) -> Optional[AccessToken]:
        return await self.db.get(AccessToken, token_id)

    async def find_refresh(self, token_id: int) -> Optional[RefreshToken]:
        return await self.db.get(RefreshToken, token_id)

    async def refresh_tokens_for_access(self, access_token_id: int) -> list[RefreshToken]:
        q = select(RefreshToken).where(RefreshToken.access_token_id == access_token_id)
        return list((await self.db.execute(q)).scalars().all())
