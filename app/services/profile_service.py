"""
Profile service — profile views and the follow graph.

``following`` always means "the viewer follows this user". Follow and
unfollow read the current state and write the edge in the same request
without a conditional update, so two concurrent requests for the same
pair race and the last writer wins.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidOperationError, NotFoundError
from app.models import User
from app.repositories import UserRepository
from app.schemas import Profile

logger = logging.getLogger(__name__)


def user_to_profile(user: User, following: bool) -> Profile:
    return Profile(
        username=user.username,
        bio=user.bio,
        image=user.image,
        following=following,
    )


async def _get_target(users: UserRepository, username: str) -> User:
    target = await users.find_by_username(username)
    if target is None:
        raise NotFoundError(f"User not found with username: {username}")
    return target


async def get_profile(db: AsyncSession, username: str, viewer_id: int | None = None) -> Profile:
    """Return *username*'s profile as seen by *viewer_id* (None = anonymous)."""
    users = UserRepository(db)
    target = await _get_target(users, username)

    following = False
    if viewer_id is not None:
        following = await users.is_following(viewer_id, target.id)
    return user_to_profile(target, following)


async def follow(db: AsyncSession, current_user_id: int, target_username: str) -> Profile:
    """
    Make *current_user_id* follow *target_username*.

    Guards, in order: the target exists (NotFoundError); it is not the
    caller (InvalidOperationError); it is not already followed
    (InvalidOperationError).
    """
    users = UserRepository(db)
    target = await _get_target(users, target_username)

    if target.id == current_user_id:
        raise InvalidOperationError("You cannot follow yourself")
    if await users.is_following(current_user_id, target.id):
        raise InvalidOperationError(f"You are already following {target_username}")

    await users.add_following(current_user_id, target.id)
    logger.info("User %s followed %s", current_user_id, target_username)
    return user_to_profile(target, following=True)


async def unfollow(db: AsyncSession, current_user_id: int, target_username: str) -> Profile:
    """Inverse of ``follow``; fails if the caller does not follow the target."""
    users = UserRepository(db)
    target = await _get_target(users, target_username)

    if target.id == current_user_id:
        raise InvalidOperationError("You cannot unfollow yourself")
    if not await users.is_following(current_user_id, target.id):
        raise InvalidOperationError(f"You are not following {target_username}")

    await users.remove_following(current_user_id, target.id)
    logger.info("User %s unfollowed %s", current_user_id, target_username)
    return user_to_profile(target, following=False)
