"""
Profile service: public profiles and the follow relation.

A profile is a user as seen by a viewer: ``following`` is computed per call
against the viewer id and is always False for anonymous viewers.
"""
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import execute
from conduit.errors import ConflictError, NotFoundError, unique_violation_as_conflict
from conduit.models import follows
from conduit.queries import DELETE_FOLLOW, FOLLOWING_QUERY
from conduit.services.user_service import fetch_user


def _profile_to_dict(row, following: bool) -> dict:
    return {
        "username": row["username"],
        "bio": row["bio"],
        "image": row["image"],
        "following": following,
    }


async def _get_profile_row(db: AsyncSession, username: str):
    row = await fetch_user(db, username=username)
    if row is None:
        raise NotFoundError("Profile not found")
    return row


async def is_following(db: AsyncSession, follower_id: int | None, followed_id: int) -> bool:
    if follower_id is None:
        return False
    result = await execute(
        db, FOLLOWING_QUERY, {"follower_id": follower_id, "followed_id": followed_id}
    )
    return result.first() is not None


async def get_profile(db: AsyncSession, username: str, viewer_id: int | None) -> dict:
    row = await _get_profile_row(db, username)
    return _profile_to_dict(row, await is_following(db, viewer_id, row["id"]))


async def follow_user(db: AsyncSession, follower_id: int, username: str) -> dict:
    """
    Make *follower_id* follow *username*.

    Following the same user twice is a ``ConflictError``, as is following
    yourself.
    """
    row = await _get_profile_row(db, username)
    if row["id"] == follower_id:
        raise ConflictError("You cannot follow yourself")

    with unique_violation_as_conflict("You already follow this user"):
        await execute(
            db, insert(follows).values(follower_id=follower_id, followed_id=row["id"])
        )
    return _profile_to_dict(row, True)


async def unfollow_user(db: AsyncSession, follower_id: int, username: str) -> dict:
    """Remove the follow; unfollowing someone not followed is a ``ConflictError``."""
    row = await _get_profile_row(db, username)
    result = await execute(
        db, DELETE_FOLLOW, {"follower_id": follower_id, "followed_id": row["id"]}
    )
    if result.rowcount == 0:
        raise ConflictError("You do not follow this user")
    return _profile_to_dict(row, False)
