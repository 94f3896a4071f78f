"""
User service: registration, login and sparse profile updates.

User rows are read through ``USER_QUERY`` with exactly one unique key
predicate; the password hash is loaded for login but never leaves this
module in a returned record.
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import execute, flush
from conduit.errors import NotAuthorizedError, NotFoundError, unique_violation_as_conflict
from conduit.models import User
from conduit.queries import UPDATE_USER, ClauseBuilder, bind_params, user_query
from conduit.schemas import LoginUser, NewUser, UserUpdate
from conduit.security import hash_password, verify_password

logger = logging.getLogger(__name__)

_DUPLICATE_USER = "A user with this username or email already exists"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(row) -> dict:
    """Public user record (no password hash)."""
    return {
        "id": row["id"],
        "username": row["username"],
        "email": row["email"],
        "bio": row["bio"],
        "image": row["image"],
        "created_at": row["created_at"],
    }


# ---------------------------------------------------------------------------
# Lookup by unique key
# ---------------------------------------------------------------------------

async def fetch_user(
    db: AsyncSession,
    *,
    id: int | None = None,
    username: str | None = None,
    email: str | None = None,
):
    """
    Return the raw user row (including the password hash) for one unique
    key, or None.

    Exactly one key must be given; an empty predicate would select every
    user, so it is rejected as a programming error.
    """
    predicates, params = (
        ClauseBuilder(" WHERE ", " AND ")
        .add("users.id", id)
        .add("users.username", username)
        .add("users.email", email)
        .finish()
    )
    if len(params) != 1:
        raise ValueError("fetch_user needs exactly one of id, username or email")

    result = await execute(db, user_query(predicates), bind_params(params))
    return result.mappings().one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def register_user(db: AsyncSession, data: NewUser) -> dict:
    """
    Create a user with an argon2-hashed password and return its record.

    Username and email uniqueness is enforced by the database; a collision
    is reported as ``ConflictError`` rather than a storage failure.
    """
    hashed = await hash_password(data.password)
    user = User(username=data.username, email=data.email, password=hashed)
    db.add(user)
    with unique_violation_as_conflict(_DUPLICATE_USER):
        await flush(db)

    row = await fetch_user(db, id=user.id)
    if row is None:
        raise NotFoundError("User not found")
    logger.info("Registered user id=%s", user.id)
    return _user_to_dict(row)


async def login_user(db: AsyncSession, data: LoginUser) -> dict:
    """Return the user record when *data* carries valid credentials."""
    row = await fetch_user(db, email=data.email)
    if row is None or not await verify_password(data.password, row["password"]):
        raise NotAuthorizedError("Invalid email or password")
    return _user_to_dict(row)


async def get_user(db: AsyncSession, user_id: int) -> dict:
    row = await fetch_user(db, id=user_id)
    if row is None:
        raise NotFoundError("User not found")
    return _user_to_dict(row)


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    """
    Apply the fields present in *data* to the user and return the result.

    A new password is hashed before the assignment clause is built.  When no
    field is present no statement is executed and the current record is
    returned unchanged.
    """
    hashed = await hash_password(data.password) if data.password is not None else None

    assignments, params = (
        ClauseBuilder("SET ", ", ")
        .add("email", data.email)
        .add("username", data.username)
        .add("password", hashed)
        .add("bio", data.bio)
        .add("image", data.image)
        .finish()
    )
    if assignments:
        predicates, params = ClauseBuilder(" WHERE ", " AND ", params).add("id", user_id).finish()
        statement = text(UPDATE_USER.format(assignments=assignments, predicates=predicates))
        with unique_violation_as_conflict(_DUPLICATE_USER):
            await execute(db, statement, bind_params(params))

    return await get_user(db, user_id)
