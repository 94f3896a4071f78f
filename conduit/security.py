"""
Credential subsystem: password hashing and signed, expiring tokens.

Password hashing uses argon2 (memory-hard, salted) through passlib.  Both
hashing and verification are deliberately expensive, so they run in a
worker thread via ``asyncio.to_thread`` and never on the event loop that is
serving other requests.  Each call is bounded by
``CREDENTIAL_TIMEOUT_SECONDS``.

Tokens are HS256 JWTs carrying ``{"id": <user id>, "exp": <unix ts>}``.
python-jose already rejects expired tokens, but ``verify_token`` checks the
``exp`` claim again against its own clock so expiry is an explicit step that
does not depend on library defaults.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from conduit.config import Settings, settings as default_settings
from conduit.errors import NotAuthorizedError, ServerError, ServiceUnavailableError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

async def _offload(func, *args, timeout: float):
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("%s exceeded %.1fs", func.__name__, timeout)
        raise ServiceUnavailableError() from exc
    except (ValueError, TypeError) as exc:
        logger.exception("%s failed", func.__name__)
        raise ServerError() from exc


async def hash_password(password: str, settings: Settings = default_settings) -> str:
    return await _offload(
        pwd_context.hash, password, timeout=settings.CREDENTIAL_TIMEOUT_SECONDS
    )


async def verify_password(
    password: str, hashed_password: str, settings: Settings = default_settings
) -> bool:
    return await _offload(
        pwd_context.verify, password, hashed_password,
        timeout=settings.CREDENTIAL_TIMEOUT_SECONDS,
    )


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(timezone.utc)


def issue_token(user_id: int, settings: Settings, now: datetime | None = None) -> str:
    """Return a signed token for *user_id* expiring ``TOKEN_EXPIRE_DAYS`` from *now*."""
    issued_at = now or _now()
    expires = issued_at + timedelta(days=settings.TOKEN_EXPIRE_DAYS)
    claims = {"id": user_id, "exp": int(expires.timestamp())}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, settings: Settings, now: datetime | None = None) -> int:
    """
    Validate *token* and return the user id it was issued for.

    Raises ``NotAuthorizedError`` for a bad signature, undecodable claims,
    or an ``exp`` that is not in the future relative to *now*.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise NotAuthorizedError("Token expired") from exc
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise NotAuthorizedError("Invalid token") from exc

    user_id = claims.get("id")
    exp = claims.get("exp")
    if not isinstance(user_id, int) or not isinstance(exp, (int, float)):
        raise NotAuthorizedError("Invalid token")

    current = (now or _now()).timestamp()
    if exp <= current:
        raise NotAuthorizedError("Token expired")
    return user_id
