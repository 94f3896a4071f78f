"""
Request-level dependencies: pagination, listing filters, and the auth guard.

Auth guard states
-----------------
``authenticate`` is the only place a credential is checked:

- *Absent*   : no ``Authorization`` header: returns ``None``.
- *Malformed*: header bytes are not ASCII, or lack the ``"Token "`` scheme
  prefix: ``NotAuthorizedError``.
- *Invalid*  : signature or expiry check fails: ``NotAuthorizedError``.
- *Verified* : returns ``AuthUser(id, token)``.

``get_optional_user`` exposes that result as-is (only *Absent* becomes
"no identity"); ``get_current_user`` additionally rejects *Absent*.
"""
from dataclasses import dataclass

from fastapi import Depends, Query, Request

from conduit.config import Settings, get_settings, settings as app_settings
from conduit.errors import NotAuthorizedError
from conduit.security import verify_token

TOKEN_PREFIX = "Token "


# ---------------------------------------------------------------------------
# Auth guard
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthUser:
    id: int
    token: str


def authenticate(raw_header: bytes | None, settings: Settings) -> AuthUser | None:
    if raw_header is None:
        return None
    try:
        header = raw_header.decode("ascii")
    except UnicodeDecodeError as exc:
        raise NotAuthorizedError("Invalid token") from exc
    if not header.startswith(TOKEN_PREFIX):
        raise NotAuthorizedError("Invalid token")

    token = header[len(TOKEN_PREFIX):].strip()
    user_id = verify_token(token, settings)
    return AuthUser(id=user_id, token=token)


def _raw_authorization(request: Request) -> bytes | None:
    # Read the undecoded bytes from the ASGI scope; Starlette's Headers
    # mapping would already have latin-1 decoded them.
    for name, value in request.scope.get("headers", []):
        if name.lower() == b"authorization":
            return value
    return None


async def get_optional_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> AuthUser | None:
    return authenticate(_raw_authorization(request), settings)


async def get_current_user(
    user: AuthUser | None = Depends(get_optional_user),
) -> AuthUser:
    if user is None:
        raise NotAuthorizedError("Authentication required")
    return user


def viewer_id(user: AuthUser | None) -> int | None:
    return user.id if user is not None else None


# ---------------------------------------------------------------------------
# Listing parameters
# ---------------------------------------------------------------------------

class PaginationParams:
    """
    Reusable FastAPI dependency that parses ``limit`` / ``offset``.

    Attributes
    ----------
    limit:
        Page size, clamped to ``settings.MAX_PAGE_SIZE`` regardless of the
        value supplied by the caller.
    offset:
        Number of rows to skip.
    """

    def __init__(
        self,
        limit: int = Query(
            app_settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Maximum number of items to return.",
        ),
        offset: int = Query(
            0,
            ge=0,
            description="Number of items to skip.",
        ),
    ) -> None:
        self.limit = min(limit, app_settings.MAX_PAGE_SIZE)
        self.offset = offset


@dataclass
class ArticleFilters:
    tag: str | None = None
    author: str | None = None
    favorited: str | None = None


def article_filters(
    tag: str | None = Query(None, description="Only articles carrying this tag."),
    author: str | None = Query(None, description="Only articles by this username."),
    favourited: str | None = Query(None, description="Only articles favorited by this username."),
    favorited: str | None = Query(None, include_in_schema=False),
) -> ArticleFilters:
    return ArticleFilters(tag=tag, author=author, favorited=favourited or favorited)
