"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Every read goes through the article templates in ``queries.py``, so the
  state of an article relative to a viewer (``favorited``, the author's
  ``following``, ``favorites_count``) is always computed the same way.
- Tag lists are loaded with one extra statement per page
  (``ARTICLE_TAGS_QUERY``) instead of dialect-specific string aggregation.
- Update and delete are ownership-scoped by ``slug AND author_id`` in the
  statement itself; zero affected rows is reported as ``ForbiddenError``.
- Tags are upserted by name under a SAVEPOINT, so a name created
  concurrently resolves to the existing row instead of failing the article.
- Deleting an article removes its tag, favourite and comment rows
  explicitly, in the same transaction, before the article row.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency in the router layer.
"""
import logging
import re
from collections import defaultdict

from sqlalchemy import insert, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import execute, flush
from conduit.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    is_unique_violation,
    unique_violation_as_conflict,
)
from conduit.models import Article, Tag, article_tags, favourites
from conduit.queries import (
    ARTICLE_BY_SLUG_QUERY,
    ARTICLE_COUNT_QUERY,
    ARTICLE_LIST_QUERY,
    ARTICLE_TAGS_QUERY,
    DELETE_ARTICLE,
    DELETE_ARTICLE_CHILDREN,
    DELETE_FAVOURITE,
    OWNED_ARTICLE_ID_QUERY,
    SLUGS_LIKE_QUERY,
    TAG_NAMES_QUERY,
    UPDATE_ARTICLE,
    ClauseBuilder,
    bind_params,
)
from conduit.schemas import ArticleCreate, ArticleUpdate
from conduit.services.user_service import fetch_user

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


async def _unique_slug(db: AsyncSession, title: str, current_slug: str | None = None) -> str:
    """
    Slug for *title* that no other article uses.

    Collisions get the smallest free numeric suffix (``title-2``,
    ``title-3``, ...).  *current_slug* is the slug of the article being
    renamed, which may keep its own slug.
    """
    base = slugify(title) or "article"
    result = await execute(db, SLUGS_LIKE_QUERY, {"slug": base, "pattern": f"{base}-%"})
    taken = {slug for (slug,) in result.all()}
    taken.discard(current_slug)
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _article_to_dict(row, tags: list[str]) -> dict:
    return {
        "id": row["id"],
        "slug": row["slug"],
        "title": row["title"],
        "description": row["description"],
        "body": row["body"],
        "tag_list": tags,
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "favorited": bool(row["favorited"]),
        "favorites_count": row["favorites_count"],
        "author": {
            "username": row["author_username"],
            "bio": row["author_bio"],
            "image": row["author_image"],
            "following": bool(row["following"]),
        },
    }


async def _with_tags(db: AsyncSession, rows) -> list[dict]:
    if not rows:
        return []
    result = await execute(db, ARTICLE_TAGS_QUERY, {"article_ids": [row["id"] for row in rows]})
    tags: dict[int, list[str]] = defaultdict(list)
    for article_id, name in result.all():
        tags[article_id].append(name)
    return [_article_to_dict(row, tags[row["id"]]) for row in rows]


async def _fetch_article(db: AsyncSession, slug: str, viewer_id: int | None) -> dict | None:
    result = await execute(db, ARTICLE_BY_SLUG_QUERY, {"slug": slug, "viewer_id": viewer_id})
    row = result.mappings().one_or_none()
    if row is None:
        return None
    return (await _with_tags(db, [row]))[0]


async def _owned_article_id(db: AsyncSession, slug: str, author_id: int) -> int:
    result = await execute(db, OWNED_ARTICLE_ID_QUERY, {"slug": slug, "author_id": author_id})
    article_id = result.scalar_one_or_none()
    if article_id is None:
        raise ForbiddenError("Article not found or not owned by you")
    return article_id


# ---------------------------------------------------------------------------
# Tag resolution helpers (used by create)
# ---------------------------------------------------------------------------

async def _tag_id(db: AsyncSession, name: str) -> int | None:
    result = await execute(db, select(Tag.id).where(Tag.name == name))
    return result.scalar_one_or_none()


async def _upsert_tag(db: AsyncSession, name: str) -> int:
    """
    Return the id of the tag called *name*, inserting it when absent.

    The insert runs inside a SAVEPOINT: if another transaction committed the
    same name in the meantime, only the savepoint is rolled back and the
    existing row's id is returned.
    """
    tag_id = await _tag_id(db, name)
    if tag_id is not None:
        return tag_id

    try:
        async with db.begin_nested():
            await execute(db, insert(Tag).values(name=name))
    except IntegrityError as exc:
        if not is_unique_violation(exc):
            logger.exception("Inserting tag %r failed", name)
            raise StorageError() from exc
        logger.info("Tag %r already created by a concurrent request", name)

    tag_id = await _tag_id(db, name)
    if tag_id is None:
        raise StorageError()
    return tag_id


async def _resolve_tag_ids(db: AsyncSession, tag_names: list[str]) -> list[int]:
    """Ids for each distinct, non-blank name in *tag_names*, in request order."""
    return [
        await _upsert_tag(db, name)
        for name in dict.fromkeys(n.strip() for n in tag_names if n.strip())
    ]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

async def _query_articles(
    db: AsyncSession,
    viewer_id: int | None,
    *,
    tag: str | None = None,
    author: str | None = None,
    favoriter_id: int | None = None,
    follower_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    """
    Run the listing template.  Two statements (plus one for tags):

    1. COUNT: total matching articles, for ``articles_count``.
    2. SELECT with the viewer-relative columns, LIMIT/OFFSET.
    """
    filters = {
        "tag": tag,
        "author": author,
        "favoriter_id": favoriter_id,
        "follower_id": follower_id,
    }
    total = (await execute(db, ARTICLE_COUNT_QUERY, filters)).scalar_one()
    result = await execute(
        db,
        ARTICLE_LIST_QUERY,
        {**filters, "viewer_id": viewer_id, "limit": limit, "offset": offset},
    )
    rows = result.mappings().all()
    return {"articles": await _with_tags(db, rows), "articles_count": total}


async def list_articles(
    db: AsyncSession,
    viewer_id: int | None,
    *,
    tag: str | None = None,
    author: str | None = None,
    favorited: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    """
    Return the most recent articles matching the optional filters.

    *favorited* is a username and is resolved to a user id before the
    listing runs; an unknown username matches nothing.
    """
    favoriter_id = None
    if favorited is not None:
        favoriter = await fetch_user(db, username=favorited)
        if favoriter is None:
            return {"articles": [], "articles_count": 0}
        favoriter_id = favoriter["id"]

    return await _query_articles(
        db,
        viewer_id,
        tag=tag,
        author=author,
        favoriter_id=favoriter_id,
        limit=limit,
        offset=offset,
    )


async def feed_articles(
    db: AsyncSession, viewer_id: int, limit: int = 20, offset: int = 0
) -> dict:
    """Most recent articles written by authors *viewer_id* follows."""
    return await _query_articles(
        db, viewer_id, follower_id=viewer_id, limit=limit, offset=offset
    )


# ---------------------------------------------------------------------------
# Single article
# ---------------------------------------------------------------------------

async def get_article(db: AsyncSession, slug: str, viewer_id: int | None) -> dict:
    article = await _fetch_article(db, slug, viewer_id)
    if article is None:
        raise NotFoundError("Article not found")
    return article


async def create_article(db: AsyncSession, author_id: int, data: ArticleCreate) -> dict:
    """
    Create an article with its tags and return it as seen by its author.

    The article row, any new tag rows and the join rows are written in the
    caller's transaction, so a failure part-way leaves nothing behind.  A
    tag name that already exists, or appears concurrently, resolves to the
    existing tag.
    """
    slug = await _unique_slug(db, data.title)
    article = Article(
        slug=slug,
        title=data.title,
        description=data.description,
        body=data.body,
        author_id=author_id,
    )
    db.add(article)
    with unique_violation_as_conflict("An article with this slug already exists, retry"):
        await flush(db)
    article_id = article.id

    tag_ids = await _resolve_tag_ids(db, data.tag_list)
    if tag_ids:
        await execute(
            db,
            insert(article_tags).values(
                [{"article_id": article_id, "tag_id": tag_id} for tag_id in tag_ids]
            ),
        )

    logger.info("Article %s created by user id=%s", slug, author_id)
    return await get_article(db, slug, author_id)


async def update_article(
    db: AsyncSession, author_id: int, slug: str, data: ArticleUpdate
) -> dict:
    """
    Apply the fields present in *data* to the author's article.

    A new title regenerates the slug.  With no field present the ownership
    check still runs but nothing is written.
    """
    await _owned_article_id(db, slug, author_id)

    new_slug = None
    if data.title is not None:
        new_slug = await _unique_slug(db, data.title, current_slug=slug)

    assignments, params = (
        ClauseBuilder("SET ", ", ")
        .add("title", data.title)
        .add("description", data.description)
        .add("body", data.body)
        .add("slug", new_slug)
        .finish()
    )
    if assignments:
        predicates, params = (
            ClauseBuilder(" WHERE ", " AND ", params)
            .add("slug", slug)
            .add("author_id", author_id)
            .finish()
        )
        statement = text(UPDATE_ARTICLE.format(assignments=assignments, predicates=predicates))
        with unique_violation_as_conflict("An article with this slug already exists, retry"):
            result = await execute(db, statement, bind_params(params))
        if result.rowcount == 0:
            raise ForbiddenError("Article not found or not owned by you")

    return await get_article(db, new_slug or slug, author_id)


async def delete_article(db: AsyncSession, author_id: int, slug: str) -> None:
    article_id = await _owned_article_id(db, slug, author_id)
    for statement in DELETE_ARTICLE_CHILDREN:
        await execute(db, statement, {"article_id": article_id})

    result = await execute(db, DELETE_ARTICLE, {"slug": slug, "author_id": author_id})
    if result.rowcount == 0:
        raise ForbiddenError("Article not found or not owned by you")
    logger.info("Article %s deleted by user id=%s", slug, author_id)


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

async def favorite_article(db: AsyncSession, user_id: int, slug: str) -> dict:
    """Favorite the article; favoriting it twice is a ``ConflictError``."""
    article = await get_article(db, slug, user_id)
    with unique_violation_as_conflict("Article already favorited"):
        await execute(db, insert(favourites).values(article_id=article["id"], user_id=user_id))
    return await get_article(db, slug, user_id)


async def unfavorite_article(db: AsyncSession, user_id: int, slug: str) -> dict:
    """Remove a favorite; removing one that does not exist is a ``ConflictError``."""
    article = await get_article(db, slug, user_id)
    if not article["favorited"]:
        raise ConflictError("Article was not favorited")

    result = await execute(db, DELETE_FAVOURITE, {"article_id": article["id"], "user_id": user_id})
    if result.rowcount == 0:
        raise ConflictError("Article was not favorited")
    return await get_article(db, slug, user_id)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

async def list_tags(db: AsyncSession) -> list[str]:
    result = await execute(db, TAG_NAMES_QUERY)
    return list(result.scalars().all())
