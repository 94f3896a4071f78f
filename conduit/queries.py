"""
Query composition: the assignment/predicate builder and the canonical
SQL shapes every data access operation is spliced into.

Design notes
------------
- ``ClauseBuilder`` is a plain accumulator over optional values.  It only
  ever writes column expressions and ``:pN`` placeholders into the SQL
  text; values travel separately as bind parameters, so user data is never
  interpolated.
- Placeholder numbers follow the running count of bind values, including
  any pre-seeded ones, so a builder can continue numbering after binds a
  template already uses (e.g. the comment query's article id and viewer id).
- The article templates compute ``favorited`` / ``following`` per query
  against ``:viewer_id``; nothing viewer-relative is stored on the row.
- Optional listing filters use ``column = :x OR CAST(:x AS ...) IS NULL``
  so one statement shape serves every filter combination.  The casts give
  PostgreSQL a type for a bare NULL parameter and are no-ops on SQLite.
"""
from typing import Any, Sequence

from sqlalchemy import Boolean, DateTime, Integer, bindparam, text

# ---------------------------------------------------------------------------
# Predicate / assignment builder
# ---------------------------------------------------------------------------


class ClauseBuilder:
    """
    Accumulate ``column = :pN`` fragments for the values that are present.

    ``prefix`` is the clause keyword (``"SET "``, ``" WHERE "``, ``" AND "``),
    ``separator`` joins the fragments (``", "`` for assignments, ``" AND "``
    for predicates), and ``params`` pre-seeds bind values that the
    surrounding statement already references as ``:p1`` .. ``:pK``.
    """

    def __init__(
        self,
        prefix: str,
        separator: str,
        params: Sequence[Any] | None = None,
    ) -> None:
        self.prefix = prefix
        self.separator = separator
        self.params: list[Any] = list(params or [])
        self._fragments: list[str] = []

    def add(self, column: str, value: Any) -> "ClauseBuilder":
        if value is not None:
            self.params.append(value)
            self._fragments.append(f"{column} = :p{len(self.params)}")
        return self

    def finish(self) -> tuple[str, list[Any]]:
        """
        Return ``(clause_text, bind_values)``.

        With nothing added the clause text is empty, so callers never emit a
        bare ``SET`` / ``WHERE``; pre-seeded values are still returned.
        """
        if not self._fragments:
            return "", self.params
        return self.prefix + self.separator.join(self._fragments), self.params


def bind_params(values: Sequence[Any]) -> dict[str, Any]:
    """Map an ordered bind list onto the ``p1``, ``p2`` ... names used in the SQL."""
    return {f"p{index}": value for index, value in enumerate(values, start=1)}


# ---------------------------------------------------------------------------
# User templates
# ---------------------------------------------------------------------------

USER_QUERY = """
SELECT users.id, users.username, users.email, users.password,
       users.bio, users.image, users.created_at
FROM users{predicates}
"""

UPDATE_USER = "UPDATE users {assignments}{predicates}"

FOLLOWING_QUERY = text(
    "SELECT 1 FROM follows WHERE follower_id = :follower_id AND followed_id = :followed_id"
)

DELETE_FOLLOW = text(
    "DELETE FROM follows WHERE follower_id = :follower_id AND followed_id = :followed_id"
)


def user_query(predicates: str):
    return text(USER_QUERY.format(predicates=predicates)).columns(
        created_at=DateTime(timezone=True)
    )


# ---------------------------------------------------------------------------
# Article templates
# ---------------------------------------------------------------------------

_ARTICLE_TYPES = {
    "created_at": DateTime(timezone=True),
    "updated_at": DateTime(timezone=True),
    "favorites_count": Integer,
    "favorited": Boolean,
    "following": Boolean,
}

_ARTICLE_PROJECTION = """
SELECT articles.id                          AS id,
       articles.slug                        AS slug,
       articles.title                       AS title,
       articles.description                 AS description,
       articles.body                        AS body,
       articles.author_id                   AS author_id,
       articles.created_at                  AS created_at,
       articles.updated_at                  AS updated_at,
       users.username                       AS author_username,
       users.bio                            AS author_bio,
       users.image                          AS author_image,
       COUNT(DISTINCT favourite.user_id)    AS favorites_count,
       EXISTS (SELECT 1
               FROM   favourite AS viewer_favourite
               WHERE  viewer_favourite.article_id = articles.id
                  AND viewer_favourite.user_id = :viewer_id) AS favorited,
       EXISTS (SELECT 1
               FROM   follows AS viewer_follows
               WHERE  viewer_follows.followed_id = articles.author_id
                  AND viewer_follows.follower_id = :viewer_id) AS following
FROM   articles
       JOIN users
         ON users.id = articles.author_id
       LEFT JOIN favourite
              ON favourite.article_id = articles.id
"""

# Joins and filters shared by the listing and its count.  The favoriter and
# feed joins are restricted to one user each, so they add no fan-out beyond
# the tag join that GROUP BY / COUNT(DISTINCT) already absorb.
_LISTING_JOINS = """
       LEFT JOIN articletags
              ON articletags.article_id = articles.id
       LEFT JOIN tags
              ON tags.id = articletags.tag_id
       LEFT JOIN favourite AS favoriter
              ON favoriter.article_id = articles.id
                 AND favoriter.user_id = :favoriter_id
       LEFT JOIN follows AS feed
              ON feed.followed_id = articles.author_id
                 AND feed.follower_id = :follower_id
"""

_LISTING_FILTERS = """
WHERE  ( tags.name = :tag OR CAST(:tag AS VARCHAR) IS NULL )
   AND ( users.username = :author OR CAST(:author AS VARCHAR) IS NULL )
   AND ( favoriter.user_id = :favoriter_id OR CAST(:favoriter_id AS INTEGER) IS NULL )
   AND ( feed.follower_id = :follower_id OR CAST(:follower_id AS INTEGER) IS NULL )
"""

ARTICLE_LIST_QUERY = text(
    _ARTICLE_PROJECTION
    + _LISTING_JOINS
    + _LISTING_FILTERS
    + """
GROUP  BY articles.id, users.id
ORDER  BY articles.created_at DESC, articles.id DESC
LIMIT  :limit OFFSET :offset
"""
).columns(**_ARTICLE_TYPES)

ARTICLE_COUNT_QUERY = text(
    """
SELECT COUNT(DISTINCT articles.id) AS total
FROM   articles
       JOIN users
         ON users.id = articles.author_id
"""
    + _LISTING_JOINS
    + _LISTING_FILTERS
)

ARTICLE_BY_SLUG_QUERY = text(
    _ARTICLE_PROJECTION
    + """
WHERE  articles.slug = :slug
GROUP  BY articles.id, users.id
"""
).columns(**_ARTICLE_TYPES)

ARTICLE_TAGS_QUERY = text(
    """
SELECT articletags.article_id AS article_id, tags.name AS name
FROM   articletags
       JOIN tags
         ON tags.id = articletags.tag_id
WHERE  articletags.article_id IN :article_ids
ORDER  BY tags.name
"""
).bindparams(bindparam("article_ids", expanding=True))

ARTICLE_ID_BY_SLUG_QUERY = text("SELECT id FROM articles WHERE slug = :slug")

OWNED_ARTICLE_ID_QUERY = text(
    "SELECT id FROM articles WHERE slug = :slug AND author_id = :author_id"
)

SLUGS_LIKE_QUERY = text("SELECT slug FROM articles WHERE slug = :slug OR slug LIKE :pattern")

UPDATE_ARTICLE = "UPDATE articles {assignments}, updated_at = CURRENT_TIMESTAMP{predicates}"

DELETE_ARTICLE = text("DELETE FROM articles WHERE slug = :slug AND author_id = :author_id")

# Join-row cleanup, run before the article row is removed.
DELETE_ARTICLE_CHILDREN = (
    text("DELETE FROM articletags WHERE article_id = :article_id"),
    text("DELETE FROM favourite WHERE article_id = :article_id"),
    text("DELETE FROM comments WHERE article_id = :article_id"),
)

DELETE_FAVOURITE = text(
    "DELETE FROM favourite WHERE article_id = :article_id AND user_id = :user_id"
)

TAG_NAMES_QUERY = text("SELECT name FROM tags ORDER BY name")

# ---------------------------------------------------------------------------
# Comment templates
#
# Always scoped to a resolved article id (:p1); :p2 is the viewer id for the
# author's ``following`` flag.  Extra predicates start at :p3.
# ---------------------------------------------------------------------------

COMMENT_QUERY = """
SELECT comments.id          AS id,
       comments.body        AS body,
       comments.created_at  AS created_at,
       comments.updated_at  AS updated_at,
       comments.article_id  AS article_id,
       comments.author_id   AS author_id,
       users.username       AS author_username,
       users.bio            AS author_bio,
       users.image          AS author_image,
       EXISTS (SELECT 1
               FROM   follows
               WHERE  follows.followed_id = comments.author_id
                  AND follows.follower_id = :p2) AS following
FROM   comments
       JOIN users
         ON users.id = comments.author_id
WHERE  comments.article_id = :p1{predicates}
ORDER  BY comments.created_at DESC, comments.id DESC
"""

DELETE_COMMENT = text(
    "DELETE FROM comments WHERE author_id = :author_id AND article_id = :article_id AND id = :id"
)


def comment_query(predicates: str):
    return text(COMMENT_QUERY.format(predicates=predicates)).columns(
        created_at=DateTime(timezone=True),
        updated_at=DateTime(timezone=True),
        following=Boolean,
    )
