"""
Comment service: comments under an article.

Comments are always addressed through a resolved article id, never joined
on the slug, so ownership on delete is a plain compound-key match
(author id, article id, comment id).
"""
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import execute, flush
from conduit.errors import ForbiddenError, NotFoundError
from conduit.models import Comment
from conduit.queries import (
    ARTICLE_ID_BY_SLUG_QUERY,
    DELETE_COMMENT,
    ClauseBuilder,
    bind_params,
    comment_query,
)
from conduit.schemas import CommentCreate


def _comment_to_dict(row) -> dict:
    return {
        "id": row["id"],
        "body": row["body"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "author": {
            "username": row["author_username"],
            "bio": row["author_bio"],
            "image": row["author_image"],
            "following": bool(row["following"]),
        },
    }


async def _article_id(db: AsyncSession, slug: str) -> int:
    result = await execute(db, ARTICLE_ID_BY_SLUG_QUERY, {"slug": slug})
    article_id = result.scalar_one_or_none()
    if article_id is None:
        raise NotFoundError("Article not found")
    return article_id


async def _query_comments(
    db: AsyncSession,
    article_id: int,
    viewer_id: int | None,
    comment_id: int | None = None,
):
    # :p1 and :p2 are already referenced by COMMENT_QUERY.
    predicates, params = (
        ClauseBuilder(" AND ", " AND ", [article_id, viewer_id])
        .add("comments.id", comment_id)
        .finish()
    )
    result = await execute(db, comment_query(predicates), bind_params(params))
    return result.mappings().all()


async def add_comment(
    db: AsyncSession, author_id: int, slug: str, data: CommentCreate
) -> dict:
    """Add a comment by *author_id* to the article identified by *slug*."""
    article_id = await _article_id(db, slug)
    comment = Comment(body=data.body, article_id=article_id, author_id=author_id)
    db.add(comment)
    await flush(db)

    rows = await _query_comments(db, article_id, author_id, comment.id)
    if not rows:
        raise NotFoundError("Comment not found")
    return _comment_to_dict(rows[0])


async def list_comments(db: AsyncSession, slug: str, viewer_id: int | None) -> list[dict]:
    article_id = await _article_id(db, slug)
    return [_comment_to_dict(row) for row in await _query_comments(db, article_id, viewer_id)]


async def get_comment(
    db: AsyncSession, slug: str, comment_id: int, viewer_id: int | None
) -> dict:
    article_id = await _article_id(db, slug)
    rows = await _query_comments(db, article_id, viewer_id, comment_id)
    if not rows:
        raise NotFoundError("Comment not found")
    return _comment_to_dict(rows[0])


async def delete_comment(
    db: AsyncSession, author_id: int, slug: str, comment_id: int
) -> None:
    """
    Delete the comment only when author, article and comment id all match;
    anything else is ``ForbiddenError``.
    """
    article_id = await _article_id(db, slug)
    result = await execute(
        db,
        DELETE_COMMENT,
        {"author_id": author_id, "article_id": article_id, "id": comment_id},
    )
    if result.rowcount == 0:
        raise ForbiddenError("Comment not found or not owned by you")
