from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import (
    ArticleFilters,
    AuthUser,
    PaginationParams,
    article_filters,
    get_current_user,
    get_optional_user,
    viewer_id,
)
from conduit.schemas import (
    ArticleCreateRequest,
    ArticleEnvelope,
    ArticleUpdateRequest,
    CommentCreateRequest,
    CommentEnvelope,
    MultipleArticles,
    MultipleComments,
)
from conduit.services import article_service, comment_service

router = APIRouter(prefix="/api/articles", tags=["articles"])

@router.get("", response_model=MultipleArticles)
async def list_articles(
    filters: ArticleFilters = Depends(article_filters),
    pagination: PaginationParams = Depends(),
    auth: AuthUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_articles(
        db,
        viewer_id(auth),
        tag=filters.tag,
        author=filters.author,
        favorited=filters.favorited,
        limit=pagination.limit,
        offset=pagination.offset,
    )

@router.get("/feed", response_model=MultipleArticles)
async def feed(
    pagination: PaginationParams = Depends(),
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.feed_articles(db, auth.id, pagination.limit, pagination.offset)

@router.post("", status_code=201, response_model=ArticleEnvelope)
async def create_article(
    data: ArticleCreateRequest,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.create_article(db, auth.id, data.article)}

@router.get("/{slug}", response_model=ArticleEnvelope)
async def get_article(
    slug: str,
    auth: AuthUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.get_article(db, slug, viewer_id(auth))}

@router.put("/{slug}", response_model=ArticleEnvelope)
async def update_article(
    slug: str,
    data: ArticleUpdateRequest,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.update_article(db, auth.id, slug, data.article)}

@router.delete("/{slug}", status_code=204)
async def delete_article(
    slug: str,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, auth.id, slug)

@router.post("/{slug}/favorite", response_model=ArticleEnvelope)
async def favorite_article(
    slug: str,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.favorite_article(db, auth.id, slug)}

@router.delete("/{slug}/favorite", response_model=ArticleEnvelope)
async def unfavorite_article(
    slug: str,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"article": await article_service.unfavorite_article(db, auth.id, slug)}

# --- Comments ---

@router.get("/{slug}/comments", response_model=MultipleComments)
async def list_comments(
    slug: str,
    auth: AuthUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comments": await comment_service.list_comments(db, slug, viewer_id(auth))}

@router.post("/{slug}/comments", status_code=201, response_model=CommentEnvelope)
async def add_comment(
    slug: str,
    data: CommentCreateRequest,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.add_comment(db, auth.id, slug, data.comment)}

@router.get("/{slug}/comments/{comment_id}", response_model=CommentEnvelope)
async def get_comment(
    slug: str,
    comment_id: int,
    auth: AuthUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"comment": await comment_service.get_comment(db, slug, comment_id, viewer_id(auth))}

@router.delete("/{slug}/comments/{comment_id}", status_code=204)
async def delete_comment(
    slug: str,
    comment_id: int,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, auth.id, slug, comment_id)
