from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.database import get_db
from conduit.dependencies import AuthUser, get_current_user, get_optional_user, viewer_id
from conduit.schemas import ProfileEnvelope
from conduit.services import profile_service

router = APIRouter(prefix="/api/profiles", tags=["profiles"])

@router.get("/{username}", response_model=ProfileEnvelope)
async def get_profile(
    username: str,
    auth: AuthUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.get_profile(db, username, viewer_id(auth))}

@router.post("/{username}/follow", response_model=ProfileEnvelope)
async def follow(
    username: str,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.follow_user(db, auth.id, username)}

@router.delete("/{username}/follow", response_model=ProfileEnvelope)
async def unfollow(
    username: str,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"profile": await profile_service.unfollow_user(db, auth.id, username)}
