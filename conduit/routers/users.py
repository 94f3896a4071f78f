from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.config import Settings, get_settings
from conduit.database import get_db
from conduit.dependencies import AuthUser, get_current_user
from conduit.schemas import LoginRequest, RegisterRequest, UserEnvelope, UserUpdateRequest
from conduit.security import issue_token
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])


def _envelope(user: dict, token: str) -> dict:
    return {"user": {**user, "token": token}}


@router.post("/users", status_code=201, response_model=UserEnvelope)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await user_service.register_user(db, data.user)
    return _envelope(user, issue_token(user["id"], settings))

@router.post("/users/login", response_model=UserEnvelope)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await user_service.login_user(db, data.user)
    return _envelope(user, issue_token(user["id"], settings))

@router.get("/user", response_model=UserEnvelope)
async def current_user(
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _envelope(await user_service.get_user(db, auth.id), auth.token)

@router.put("/user", response_model=UserEnvelope)
async def update_user(
    data: UserUpdateRequest,
    auth: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _envelope(await user_service.update_user(db, auth.id, data.user), auth.token)
