from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


class CamelModel(BaseModel):
    """Accepts snake_case field names, serialises with the camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


# --- User ---

class NewUser(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)


class LoginUser(BaseModel):
    email: str
    password: str


class UserUpdate(BaseModel):
    email: str | None = Field(None, min_length=3, max_length=255)
    username: str | None = Field(None, min_length=1, max_length=100)
    password: str | None = Field(None, min_length=1)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class RegisterRequest(BaseModel):
    user: NewUser


class LoginRequest(BaseModel):
    user: LoginUser


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserResponse(BaseModel):
    email: str
    token: str
    username: str
    bio: str | None = None
    image: str | None = None


class UserEnvelope(BaseModel):
    user: UserResponse


# --- Profile ---

class ProfileResponse(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileEnvelope(BaseModel):
    profile: ProfileResponse


# --- Article ---

class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = Field("", max_length=500)
    body: str
    tag_list: list[str] = Field(default_factory=list, alias="tagList")


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = Field(None, max_length=500)
    body: str | None = None


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class ArticleResponse(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = Field(default_factory=list, alias="tagList")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    favorited: bool = False
    favorites_count: int = Field(0, alias="favoritesCount")
    author: ProfileResponse


class ArticleEnvelope(BaseModel):
    article: ArticleResponse


class MultipleArticles(CamelModel):
    articles: list[ArticleResponse]
    articles_count: int = Field(alias="articlesCount")


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class CommentCreateRequest(BaseModel):
    comment: CommentCreate


class CommentResponse(CamelModel):
    id: int
    body: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    author: ProfileResponse


class CommentEnvelope(BaseModel):
    comment: CommentResponse


class MultipleComments(BaseModel):
    comments: list[CommentResponse]


# --- Tags ---

class TagList(BaseModel):
    tags: list[str]
