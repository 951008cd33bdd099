from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys but accept snake_case in Python code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# Pattern fields are searched, so this only requires one non-whitespace character.
_NOT_BLANK = r"\S"


# --- User / auth ---

class UserRegister(CamelModel):
    username: str = Field(min_length=1, max_length=50, pattern=_NOT_BLANK)
    email: str = Field(max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(min_length=1)
    bio: str | None = None
    image: str | None = None


class UserLogin(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserUpdate(CamelModel):
    # None or blank means "leave unchanged"; see user_service.update_user.
    username: str | None = Field(None, max_length=50)
    email: str | None = Field(None, max_length=255)
    password: str | None = None
    bio: str | None = None
    image: str | None = None


class TokenRefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class UserResponse(CamelModel):
    username: str
    email: str
    bio: str | None = None
    image: str | None = None


class AuthResponse(CamelModel):
    access_token: str
    refresh_token: str
    username: str
    email: str
    bio: str | None = None
    image: str | None = None


class Credentials(BaseModel):
    """Minimal view of a user needed to check a password."""

    id: int
    password_hash: str
    model_config = ConfigDict(from_attributes=True)


# --- Profile ---

class Profile(CamelModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


# --- Article ---

class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300, pattern=_NOT_BLANK)
    description: str = ""
    body: str = Field(min_length=1, pattern=_NOT_BLANK)
    tag_list: list[str] = []


class ArticleUpdate(CamelModel):
    # None or blank means "leave unchanged"; see article_service.update_article.
    title: str | None = Field(None, max_length=300)
    description: str | None = None
    body: str | None = None


class ArticleSummary(CamelModel):
    slug: str
    title: str
    description: str
    tag_list: list[str] = []
    created_at: datetime
    updated_at: datetime
    favorited: bool = False
    favorites_count: int = 0
    author: Profile


class ArticleView(ArticleSummary):
    body: str


class ArticleList(CamelModel):
    articles: list[ArticleSummary] = []
    articles_count: int = 0


# --- Comment ---

class CommentCreate(CamelModel):
    body: str = Field(min_length=1, pattern=_NOT_BLANK)


class CommentView(CamelModel):
    id: int
    body: str
    created_at: datetime
    updated_at: datetime
    author: Profile


# --- Response envelopes ---

class UserEnvelope(BaseModel):
    user: UserResponse


class AuthEnvelope(BaseModel):
    user: AuthResponse


class ProfileEnvelope(BaseModel):
    profile: Profile


class ArticleEnvelope(BaseModel):
    article: ArticleView


class CommentEnvelope(BaseModel):
    comment: CommentView


class CommentsEnvelope(BaseModel):
    comments: list[CommentView] = []


class TagsResponse(BaseModel):
    tags: list[str] = []
