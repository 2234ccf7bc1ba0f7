"""Pydantic request models for repopress web API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from content.posts import PostFields


class ConnectRequest(BaseModel):
    url: str


class CreateBranchRequest(BaseModel):
    domain: str


class SwitchBranchRequest(BaseModel):
    branch: str


class EditOptions(BaseModel):
    queue_only: bool = False
    commit_message: str | None = None


class ImageUpload(BaseModel):
    filename: str
    content: str  # base64 or data URL


class ImageRequest(ImageUpload, EditOptions):
    pass


class PostRequest(PostFields, EditOptions):
    slug: str | None = None
    images: list[ImageUpload] = Field(default_factory=list)


class DeletePostRequest(EditOptions):
    pass


class FileWriteRequest(EditOptions):
    path: str
    content: str
    encoding: Literal["utf8", "base64"] = "utf8"


class ThemeRequest(EditOptions):
    theme: dict[str, Any] = Field(default_factory=dict)


class SiteConfigRequest(EditOptions):
    config: dict[str, Any] = Field(default_factory=dict)


class ModeRequest(BaseModel):
    deferred: bool


class PublishRequest(BaseModel):
    message: str | None = None
