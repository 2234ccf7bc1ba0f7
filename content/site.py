"""Theme and site configuration stored as JSON files in the repository."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict


class ThemeSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    primary: str = "#FF5D01"
    secondary: str = "#0C0C0C"
    background: str = "#FAFAFA"
    text: str = "#1E293B"
    accent: str = "#8B5CF6"
    success: str = "#10B981"


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    siteName: str = "My Blog"
    tagline: str = "A modern blog"
    description: str = ""


def dump_json(model: BaseModel) -> str:
    return json.dumps(model.model_dump(), indent=2, ensure_ascii=False) + "\n"
