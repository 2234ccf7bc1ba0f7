"""Blog post files: YAML frontmatter + markdown body."""

from __future__ import annotations

import logging
import posixpath
from datetime import date, datetime, timezone
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

POST_EXTENSIONS = (".md", ".mdx")
FRONTMATTER_DELIMITER = "---"


class Post(BaseModel):
    path: str
    slug: str
    title: str
    description: str = ""
    pub_date: str
    hero_image: str = ""
    author: str | None = None
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    draft: bool = False
    content: str
    raw_frontmatter: dict[str, Any] = Field(default_factory=dict)


class PostFields(BaseModel):
    """Editable post fields as submitted by the editor."""

    title: str
    description: str = ""
    pub_date: str = ""
    hero_image: str = ""
    author: str | dict[str, Any] | None = None
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    draft: bool = False
    content: str


def is_post_path(path: str, posts_dir: str) -> bool:
    prefix = posts_dir.strip("/") + "/"
    return path.startswith(prefix) and path.endswith(POST_EXTENSIONS)


def post_path(posts_dir: str, slug: str) -> str:
    return f"{posts_dir.strip('/')}/{slug}.md"


def slug_from_path(path: str) -> str:
    name = posixpath.basename(path)
    for ext in POST_EXTENSIONS:
        if name.endswith(ext):
            return name[: -len(ext)]
    return name


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split ``---`` delimited YAML frontmatter from the markdown body."""
    if not text.startswith(FRONTMATTER_DELIMITER):
        return {}, text
    lines = text.splitlines(keepends=True)
    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONTMATTER_DELIMITER:
            data = yaml.safe_load("".join(lines[1:idx])) or {}
            if not isinstance(data, dict):
                raise ValueError("Frontmatter is not a mapping")
            return data, "".join(lines[idx + 1 :]).lstrip("\n")
    return {}, text


def _iso(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).isoformat()
    return str(value)


def _author_name(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("name")
    return str(value) if value else None


def parse_post(path: str, text: str) -> Post | None:
    """Parse a post file; None when the frontmatter is unreadable."""
    try:
        data, body = split_frontmatter(text)
    except (yaml.YAMLError, ValueError) as e:
        logger.warning("Skipping unparseable post %s: %s", path, e)
        return None
    raw = {k: v for k, v in data.items() if not str(k).startswith("_")}
    pub_date = data.get("pubDate")
    return Post(
        path=path,
        slug=slug_from_path(path),
        title=str(data.get("title") or "Untitled"),
        description=str(data.get("description") or ""),
        pub_date=_iso(pub_date) if pub_date else datetime.now(timezone.utc).isoformat(),
        hero_image=str(data.get("featuredImage") or data.get("heroImage") or ""),
        author=_author_name(data.get("author")),
        category=str(data.get("category") or ""),
        tags=[str(t) for t in data["tags"]] if isinstance(data.get("tags"), list) else [],
        draft=data.get("draft") is True,
        content=body,
        raw_frontmatter=raw,
    )


def render_post(fields: PostFields, original_frontmatter: dict[str, Any] | None = None) -> str:
    """Render a post file, preserving unknown keys of ``original_frontmatter``."""
    original = original_frontmatter or {}
    fm: dict[str, Any] = dict(original)
    fm["title"] = fields.title
    fm["pubDate"] = fields.pub_date or datetime.now(timezone.utc).isoformat()

    if fields.description.strip():
        fm["description"] = fields.description
    else:
        fm.pop("description", None)

    fm.pop("heroImage", None)
    if fields.hero_image.strip():
        fm["featuredImage"] = fields.hero_image
    else:
        fm.pop("featuredImage", None)

    # Astro templates expect author as an object
    author = fields.author.strip() if isinstance(fields.author, str) else fields.author
    if isinstance(author, dict):
        fm["author"] = author
    elif author:
        if isinstance(original.get("author"), dict):
            fm["author"] = {**original["author"], "name": author}
        else:
            fm["author"] = {"name": author}
    elif original.get("author"):
        prev = original["author"]
        fm["author"] = {"name": prev} if isinstance(prev, str) else prev
    else:
        fm.pop("author", None)

    if fields.category.strip():
        fm["category"] = fields.category
    elif original.get("category"):
        fm["category"] = original["category"]

    if fields.tags:
        fm["tags"] = list(fields.tags)
    elif original.get("tags"):
        fm["tags"] = original["tags"]
    else:
        fm.pop("tags", None)

    if fields.draft:
        fm["draft"] = True
    else:
        fm.pop("draft", None)

    header = yaml.safe_dump(fm, sort_keys=False, allow_unicode=True).strip()
    return f"{FRONTMATTER_DELIMITER}\n{header}\n{FRONTMATTER_DELIMITER}\n\n{fields.content}"
