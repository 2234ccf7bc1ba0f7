"""Turn editor requests into EditIntents.

Every edit of posts, images, files and config files goes through here so the router
only maps HTTP to ``session.apply_edit``. Reads come from the session cache.
"""

from __future__ import annotations

import base64
import posixpath
import re
from typing import Any

from content.posts import Post, PostFields, post_path, render_post
from content.site import SiteConfig, ThemeSettings, dump_json
from drafts.errors import NotFoundError, ValidationError
from drafts.mode import EditIntent
from drafts.models import DeleteOperation, WriteOperation, normalize_path
from drafts.session import EditorSession

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")
_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (title or "").lower()).strip("-")
    if not slug:
        raise ValidationError("Cannot derive a slug from an empty title")
    return slug


# ==================== Posts ====================


def create_post_intent(
    session: EditorSession,
    posts_dir: str,
    fields: PostFields,
    slug: str | None,
    commit_message: str | None,
    images: tuple[WriteOperation, ...] = (),
) -> EditIntent:
    slug = (slug or "").strip() or slugify(fields.title)
    if not _SLUG_RE.match(slug):
        raise ValidationError(f"Invalid slug: {slug!r}")
    if session.cache.get_post(slug) is not None:
        raise ValidationError(f"Post already exists: {slug}")
    path = post_path(posts_dir, slug)
    return EditIntent(
        kind="post.create",
        title=f"Create post: {fields.title}",
        primary_path=path,
        operations=(WriteOperation.text(path, render_post(fields)), *images),
        metadata={"slug": slug},
        commit_message=commit_message or f"Create post: {fields.title}",
    )


def update_post_intent(
    session: EditorSession,
    slug: str,
    fields: PostFields,
    commit_message: str | None,
    images: tuple[WriteOperation, ...] = (),
) -> EditIntent:
    existing = require_post(session, slug)
    text = render_post(fields, existing.raw_frontmatter)
    return EditIntent(
        kind="post.update",
        title=f"Update post: {fields.title}",
        primary_path=existing.path,
        operations=(WriteOperation.text(existing.path, text), *images),
        metadata={"slug": slug},
        commit_message=commit_message or f"Update post: {fields.title}",
    )


def delete_post_intent(session: EditorSession, slug: str, commit_message: str | None) -> EditIntent:
    existing = require_post(session, slug)
    return EditIntent(
        kind="post.delete",
        title=f"Delete post: {existing.title}",
        primary_path=existing.path,
        operations=(DeleteOperation(existing.path),),
        metadata={"slug": slug},
        commit_message=commit_message or f"Delete post: {existing.title}",
    )


def require_post(session: EditorSession, slug: str) -> Post:
    post = session.cache.get_post(slug)
    if post is None:
        raise NotFoundError(f"Post not found: {slug}")
    return post


# ==================== Files ====================


def write_file_intent(path: str, content: str, encoding: str, commit_message: str | None) -> EditIntent:
    path = normalize_path(path)
    if content is None:
        raise ValidationError("Path and content are required")
    if encoding == "base64":
        op = WriteOperation.from_base64(path, content)
    elif encoding == "utf8":
        op = WriteOperation.text(path, content)
    else:
        raise ValidationError(f"Unknown encoding: {encoding!r}")
    return EditIntent(
        kind="file.write",
        title=f"Update {path}",
        primary_path=path,
        operations=(op,),
        commit_message=commit_message or f"Update {path}",
    )


def delete_file_intent(session: EditorSession, path: str, commit_message: str | None) -> EditIntent:
    path = normalize_path(path)
    if not session.cache.has_file(path):
        raise NotFoundError(f"File not found: {path}")
    return EditIntent(
        kind="file.delete",
        title=f"Delete {path}",
        primary_path=path,
        operations=(DeleteOperation(path),),
        commit_message=commit_message or f"Delete {path}",
    )


async def read_file(session: EditorSession, path: str) -> dict[str, Any]:
    """Cached content first, then the remote at the active branch.

    The cached listing is authoritative: a path it lacks (for example one with a
    staged delete) is not found even if the branch head still has it.
    """
    path = normalize_path(path)
    if not session.cache.has_file(path):
        raise NotFoundError(f"File not found: {path}")
    content = session.cache.get_content(path)
    if content is None:
        content = await session.client.get_file_content(path, session.branch)
        if content is None:
            raise NotFoundError(f"File not found: {path}")
        session.cache.remember(path, content)
    try:
        return {"path": path, "name": path.rsplit("/", 1)[-1], "content": content.decode("utf-8"), "encoding": "utf8"}
    except UnicodeDecodeError:
        return {
            "path": path,
            "name": path.rsplit("/", 1)[-1],
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
        }


# ==================== Images ====================


def image_path(images_dir: str, filename: str) -> str:
    name = posixpath.basename((filename or "").replace("\\", "/")).strip()
    name = _UNSAFE_NAME_RE.sub("-", name).strip("-.")
    if "." not in name:
        raise ValidationError(f"Image filename needs an extension: {filename!r}")
    return normalize_path(f"{images_dir}/{name}")


def public_url(path: str) -> str:
    """Site URL of a repository file; ``public/`` is served from the site root."""
    if path.startswith("public/"):
        return "/" + path[len("public/") :]
    return "/" + path


def image_operation(images_dir: str, filename: str, content: str) -> WriteOperation:
    return WriteOperation.from_base64(image_path(images_dir, filename), content)


def upload_image_intent(images_dir: str, filename: str, content: str, commit_message: str | None) -> EditIntent:
    op = image_operation(images_dir, filename, content)
    return EditIntent(
        kind="image.upload",
        title=f"Upload {op.path}",
        primary_path=op.path,
        operations=(op,),
        metadata={"url": public_url(op.path)},
        commit_message=commit_message or f"Upload image: {posixpath.basename(op.path)}",
    )


# ==================== Theme and site config ====================


def theme_intent(path: str, theme: ThemeSettings, commit_message: str | None) -> EditIntent:
    return _json_intent("theme.update", path, dump_json(theme), commit_message or "Update theme configuration")


def site_config_intent(path: str, config: SiteConfig, commit_message: str | None) -> EditIntent:
    return _json_intent("site_config.update", path, dump_json(config), commit_message or "Update site configuration")


def _json_intent(kind: str, path: str, text: str, message: str) -> EditIntent:
    return EditIntent(
        kind=kind,
        title=message,
        primary_path=path,
        operations=(WriteOperation.text(path, text),),
        commit_message=message,
    )
