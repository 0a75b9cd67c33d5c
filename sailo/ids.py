"""Workspace identifiers and branch-safe slugs."""

from __future__ import annotations

import re
import secrets

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")
_MAX_SLUG_LENGTH = 30


def generate_id() -> str:
    """Return a random workspace ID of the form ws-<8 hex digits>."""
    return f"ws-{secrets.token_hex(4)}"


def slugify(task: str) -> str:
    """Turn a task description into a branch-safe slug of at most 30 chars."""
    slug = _NON_ALPHANUMERIC.sub("-", task.lower()).strip("-")
    if len(slug) > _MAX_SLUG_LENGTH:
        slug = slug[:_MAX_SLUG_LENGTH].rstrip("-")
    return slug or "workspace"