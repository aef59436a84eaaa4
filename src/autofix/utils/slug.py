"""Utilities for generating consistent, length-limited slugs."""

from __future__ import annotations

import hashlib
import re
from datetime import datetime, timezone
from typing import Pattern

_UNSAFE_CHARS: Pattern[str] = re.compile(r"[^a-z0-9]+")
_UNSAFE_CHARS_MIXED: Pattern[str] = re.compile(r"[^A-Za-z0-9]+")


def slugify(
    value: str | None,
    *,
    fallback: str = "item",
    max_length: int = 80,
    lowercase: bool = True,
    separator: str = "-",
) -> str:
    """Normalize ``value`` into a filesystem- and identifier-friendly slug.

    Runs of anything other than ASCII letters and digits collapse into
    ``separator``. Values longer than ``max_length`` are shortened with a
    hash suffix so distinct long titles stay distinct.
    """
    source = (value or "").strip()
    if lowercase:
        source = source.lower()
    pattern = _UNSAFE_CHARS if lowercase else _UNSAFE_CHARS_MIXED

    slug = pattern.sub(separator, source).strip(separator)
    if not slug:
        slug = pattern.sub(separator, fallback.lower() if lowercase else fallback).strip(separator) or "item"

    if len(slug) > max_length:
        slug = abbreviate_slug(slug, max_length=max_length, separator=separator)
    return slug


def abbreviate_slug(segment: str, *, max_length: int = 80, separator: str = "-") -> str:
    """Trim ``segment`` to ``max_length`` while preserving uniqueness via hashing."""
    slug = segment.strip(separator)
    if len(slug) <= max_length:
        return slug

    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix_length = max(max_length - len(digest) - 1, 1)
    prefix = slug[:prefix_length].rstrip(separator) or slug[:prefix_length]
    return f"{prefix}{separator}{digest}"


def timestamp_slug(moment: datetime | None = None) -> str:
    """Return a UTC timestamp safe for branch names, e.g. ``20250101T120000Z``."""
    current = moment or datetime.now(timezone.utc)
    return current.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


__all__ = ["abbreviate_slug", "slugify", "timestamp_slug"]
