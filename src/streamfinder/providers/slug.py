"""Slug guesses for providers that address content pages by title."""
from __future__ import annotations
import re
import unicodedata

from .base import TitleInfo

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-{2,}")


def slugify(title: str) -> str:
    text = unicodedata.normalize("NFD", title)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _DISALLOWED.sub("", text.lower()).strip()
    text = _WHITESPACE.sub("-", text)
    return _HYPHENS.sub("-", text).strip("-")


def build_slug(title: str, content_id: int) -> str:
    """
    >>> build_slug("Além da Tempestade", 4)
    'alem-da-tempestade-4'
    """
    base = slugify(title)
    return f"{base}-{content_id}" if base else str(content_id)


def slug_candidates(info: TitleInfo, content_id: int) -> list[str]:
    """Canonical title first, then the alternate title when it differs."""
    out = []
    for title in (info.title, info.alternate_title):
        if not title:
            continue
        slug = build_slug(title, content_id)
        if slug not in out:
            out.append(slug)
    return out
