"""
Core types for the streamfinder extraction pipeline.

Two media types:
  - m3u8: HLS playlist URL
  - mp4:  direct progressive file URL
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

MOVIE = "movie"
SERIES = "series"
CONTENT_KINDS = (MOVIE, SERIES)

# Aliases accepted on input, normalised on construction
_KIND_ALIASES = {"tv": SERIES, "show": SERIES, "serie": SERIES, "film": MOVIE}

DEFAULT_VARIANT = "subtitled"

NO_PROVIDER = "none"
ALL_PROVIDERS = "all"


class InvalidRequest(ValueError):
    """Malformed resolution request; raised before any provider runs."""


def media_type_for(url: str) -> str:
    return "mp4" if ".mp4" in url else "m3u8"


def _positive_int(name: str, value) -> int:
    # bool is an int subclass, never a valid id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidRequest(f"{name} must be a positive integer, got {value!r}")
    return value


# ──────────────────────────────
#  Request
# ──────────────────────────────
@dataclass
class ResolutionRequest:
    content_id: int
    content_kind: str = MOVIE           # "movie" | "series"
    external_id: Optional[str] = None   # e.g. IMDB id, preferred by id-addressed embeds
    variant: str = DEFAULT_VARIANT      # audio/track variant, part of the cache key
    season: Optional[int] = None
    episode: Optional[int] = None
    forced_provider: Optional[str] = None

    def __post_init__(self):
        self.content_id = _positive_int("content_id", self.content_id)

        kind = (self.content_kind or "").strip().lower()
        kind = _KIND_ALIASES.get(kind, kind)
        if kind not in CONTENT_KINDS:
            raise InvalidRequest(f"content_kind must be one of {CONTENT_KINDS}, got {self.content_kind!r}")
        self.content_kind = kind

        if not self.variant:
            self.variant = DEFAULT_VARIANT
        if not self.external_id:
            self.external_id = None
        if not self.forced_provider:
            self.forced_provider = None

        if kind == SERIES:
            if self.season is None or self.episode is None:
                raise InvalidRequest("series requests need both season and episode")
            self.season = _positive_int("season", self.season)
            self.episode = _positive_int("episode", self.episode)
        elif self.season is not None or self.episode is not None:
            raise InvalidRequest("season/episode are only valid for series requests")

    @property
    def is_series(self) -> bool:
        return self.content_kind == SERIES

    @property
    def embed_id(self) -> str:
        """Id used by id-addressed embeds: external id when known."""
        return str(self.external_id or self.content_id)

    @property
    def cache_key(self) -> tuple:
        return (self.content_id, self.content_kind, self.variant, self.season, self.episode)

    @classmethod
    def from_dict(cls, payload: dict, *, default_variant: str = DEFAULT_VARIANT) -> "ResolutionRequest":
        """Build a request from a JSON payload (camelCase or snake_case keys)."""
        if not isinstance(payload, dict):
            raise InvalidRequest("request body must be a JSON object")

        def pick(*names):
            for n in names:
                if payload.get(n) is not None:
                    return payload[n]
            return None

        content_id = pick("contentId", "content_id", "tmdb_id")
        if isinstance(content_id, str) and content_id.isdigit():
            content_id = int(content_id)
        if content_id is None:
            raise InvalidRequest("contentId is required")

        external_id = pick("externalId", "external_id", "imdb_id")
        return cls(
            content_id=content_id,
            content_kind=pick("contentKind", "content_kind", "content_type") or MOVIE,
            external_id=str(external_id) if external_id is not None else None,
            variant=pick("variant", "audio_type") or default_variant,
            season=pick("season"),
            episode=pick("episode"),
            forced_provider=pick("forcedProvider", "forced_provider", "provider"),
        )


# ──────────────────────────────
#  Provider output
# ──────────────────────────────
@dataclass
class MediaHit:
    url: str
    media_type: str = ""              # "mp4" | "m3u8"

    def __post_init__(self):
        if not self.media_type:
            self.media_type = media_type_for(self.url)


# ──────────────────────────────
#  Cache record
# ──────────────────────────────
@dataclass
class CacheEntry:
    content_id: int
    content_kind: str
    variant: str
    season: Optional[int]
    episode: Optional[int]
    video_url: str
    media_type: str
    provider_id: str
    expires_at: datetime              # naive UTC

    @property
    def key(self) -> tuple:
        return (self.content_id, self.content_kind, self.variant, self.season, self.episode)


# ──────────────────────────────
#  Final output
# ──────────────────────────────
@dataclass
class ResolutionResult:
    url: Optional[str]
    provider_id: str
    media_type: Optional[str] = None
    from_cache: bool = False
    attempted_provider: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.url is not None

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> "ResolutionResult":
        return cls(url=entry.video_url, media_type=entry.media_type,
                   provider_id=entry.provider_id, from_cache=True)

    @classmethod
    def not_found(cls, attempted: str) -> "ResolutionResult":
        return cls(url=None, provider_id=NO_PROVIDER, attempted_provider=attempted)

    def to_dict(self):
        if not self.found:
            return {
                "url": None,
                "providerId": self.provider_id,
                "attemptedProvider": self.attempted_provider,
            }
        return {
            "url": self.url,
            "mediaType": self.media_type,
            "providerId": self.provider_id,
            "fromCache": self.from_cache,
        }


# ──────────────────────────────
#  Metadata + catalog listing
# ──────────────────────────────
@dataclass
class TitleInfo:
    title: str
    alternate_title: Optional[str] = None
    external_id: Optional[str] = None


@dataclass
class CatalogEntry:
    external_id: int
    slug: str


@dataclass
class CatalogPage:
    entries: list[CatalogEntry] = field(default_factory=list)
    # cards seen on the page, parseable or not
    listed: int = 0

    @property
    def empty(self) -> bool:
        """A page listing no cards at all marks the end of the provider's catalog."""
        return not self.entries and not self.listed
