"""
Cache gateway for resolved video URLs.

Rows are keyed by (tmdb_id, content_type, audio_type, season, episode) with
NULL season/episode matching NULL. Expiry is logical: reads skip rows whose
``expires_at`` has passed, and the next successful write overwrites them.
"""
from __future__ import annotations
import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import sessionmaker

from streamfinder.core.models import VideoCache
from streamfinder.providers.base import CacheEntry

log = logging.getLogger("streamfinder.cache")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in ``expires_at``."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CacheStore:
    def get(self, content_id: int, content_kind: str, variant: str,
            season: Optional[int], episode: Optional[int]) -> Optional[CacheEntry]:
        raise NotImplementedError

    def upsert(self, entry: CacheEntry) -> None:
        raise NotImplementedError


class MemoryCacheStore(CacheStore):
    """Process-local store; expired entries stay until overwritten."""

    def __init__(self):
        self._rows: dict[tuple, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._rows)

    def get(self, content_id, content_kind, variant, season, episode):
        with self._lock:
            entry = self._rows.get((content_id, content_kind, variant, season, episode))
        if entry is None or entry.expires_at <= utcnow():
            return None
        return entry

    def upsert(self, entry):
        with self._lock:
            self._rows[entry.key] = entry


class SqlCacheStore(CacheStore):
    def __init__(self, session_factory: sessionmaker):
        self.Session = session_factory

    @staticmethod
    def _key_query(session, content_id, content_kind, variant, season, episode):
        query = session.query(VideoCache).filter(
            VideoCache.tmdb_id == content_id,
            VideoCache.content_type == content_kind,
            VideoCache.audio_type == variant,
        )
        query = query.filter(VideoCache.season.is_(None) if season is None
                             else VideoCache.season == season)
        query = query.filter(VideoCache.episode.is_(None) if episode is None
                             else VideoCache.episode == episode)
        return query

    def get(self, content_id, content_kind, variant, season, episode):
        with self.Session() as session:
            row = (
                self._key_query(session, content_id, content_kind, variant, season, episode)
                .filter(VideoCache.expires_at > utcnow())
                .first()
            )
            if not row:
                return None
            return CacheEntry(
                content_id=row.tmdb_id,
                content_kind=row.content_type,
                variant=row.audio_type,
                season=row.season,
                episode=row.episode,
                video_url=row.video_url,
                media_type=row.video_type,
                provider_id=row.provider,
                expires_at=row.expires_at,
            )

    def upsert(self, entry):
        with self.Session() as session:
            try:
                row = self._key_query(session, *entry.key).first()
                if row is None:
                    row = VideoCache(
                        tmdb_id=entry.content_id,
                        content_type=entry.content_kind,
                        audio_type=entry.variant,
                        season=entry.season,
                        episode=entry.episode,
                    )
                    session.add(row)
                row.video_url = entry.video_url
                row.video_type = entry.media_type
                row.provider = entry.provider_id
                row.expires_at = entry.expires_at
                session.commit()
            except Exception:
                session.rollback()
                raise
        log.debug("[cache] stored %s via %s", entry.key, entry.provider_id)
