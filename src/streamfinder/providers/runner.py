"""
Extraction engine: cache lookup, then sources in rank order until one resolves.

Usage:
    engine = build_engine()
    result = await engine.resolve(ResolutionRequest(content_id=42))
    print(result.to_dict())
    await engine.close()
"""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..core.cache import CacheStore, SqlCacheStore, utcnow
from .base import (
    ALL_PROVIDERS, CONTENT_KINDS, CacheEntry, InvalidRequest, MediaHit,
    ResolutionRequest, ResolutionResult,
)
from .discovery import CatalogDiscovery
from .fetcher import Fetcher
from .metadata import CatalogMetadata, MetadataLookup, TmdbMetadata

log = logging.getLogger("streamfinder.runner")


@dataclass
class ScrapeEnv:
    """Shared collaborators handed to every source scraper."""
    fetcher: Fetcher
    settings: Settings
    metadata: Optional[MetadataLookup] = None
    discovery: Optional[CatalogDiscovery] = None


# ──────────────────────────────
#  Scraper registry
# ──────────────────────────────
class _SourceScraper:
    id: str
    name: str
    rank: int
    media_types: list[str]          # ["movie"] or ["movie", "series"]

    async def scrape(self, req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        raise NotImplementedError


# Populated when source modules are imported
_SOURCES: list[_SourceScraper] = []


def register_source(scraper):
    """Decorator to register a source scraper class."""
    global _SOURCES
    _SOURCES = [s for s in _SOURCES if s.id != scraper.id]
    _SOURCES.append(scraper())
    _SOURCES.sort(key=lambda s: s.rank, reverse=True)
    return scraper


# ──────────────────────────────
#  Engine
# ──────────────────────────────
class ExtractionEngine:
    def __init__(
        self,
        cache: CacheStore,
        *,
        settings: Settings | None = None,
        metadata: MetadataLookup | None = None,
        fetcher: Fetcher | None = None,
        sources: list | None = None,
        clock=utcnow,
    ):
        self.settings = settings or Settings.from_env()
        self.fetcher = fetcher or Fetcher(timeout=self.settings.http_timeout)
        self.cache = cache
        self.clock = clock
        discovery = CatalogDiscovery(
            self.fetcher,
            base_url=self.settings.cineveo_base,
            batch_size=self.settings.discovery_batch_size,
            max_pages=self.settings.discovery_max_pages,
        )
        self.env = ScrapeEnv(self.fetcher, self.settings, metadata, discovery)
        pool = list(_SOURCES) if sources is None else list(sources)
        self.sources = sorted(pool, key=lambda s: s.rank, reverse=True)

    async def close(self):
        await self.fetcher.close()

    def list_sources(self):
        return [{'id': s.id, 'name': s.name, 'rank': s.rank,
                 'ttl': int(self.settings.ttl_for(s.id).total_seconds())}
                for s in self.sources]

    async def resolve(self, req: ResolutionRequest) -> ResolutionResult:
        if req.forced_provider:
            applicable = [s for s in self.sources if s.id == req.forced_provider]
            if not applicable:
                raise InvalidRequest(f"unknown provider {req.forced_provider!r}")
        else:
            cached = self._cache_get(req)
            if cached:
                log.info("Cache hit for %s via %s", req.cache_key, cached.provider_id)
                return ResolutionResult.from_entry(cached)
            applicable = [
                s for s in self.sources
                if req.content_kind in getattr(s, 'media_types', CONTENT_KINDS)
            ]

        for source in applicable:
            hit = await self._try_source(source, req)
            if not hit:
                continue
            self._cache_put(req, source.id, hit)
            return ResolutionResult(url=hit.url, media_type=hit.media_type,
                                    provider_id=source.id, from_cache=False)

        scope = req.forced_provider or ALL_PROVIDERS
        log.warning("No stream found for %s (scope: %s)", req.cache_key, scope)
        return ResolutionResult.not_found(scope)

    async def resolve_payload(self, payload: dict) -> dict:
        """JSON in, JSON out."""
        req = ResolutionRequest.from_dict(payload, default_variant=self.settings.default_variant)
        result = await self.resolve(req)
        return result.to_dict()

    async def _try_source(self, source, req: ResolutionRequest) -> Optional[MediaHit]:
        try:
            log.info("[%s] Trying source scraper...", source.id)
            hit = await asyncio.wait_for(source.scrape(req, self.env),
                                         timeout=self.settings.source_timeout)
        except Exception as e:
            log.warning("[%s] Source failed: %r", source.id, e)
            return None
        if hit and hit.url:
            log.info("[%s] Stream found: %s", source.id, hit.url[:120])
            return hit
        log.info("[%s] No stream", source.id)
        return None

    def _cache_get(self, req: ResolutionRequest) -> Optional[CacheEntry]:
        try:
            return self.cache.get(*req.cache_key)
        except Exception as e:
            log.warning("Cache read failed, treating as miss: %s", e)
            return None

    def _cache_put(self, req: ResolutionRequest, provider_id: str, hit: MediaHit):
        entry = CacheEntry(
            content_id=req.content_id,
            content_kind=req.content_kind,
            variant=req.variant,
            season=req.season,
            episode=req.episode,
            video_url=hit.url,
            media_type=hit.media_type,
            provider_id=provider_id,
            expires_at=self.clock() + self.settings.ttl_for(provider_id),
        )
        try:
            self.cache.upsert(entry)
        except Exception as e:
            log.warning("Cache write failed for %s: %s", entry.key, e)


def build_engine(settings: Settings | None = None, *, session_factory=None) -> ExtractionEngine:
    """Wire the engine against the configured database and TMDB credentials."""
    from ..core.database import get_session_factory

    settings = settings or Settings.from_env()
    session_factory = session_factory or get_session_factory(settings.database_url)
    fetcher = Fetcher(timeout=settings.http_timeout)
    metadata = MetadataLookup(
        CatalogMetadata(session_factory),
        TmdbMetadata(fetcher, base_url=settings.tmdb_base, api_key=settings.tmdb_api_key,
                     token=settings.tmdb_token, language=settings.tmdb_language),
    )
    return ExtractionEngine(SqlCacheStore(session_factory), settings=settings,
                            metadata=metadata, fetcher=fetcher)


# ──────────────────────────────
#  Import all scrapers to register them
# ──────────────────────────────
def _load_scrapers():
    from .sources import cineveo        # noqa: F401  rank 300, slug pages + catalog discovery
    from .sources import superflix      # noqa: F401  rank 200, id embed, sources[]
    from .sources import embedplay      # noqa: F401  rank 100, server list + stream-link API

_load_scrapers()
