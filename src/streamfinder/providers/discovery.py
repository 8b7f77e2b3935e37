"""
Catalog discovery: finds a provider slug by paging its category listing.

Used when every direct slug guess misses (title mismatch, renamed page).
Pages are fetched in concurrent batches; batches run one after another so
at most ``batch_size`` requests are in flight.
"""
from __future__ import annotations
import asyncio
import json
import logging
import re
from typing import Optional

from .base import MOVIE, CatalogEntry, CatalogPage
from .fetcher import Fetcher

log = logging.getLogger("streamfinder.providers.discovery")

_CARD_SPLIT = re.compile(r'class="media-card-item')
_CARD_TMDB = re.compile(r'data-tmdb="(\d+)"')
_CARD_SLUG = re.compile(r'href="[^"]*/([^/"]+)\.html"')


def parse_listing(body: str) -> CatalogPage:
    """Parse a category listing page, JSON or HTML cards."""
    stripped = body.lstrip()
    if stripped.startswith(("{", "[")):
        try:
            return _parse_json_listing(json.loads(stripped))
        except ValueError:
            pass

    cards = _CARD_SPLIT.split(body)[1:]
    entries = []
    for card in cards:
        tmdb_m = _CARD_TMDB.search(card)
        slug_m = _CARD_SLUG.search(card)
        if tmdb_m and slug_m:
            entries.append(CatalogEntry(external_id=int(tmdb_m.group(1)), slug=slug_m.group(1)))
        elif tmdb_m:
            log.debug("[discovery] card for tmdb %s has no slug link", tmdb_m.group(1))
    listed = max(len(cards), len(_CARD_TMDB.findall(body)))
    return CatalogPage(entries=entries, listed=listed)


def _parse_json_listing(data) -> CatalogPage:
    if isinstance(data, dict):
        data = data.get("results") or data.get("items") or data.get("data") or []
    items = data if isinstance(data, list) else []
    entries = []
    for item in items:
        if not isinstance(item, dict):
            continue
        ext = item.get("tmdb_id", item.get("id"))
        slug = item.get("slug")
        try:
            ext = int(ext)
        except (TypeError, ValueError):
            continue
        if slug:
            entries.append(CatalogEntry(external_id=ext, slug=str(slug)))
    return CatalogPage(entries=entries, listed=len(items))


class CatalogDiscovery:
    def __init__(self, fetcher: Fetcher, *, base_url: str,
                 batch_size: int = 5, max_pages: int = 500):
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.batch_size = max(1, batch_size)
        self.max_pages = max_pages

    def page_url(self, page: int, kind: str) -> str:
        listing_type = "movie" if kind == MOVIE else "tv"
        return f"{self.base_url}/category.php?type={listing_type}&page={page}"

    async def fetch_page(self, page: int, kind: str) -> Optional[CatalogPage]:
        """One listing page; None when the fetch fails (a non-match, not end-of-catalog)."""
        try:
            body = await self.fetcher.get(
                self.page_url(page, kind),
                headers={"Referer": f"{self.base_url}/"},
            )
        except Exception as e:
            log.debug("[discovery] page %d failed: %s", page, e)
            return None
        return parse_listing(body)

    async def discover_slug(self, target_id: int, kind: str) -> Optional[str]:
        page = 1
        while page <= self.max_pages:
            last = min(page + self.batch_size - 1, self.max_pages)
            numbers = list(range(page, last + 1))
            results = await asyncio.gather(*(self.fetch_page(n, kind) for n in numbers))

            # page order, so the lowest matching page wins
            for number, result in zip(numbers, results):
                if result is None:
                    continue
                for entry in result.entries:
                    if entry.external_id == target_id:
                        log.info("[discovery] tmdb %d found on page %d: %s",
                                 target_id, number, entry.slug)
                        return entry.slug

            if any(r is not None and r.empty for r in results):
                log.info("[discovery] catalog exhausted at pages %d-%d, tmdb %d not listed",
                         page, last, target_id)
                return None
            page = last + 1

        log.warning("[discovery] page ceiling %d reached without finding tmdb %d",
                    self.max_pages, target_id)
        return None
