"""SuperFlix: id-addressed embed page with a JW Player sources[] array."""
from __future__ import annotations
import logging
from typing import Optional

from ..base import MOVIE, SERIES, MediaHit, ResolutionRequest
from ..extract import find_sources_entry, scan_media_urls
from ..runner import ScrapeEnv, register_source

log = logging.getLogger("streamfinder.providers.superflix")


@register_source
class Superflix:
    id = "superflix"
    name = "SuperFlix"
    rank = 200
    media_types = [MOVIE, SERIES]

    def embed_url(self, req: ResolutionRequest, env: ScrapeEnv) -> str:
        base = env.settings.superflix_base
        if req.is_series:
            return f"{base}/serie/{req.embed_id}/{req.season}/{req.episode}"
        return f"{base}/filme/{req.embed_id}"

    async def scrape(self, req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        s = env.settings
        url = self.embed_url(req, env)
        log.info("[superflix] fetching %s", url)
        try:
            html = await env.fetcher.get(url, headers={"Referer": f"{s.superflix_base}/"})
        except Exception as e:
            log.warning("[superflix] embed fetch failed: %s", e)
            return None

        hit = find_sources_entry(html, keywords=s.alt_cdn_keywords, excluded_hosts=s.excluded_hosts)
        if hit:
            log.info("[superflix] sources[] entry: %s", hit.url[:120])
            return hit

        hit = scan_media_urls(html, excluded_hosts=s.excluded_hosts)
        if hit:
            log.info("[superflix] regex match: %s", hit.url[:120])
        else:
            log.debug("[superflix] no media URL in %s", url)
        return hit
