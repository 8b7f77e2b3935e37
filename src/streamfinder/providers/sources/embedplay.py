"""
EmbedPlay: embed page → server list → stream-link API → player page.

Flow:
  1. embedplayapi.site/embed/{id}[/{s}/{e}]     → HTML with data-movie-id + server data-ids
  2. /ajax/get_stream_link?id={server}&movie=.. → {"success": true, "data": {"link": ...}}
  3. player link                                → sources[] / m3u8 / mp4
  4. one nested embed/player iframe, if the player page is only a wrapper
"""
from __future__ import annotations
import logging
import re
from typing import Optional
from urllib.parse import quote

from ..base import MOVIE, SERIES, MediaHit, ResolutionRequest
from ..extract import extract_media, nested_player_candidates
from ..fetcher import JSON_ACCEPT
from ..runner import ScrapeEnv, register_source

log = logging.getLogger("streamfinder.providers.embedplay")

_MOVIE_ID_RE = re.compile(r'data-movie-id="([^"]+)"')
_SERVER_RE = re.compile(r'class="server[^"]*"\s+data-id="([^"]+)"')


@register_source
class EmbedPlay:
    id = "embedplay"
    name = "EmbedPlay"
    rank = 100
    media_types = [MOVIE, SERIES]

    def embed_url(self, req: ResolutionRequest, env: ScrapeEnv) -> str:
        base = env.settings.embedplay_base
        if req.is_series:
            return f"{base}/embed/{req.embed_id}/{req.season}/{req.episode}"
        return f"{base}/embed/{req.embed_id}"

    async def scrape(self, req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        base = env.settings.embedplay_base
        embed_url = self.embed_url(req, env)
        log.info("[embedplay] fetching embed page %s", embed_url)
        try:
            html = await env.fetcher.get(embed_url, headers={"Referer": f"{base}/"})
        except Exception as e:
            log.warning("[embedplay] embed fetch failed: %s", e)
            return None

        movie_m = _MOVIE_ID_RE.search(html)
        if not movie_m:
            log.info("[embedplay] no data-movie-id, content not hosted")
            return None
        movie_id = movie_m.group(1)

        server_ids = list(dict.fromkeys(_SERVER_RE.findall(html)))
        if not server_ids:
            log.info("[embedplay] no servers listed for movie %s", movie_id)
            return None
        log.info("[embedplay] movie %s, servers %s", movie_id, ", ".join(server_ids))

        for server_id in server_ids:
            try:
                hit = await self._try_server(server_id, movie_id, embed_url, env)
            except Exception as e:
                log.warning("[embedplay] server %s error: %s", server_id, e)
                continue
            if hit:
                log.info("[embedplay] server %s resolved %s", server_id, hit.url[:120])
                return hit
        return None

    async def _try_server(self, server_id: str, movie_id: str, embed_url: str,
                          env: ScrapeEnv) -> Optional[MediaHit]:
        s = env.settings
        api_url = (
            f"{s.embedplay_base}/ajax/get_stream_link"
            f"?id={quote(server_id)}&movie={quote(movie_id)}&is_init=false&captcha=&ref="
        )
        resp = await env.fetcher.fetch(api_url, headers={
            "Referer": embed_url,
            "X-Requested-With": "XMLHttpRequest",
            "Accept": JSON_ACCEPT,
        })
        if not resp.ok:
            log.debug("[embedplay] server %s returned %d", server_id, resp.status)
            return None
        if "json" not in resp.content_type.lower():
            log.debug("[embedplay] server %s returned non-JSON: %s", server_id, resp.content_type)
            return None

        data = resp.json()
        if not isinstance(data, dict):
            return None
        payload = data.get("data")
        link = payload.get("link") if isinstance(payload, dict) else None
        if not data.get("success") or not link:
            log.debug("[embedplay] server %s gave no link", server_id)
            return None

        player = await env.fetcher.fetch(link, headers={"Referer": f"{s.embedplay_base}/"})
        if not player.ok:
            return None
        hit = extract_media(player.text, keywords=s.alt_cdn_keywords, excluded_hosts=s.excluded_hosts)
        if hit:
            return hit

        # one level of iframe nesting, no further
        candidates = nested_player_candidates(player.text, excluded_hosts=s.excluded_hosts)
        if not candidates:
            return None
        inner_url = candidates[0]
        log.info("[embedplay] following inner iframe %s", inner_url)
        inner = await env.fetcher.fetch(inner_url, headers={"Referer": link})
        if not inner.ok:
            log.debug("[embedplay] inner iframe returned %d", inner.status)
            return None
        return extract_media(inner.text, keywords=s.alt_cdn_keywords, excluded_hosts=s.excluded_hosts)
