"""
CineVeo: title-addressed pages → player iframe → CDN mp4.

Flow:
  1. metadata lookup → slug guesses ("{title}-{tmdb_id}")
  2. cineveo.site/{filme|serie}/{slug}.html          → HTML, may be a soft 404
  3. series: anchor tagged with season/episode       → episode page
  4. player iframe (../player/...)                   → player page
  5. player page → cdn.cineveo.site/....mp4
If every guess misses, the category listing is paged to find the real slug.
"""
from __future__ import annotations
import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlparse

from ..base import MOVIE, SERIES, MediaHit, ResolutionRequest
from ..extract import iframe_sources, is_excluded, unescape_js
from ..runner import ScrapeEnv, register_source
from ..slug import slug_candidates

log = logging.getLogger("streamfinder.providers.cineveo")

_MP4_RE = re.compile(r"""https?://[^\s"'<>\\]+\.mp4[^\s"'<>\\]*""", re.I)
_ANCHOR_RE = re.compile(r"<a\s[^>]*>", re.I)
_ATTR_RE = re.compile(r"""([\w:-]+)\s*=\s*["']([^"']*)["']""")
_PLAYER_HINTS = ("player", "embed", "video")
_PLAYER_PATH_RE = re.compile(r"""(?<=["'(=])(?:\.\./|\./|/)?player/[^"'\s)]+""")

_SEASON_KEYS = ("season", "s", "temporada")
_EPISODE_KEYS = ("episode", "e", "ep", "episodio")
_EPISODE_PATHS = (
    re.compile(r"/temporada-(\d+)/episodio-(\d+)", re.I),
    re.compile(r"[/_-]s(\d+)e(\d+)(?:\b|[/_.-])", re.I),
    re.compile(r"/(\d+)/(\d+)/?(?:$|[?#])"),
)


def _to_int(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _query_value(params: dict, keys) -> Optional[int]:
    for key in keys:
        if key in params:
            return _to_int(params[key][0])
    return None


def has_episode_params(url: str) -> bool:
    params = parse_qs(urlparse(url).query)
    return any(k in params for k in _SEASON_KEYS) and any(k in params for k in _EPISODE_KEYS)


def with_episode_params(url: str, season: int, episode: int) -> str:
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}season={season}&episode={episode}"


def find_episode_link(html: str, season: int, episode: int) -> Optional[str]:
    """Link of the first anchor whose query, path or data attributes name season/episode."""
    for tag in _ANCHOR_RE.finditer(html):
        attrs = {k.lower(): v for k, v in _ATTR_RE.findall(tag.group(0))}
        href = attrs.get("href", "")
        link = href or attrs.get("data-url") or attrs.get("data-href")

        s = _to_int(attrs.get("data-season") or attrs.get("data-temporada"))
        e = _to_int(attrs.get("data-episode") or attrs.get("data-episodio") or attrs.get("data-ep"))
        if (s, e) == (season, episode) and link and link != "#":
            return link

        if not href or href.startswith(("#", "javascript:")):
            continue
        params = parse_qs(urlparse(href).query)
        if (_query_value(params, _SEASON_KEYS), _query_value(params, _EPISODE_KEYS)) == (season, episode):
            return href
        for pattern in _EPISODE_PATHS:
            m = pattern.search(href)
            if m and (int(m.group(1)), int(m.group(2))) == (season, episode):
                return href
    return None


@register_source
class Cineveo:
    id = "cineveo"
    name = "CineVeo"
    rank = 300                            # tried first, longest TTL
    media_types = [MOVIE, SERIES]

    async def scrape(self, req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        if env.metadata is None:
            log.warning("[cineveo] no metadata lookup configured")
            return None
        info = await env.metadata.get_title(req.content_id, req.content_kind)
        if not info or not info.title:
            log.warning("[cineveo] no title for tmdb %d, cannot build slugs", req.content_id)
            return None

        tried = []
        for slug in slug_candidates(info, req.content_id):
            tried.append(slug)
            hit = await self._try_slug(slug, req, env)
            if hit:
                return hit

        log.info("[cineveo] slug guesses %s missed, paging catalog", tried)
        slug = await env.discovery.discover_slug(req.content_id, req.content_kind)
        if slug and slug not in tried:
            return await self._try_slug(slug, req, env)
        return None

    # ── page probing ─────────────────────────

    def page_url(self, slug: str, req: ResolutionRequest, env: ScrapeEnv) -> str:
        s = env.settings
        path = s.cineveo_movie_path if req.content_kind == MOVIE else s.cineveo_series_path
        return f"{s.cineveo_base}/{path}/{slug}.html"

    def is_soft_404(self, html: str, env: ScrapeEnv) -> bool:
        lowered = html.lower()
        return any(marker.lower() in lowered for marker in env.settings.soft_404_markers)

    async def _try_slug(self, slug: str, req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        url = self.page_url(slug, req, env)
        try:
            log.info("[cineveo] fetching %s", url)
            resp = await env.fetcher.fetch(url, headers={"Referer": f"{env.settings.cineveo_base}/"})
            if not resp.ok:
                log.debug("[cineveo] %s returned %d", url, resp.status)
                return None
            if self.is_soft_404(resp.text, env):
                log.debug("[cineveo] %s is a soft 404", url)
                return None

            if req.is_series:
                try:
                    hit = await self._episode_extract(resp.text, url, req, env)
                except Exception as e:
                    log.debug("[cineveo] episode extraction failed on %s: %s", url, e)
                    hit = None
                if hit:
                    return hit

            return await self._generic_extract(resp.text, url, req, env)
        except Exception as e:
            log.debug("[cineveo] candidate %s failed: %s", slug, e)
            return None

    # ── extraction ───────────────────────────

    def _cdn_re(self, env: ScrapeEnv) -> re.Pattern:
        hosts = "|".join(re.escape(h) for h in env.settings.cdn_hosts) or r"(?!)"
        return re.compile(
            rf"""https?://(?:{hosts})/[^\s"'<>\\]+?\.mp4[^\s"'<>\\]*""", re.I
        )

    def _cdn_match(self, body: str, env: ScrapeEnv) -> Optional[MediaHit]:
        m = self._cdn_re(env).search(unescape_js(body))
        return MediaHit(url=m.group(0), media_type="mp4") if m else None

    def _player_ref(self, html: str) -> Optional[str]:
        refs = [r for r in iframe_sources(html)
                if r.strip() and not r.startswith(("about:", "javascript:"))]
        if not refs:
            # player path referenced from script or a data attribute
            m = _PLAYER_PATH_RE.search(html)
            return m.group(0) if m else None
        for ref in refs:
            if any(h in ref.lower() for h in _PLAYER_HINTS):
                return ref
        return refs[0]

    def player_url(self, ref: str, env: ScrapeEnv) -> str:
        ref = ref.strip()
        if ref.startswith("//"):
            return "https:" + ref
        if ref.startswith(("http://", "https://")):
            return ref
        path = re.sub(r"^(?:\.{1,2}/)+", "", ref).lstrip("/")
        return f"{env.settings.cineveo_base}/{path}"

    async def _generic_extract(self, html: str, page_url: str,
                               req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        ref = self._player_ref(html)
        if not ref:
            hit = self._cdn_match(html, env)
            if hit:
                log.info("[cineveo] direct CDN link on %s", page_url)
            return hit

        player = self.player_url(ref, env)
        if req.is_series and not has_episode_params(player):
            player = with_episode_params(player, req.season, req.episode)
        return await self._extract_from_player(player, page_url, env)

    async def _extract_from_player(self, player_url: str, referer: str,
                                   env: ScrapeEnv) -> Optional[MediaHit]:
        log.info("[cineveo] player %s", player_url)
        body = await env.fetcher.get(player_url, headers={"Referer": referer})

        hit = self._cdn_match(body, env)
        if hit:
            return hit

        hit = await self._direct_link_param(player_url, env)
        if hit:
            return hit

        for m in _MP4_RE.finditer(unescape_js(body)):
            if not is_excluded(m.group(0), env.settings.excluded_hosts):
                return MediaHit(url=m.group(0), media_type="mp4")
        return None

    async def _direct_link_param(self, player_url: str, env: ScrapeEnv) -> Optional[MediaHit]:
        """A player query param that is itself an encoded media link, if it exists."""
        for values in parse_qs(urlparse(player_url).query).values():
            for value in values:
                link = value
                lowered = link.lower()
                if not link.startswith(("http://", "https://")):
                    continue
                if ".mp4" not in lowered and ".m3u8" not in lowered:
                    continue
                try:
                    status = await env.fetcher.head(
                        link, headers={"Referer": f"{env.settings.cineveo_base}/"})
                except Exception as e:
                    log.debug("[cineveo] HEAD %s failed: %s", link, e)
                    continue
                if status in (200, 206):
                    return MediaHit(url=link)
        return None

    async def _episode_extract(self, html: str, page_url: str,
                               req: ResolutionRequest, env: ScrapeEnv) -> Optional[MediaHit]:
        link = find_episode_link(html, req.season, req.episode)
        if link:
            episode_url = urljoin(page_url, link)
            log.info("[cineveo] episode page %s", episode_url)
            episode_html = await env.fetcher.get(episode_url, headers={"Referer": page_url})
            return await self._generic_extract(episode_html, episode_url, req, env)

        # No tagged anchor: probe every iframe with season/episode appended
        for ref in iframe_sources(html):
            player = self.player_url(ref, env)
            if not has_episode_params(player):
                player = with_episode_params(player, req.season, req.episode)
            try:
                body = await env.fetcher.get(player, headers={"Referer": page_url})
            except Exception as e:
                log.debug("[cineveo] iframe probe %s failed: %s", player, e)
                continue
            hit = self._cdn_match(body, env)
            if hit:
                return hit
        return None
