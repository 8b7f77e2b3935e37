"""
Player-page extraction shared by the id-addressed providers.

Order of attempts on a page body:
  1. structured ``sources: [{file, type}, ...]`` array (JW Player style)
  2. regex scan: master/playlist URLs → any .m3u8 → any .mp4
URLs on known non-video infrastructure hosts are never returned.
"""
from __future__ import annotations
import json
import re
from typing import Iterable, Optional

from .base import MediaHit

_SOURCES_RE = re.compile(r'["\']?sources["\']?\s*[:=]\s*(\[.*?\])', re.DOTALL)
_SOURCE_OBJ_RE = re.compile(r"\{[^{}]*\}")
_FILE_RE = re.compile(r'["\']?(?:file|src)["\']?\s*:\s*["\']([^"\']+)["\']')
_TYPE_RE = re.compile(r'["\']?type["\']?\s*:\s*["\']([^"\']+)["\']')

_URL_BODY = r"""[^\s"'<>\\]"""
_FALLBACK_PATTERNS = (
    re.compile(rf"https?://{_URL_BODY}+(?:master|playlist){_URL_BODY}*", re.I),
    re.compile(rf"https?://{_URL_BODY}+\.m3u8{_URL_BODY}*", re.I),
    re.compile(rf"https?://{_URL_BODY}+\.mp4{_URL_BODY}*", re.I),
)

_IFRAME_SRC_RE = re.compile(r'<iframe[^>]+src=["\']([^"\']+)["\']', re.I)
IFRAME_KEYWORDS = ("embed", "player", "stream", "video")

_MEDIA_INDICATORS = ("m3u8", "master", "playlist", ".mp4")


def unescape_js(body: str) -> str:
    """Undo JSON-style slash escaping (``https:\\/\\/host``)."""
    return body.replace("\\/", "/")


def is_excluded(url: str, excluded_hosts: Iterable[str]) -> bool:
    lowered = url.lower()
    return any(host.lower() in lowered for host in excluded_hosts)


def _parse_sources(raw: str) -> list[dict]:
    try:
        data = json.loads(raw)
        if isinstance(data, list):
            return [d for d in data if isinstance(d, dict)]
    except ValueError:
        pass
    # JS object literals (unquoted keys, single quotes): pull fields one by one
    entries = []
    for obj in _SOURCE_OBJ_RE.findall(raw):
        file_m = _FILE_RE.search(obj)
        if not file_m:
            continue
        type_m = _TYPE_RE.search(obj)
        entries.append({"file": file_m.group(1), "type": type_m.group(1) if type_m else ""})
    return entries


def find_sources_entry(body: str, *, keywords: Iterable[str] = (),
                       excluded_hosts: Iterable[str] = ()) -> Optional[MediaHit]:
    """First non-iframe entry of an embedded sources array that looks like media."""
    indicators = _MEDIA_INDICATORS + tuple(k.lower() for k in keywords)
    for m in _SOURCES_RE.finditer(unescape_js(body)):
        for entry in _parse_sources(m.group(1)):
            file_url = str(entry.get("file") or "")
            kind = str(entry.get("type") or "").lower()
            if not file_url or kind == "iframe":
                continue
            if is_excluded(file_url, excluded_hosts):
                continue
            if any(ind in file_url.lower() for ind in indicators):
                if kind in ("mp4", "video/mp4"):
                    return MediaHit(url=file_url, media_type="mp4")
                return MediaHit(url=file_url)
    return None


def scan_media_urls(body: str, *, excluded_hosts: Iterable[str] = ()) -> Optional[MediaHit]:
    """Ordered regex fallback; first non-excluded match wins."""
    text = unescape_js(body)
    for pattern in _FALLBACK_PATTERNS:
        for m in pattern.finditer(text):
            url = m.group(0)
            if not is_excluded(url, excluded_hosts):
                return MediaHit(url=url)
    return None


def extract_media(body: str, *, keywords: Iterable[str] = (),
                  excluded_hosts: Iterable[str] = ()) -> Optional[MediaHit]:
    return (find_sources_entry(body, keywords=keywords, excluded_hosts=excluded_hosts)
            or scan_media_urls(body, excluded_hosts=excluded_hosts))


def iframe_sources(body: str) -> list[str]:
    """All iframe ``src`` values in document order."""
    return _IFRAME_SRC_RE.findall(body)


def nested_player_candidates(body: str, *, excluded_hosts: Iterable[str] = ()) -> list[str]:
    """Absolute iframe ``src`` URLs that look like another player/embed layer."""
    out = []
    for url in iframe_sources(body):
        url = url.strip()
        if url.startswith("//"):
            url = "https:" + url
        if not url.startswith(("http://", "https://")) or url in out:
            continue
        if is_excluded(url, excluded_hosts):
            continue
        if any(k in url.lower() for k in IFRAME_KEYWORDS):
            out.append(url)
    return out
