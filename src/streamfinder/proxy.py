"""
First-party proxy helpers.

proxy_video_url maps a third-party CDN URL onto a first-party path prefix
(served by reverse-proxy rewrites); rewrite_player_html makes a proxied
player page load its assets from the original host.
"""
from __future__ import annotations
import re
from typing import Optional
from urllib.parse import urlparse

_ROOT_RELATIVE = re.compile(r"""(src|href)=(["'])/(?!/)""")


def proxy_video_url(raw_url: str, cdn_map: dict[str, str]) -> Optional[str]:
    """
    >>> proxy_video_url("https://cdn.cineveo.site/v.mp4?t=1", {"cdn.cineveo.site": "/v/a"})
    '/v/a/v.mp4?t=1'
    """
    if not raw_url:
        return None
    try:
        parsed = urlparse(raw_url)
    except ValueError:
        return None
    prefix = cdn_map.get(parsed.hostname or "")
    if not prefix:
        return None
    query = f"?{parsed.query}" if parsed.query else ""
    return f"{prefix.rstrip('/')}{parsed.path}{query}"


def rewrite_player_html(html: str, base_url: str) -> str:
    base = base_url.rstrip("/")
    html = _ROOT_RELATIVE.sub(lambda m: f"{m.group(1)}={m.group(2)}{base}/", html)
    for head in ("<head>", "<HEAD>"):
        if head in html:
            return html.replace(head, f'{head}<base href="{base}/">', 1)
    return html
