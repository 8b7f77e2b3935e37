"""
HTTP fetcher for provider scrapers. Wraps aiohttp with a shared session,
browser headers, timeout, and optional proxy support.
"""
from __future__ import annotations
import json
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

import aiohttp

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
JSON_ACCEPT = "application/json, text/javascript, */*; q=0.01"


class FetchError(Exception):
    """Non-2xx response from an upstream page."""

    def __init__(self, url: str, status: int):
        super().__init__(f"{url} returned {status}")
        self.url = url
        self.status = status


@dataclass
class Response:
    url: str                          # final URL after redirects
    status: int
    text: str
    content_type: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self):
        return json.loads(self.text)


class Fetcher:
    def __init__(self, *, timeout: int = 12, proxy: str | None = None):
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=4)
        self.proxy = proxy
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": DEFAULT_UA, "Accept": HTML_ACCEPT},
                connector=aiohttp.TCPConnector(ssl=False),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    # ── convenience methods ──────────────────

    async def fetch(
        self,
        url: str,
        *,
        base_url: str | None = None,
        headers: dict | None = None,
        params: dict | None = None,
        follow_redirects: bool = True,
    ) -> Response:
        """GET and return status, body and content type without raising on status."""
        full = urljoin(base_url, url) if base_url else url
        session = await self._get_session()
        async with session.get(
            full,
            headers=headers or {},
            params=params,
            allow_redirects=follow_redirects,
            proxy=self.proxy,
        ) as resp:
            text = await resp.text(errors="replace")
            return Response(
                url=str(resp.url),
                status=resp.status,
                text=text,
                content_type=resp.headers.get("Content-Type", ""),
            )

    async def get(
        self,
        url: str,
        *,
        base_url: str | None = None,
        headers: dict | None = None,
        params: dict | None = None,
        follow_redirects: bool = True,
    ) -> str:
        resp = await self.fetch(url, base_url=base_url, headers=headers,
                                params=params, follow_redirects=follow_redirects)
        if not resp.ok:
            raise FetchError(resp.url, resp.status)
        return resp.text

    async def get_json(
        self,
        url: str,
        *,
        base_url: str | None = None,
        headers: dict | None = None,
        params: dict | None = None,
    ) -> dict | list:
        hdrs = {"Accept": JSON_ACCEPT}
        hdrs.update(headers or {})
        resp = await self.fetch(url, base_url=base_url, headers=hdrs, params=params)
        if not resp.ok:
            raise FetchError(resp.url, resp.status)
        return resp.json()

    async def head(
        self,
        url: str,
        *,
        base_url: str | None = None,
        headers: dict | None = None,
    ) -> int:
        """Returns status code."""
        full = urljoin(base_url, url) if base_url else url
        session = await self._get_session()
        async with session.head(
            full,
            headers=headers or {},
            allow_redirects=True,
            proxy=self.proxy,
        ) as resp:
            return resp.status
