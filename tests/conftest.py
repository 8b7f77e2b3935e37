from urllib.parse import urlencode

import pytest

from streamfinder.config import Settings
from streamfinder.core.cache import MemoryCacheStore
from streamfinder.core.database import get_session_factory
from streamfinder.providers.base import TitleInfo
from streamfinder.providers.discovery import CatalogDiscovery
from streamfinder.providers.fetcher import FetchError, Response
from streamfinder.providers.runner import ScrapeEnv


class FakeFetcher:
    """Serves canned bodies by exact URL and records every request."""

    def __init__(self):
        self.routes = {}
        self.head_status = {}
        self.calls = []

    def add(self, url, body="", status=200, content_type="text/html; charset=utf-8"):
        self.routes[url] = (status, body, content_type)
        return self

    def fail(self, url, exc=None):
        self.routes[url] = exc or ConnectionError(f"boom: {url}")
        return self

    @staticmethod
    def _full(url, params):
        if params:
            url += ("&" if "?" in url else "?") + urlencode(params)
        return url

    def urls(self, method="GET"):
        return [u for m, u, _ in self.calls if m == method]

    async def fetch(self, url, *, base_url=None, headers=None, params=None, follow_redirects=True):
        full = self._full(url, params)
        self.calls.append(("GET", full, dict(headers or {})))
        route = self.routes.get(full)
        if route is None:
            return Response(url=full, status=404, text="Not Found", content_type="text/html")
        if isinstance(route, Exception):
            raise route
        status, body, content_type = route
        return Response(url=full, status=status, text=body, content_type=content_type)

    async def get(self, url, *, base_url=None, headers=None, params=None, follow_redirects=True):
        resp = await self.fetch(url, headers=headers, params=params)
        if not resp.ok:
            raise FetchError(resp.url, resp.status)
        return resp.text

    async def get_json(self, url, *, base_url=None, headers=None, params=None):
        resp = await self.fetch(url, headers=headers, params=params)
        if not resp.ok:
            raise FetchError(resp.url, resp.status)
        return resp.json()

    async def head(self, url, *, base_url=None, headers=None):
        self.calls.append(("HEAD", url, dict(headers or {})))
        status = self.head_status.get(url, 404)
        if isinstance(status, Exception):
            raise status
        return status

    async def close(self):
        pass


class FakeMetadata:
    def __init__(self, info=None):
        self.info = info
        self.calls = 0

    async def get_title(self, content_id, kind):
        self.calls += 1
        return self.info


@pytest.fixture
def settings():
    return Settings(
        cdn_hosts=("cdn.example", "cdn.cineveo.site"),
        discovery_batch_size=5,
        discovery_max_pages=20,
        source_timeout=5,
    )


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def metadata():
    return FakeMetadata(TitleInfo(title="Horizonte Negro"))


@pytest.fixture
def env(fetcher, settings, metadata):
    discovery = CatalogDiscovery(fetcher, base_url=settings.cineveo_base,
                                 batch_size=settings.discovery_batch_size,
                                 max_pages=settings.discovery_max_pages)
    return ScrapeEnv(fetcher=fetcher, settings=settings, metadata=metadata, discovery=discovery)


@pytest.fixture
def memory_cache():
    return MemoryCacheStore()


@pytest.fixture
def session_factory():
    return get_session_factory("sqlite:///:memory:", create_tables=True)
