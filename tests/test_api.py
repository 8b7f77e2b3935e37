import pytest
from fastapi.testclient import TestClient

from streamfinder.api.main import app, get_engine
from streamfinder.core.cache import MemoryCacheStore
from streamfinder.providers.base import MediaHit
from streamfinder.providers.runner import ExtractionEngine

client = TestClient(app)


class FixedSource:
    def __init__(self, id, rank, hit=None):
        self.id = id
        self.name = id.title()
        self.rank = rank
        self.media_types = ["movie", "series"]
        self.hit = hit

    async def scrape(self, req, env):
        return self.hit


@pytest.fixture
def engine(settings, fetcher):
    engine = ExtractionEngine(
        MemoryCacheStore(), settings=settings, fetcher=fetcher,
        sources=[
            FixedSource("cineveo", 300, MediaHit("https://cdn.cineveo.site/filmes/hn42.mp4?t=9")),
            FixedSource("superflix", 200),
        ],
    )
    app.dependency_overrides[get_engine] = lambda: engine
    yield engine
    app.dependency_overrides.clear()


def test_extract_video_adds_proxy_url(engine):
    response = client.post("/extract-video", json={"contentId": 42, "contentKind": "movie"})
    assert response.status_code == 200
    assert response.json() == {
        "url": "https://cdn.cineveo.site/filmes/hn42.mp4?t=9",
        "mediaType": "mp4",
        "providerId": "cineveo",
        "fromCache": False,
        "proxyUrl": "/v/a/filmes/hn42.mp4?t=9",
    }

    again = client.post("/extract-video", json={"tmdb_id": 42, "content_type": "movie"})
    assert again.json()["fromCache"] is True


def test_extract_video_soft_failure(engine):
    response = client.post("/extract-video",
                           json={"contentId": 42, "contentKind": "movie", "forcedProvider": "superflix"})
    assert response.status_code == 200
    assert response.json() == {"url": None, "providerId": "none", "attemptedProvider": "superflix"}


def test_extract_video_rejects_incomplete_episode(engine, fetcher):
    response = client.post("/extract-video",
                           json={"contentId": 1399, "contentKind": "series", "season": 1})
    assert response.status_code == 400
    assert fetcher.calls == []


def test_extract_video_rejects_unknown_provider(engine):
    response = client.post("/extract-video", json={"contentId": 42, "forcedProvider": "nope"})
    assert response.status_code == 400


def test_extract_video_requires_content_id(engine):
    assert client.post("/extract-video", json={"contentKind": "movie"}).status_code == 422


def test_providers_listing(engine):
    response = client.get("/providers")
    assert response.status_code == 200
    assert response.json() == [
        {"id": "cineveo", "name": "Cineveo", "rank": 300, "ttl": 48 * 3600},
        {"id": "superflix", "name": "Superflix", "rank": 200, "ttl": 24 * 3600},
    ]


def test_proxy_player_rewrites_assets(engine, fetcher):
    fetcher.add("https://superflixapi.one/filme/tt0133093",
                '<html><head><link href="/css/p.css"></head><body></body></html>')
    response = client.get("/proxy-player", params={"url": "https://superflixapi.one/filme/tt0133093"})
    assert response.status_code == 200
    assert response.headers["x-frame-options"] == "ALLOWALL"
    assert '<base href="https://superflixapi.one/">' in response.text
    assert 'href="https://superflixapi.one/css/p.css"' in response.text
    assert fetcher.calls[0][2]["Referer"] == "https://superflixapi.one/"


def test_proxy_player_rejects_foreign_hosts(engine, fetcher):
    response = client.get("/proxy-player", params={"url": "https://evil.example/x"})
    assert response.status_code == 400
    assert fetcher.calls == []


def test_proxy_player_upstream_errors(engine, fetcher):
    fetcher.add("https://superflixapi.one/filme/gone", "nope", status=404)
    fetcher.fail("https://superflixapi.one/filme/down")
    assert client.get("/proxy-player", params={"url": "https://superflixapi.one/filme/gone"}).status_code == 404
    assert client.get("/proxy-player", params={"url": "https://superflixapi.one/filme/down"}).status_code == 502


@pytest.mark.parametrize("body", [
    {"contentId": True},
    {"contentId": "42"},
    {"contentId": 1399, "contentKind": "series", "season": True, "episode": 1},
])
def test_extract_video_rejects_non_integer_ids(engine, fetcher, body):
    assert client.post("/extract-video", json=body).status_code == 422
    assert fetcher.calls == []
