from urllib.parse import quote

from streamfinder.providers.base import ResolutionRequest, TitleInfo
from streamfinder.providers.sources.cineveo import (
    Cineveo, find_episode_link, has_episode_params, with_episode_params,
)

BASE = "https://cineveo.site"
MOVIE_PAGE = f"{BASE}/filme/horizonte-negro-42.html"


def _movie(**kw):
    return ResolutionRequest(content_id=42, content_kind="movie", **kw)


def _series(season=1, episode=2):
    return ResolutionRequest(content_id=1399, content_kind="series", season=season, episode=episode)


async def test_movie_player_iframe_to_cdn(fetcher, env):
    fetcher.add(MOVIE_PAGE, '<html><iframe src="../player/index.php?id=42"></iframe></html>')
    fetcher.add(f"{BASE}/player/index.php?id=42",
                '<script>var f = "https://cdn.example/hn42.mp4";</script>')

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == "https://cdn.example/hn42.mp4"
    assert hit.media_type == "mp4"
    referers = {u: h.get("Referer") for _, u, h in fetcher.calls}
    assert referers[MOVIE_PAGE] == f"{BASE}/"
    assert referers[f"{BASE}/player/index.php?id=42"] == MOVIE_PAGE


async def test_soft_404_skips_to_alternate_title(fetcher, env, metadata):
    metadata.info = TitleInfo(title="Horizonte Negro", alternate_title="Dark Horizon")
    fetcher.add(MOVIE_PAGE, "<h1>Página não encontrada</h1>")
    fetcher.add(f"{BASE}/filme/dark-horizon-42.html",
                '<p>assista</p><source src="https://cdn.cineveo.site/files/dh.mp4?t=9">')

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == "https://cdn.cineveo.site/files/dh.mp4?t=9"
    assert f"{BASE}/filme/dark-horizon-42.html" in fetcher.urls()


async def test_no_title_returns_none_without_fetching(fetcher, env, metadata):
    metadata.info = None
    assert await Cineveo().scrape(_movie(), env) is None
    assert fetcher.calls == []


async def test_player_query_param_direct_link_is_verified(fetcher, env):
    direct = "https://files.example/movies/hn42.mp4"
    player = f"{BASE}/player/watch.php?url={quote(direct, safe='')}"
    fetcher.add(MOVIE_PAGE, f'<iframe src="{player}"></iframe>')
    fetcher.add(player, "<div id='player'></div>")
    fetcher.head_status[direct] = 206

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == direct
    assert fetcher.urls("HEAD") == [direct]


async def test_player_query_param_rejected_when_head_fails(fetcher, env):
    direct = "https://files.example/movies/gone.mp4"
    player = f"{BASE}/player/watch.php?url={quote(direct, safe='')}"
    fetcher.add(MOVIE_PAGE, f'<iframe src="{player}"></iframe>')
    fetcher.add(player, "<video src='https://mirror.example/fallback.mp4'></video>")
    fetcher.head_status[direct] = 404

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == "https://mirror.example/fallback.mp4"


async def test_discovery_used_when_guesses_fail(fetcher, env):
    fetcher.add(f"{BASE}/category.php?type=movie&page=1",
                '<div class="media-card-item"><a href="/filme/horizonte-negro-2024.html"></a>'
                '<span data-tmdb="42"></span></div>')
    fetcher.add(f"{BASE}/filme/horizonte-negro-2024.html",
                '<iframe src="/player/p.php?v=hn"></iframe>')
    fetcher.add(f"{BASE}/player/p.php?v=hn", "file: 'https://cdn.example/hn.mp4'")

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == "https://cdn.example/hn.mp4"


async def test_all_candidates_and_discovery_miss(fetcher, env):
    for n in range(1, 6):
        fetcher.add(f"{BASE}/category.php?type=movie&page={n}", "<html></html>")
    assert await Cineveo().scrape(_movie(), env) is None


async def test_network_error_on_candidate_is_contained(fetcher, env, metadata):
    metadata.info = TitleInfo(title="Horizonte Negro", alternate_title="Dark Horizon")
    fetcher.fail(MOVIE_PAGE)
    fetcher.add(f"{BASE}/filme/dark-horizon-42.html", "https://cdn.example/dh.mp4")
    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == "https://cdn.example/dh.mp4"


async def test_series_episode_anchor(fetcher, env, metadata):
    metadata.info = TitleInfo(title="Sintonia")
    page = f"{BASE}/serie/sintonia-1399.html"
    fetcher.add(page, (
        '<a href="/serie/sintonia-1399/episodio.php?temporada=1&episodio=1">E1</a>'
        '<a href="/serie/sintonia-1399/episodio.php?temporada=1&episodio=2">E2</a>'
    ))
    episode_page = f"{BASE}/serie/sintonia-1399/episodio.php?temporada=1&episodio=2"
    fetcher.add(episode_page, '<iframe src="../../player/ep.php?id=99&season=1&episode=2"></iframe>')
    fetcher.add(f"{BASE}/player/ep.php?id=99&season=1&episode=2", "https://cdn.example/s1e2.mp4")

    hit = await Cineveo().scrape(_series(1, 2), env)
    assert hit.url == "https://cdn.example/s1e2.mp4"


async def test_series_iframe_probe_without_tagged_anchor(fetcher, env, metadata):
    metadata.info = TitleInfo(title="Sintonia")
    page = f"{BASE}/serie/sintonia-1399.html"
    fetcher.add(page, '<iframe src="/ads/banner.php"></iframe><iframe src="/player/serie.php?id=7"></iframe>')
    fetcher.add(f"{BASE}/ads/banner.php?season=3&episode=4", "<img src='ad.png'>")
    fetcher.add(f"{BASE}/player/serie.php?id=7&season=3&episode=4", "https://cdn.example/s3e4.mp4")

    hit = await Cineveo().scrape(_series(3, 4), env)
    assert hit.url == "https://cdn.example/s3e4.mp4"
    assert fetcher.urls()[:3] == [
        page,
        f"{BASE}/ads/banner.php?season=3&episode=4",
        f"{BASE}/player/serie.php?id=7&season=3&episode=4",
    ]


def test_find_episode_link_variants():
    html = '<a data-temporada="2" data-episodio="5" data-url="/ep/abc">x</a>'
    assert find_episode_link(html, 2, 5) == "/ep/abc"
    assert find_episode_link('<a href="/serie/x/temporada-1/episodio-3">', 1, 3) == "/serie/x/temporada-1/episodio-3"
    assert find_episode_link('<a href="/serie/x-s02e07.html">', 2, 7) == "/serie/x-s02e07.html"
    assert find_episode_link('<a href="/watch?s=1&e=1">', 1, 2) is None


def test_episode_params_helpers():
    assert has_episode_params("https://x/p.php?id=1&season=1&episode=2")
    assert has_episode_params("https://x/p.php?temporada=1&episodio=2")
    assert not has_episode_params("https://x/p.php?id=1")
    assert with_episode_params("https://x/p.php", 1, 2) == "https://x/p.php?season=1&episode=2"
    assert with_episode_params("https://x/p.php?id=1", 1, 2) == "https://x/p.php?id=1&season=1&episode=2"


async def test_player_path_referenced_from_script(fetcher, env):
    fetcher.add(MOVIE_PAGE, "<script>player.load('../player/index.php?id=42');</script>")
    fetcher.add(f"{BASE}/player/index.php?id=42", '<source src="https://cdn.example/hn42.mp4">')

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == "https://cdn.example/hn42.mp4"
    assert not any("category.php" in u for u in fetcher.urls())


async def test_direct_link_param_keeps_encoded_characters(fetcher, env):
    direct = "https://files.example/movies/hn%2F42%25.mp4"
    player = f"{BASE}/player/watch.php?url={quote(direct, safe='')}"
    fetcher.add(MOVIE_PAGE, f'<iframe src="{player}"></iframe>')
    fetcher.add(player, "<div id='player'></div>")
    fetcher.head_status[direct] = 200

    hit = await Cineveo().scrape(_movie(), env)
    assert hit.url == direct
    assert fetcher.urls("HEAD") == [direct]
