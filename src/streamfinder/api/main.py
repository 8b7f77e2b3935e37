import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import HTMLResponse
from pydantic import AliasChoices, BaseModel, Field, StrictInt

from streamfinder.config import Settings
from streamfinder.providers.base import InvalidRequest, ResolutionRequest
from streamfinder.providers.runner import ExtractionEngine, build_engine
from streamfinder.proxy import proxy_video_url, rewrite_player_html

logging.basicConfig(
    level=Settings.from_env().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("streamfinder.api")

_engine: Optional[ExtractionEngine] = None


def get_engine() -> ExtractionEngine:
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _engine is not None:
        await _engine.close()


app = FastAPI(title="streamfinder | video source extraction", lifespan=lifespan)


class ExtractRequest(BaseModel):
    content_id: StrictInt = Field(validation_alias=AliasChoices("contentId", "content_id", "tmdb_id"))
    content_kind: str = Field("movie", validation_alias=AliasChoices("contentKind", "content_kind", "content_type"))
    external_id: Optional[str] = Field(None, validation_alias=AliasChoices("externalId", "external_id", "imdb_id"))
    variant: Optional[str] = Field(None, validation_alias=AliasChoices("variant", "audio_type"))
    season: Optional[StrictInt] = None
    episode: Optional[StrictInt] = None
    forced_provider: Optional[str] = Field(
        None, validation_alias=AliasChoices("forcedProvider", "forced_provider", "provider"))


@app.post("/extract-video")
async def extract_video(body: ExtractRequest, engine: ExtractionEngine = Depends(get_engine)):
    try:
        req = ResolutionRequest(
            content_id=body.content_id,
            content_kind=body.content_kind,
            external_id=body.external_id,
            variant=body.variant or engine.settings.default_variant,
            season=body.season,
            episode=body.episode,
            forced_provider=body.forced_provider,
        )
        result = await engine.resolve(req)
    except InvalidRequest as e:
        raise HTTPException(status_code=400, detail=str(e))

    payload = result.to_dict()
    if result.found:
        proxied = proxy_video_url(result.url, engine.settings.cdn_proxy_map)
        if proxied:
            payload["proxyUrl"] = proxied
    return payload


@app.get("/providers")
def list_providers(engine: ExtractionEngine = Depends(get_engine)):
    return engine.list_sources()


@app.get("/proxy-player", response_class=HTMLResponse)
async def proxy_player(url: str = Query(...), engine: ExtractionEngine = Depends(get_engine)):
    base = engine.settings.superflix_base
    if not url.startswith(f"{base}/"):
        raise HTTPException(status_code=400, detail="Invalid URL")

    try:
        resp = await engine.fetcher.fetch(url, headers={"Referer": f"{base}/"})
    except Exception as e:
        log.warning("proxy-player fetch failed for %s: %s", url, e)
        raise HTTPException(status_code=502, detail="Proxy failed")
    if not resp.ok:
        raise HTTPException(status_code=resp.status, detail=f"Upstream error: {resp.status}")

    return HTMLResponse(
        rewrite_player_html(resp.text, base),
        headers={"X-Frame-Options": "ALLOWALL"},
    )
