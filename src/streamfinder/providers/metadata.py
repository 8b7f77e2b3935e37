"""
Title/identifier lookup used to build slug guesses.

CatalogMetadata reads the local catalog table; TmdbMetadata asks TMDB.
MetadataLookup chains them and returns the first answer with a title.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..core.models import Content
from .base import MOVIE, TitleInfo
from .fetcher import Fetcher

log = logging.getLogger("streamfinder.metadata")


class CatalogMetadata:
    def __init__(self, session_factory: sessionmaker):
        self.Session = session_factory

    def _lookup(self, content_id: int, kind: str) -> Optional[TitleInfo]:
        with self.Session() as session:
            row = (
                session.query(Content)
                .filter(Content.tmdb_id == content_id, Content.content_type == kind)
                .first()
            )
            if not row or not row.title:
                return None
            return TitleInfo(title=row.title, alternate_title=row.original_title,
                             external_id=row.imdb_id)

    async def get_title(self, content_id: int, kind: str) -> Optional[TitleInfo]:
        return await asyncio.to_thread(self._lookup, content_id, kind)


class TmdbMetadata:
    def __init__(self, fetcher: Fetcher, *, base_url: str = "https://api.themoviedb.org/3",
                 api_key: str | None = None, token: str | None = None,
                 language: str = "pt-BR"):
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.token = token
        self.language = language

    async def get_title(self, content_id: int, kind: str) -> Optional[TitleInfo]:
        if not self.api_key and not self.token:
            log.debug("[tmdb] no credentials configured")
            return None

        tmdb_type = "movie" if kind == MOVIE else "tv"
        params = {"language": self.language, "append_to_response": "external_ids"}
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        else:
            params["api_key"] = self.api_key

        try:
            data = await self.fetcher.get_json(
                f"{self.base_url}/{tmdb_type}/{content_id}",
                params=params, headers=headers,
            )
        except Exception as e:
            log.warning("[tmdb] lookup for %s %d failed: %s", tmdb_type, content_id, e)
            return None

        if not isinstance(data, dict):
            return None
        if kind == MOVIE:
            title, original = data.get("title"), data.get("original_title")
        else:
            title, original = data.get("name"), data.get("original_name")
        if not title:
            return None

        external = data.get("imdb_id") or (data.get("external_ids") or {}).get("imdb_id")
        return TitleInfo(
            title=title,
            alternate_title=original if original and original != title else None,
            external_id=external,
        )


class MetadataLookup:
    def __init__(self, *lookups):
        self.lookups = [l for l in lookups if l is not None]

    async def get_title(self, content_id: int, kind: str) -> Optional[TitleInfo]:
        for lookup in self.lookups:
            try:
                info = await lookup.get_title(content_id, kind)
            except Exception as e:
                log.warning("[metadata] %s failed: %s", type(lookup).__name__, e)
                continue
            if info and info.title:
                return info
        return None
