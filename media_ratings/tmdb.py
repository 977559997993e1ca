import logging

import httpx

from .config import Settings
from .errors import ProviderUnavailable
from .models import MediaType

BASE_URL = "https://api.themoviedb.org/3"

logger = logging.getLogger(__name__)


class TMDBClient:
    """Thin async wrapper over the TMDB v3 endpoints the resolver needs."""

    name = "TMDB"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._client

    async def close_client(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: dict | None = None) -> dict:
        params = dict(params or {})
        params["api_key"] = self.settings.tmdb_api_key
        client = await self._get_client()
        try:
            resp = await client.get(f"{BASE_URL}{path}", params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailable(self.name, f"{path} returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, f"{path}: {exc}") from exc
        except ValueError as exc:
            raise ProviderUnavailable(self.name, f"{path} returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, f"{path} returned malformed JSON")
        return data

    async def check_key(self) -> bool:
        try:
            await self._get("/configuration")
        except ProviderUnavailable as exc:
            logger.warning("TMDB key check failed: %s", exc.detail)
            return False
        return True

    async def search_person(self, name: str) -> list[dict]:
        data = await self._get("/search/person", {"query": name, "include_adult": "false"})
        return data.get("results") or []

    async def get_person_combined_credits(self, person_id: int) -> dict:
        data = await self._get(f"/person/{person_id}/combined_credits")
        return {"cast": data.get("cast") or [], "crew": data.get("crew") or []}

    async def search_multi(self, query: str) -> list[dict]:
        data = await self._get("/search/multi", {"query": query})
        return data.get("results") or []

    async def get_external_ids(self, media_type: MediaType | str, media_id: int) -> dict:
        kind = media_type.value if isinstance(media_type, MediaType) else str(media_type)
        return await self._get(f"/{kind}/{media_id}/external_ids")
