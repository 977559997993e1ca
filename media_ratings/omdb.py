import logging

import httpx

from .config import Settings
from .errors import ProviderUnavailable

OMDB_URL = "https://www.omdbapi.com/"
NOT_AVAILABLE = "N/A"

logger = logging.getLogger(__name__)


class OMDbClient:
    """OMDb is only ever queried by IMDb id; title lookups there are too loose."""

    name = "OMDB"

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

    async def _get(self, params: dict) -> dict:
        params = dict(params)
        params["apikey"] = self.settings.omdb_api_key
        client = await self._get_client()
        try:
            resp = await client.get(OMDB_URL, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailable(self.name, f"returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, str(exc)) from exc
        except ValueError as exc:
            raise ProviderUnavailable(self.name, "returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, "returned malformed JSON")
        return data

    async def check_key(self) -> bool:
        # Any title works, an invalid key answers 401.
        try:
            await self._get({"t": "foo"})
        except ProviderUnavailable as exc:
            logger.warning("OMDb key check failed: %s", exc.detail)
            return False
        return True

    async def fetch_by_imdb_id(self, imdb_id: str) -> dict:
        return await self._get({"i": imdb_id})
