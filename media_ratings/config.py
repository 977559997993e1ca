import json
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import IncompleteCredential

CONFIG_PATH = Path(__file__).parent.parent / "user_config.json"
DEFAULT_CACHE_PATH = Path(__file__).parent.parent / "ratings_cache.json"
DEFAULT_TTL_DAYS = 1.0
DEFAULT_HTTP_TIMEOUT = 10.0


def load_config(path: Path = CONFIG_PATH) -> dict:
    if path.exists():
        return json.loads(path.read_text())
    return {"tmdb_api_key": "", "omdb_api_key": ""}


def save_config(data: dict, path: Path = CONFIG_PATH) -> None:
    path.write_text(json.dumps(data, indent=2))


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings(BaseModel):
    """Configuration for one page session. Passed explicitly to the provider clients."""

    tmdb_api_key: str = ""
    omdb_api_key: str = ""
    cache_path: Path = DEFAULT_CACHE_PATH
    cache_ttl_days: float = Field(default=DEFAULT_TTL_DAYS, gt=0)
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)

    @classmethod
    def from_env(cls, config_path: Path = CONFIG_PATH) -> "Settings":
        load_dotenv()
        stored = load_config(config_path)
        tmdb_key = os.environ.get("TMDB_API_KEY", "").strip() or str(stored.get("tmdb_api_key") or "").strip()
        omdb_key = os.environ.get("OMDB_API_KEY", "").strip() or str(stored.get("omdb_api_key") or "").strip()
        cache_path = os.environ.get("MEDIA_RATINGS_CACHE_PATH", "").strip()
        return cls(
            tmdb_api_key=tmdb_key,
            omdb_api_key=omdb_key,
            cache_path=Path(cache_path) if cache_path else DEFAULT_CACHE_PATH,
            cache_ttl_days=_env_float("MEDIA_RATINGS_TTL_DAYS", DEFAULT_TTL_DAYS),
            http_timeout=_env_float("MEDIA_RATINGS_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        )

    def require_keys(self) -> None:
        missing = []
        if not self.tmdb_api_key:
            missing.append("TMDB")
        if not self.omdb_api_key:
            missing.append("OMDB")
        if missing:
            raise IncompleteCredential(missing=missing)
