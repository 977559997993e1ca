import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from .config import CONFIG_PATH, Settings, load_config, save_config
from .errors import IncompleteCredential, ProviderUnavailable
from .formatting import rating_links
from .models import MediaDescriptor, RatingSummary
from .session import RatingSession

logger = logging.getLogger(__name__)


class ApiKeysRequest(BaseModel):
    tmdb_api_key: str = Field(min_length=1, max_length=200)
    omdb_api_key: str = Field(min_length=1, max_length=200)


def _serialize_summary(title: str, summary: RatingSummary) -> dict:
    return {
        "title": title,
        "ratings": summary.model_dump(mode="json"),
        "links": [
            {
                "provider": link.provider.value,
                "label": link.label,
                "url": link.url,
                "tooltip": link.tooltip,
                "class": link.css_class,
            }
            for link in rating_links(title, summary)
        ],
    }


async def _start_session(settings: Settings) -> RatingSession:
    session = RatingSession(settings)
    await session.start()
    return session


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.config_path = getattr(app.state, "config_path", CONFIG_PATH)
    app.state.ratings = await _start_session(Settings.from_env(app.state.config_path))
    yield
    await app.state.ratings.close()


app = FastAPI(lifespan=lifespan)


def get_session(request: Request) -> RatingSession:
    return request.app.state.ratings


@app.get("/api/status")
async def status(session: RatingSession = Depends(get_session)):
    errors = session.credential_error.messages if session.credential_error else []
    return {"providers_usable": session.providers_usable, "disabled": not session.providers_usable, "errors": errors}


@app.get("/api/config")
async def get_config(request: Request):
    stored = load_config(request.app.state.config_path)
    return {
        "tmdb_api_key": stored.get("tmdb_api_key") or "",
        "omdb_api_key": stored.get("omdb_api_key") or "",
    }


@app.post("/api/config")
async def set_config(data: ApiKeysRequest, request: Request):
    config_path: Path = request.app.state.config_path
    stored = load_config(config_path)
    stored["tmdb_api_key"] = data.tmdb_api_key.strip()
    stored["omdb_api_key"] = data.omdb_api_key.strip()
    save_config(stored, config_path)

    old_session: RatingSession = request.app.state.ratings
    settings = old_session.settings.model_copy(
        update={"tmdb_api_key": stored["tmdb_api_key"], "omdb_api_key": stored["omdb_api_key"]}
    )
    new_session = await _start_session(settings)
    request.app.state.ratings = new_session
    await old_session.close()
    if not new_session.providers_usable:
        errors = new_session.credential_error.messages if new_session.credential_error else []
        return {"ok": False, "errors": errors}
    return {"ok": True, "errors": []}


@app.get("/api/ratings")
async def cached_ratings(
    title: str = Query(..., min_length=1),
    session: RatingSession = Depends(get_session),
):
    summary = session.cache.lookup(title)
    if summary is None:
        raise HTTPException(status_code=404, detail="No cached ratings for this title")
    return _serialize_summary(title, summary)


@app.post("/api/ratings/resolve")
async def resolve_ratings(descriptor: MediaDescriptor, session: RatingSession = Depends(get_session)):
    try:
        summary = await session.get_ratings(descriptor)
    except IncompleteCredential as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except ProviderUnavailable as exc:
        logger.warning("Resolving %s failed: %s", descriptor.title, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    if summary is None:
        raise HTTPException(status_code=404, detail="Title not found")
    return _serialize_summary(descriptor.title, summary)
