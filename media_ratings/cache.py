import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable

from pydantic import ValidationError

from .config import DEFAULT_TTL_DAYS
from .errors import MalformedCacheEntry
from .models import RatingSummary
from .storage import CacheBackend

DAY_MS = 1000 * 60 * 60 * 24

UpdateCallback = Callable[[dict[str, RatingSummary]], Awaitable[None] | None]

logger = logging.getLogger(__name__)


def decode_entry(title: str, raw) -> RatingSummary:
    if not isinstance(raw, dict):
        raise MalformedCacheEntry(title, "not an object")
    try:
        summary = RatingSummary.model_validate(raw)
    except ValidationError as exc:
        raise MalformedCacheEntry(title, f"{exc.error_count()} invalid field(s)") from exc
    if not summary.sources:
        raise MalformedCacheEntry(title, "no sources")
    return summary


def age_in_days(summary: RatingSummary, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    delta_ms = (now - summary.last_updated).total_seconds() * 1000
    return delta_ms / DAY_MS


def is_fresh(summary: RatingSummary, ttl_days: float = DEFAULT_TTL_DAYS, now: datetime | None = None) -> bool:
    # Title-search matches are always worth another try: a person match may turn up later.
    if not summary.accurate:
        return False
    return age_in_days(summary, now) <= ttl_days


class CacheManager:
    """Working copy of the persisted ratings cache for one session.

    Keys are titles exactly as displayed; two media with the same title share an entry.
    Every upsert persists the whole store and then notifies subscribers.
    """

    def __init__(self, backend: CacheBackend, ttl_days: float = DEFAULT_TTL_DAYS):
        self.backend = backend
        self.ttl_days = ttl_days
        self._store: dict[str, RatingSummary] = {}
        self._callbacks: list[UpdateCallback] = []
        self.loaded = False

    async def load(self) -> dict[str, RatingSummary]:
        raw = await self.backend.load()
        store: dict[str, RatingSummary] = {}
        for title, value in raw.items():
            try:
                store[title] = decode_entry(title, value)
            except MalformedCacheEntry as exc:
                logger.warning("Dropping cache entry: %s", exc)
        self._store = store
        self.loaded = True
        logger.info("Loaded %d cached ratings", len(store))
        return self.snapshot()

    def lookup(self, title: str) -> RatingSummary | None:
        summary = self._store.get(title)
        return summary.model_copy(deep=True) if summary is not None else None

    def is_fresh(self, summary: RatingSummary, ttl_days: float | None = None, now: datetime | None = None) -> bool:
        return is_fresh(summary, self.ttl_days if ttl_days is None else ttl_days, now)

    def lookup_fresh(self, title: str) -> RatingSummary | None:
        summary = self.lookup(title)
        if summary is None:
            logger.info("No cache for %s", title)
            return None
        if not self.is_fresh(summary):
            logger.info(
                "Cache for %s is stale (accurate=%s, %.2f days old, limit %s)",
                title,
                summary.accurate,
                age_in_days(summary),
                self.ttl_days,
            )
            return None
        return summary

    def snapshot(self) -> dict[str, RatingSummary]:
        return {title: summary.model_copy(deep=True) for title, summary in self._store.items()}

    def dump(self) -> dict:
        return {title: summary.model_dump(mode="json") for title, summary in self._store.items()}

    def on_update(self, callback: UpdateCallback) -> None:
        self._callbacks.append(callback)

    async def upsert(self, title: str, summary: RatingSummary) -> None:
        if not summary.sources:
            raise ValueError(f"refusing to cache {title!r} without any rating source")
        self._store[title] = summary.model_copy(deep=True)
        await self.backend.save(self.dump())
        snapshot = self.snapshot()
        for callback in list(self._callbacks):
            result = callback(snapshot)
            if result is not None:
                await result
