import asyncio
import logging
from typing import Callable

from .cache import CacheManager
from .config import Settings
from .errors import IncompleteCredential
from .models import MediaDescriptor, RatingSummary
from .omdb import OMDbClient
from .resolver import IdentityResolver
from .storage import CacheBackend, JsonFileBackend
from .sync import DescriptorExtractor, RatingRenderer, ViewSyncController
from .tmdb import TMDBClient

StatusCallback = Callable[[bool], None]

logger = logging.getLogger(__name__)


class RatingSession:
    """Everything one page session needs: settings, provider clients, the cache and its controller.

    Provider keys are checked once in ``start``. If they are missing or rejected the
    session keeps serving cached ratings but never calls a provider.
    """

    def __init__(
        self,
        settings: Settings,
        backend: CacheBackend | None = None,
        tmdb: TMDBClient | None = None,
        omdb: OMDbClient | None = None,
        on_status: StatusCallback | None = None,
    ):
        self.settings = settings
        self.tmdb = tmdb or TMDBClient(settings)
        self.omdb = omdb or OMDbClient(settings)
        self.resolver = IdentityResolver(self.tmdb, self.omdb)
        self.cache = CacheManager(backend or JsonFileBackend(settings.cache_path), ttl_days=settings.cache_ttl_days)
        self.on_status = on_status
        self.providers_usable = False
        self.credential_error: IncompleteCredential | None = None

    async def validate_credentials(self) -> None:
        self.settings.require_keys()
        tmdb_ok, omdb_ok = await asyncio.gather(self.tmdb.check_key(), self.omdb.check_key())
        invalid = [name for name, ok in (("TMDB", tmdb_ok), ("OMDB", omdb_ok)) if not ok]
        if invalid:
            raise IncompleteCredential(invalid=invalid)

    async def start(self) -> bool:
        await self.cache.load()
        try:
            await self.validate_credentials()
        except IncompleteCredential as exc:
            logger.warning("Ratings lookups disabled for this session: %s", exc)
            self.credential_error = exc
            self.providers_usable = False
        else:
            self.credential_error = None
            self.providers_usable = True
        if self.on_status is not None:
            self.on_status(not self.providers_usable)
        return self.providers_usable

    def controller(self, extractor: DescriptorExtractor, renderer: RatingRenderer) -> ViewSyncController:
        return ViewSyncController(
            cache=self.cache,
            resolver=self.resolver,
            extractor=extractor,
            renderer=renderer,
            providers_usable=self.providers_usable,
        )

    async def get_ratings(self, descriptor: MediaDescriptor) -> RatingSummary | None:
        """Cache-aside lookup for one descriptor, resolving on a miss or a stale entry."""
        summary = self.cache.lookup_fresh(descriptor.title)
        if summary is not None:
            return summary
        if not self.providers_usable:
            cached = self.cache.lookup(descriptor.title)
            if cached is not None:
                return cached
            raise self.credential_error or IncompleteCredential()
        logger.info("Fetching ratings for %s", descriptor.title)
        summary = await self.resolver.resolve_summary(descriptor)
        if summary is not None:
            await self.cache.upsert(descriptor.title, summary)
        return summary

    async def close(self) -> None:
        await self.tmdb.close_client()
        await self.omdb.close_client()
