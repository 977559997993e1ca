import logging
from dataclasses import dataclass

from pydantic import ValidationError

from .errors import ProviderUnavailable
from .fusion import fuse
from .models import CatalogEntry, MediaDescriptor, MediaType, PersonRole, RatingSummary
from .omdb import OMDbClient
from .tmdb import TMDBClient

CREW_JOBS = {"Creator", "Director"}

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    entry: CatalogEntry | None = None
    accurate: bool | None = None

    @property
    def found(self) -> bool:
        return self.entry is not None


def credit_matches(credit: dict, descriptor: MediaDescriptor) -> bool:
    """A credit matches on exact title (movies) or name (tv) plus a year found in its release date.

    Credits without a release date (tv credits use first_air_date) match on title alone.
    Crew credits only count for creators and directors.
    """
    if credit.get("title") != descriptor.title and credit.get("name") != descriptor.title:
        return False
    if "release_date" in credit and descriptor.year:
        if descriptor.year not in str(credit.get("release_date") or ""):
            return False
    if descriptor.person_role == PersonRole.crew and credit.get("job") not in CREW_JOBS:
        return False
    return True


def _to_entry(item: dict) -> CatalogEntry:
    try:
        return CatalogEntry(
            id=item["id"],
            media_type=item["media_type"],
            vote_average=item.get("vote_average"),
            vote_count=item.get("vote_count"),
        )
    except (KeyError, ValidationError) as exc:
        raise ProviderUnavailable("TMDB", f"malformed catalog entry {item.get('id')!r}") from exc


class IdentityResolver:
    def __init__(self, tmdb: TMDBClient, omdb: OMDbClient):
        self.tmdb = tmdb
        self.omdb = omdb

    async def _match_by_person(self, descriptor: MediaDescriptor) -> CatalogEntry | None:
        if not descriptor.person_of_interest:
            return None
        people = await self.tmdb.search_person(descriptor.person_of_interest)
        role = descriptor.person_role.value
        # Homonyms are scanned in provider order, first matching credit wins.
        for person in people:
            person_id = person.get("id")
            if person_id is None:
                continue
            credits = await self.tmdb.get_person_combined_credits(person_id)
            for credit in credits.get(role) or []:
                if credit_matches(credit, descriptor):
                    logger.info(
                        "Found match for %s (%s) in credits of %s: %s",
                        descriptor.title,
                        role,
                        descriptor.person_of_interest,
                        credit.get("id"),
                    )
                    return _to_entry(credit)
        return None

    async def _match_by_title(self, descriptor: MediaDescriptor) -> CatalogEntry | None:
        results = await self.tmdb.search_multi(descriptor.title)
        for item in results:
            # search/multi also returns people, which carry no ratings.
            if item.get("media_type") in (MediaType.movie.value, MediaType.tv.value):
                return _to_entry(item)
        return None

    async def resolve(self, descriptor: MediaDescriptor) -> Resolution:
        entry = await self._match_by_person(descriptor)
        accurate = True
        if entry is None:
            logger.warning(
                "No credit of %r matched %s, searching by title",
                descriptor.person_of_interest,
                descriptor.title,
            )
            entry = await self._match_by_title(descriptor)
            accurate = False
        if entry is None:
            logger.warning("%s not found at all", descriptor.title)
            return Resolution()

        external_ids = await self.tmdb.get_external_ids(entry.media_type, entry.id)
        imdb_id = str(external_ids.get("imdb_id") or "").strip()
        entry.external_id = imdb_id or None
        return Resolution(entry=entry, accurate=accurate)

    async def resolve_summary(self, descriptor: MediaDescriptor) -> RatingSummary | None:
        resolution = await self.resolve(descriptor)
        if not resolution.found:
            return None
        cross_ref = None
        if resolution.entry.external_id:
            cross_ref = await self.omdb.fetch_by_imdb_id(resolution.entry.external_id)
        summary = fuse(resolution.entry, cross_ref, accurate=bool(resolution.accurate))
        if not summary.sources:
            logger.warning("%s resolved to %s but no provider had ratings", descriptor.title, resolution.entry.id)
            return None
        return summary
