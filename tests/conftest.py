from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from media_ratings.cache import CacheManager
from media_ratings.models import MediaDescriptor, MediaType, Provider, RatingSource, RatingSummary
from media_ratings.resolver import IdentityResolver
from media_ratings.storage import MemoryBackend


class FakeTMDB:
    name = "TMDB"

    def __init__(self, people=None, credits=None, multi=None, external_ids=None, key_ok=True):
        self.people = people or {}
        self.credits = credits or {}
        self.multi = multi or {}
        self.external_ids = external_ids or {}
        self.key_ok = key_ok
        self.calls: list[tuple] = []
        self.closed = False
        self.error: Exception | None = None

    def _record(self, *call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    async def check_key(self) -> bool:
        return self.key_ok

    async def search_person(self, name):
        self._record("search_person", name)
        return list(self.people.get(name, []))

    async def get_person_combined_credits(self, person_id):
        self._record("combined_credits", person_id)
        data = self.credits.get(person_id, {})
        return {"cast": data.get("cast", []), "crew": data.get("crew", [])}

    async def search_multi(self, query):
        self._record("search_multi", query)
        return list(self.multi.get(query, []))

    async def get_external_ids(self, media_type, media_id):
        kind = MediaType(media_type).value
        self._record("external_ids", kind, media_id)
        return dict(self.external_ids.get((kind, media_id), {}))

    async def close_client(self):
        self.closed = True


class FakeOMDb:
    name = "OMDB"

    def __init__(self, records=None, key_ok=True):
        self.records = records or {}
        self.key_ok = key_ok
        self.calls: list[str] = []
        self.closed = False

    async def check_key(self) -> bool:
        return self.key_ok

    async def fetch_by_imdb_id(self, imdb_id):
        self.calls.append(imdb_id)
        return dict(self.records.get(imdb_id, {"Response": "False", "Error": "Incorrect IMDb ID."}))

    async def close_client(self):
        self.closed = True


@dataclass(eq=False)
class Card:
    title: str | None
    year: str | None = None
    person: str | None = None
    role: str = "crew"
    annotations: list = field(default_factory=list)


class CardExtractor:
    def __init__(self, fail_on: set[str] | None = None):
        self.fail_on = fail_on or set()

    def extract(self, element: Card):
        if element.title in self.fail_on:
            raise RuntimeError(f"markup changed for {element.title}")
        if not element.title:
            return None
        return MediaDescriptor(
            title=element.title,
            year=element.year,
            person_of_interest=element.person,
            person_role=element.role,
        )


class CardRenderer:
    def __init__(self):
        self.render_calls = 0

    def is_annotated(self, element: Card) -> bool:
        return bool(element.annotations)

    def render(self, element: Card, summary, links):
        self.render_calls += 1
        element.annotations.append([link.label for link in links])


def make_summary(accurate=True, age=timedelta(0), media_type="movie", sources=None) -> RatingSummary:
    if sources is None:
        sources = {Provider.TMDB: RatingSource(value=7.9, vote_count=1500, reference_id=777)}
    return RatingSummary(
        media_type=media_type,
        accurate=accurate,
        last_updated=datetime.now(timezone.utc) - age,
        sources=sources,
    )


ARRIVAL_TMDB = dict(
    people={"Denis Villeneuve": [{"id": 137427, "name": "Denis Villeneuve"}]},
    credits={
        137427: {
            "crew": [
                {"title": "Arrival", "release_date": "2016-11-10", "job": "Producer", "id": 900, "media_type": "movie"},
                {
                    "title": "Arrival",
                    "release_date": "2016-11-10",
                    "job": "Director",
                    "id": 777,
                    "media_type": "movie",
                    "vote_average": 7.6,
                    "vote_count": 18000,
                },
            ]
        }
    },
    multi={"Arrival": [{"id": 555, "media_type": "movie", "vote_average": 5.1, "vote_count": 40}]},
    external_ids={("movie", 777): {"imdb_id": "tt2543164"}, ("movie", 555): {"imdb_id": None}},
)

ARRIVAL_OMDB = {
    "tt2543164": {"imdbRating": "7.9", "imdbVotes": "780,000", "Metascore": "81", "imdbID": "tt2543164"},
}


@pytest.fixture
def arrival_tmdb() -> FakeTMDB:
    return FakeTMDB(**ARRIVAL_TMDB)


@pytest.fixture
def arrival_omdb() -> FakeOMDb:
    return FakeOMDb(ARRIVAL_OMDB)


@pytest.fixture
def resolver(arrival_tmdb, arrival_omdb) -> IdentityResolver:
    return IdentityResolver(arrival_tmdb, arrival_omdb)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def cache(backend) -> CacheManager:
    return CacheManager(backend)
