from datetime import timedelta

import pytest

from conftest import ARRIVAL_OMDB, ARRIVAL_TMDB, Card, CardExtractor, CardRenderer, FakeOMDb, FakeTMDB, make_summary
from media_ratings.config import Settings
from media_ratings.errors import IncompleteCredential
from media_ratings.models import MediaDescriptor
from media_ratings.session import RatingSession
from media_ratings.storage import MemoryBackend
from media_ratings.sync import ItemKind, ItemState, ObservedItem

KEYS = Settings(tmdb_api_key="tmdb-key", omdb_api_key="omdb-key")
ARRIVAL = MediaDescriptor(title="Arrival", year="2016", person_of_interest="Denis Villeneuve", person_role="crew")


def _session(settings=KEYS, tmdb_ok=True, omdb_ok=True, backend=None):
    statuses = []
    session = RatingSession(
        settings,
        backend=backend or MemoryBackend(),
        tmdb=FakeTMDB(key_ok=tmdb_ok, **ARRIVAL_TMDB),
        omdb=FakeOMDb(ARRIVAL_OMDB, key_ok=omdb_ok),
        on_status=statuses.append,
    )
    return session, statuses


@pytest.mark.asyncio
async def test_start_with_valid_keys():
    session, statuses = _session()
    assert await session.start() is True
    assert statuses == [False]
    assert session.credential_error is None


@pytest.mark.asyncio
async def test_missing_key_disables_session():
    session, statuses = _session(settings=Settings(tmdb_api_key="tmdb-key"))

    assert await session.start() is False

    assert statuses == [True]
    assert session.credential_error.missing == ["OMDB"]


@pytest.mark.asyncio
async def test_rejected_key_disables_session():
    session, statuses = _session(tmdb_ok=False)
    await session.start()
    assert statuses == [True]
    assert session.credential_error.invalid == ["TMDB"]
    assert session.credential_error.messages == ["Invalid TMDB API key"]


@pytest.mark.asyncio
async def test_get_ratings_resolves_then_serves_cache():
    session, _ = _session()
    await session.start()

    first = await session.get_ratings(ARRIVAL)
    calls_after_first = len(session.tmdb.calls)
    second = await session.get_ratings(ARRIVAL)

    assert first.accurate is True
    assert second.model_dump() == first.model_dump()
    assert len(session.tmdb.calls) == calls_after_first


@pytest.mark.asyncio
async def test_disabled_session_serves_stale_cache_only():
    backend = MemoryBackend({"Arrival": make_summary(age=timedelta(days=10)).model_dump(mode="json")})
    session, _ = _session(settings=Settings(), backend=backend)
    await session.start()

    assert (await session.get_ratings(ARRIVAL)).accurate is True
    with pytest.raises(IncompleteCredential):
        await session.get_ratings(MediaDescriptor(title="Dune"))
    assert session.tmdb.calls == []


@pytest.mark.asyncio
async def test_controller_carries_provider_state():
    session, _ = _session(omdb_ok=False)
    await session.start()
    controller = session.controller(CardExtractor(), CardRenderer())
    card = Card(title="Arrival", year="2016", person="Denis Villeneuve")

    await controller.handle_batch([ObservedItem(card, ItemKind.DETAILS)])

    assert controller.providers_usable is False
    assert controller.state_of(card) == ItemState.UNRESOLVED


@pytest.mark.asyncio
async def test_close_closes_clients():
    session, _ = _session()
    await session.close()
    assert session.tmdb.closed and session.omdb.closed
