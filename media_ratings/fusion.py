from datetime import datetime, timezone
from typing import Any

from .models import CatalogEntry, Provider, RatingSource, RatingSummary
from .omdb import NOT_AVAILABLE


def _available(value: Any) -> bool:
    if value is None:
        return False
    text = str(value).strip()
    return bool(text) and text.upper() != NOT_AVAILABLE


def _primary_source(entry: CatalogEntry) -> RatingSource | None:
    # TMDB reports 0/0 for titles nobody voted on yet.
    if not entry.vote_average or not entry.vote_count:
        return None
    return RatingSource(value=entry.vote_average, vote_count=entry.vote_count, reference_id=entry.id)


def fuse(
    entry: CatalogEntry,
    cross_ref: dict | None,
    accurate: bool,
    now: datetime | None = None,
) -> RatingSummary:
    sources: dict[Provider, RatingSource] = {}

    primary = _primary_source(entry)
    if primary is not None:
        sources[Provider.TMDB] = primary

    if cross_ref:
        if _available(cross_ref.get("imdbRating")):
            votes = cross_ref.get("imdbVotes")
            sources[Provider.IMDB] = RatingSource(
                value=str(cross_ref["imdbRating"]).strip(),
                vote_count=votes if _available(votes) else None,
                reference_id=entry.external_id or cross_ref.get("imdbID"),
            )
        if _available(cross_ref.get("Metascore")):
            sources[Provider.META] = RatingSource(value=str(cross_ref["Metascore"]).strip())

    return RatingSummary(
        media_type=entry.media_type,
        accurate=accurate,
        last_updated=now or datetime.now(timezone.utc),
        sources=sources,
    )
