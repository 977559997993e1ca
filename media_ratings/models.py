from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaType(str, Enum):
    movie = "movie"
    tv = "tv"


class PersonRole(str, Enum):
    cast = "cast"
    crew = "crew"


class Provider(str, Enum):
    TMDB = "TMDB"
    IMDB = "IMDB"
    META = "Meta"


class MediaDescriptor(BaseModel):
    """What the page tells us about one media item."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    year: str | None = None
    person_of_interest: str | None = None
    person_role: PersonRole = PersonRole.crew

    @field_validator("year", "person_of_interest", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @classmethod
    def from_about_section(
        cls,
        title: str,
        year: str | None,
        person_label: str | None,
        people: str | None,
    ) -> "MediaDescriptor":
        # Creator/Director comes first when present, otherwise a cast list.
        # Documentaries often have neither.
        label = person_label or ""
        first_person = (people or "").strip().split(",")[0].strip() or None
        if "Creator" in label or "Director" in label:
            return cls(title=title, year=year, person_of_interest=first_person, person_role=PersonRole.crew)
        if "Cast" in label:
            return cls(title=title, year=year, person_of_interest=first_person, person_role=PersonRole.cast)
        return cls(title=title, year=year)


class CatalogEntry(BaseModel):
    id: int
    media_type: MediaType
    vote_average: float | None = None
    vote_count: int | None = None
    external_id: str | None = None


class RatingSource(BaseModel):
    value: str | float | int
    vote_count: str | int | None = None
    reference_id: str | int | None = None


class RatingSummary(BaseModel):
    media_type: MediaType
    accurate: bool
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sources: dict[Provider, RatingSource] = Field(default_factory=dict)

    @field_validator("last_updated")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
