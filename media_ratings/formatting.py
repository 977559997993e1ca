from dataclasses import dataclass
from typing import Callable
from urllib.parse import quote

from .models import Provider, RatingSource, RatingSummary

IMDB_BASE_URL = "https://imdb.com/title"
METACRITIC_BASE_URL = "https://www.metacritic.com"
TMDB_BASE_URL = "https://www.themoviedb.org"


@dataclass(frozen=True)
class RatingLink:
    provider: Provider
    label: str
    url: str
    tooltip: str | None
    css_class: str


@dataclass(frozen=True)
class LinkRule:
    url: Callable[[str, RatingSummary, RatingSource], str]
    show_votes: bool


def _imdb_url(title: str, summary: RatingSummary, source: RatingSource) -> str:
    return f"{IMDB_BASE_URL}/{source.reference_id}"


def _metacritic_url(title: str, summary: RatingSummary, source: RatingSource) -> str:
    return f"{METACRITIC_BASE_URL}/search/{summary.media_type.value}/{quote(title, safe='')}/results"


def _tmdb_url(title: str, summary: RatingSummary, source: RatingSource) -> str:
    return f"{TMDB_BASE_URL}/{summary.media_type.value}/{source.reference_id}"


# Display order follows the key order.
LINK_RULES: dict[Provider, LinkRule] = {
    Provider.IMDB: LinkRule(url=_imdb_url, show_votes=True),
    Provider.META: LinkRule(url=_metacritic_url, show_votes=False),
    Provider.TMDB: LinkRule(url=_tmdb_url, show_votes=True),
}

assert set(LINK_RULES) == set(Provider), "every provider needs a link rule"


def rating_links(title: str, summary: RatingSummary) -> list[RatingLink]:
    css_class = "accurate" if summary.accurate else "inaccurate"
    links: list[RatingLink] = []
    for provider, rule in LINK_RULES.items():
        source = summary.sources.get(provider)
        if source is None:
            continue
        tooltip = f"Votes: {source.vote_count}" if rule.show_votes and source.vote_count is not None else None
        links.append(
            RatingLink(
                provider=provider,
                label=f"{provider.value}: {source.value}",
                url=rule.url(title, summary, source),
                tooltip=tooltip,
                css_class=css_class,
            )
        )
    return links
