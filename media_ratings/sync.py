import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol

from .cache import CacheManager
from .formatting import RatingLink, rating_links
from .models import MediaDescriptor, RatingSummary
from .resolver import IdentityResolver

logger = logging.getLogger(__name__)


class ItemKind(str, Enum):
    # Details views carry year and people, enough to resolve. Thumbnails only show a title.
    DETAILS = "details"
    THUMBNAIL = "thumbnail"


class ItemState(str, Enum):
    UNSEEN = "unseen"
    AWAITING_CACHE = "awaiting_cache"
    AWAITING_RESOLUTION = "awaiting_resolution"
    ANNOTATED = "annotated"
    UNRESOLVED = "unresolved"


IN_FLIGHT = {ItemState.AWAITING_CACHE, ItemState.AWAITING_RESOLUTION}


@dataclass(frozen=True)
class ObservedItem:
    element: Any
    kind: ItemKind = ItemKind.THUMBNAIL


@dataclass
class TrackedItem:
    item: ObservedItem
    state: ItemState = ItemState.UNSEEN
    title: str | None = None


class DescriptorExtractor(Protocol):
    def extract(self, element: Any) -> MediaDescriptor | None: ...


class RatingRenderer(Protocol):
    def is_annotated(self, element: Any) -> bool: ...

    def render(self, element: Any, summary: RatingSummary, links: list[RatingLink]) -> None: ...


_CLOSED = object()


class ChangeFeed:
    """Batches of newly appeared items, published by the host and consumed with ``async for``."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def publish(self, items: Iterable[ObservedItem]) -> None:
        if self.closed:
            raise RuntimeError("change feed is closed")
        batch = list(items)
        if batch:
            self._queue.put_nowait(batch)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> list[ObservedItem]:
        batch = await self._queue.get()
        if batch is _CLOSED:
            raise StopAsyncIteration
        return batch


@dataclass
class ViewSyncController:
    cache: CacheManager
    resolver: IdentityResolver | None
    extractor: DescriptorExtractor
    renderer: RatingRenderer
    providers_usable: bool = True
    _tracked: dict[int, TrackedItem] = field(default_factory=dict, init=False, repr=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self):
        self.cache.on_update(self.refresh)

    def state_of(self, element: Any) -> ItemState:
        tracked = self._tracked.get(id(element))
        return tracked.state if tracked else ItemState.UNSEEN

    def forget(self, element: Any) -> None:
        """Stop tracking a removed element. A resolution in flight still writes the cache."""
        self._tracked.pop(id(element), None)

    def annotate(self, element: Any, title: str, summary: RatingSummary) -> bool:
        if self.renderer.is_annotated(element):
            return False
        links = rating_links(title, summary)
        if not links:
            return False
        self.renderer.render(element, summary, links)
        return True

    def _mark_annotated(self, tracked: TrackedItem, summary: RatingSummary) -> None:
        self.annotate(tracked.item.element, tracked.title, summary)
        if self.renderer.is_annotated(tracked.item.element):
            tracked.state = ItemState.ANNOTATED
        else:
            tracked.state = ItemState.UNRESOLVED

    async def process(self, item: ObservedItem) -> ItemState:
        key = id(item.element)
        tracked = self._tracked.get(key)
        if tracked is None:
            tracked = self._tracked[key] = TrackedItem(item=item)
        elif tracked.state in IN_FLIGHT or tracked.state == ItemState.ANNOTATED:
            return tracked.state

        if self.renderer.is_annotated(item.element):
            tracked.state = ItemState.ANNOTATED
            return tracked.state

        descriptor = self.extractor.extract(item.element)
        if descriptor is None:
            tracked.state = ItemState.UNRESOLVED
            return tracked.state
        tracked.title = descriptor.title
        tracked.state = ItemState.AWAITING_CACHE

        if item.kind == ItemKind.THUMBNAIL or not self.providers_usable or self.resolver is None:
            summary = self.cache.lookup(descriptor.title)
        else:
            summary = self.cache.lookup_fresh(descriptor.title)
            if summary is None:
                tracked.state = ItemState.AWAITING_RESOLUTION
                summary = await self.resolver.resolve_summary(descriptor)
                if summary is not None:
                    await self.cache.upsert(descriptor.title, summary)

        if summary is None:
            tracked.state = ItemState.UNRESOLVED
            return tracked.state
        if self._tracked.get(key) is not tracked:
            logger.debug("%s left the view before its ratings arrived", descriptor.title)
            return ItemState.UNSEEN
        self._mark_annotated(tracked, summary)
        return tracked.state

    async def _process_isolated(self, item: ObservedItem) -> None:
        try:
            await self.process(item)
        except Exception:
            logger.exception("Failed to add ratings to %r", item.element)
            tracked = self._tracked.get(id(item.element))
            if tracked is not None:
                tracked.state = ItemState.UNRESOLVED

    async def handle_batch(self, batch: Iterable[ObservedItem]) -> None:
        await asyncio.gather(*(self._process_isolated(item) for item in batch))

    async def initial_scan(self, items: Iterable[ObservedItem]) -> None:
        await self.handle_batch(items)

    async def refresh(self, store: dict[str, RatingSummary]) -> None:
        """Annotate tracked thumbnails whose title just got into the cache."""
        for tracked in list(self._tracked.values()):
            if tracked.item.kind != ItemKind.THUMBNAIL or tracked.state != ItemState.UNRESOLVED:
                continue
            summary = store.get(tracked.title) if tracked.title else None
            if summary is None:
                continue
            try:
                self._mark_annotated(tracked, summary)
            except Exception:
                logger.exception("Failed to refresh ratings of %r", tracked.item.element)

    async def run(self, feed: ChangeFeed) -> None:
        # Batches are not awaited one after the other: a burst arriving while
        # an earlier item is still resolving gets processed right away.
        async for batch in feed:
            task = asyncio.create_task(self.handle_batch(batch))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        await self.drain()

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
