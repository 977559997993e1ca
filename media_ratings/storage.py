import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

CACHE_KEY = "netflixMediaRatings"

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    async def load(self) -> dict: ...

    async def save(self, data: dict) -> None: ...


class JsonFileBackend:
    """Whole-blob storage: every save rewrites the namespaced key with the full mapping.

    Other top-level keys in the file are preserved.
    """

    def __init__(self, path: Path, key: str = CACHE_KEY):
        self.path = Path(path)
        self.key = key
        self._write_lock = asyncio.Lock()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError):
            logger.exception("Could not read ratings cache at %s, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        blob = self._read_all()
        blob[self.key] = data
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(blob, indent=2))
        tmp.replace(self.path)

    async def load(self) -> dict:
        blob = await asyncio.to_thread(self._read_all)
        stored = blob.get(self.key)
        return stored if isinstance(stored, dict) else {}

    async def save(self, data: dict) -> None:
        async with self._write_lock:
            await asyncio.to_thread(self._write, data)


class MemoryBackend:
    def __init__(self, initial: dict | None = None):
        self.data = json.loads(json.dumps(initial or {}))
        self.saves = 0

    async def load(self) -> dict:
        return json.loads(json.dumps(self.data))

    async def save(self, data: dict) -> None:
        self.data = json.loads(json.dumps(data))
        self.saves += 1
