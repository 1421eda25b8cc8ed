import json
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

import anyio
from pydantic import ValidationError

from dictlens.config import CONFIG_CACHE_TTL, USAGE_CACHE_TTL
from dictlens.models import DictionaryRecord, ProjectConfig, UsageLocation

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    Entries are served until `ttl` seconds after they were stored, whether or
    not the underlying data changed in the meantime.
    """

    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[float, T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self.clock() - stored_at >= self.ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = (self.clock(), value)

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class ConfigCache(TTLCache[ProjectConfig]):
    def __init__(self, ttl: float = CONFIG_CACHE_TTL, clock: Clock = time.monotonic):
        super().__init__(ttl, clock)

    async def get_or_load(
        self, project_dir: str, loader: Callable[[str], Awaitable[ProjectConfig]]
    ) -> ProjectConfig:
        config = self.get(project_dir)
        if config is None:
            config = await loader(project_dir)
            self.set(project_dir, config)
        return config


class UsageCache(TTLCache[List[UsageLocation]]):
    """Usage scan results keyed by project root and dictionary key."""

    def __init__(self, ttl: float = USAGE_CACHE_TTL, clock: Clock = time.monotonic):
        super().__init__(ttl, clock)

    @staticmethod
    def key_for(project_dir: str, dictionary_key: str) -> str:
        return f"{project_dir}:{dictionary_key}"


def get_dictionary_path(dictionaries_dir: str | Path, dictionary_key: str) -> Path:
    return Path(dictionaries_dir) / f"{dictionary_key}.json"


class DictionaryCache:
    """
    JSON files keyed by absolute path and invalidated by modification time.

    The file is stat'ed before every read, so a cached value is never stale.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[float, Any]] = {}

    async def load_json(self, file_path: str | Path) -> Optional[Any]:
        path = anyio.Path(file_path)
        try:
            stat = await path.stat()
        except OSError:
            return None

        key = str(file_path)
        cached = self._entries.get(key)
        if cached is not None and cached[0] == stat.st_mtime:
            return cached[1]

        try:
            data = json.loads(await path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Failed to load dictionary %s: %s", file_path, e)
            return None

        self._entries[key] = (stat.st_mtime, data)
        return data

    async def load_records(self, file_path: str | Path) -> Optional[List[DictionaryRecord]]:
        """Records of an unmerged dictionary file, or None when missing or malformed."""
        data = await self.load_json(file_path)
        if data is None:
            return None
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            logger.warning("Dictionary %s is not a list of records", file_path)
            return None
        try:
            return [DictionaryRecord.model_validate(item) for item in data]
        except ValidationError as e:
            logger.warning("Invalid dictionary record in %s: %s", file_path, e)
            return None

    def invalidate(self, file_path: Optional[str | Path] = None) -> None:
        if file_path is None:
            self._entries.clear()
        else:
            self._entries.pop(str(file_path), None)

    def __len__(self) -> int:
        return len(self._entries)
