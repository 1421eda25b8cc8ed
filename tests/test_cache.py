import json
import logging
import os
from pathlib import Path

import pytest

from dictlens.models import ProjectConfig, UsageLocation
from dictlens.services.cache import ConfigCache, DictionaryCache, UsageCache, get_dictionary_path


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


async def _config(project_dir: str) -> ProjectConfig:
    return ProjectConfig(base_dir=project_dir, unmerged_dictionaries_dir="u", dictionaries_dir="d")


@pytest.mark.anyio
async def test_config_cache_reloads_only_after_window() -> None:
    clock = FakeClock()
    cache = ConfigCache(ttl=2.0, clock=clock)
    loads = []

    async def loader(project_dir: str) -> ProjectConfig:
        loads.append(project_dir)
        return await _config(project_dir)

    first = await cache.get_or_load("/p", loader)
    clock.now += 1.5
    assert await cache.get_or_load("/p", loader) is first
    assert loads == ["/p"]

    clock.now += 1.0
    await cache.get_or_load("/p", loader)
    assert loads == ["/p", "/p"]


@pytest.mark.anyio
async def test_config_cache_is_per_project() -> None:
    cache = ConfigCache(clock=FakeClock())

    a = await cache.get_or_load("/a", _config)
    b = await cache.get_or_load("/b", _config)

    assert a.base_dir == "/a"
    assert b.base_dir == "/b"


def test_usage_cache_expires() -> None:
    clock = FakeClock()
    cache = UsageCache(ttl=5.0, clock=clock)
    key = UsageCache.key_for("/p", "app")
    usages = [UsageLocation.model_validate({
        "file_path": "/p/a.tsx",
        "declaration_range": {"start": {"line": 0, "character": 0}, "end": {"line": 0, "character": 5}},
    })]

    cache.set(key, usages)
    clock.now += 4.9
    assert cache.get(key) == usages

    clock.now += 0.1
    assert cache.get(key) is None
    assert len(cache) == 0


def test_usage_cache_keeps_empty_results() -> None:
    cache = UsageCache(clock=FakeClock())
    key = UsageCache.key_for("/p", "unused")

    cache.set(key, [])

    assert cache.get(key) == []


@pytest.mark.anyio
async def test_dictionary_cache_follows_modification_time(tmp_path: Path) -> None:
    path = get_dictionary_path(tmp_path, "app")
    assert path == tmp_path / "app.json"

    path.write_text(json.dumps([{"key": "app", "content": {"a": 1}}]))
    os.utime(path, (1000, 1000))
    cache = DictionaryCache()

    first = await cache.load_records(path)
    assert first[0].content == {"a": 1}

    # Same mtime: served from memory even though the bytes changed.
    path.write_text(json.dumps([{"key": "app", "content": {"a": 2}}]))
    os.utime(path, (1000, 1000))
    assert (await cache.load_records(path))[0].content == {"a": 1}

    os.utime(path, (2000, 2000))
    assert (await cache.load_records(path))[0].content == {"a": 2}


@pytest.mark.anyio
async def test_dictionary_cache_reads_aliases_and_location(tmp_path: Path) -> None:
    path = tmp_path / "app.json"
    path.write_text(json.dumps([
        {"key": "app", "content": {}, "filePath": "src/app.content.ts", "location": "local"},
        {"key": "app", "content": {}, "location": "remote", "id": "ignored"},
    ]))

    records = await DictionaryCache().load_records(path)

    assert records[0].file_path == "src/app.content.ts"
    assert not records[0].is_remote_only
    assert records[1].is_remote_only


@pytest.mark.anyio
async def test_dictionary_cache_missing_and_malformed(tmp_path: Path, caplog) -> None:
    cache = DictionaryCache()
    assert await cache.load_records(tmp_path / "missing.json") is None

    broken = tmp_path / "broken.json"
    broken.write_text("[{not json")
    with caplog.at_level(logging.WARNING):
        assert await cache.load_records(broken) is None
    assert "broken.json" in caplog.text
