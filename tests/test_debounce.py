import anyio
import pytest

from dictlens.services.debounce import Debouncer


@pytest.mark.anyio
async def test_burst_collapses_to_last_call() -> None:
    debouncer = Debouncer(0.01)
    calls = []
    results = []

    async def work(n: int) -> int:
        calls.append(n)
        return n

    async def trigger(n: int) -> None:
        results.append(await debouncer.run(work, n))

    async with anyio.create_task_group() as tg:
        for n in range(3):
            tg.start_soon(trigger, n)

    assert calls == [2]
    assert results.count(None) == 2
    assert 2 in results
    assert debouncer.idle


@pytest.mark.anyio
async def test_superseded_result_is_discarded() -> None:
    debouncer = Debouncer(0)
    started = anyio.Event()
    release = anyio.Event()
    results = {}

    async def slow() -> str:
        started.set()
        await release.wait()
        return "stale"

    async def fresh() -> str:
        return "fresh"

    async def first() -> None:
        results["first"] = await debouncer.run(slow)

    async with anyio.create_task_group() as tg:
        tg.start_soon(first)
        await started.wait()
        results["second"] = await debouncer.run(fresh)
        release.set()

    assert results == {"first": None, "second": "fresh"}


@pytest.mark.anyio
async def test_injected_sleep_receives_delay() -> None:
    delays = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    async def work() -> str:
        return "done"

    debouncer = Debouncer(0.5, sleep=fake_sleep)

    assert await debouncer.run(work) == "done"
    assert delays == [0.5]
