import asyncio

import pytest

from menu_lens.domain.constants import STAGE_GENERATING_IMAGES
from menu_lens.errors import CancellationError
from menu_lens.orchestrator.enrichment import BatchEnrichmentRunner, EnrichmentTask
from menu_lens.orchestrator.runner import CancellationToken

from helpers import FakeImages, Recorder


class _Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _tasks(n):
    return [EnrichmentTask(key=f"item_{i}", query=f"dish {i}") for i in range(n)]


def test_groups_of_three_with_pacing_and_failures_mapped_to_none():
    images = FakeImages(fail_on={"dish 4"})
    sleeps = _Sleeps()
    rec = Recorder()
    runner = BatchEnrichmentRunner(images, group_size=3, pacing_s=0.2, sleep=sleeps)

    results = asyncio.run(runner.run(_tasks(7), on_progress=rec))

    assert [r.key for r in results] == [f"item_{i}" for i in range(7)]
    assert results[4].image_url is None
    assert results[0].image_url == "https://img.example/dish_0.jpg"
    assert sum(1 for r in results if r.image_url) == 6
    assert sleeps.calls == [0.2, 0.2]
    assert rec.progress() == [43, 86, 100]
    assert {e.stage for e in rec.events} == {STAGE_GENERATING_IMAGES}
    assert rec.events[-1].message == "Generating images... (7/7)"


def test_unconfigured_provider_short_circuits_without_lookups():
    images = FakeImages(configured=False)
    rec = Recorder()
    runner = BatchEnrichmentRunner(images, sleep=_Sleeps())

    results = asyncio.run(runner.run(_tasks(5), on_progress=rec))

    assert [r.image_url for r in results] == [None] * 5
    assert images.queries == []
    assert len(rec.events) == 1
    assert rec.events[0].progress == 100


def test_empty_task_list_reports_once():
    rec = Recorder()
    results = asyncio.run(BatchEnrichmentRunner(FakeImages(), sleep=_Sleeps()).run([], on_progress=rec))
    assert results == []
    assert rec.progress() == [100]


def test_cancelled_token_stops_before_next_group():
    async def go():
        token = CancellationToken()
        images = FakeImages()
        sleeps = _Sleeps()

        async def cancel_on_sleep(seconds):
            await sleeps(seconds)
            token.cancel()

        runner = BatchEnrichmentRunner(images, group_size=2, sleep=cancel_on_sleep)
        with pytest.raises(CancellationError):
            await runner.run(_tasks(6), token=token)
        return images

    images = asyncio.run(go())
    assert len(images.queries) == 2


def test_group_size_must_be_positive():
    with pytest.raises(ValueError):
        BatchEnrichmentRunner(FakeImages(), group_size=0)
