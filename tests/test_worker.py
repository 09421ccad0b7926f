import asyncio
import time
from pathlib import Path

import httpx
import pytest
from structlog.testing import capture_logs

from downloader.fetcher import HTTPFetcher
from downloader.worker import (
    BASE_URL,
    MAX_CONCURRENT_DOWNLOADS,
    TOTAL_DOWNLOADS,
    DownloadContext,
    Downloader,
    WorkItem,
)

from tests.conftest import FakeFetcher, json_handler


def _run(config, tmp_path: Path, **context_kwargs):
    async def go():
        async with DownloadContext.create(config, output_dir=tmp_path, **context_kwargs) as context:
            report = await Downloader(context).run()
            return context, report

    return asyncio.run(go())


def _written(tmp_path: Path):
    return sorted(p.name for p in tmp_path.glob("download_*.json") if p.is_file())


def test_work_items_cover_fixed_batch():
    context = DownloadContext(fetcher=FakeFetcher(), gate=None, cache=None, store=None)

    items = Downloader(context).build_work_items()

    assert len(items) == TOTAL_DOWNLOADS == 10
    assert items[0] == WorkItem(url=f"{BASE_URL}/1", index=1)
    assert [item.index for item in items] == list(range(1, 11))
    assert all(item.url.endswith(f"/{item.index}") for item in items)
    with pytest.raises(AttributeError):
        items[0].index = 5


def test_all_downloads_succeed(config, tmp_path):
    fetcher = FakeFetcher()

    context, report = _run(config, tmp_path, fetcher=fetcher)

    assert report.cache_size == len(context.cache) == 10
    assert report.succeeded == 10 and report.failed == 0
    assert len(_written(tmp_path)) == 10
    for index in range(1, 11):
        body = FakeFetcher.body_for(index)
        assert (tmp_path / f"download_{index}.json").read_text(encoding="utf-8") == body
        assert context.cache.count(body) == 1
    assert sorted(fetcher.requested) == sorted(f"{BASE_URL}/{i}" for i in range(1, 11))


def test_failed_items_are_isolated(config, tmp_path):
    fetcher = FakeFetcher(delay=0.01, failing={3, 7})

    context, report = _run(config, tmp_path, fetcher=fetcher)

    assert report.cache_size == len(context.cache) == 8
    assert report.succeeded == 8
    assert len(_written(tmp_path)) == 8
    assert not (tmp_path / "download_3.json").exists()
    assert not (tmp_path / "download_7.json").exists()
    assert FakeFetcher.body_for(3) not in context.cache
    assert FakeFetcher.body_for(7) not in context.cache

    failures = report.failures()
    assert sorted(outcome.item.index for outcome in failures) == [3, 7]
    for outcome in failures:
        assert outcome.stage == "fetch"
        assert outcome.cached is False
        assert "503" in outcome.error


def test_http_failures_through_mock_transport(config, tmp_path):
    transport = httpx.MockTransport(json_handler({3: 500, 7: 404}))

    context, report = _run(config, tmp_path, transport=transport)

    assert report.cache_size == 8
    assert _written(tmp_path) == sorted(
        f"download_{i}.json" for i in range(1, 11) if i not in (3, 7)
    )
    assert context.gate.acquired == context.gate.released == 10


def test_gate_bounds_in_flight_fetches(config, tmp_path):
    fetcher = FakeFetcher(delay=0.02)

    context, report = _run(config, tmp_path, fetcher=fetcher)

    assert report.cache_size == 10
    assert fetcher.peak <= MAX_CONCURRENT_DOWNLOADS == 3
    assert context.gate.peak == 3
    assert context.gate.in_flight == 0


def test_wall_clock_reflects_bounded_parallelism(config, tmp_path):
    delay = 0.2
    fetcher = FakeFetcher(delay=delay)

    start = time.monotonic()
    _, report = _run(config, tmp_path, fetcher=fetcher)
    elapsed = time.monotonic() - start

    # ceil(10 / 3) waves; full parallelism would take 1 delay, serial 10
    assert report.cache_size == 10
    assert 3.5 * delay <= elapsed < 7 * delay


def test_permits_are_returned_when_fetch_raises_unexpectedly(config, tmp_path):
    class BrokenFetcher:
        async def fetch(self, url):
            if url.endswith("/5"):
                raise ValueError("malformed response")
            return url

    context, report = _run(config, tmp_path, fetcher=BrokenFetcher())

    assert context.gate.acquired == context.gate.released == 10
    assert report.cache_size == 9
    [failure] = report.failures()
    assert failure.item.index == 5
    assert "Unexpected error" in failure.error


def test_write_failure_keeps_cached_body(config, tmp_path):
    # a directory in place of the output file makes the write fail
    (tmp_path / "download_5.json").mkdir()

    context, report = _run(config, tmp_path, fetcher=FakeFetcher())

    assert context.gate.acquired == context.gate.released == 10
    assert report.cache_size == 10
    assert report.succeeded == 9
    [failure] = report.failures()
    assert failure.item.index == 5
    assert failure.stage == "write"
    assert failure.cached is True
    assert failure.body == FakeFetcher.body_for(5)
    assert len(_written(tmp_path)) == 9


def test_runs_do_not_share_state(config, tmp_path):
    (tmp_path / "first").mkdir()
    (tmp_path / "second").mkdir()

    first, _ = _run(config, tmp_path / "first", fetcher=FakeFetcher(failing={1}))
    second, _ = _run(config, tmp_path / "second", fetcher=FakeFetcher())

    assert first.cache is not second.cache
    assert len(first.cache) == 9
    assert len(second.cache) == 10


def test_log_records_for_partial_failure(config, tmp_path):
    with capture_logs() as logs:
        _run(config, tmp_path, fetcher=FakeFetcher(failing={3, 7}))

    completed = [entry for entry in logs if entry["event"] == "download_completed"]
    assert len(completed) == 8
    for entry in completed:
        assert entry["log_level"] == "info"
        assert entry["url"].startswith(f"{BASE_URL}/")
        assert entry["filename"] == f"download_{entry['url'].rsplit('/', 1)[1]}.json"
        assert 1 <= entry["cache_size"] <= 8

    failed = [entry for entry in logs if entry["event"] == "download_failed"]
    assert sorted(entry["url"] for entry in failed) == [f"{BASE_URL}/3", f"{BASE_URL}/7"]
    for entry in failed:
        assert entry["log_level"] == "warning"
        assert "503" in entry["reason"]

    [summary] = [entry for entry in logs if entry["event"] == "download_summary"]
    assert summary["cache_size"] == 8
    assert summary["succeeded"] == 8
    assert summary["failed"] == 2


def test_context_leaves_caller_fetcher_open(config, tmp_path):
    class ClosableFetcher(FakeFetcher):
        closed = False

        async def aclose(self):
            self.closed = True

    fetcher = ClosableFetcher()

    _run(config, tmp_path, fetcher=fetcher)

    assert fetcher.closed is False


def test_context_closes_fetcher_it_built(config, tmp_path):
    context, _ = _run(config, tmp_path, transport=httpx.MockTransport(json_handler()))

    assert isinstance(context.fetcher, HTTPFetcher)
    assert context.fetcher._client.is_closed
