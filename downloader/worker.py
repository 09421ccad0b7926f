"""
Concurrent batch downloader.

Every work item gets its own task; all tasks start at once and the admission
gate lets at most three of them fetch at a time. Each task appends the body
to the shared result cache, then writes it to download_{index}.json. A failed
task is logged and reported through its outcome; it never aborts the batch.
"""

import asyncio
from pathlib import Path
from typing import List, NamedTuple, Optional

import structlog

from .cache import ResultCache
from .config import Config
from .errors import DownloadError
from .fetcher import HTTPFetcher
from .gate import AdmissionGate
from .storage import OutputStore

logger = structlog.get_logger(__name__)

BASE_URL = "https://jsonplaceholder.typicode.com/posts"
TOTAL_DOWNLOADS = 10
MAX_CONCURRENT_DOWNLOADS = 3


class WorkItem(NamedTuple):
    url: str
    index: int


class DownloadOutcome:
    def __init__(
        self,
        item: WorkItem,
        body: str = None,
        filename: str = None,
        error: str = None,
        stage: str = None,
        cached: bool = False,
    ):
        """Terminal state of one download task.

        ``stage`` names the step that failed ("fetch" or "write"). ``cached``
        is True whenever the body reached the result cache, which includes a
        failed write.
        """
        self.item = item
        self.body = body
        self.filename = filename
        self.error = error
        self.stage = stage
        self.cached = cached

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def url(self) -> str:
        return self.item.url

    def __repr__(self) -> str:
        if self.success:
            return f"DownloadOutcome({self.item.url!r}, filename={self.filename!r})"
        return f"DownloadOutcome({self.item.url!r}, stage={self.stage!r}, error={self.error!r})"


class RunReport:
    def __init__(self, outcomes: List[DownloadOutcome], cache_size: int):
        self.outcomes = outcomes
        self.cache_size = cache_size

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded

    def failures(self) -> List[DownloadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]


class DownloadContext:
    """Everything the tasks of one run share: transport, gate, cache and store."""

    def __init__(
        self,
        fetcher: HTTPFetcher,
        gate: AdmissionGate,
        cache: ResultCache,
        store: OutputStore,
        owns_fetcher: bool = False,
    ):
        self.fetcher = fetcher
        self.gate = gate
        self.cache = cache
        self.store = store
        # only a fetcher built by create() is closed with the context
        self._owns_fetcher = owns_fetcher

    @classmethod
    def create(
        cls,
        config: Config,
        output_dir: Optional[Path] = None,
        fetcher: HTTPFetcher = None,
        **fetcher_kwargs,
    ) -> "DownloadContext":
        """Build a fresh context for one run.

        ``fetcher_kwargs`` are passed to HTTPFetcher (e.g. ``transport``) when
        no fetcher is given. A fetcher passed in stays open when the context
        closes; its caller owns it.
        """
        owns_fetcher = fetcher is None
        if owns_fetcher:
            fetcher = HTTPFetcher.from_config(config.fetcher, **fetcher_kwargs)
        return cls(
            fetcher=fetcher,
            gate=AdmissionGate(MAX_CONCURRENT_DOWNLOADS),
            cache=ResultCache(),
            store=OutputStore(output_dir),
            owns_fetcher=owns_fetcher,
        )

    async def aclose(self):
        if self._owns_fetcher:
            await self.fetcher.aclose()

    async def __aenter__(self) -> "DownloadContext":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


class Downloader:
    """Runs one batch of downloads against a shared DownloadContext."""

    def __init__(self, context: DownloadContext, base_url: str = BASE_URL, total: int = TOTAL_DOWNLOADS):
        self.context = context
        self.base_url = base_url.rstrip('/')
        self.total = total

    def build_work_items(self) -> List[WorkItem]:
        return [
            WorkItem(url=f"{self.base_url}/{index}", index=index)
            for index in range(1, self.total + 1)
        ]

    async def run(self) -> RunReport:
        """Download every item concurrently and wait for all of them to finish."""
        items = self.build_work_items()
        logger.info(
            "batch_started",
            total=len(items),
            max_concurrent=self.context.gate.capacity,
        )

        outcomes = await asyncio.gather(*(self.download(item) for item in items))

        report = RunReport(list(outcomes), cache_size=len(self.context.cache))
        logger.info(
            "download_summary",
            cache_size=report.cache_size,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report

    async def download(self, item: WorkItem) -> DownloadOutcome:
        """Fetch one item, cache it and write it to disk.

        Never raises for download failures; the failure is logged and
        returned as the outcome.
        """
        context = self.context
        stage = 'fetch'
        body = None
        cached = False

        try:
            async with context.gate:
                body = await context.fetcher.fetch(item.url)
                cache_size = context.cache.add(body)
                cached = True

                stage = 'write'
                path = await context.store.write(item.url, item.index, body)

                logger.info(
                    "download_completed",
                    url=item.url,
                    filename=path.name,
                    cache_size=cache_size,
                )

        except DownloadError as e:
            logger.warning("download_failed", url=item.url, stage=stage, reason=str(e))
            return DownloadOutcome(item, body=body, error=str(e), stage=stage, cached=cached)

        except Exception as e:
            logger.error(
                "download_failed",
                url=item.url,
                stage=stage,
                reason=f"Unexpected error: {e}",
                exc_info=True,
            )
            return DownloadOutcome(
                item, body=body, error=f"Unexpected error: {e}", stage=stage, cached=cached
            )

        return DownloadOutcome(item, body=body, filename=path.name, cached=True)
