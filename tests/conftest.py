import asyncio
from typing import Dict, Iterable

import httpx
import pytest

from downloader.config import Config
from downloader.errors import TransportError


class FakeFetcher:
    """Async fetcher that serves canned bodies and fails chosen indexes."""

    def __init__(self, delay: float = 0.0, failing: Iterable[int] = ()):
        self.delay = delay
        self.failing = set(failing)
        self.active = 0
        self.peak = 0
        self.requested = []

    @staticmethod
    def body_for(index: int) -> str:
        return f'{{"id": {index}, "title": "post {index}"}}'

    async def fetch(self, url: str) -> str:
        self.requested.append(url)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            index = int(url.rsplit('/', 1)[1])
            if index in self.failing:
                raise TransportError(url, "HTTP 503 Service Unavailable", status_code=503)
            return self.body_for(index)
        finally:
            self.active -= 1


def json_handler(failing: Dict[int, int] = None):
    """httpx.MockTransport handler echoing the post id, with per-index status overrides."""
    failing = failing or {}

    def handler(request: httpx.Request) -> httpx.Response:
        index = int(request.url.path.rsplit('/', 1)[1])
        if index in failing:
            return httpx.Response(failing[index], request=request)
        return httpx.Response(200, text=FakeFetcher.body_for(index), request=request)

    return handler


@pytest.fixture
def config(monkeypatch) -> Config:
    for var in Config.ENV_MAPPINGS:
        monkeypatch.delenv(var, raising=False)
    return Config(load_env_file=False)
