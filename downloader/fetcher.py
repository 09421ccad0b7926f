"""
HTTP transport shared by every download task.

One httpx.AsyncClient owns connection reuse; concurrent callers need no
locking of their own. A failed attempt is raised immediately, never retried.
"""

import time
from typing import Any, Dict, Optional

import httpx
import structlog

from .errors import TransportError

logger = structlog.get_logger(__name__)


class HTTPFetcher:
    def __init__(
        self,
        user_agent: str = 'BatchDownloader/1.0',
        timeout: float = 30.0,
        max_redirects: int = 5,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the HTTP fetcher with a single pooled client."""
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_redirects = max_redirects

        if client is not None:
            self._client = client
            return

        headers = {
            'User-Agent': self.user_agent,
            'Accept': 'application/json, text/plain;q=0.9, */*;q=0.8',
            'Accept-Encoding': 'gzip, deflate',
            'Connection': 'keep-alive',
        }
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            max_redirects=self.max_redirects,
            headers=headers,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            transport=transport,
        )

    @classmethod
    def from_config(cls, fetcher_config: Dict[str, Any], **kwargs) -> "HTTPFetcher":
        """Build a fetcher from the ``fetcher`` section of the config."""
        settings = {
            key: fetcher_config[key]
            for key in (
                'user_agent',
                'timeout',
                'max_redirects',
                'max_connections',
                'max_keepalive_connections',
            )
            if key in fetcher_config
        }
        settings.update(kwargs)
        return cls(**settings)

    async def fetch(self, url: str) -> str:
        """GET ``url`` and return the decoded body, or raise TransportError."""
        start_time = time.time()

        try:
            response = await self._client.get(url)
            response.raise_for_status()
            body = response.text

        except httpx.TimeoutException as e:
            raise TransportError(url, f"Timeout after {self.timeout}s: {e}") from e

        except httpx.ConnectError as e:
            raise TransportError(url, f"Connection error: {e}") from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(
                url, f"HTTP {status} {e.response.reason_phrase}", status_code=status
            ) from e

        except httpx.HTTPError as e:
            raise TransportError(url, f"Request failed: {e}") from e

        logger.debug(
            "fetch_finished",
            url=url,
            status_code=response.status_code,
            size=len(body),
            fetch_time=round(time.time() - start_time, 3),
        )
        return body

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPFetcher":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
