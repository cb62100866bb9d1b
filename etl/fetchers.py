# WORKFLOW: HTTP fetchers retrieving raw publisher payloads.
# Used by: Run orchestrator (one fetch per source per run)
# Functions:
# 1. SourceFetcher.fetch() - GET the source URL and return content with its kind
# 2. _read_error_body() - Capture a truncated body for non-success statuses
#
# Fetch flow: SourceConfig -> httpx GET (bounded timeout) -> status check -> body read -> FetchResult
# Failure classes: FetchTransportError (no response), FetchStatusError (non-2xx), FetchReadError (body)
# No retries here; a failed fetch fails the enclosing run.

import logging
from dataclasses import dataclass
from typing import Optional, Union

import httpx

from core.config import settings
from etl.errors import FetchReadError, FetchStatusError, FetchTransportError
from etl.sources import ContentKind, SourceConfig

logger = logging.getLogger(__name__)

_ACCEPT = {
    ContentKind.TEXT: "text/csv, text/plain;q=0.9, */*;q=0.8",
    ContentKind.HTML: "text/html, application/xhtml+xml;q=0.9, */*;q=0.8",
    ContentKind.BINARY: "application/pdf, application/octet-stream;q=0.9, */*;q=0.8",
}


@dataclass(frozen=True)
class FetchResult:
    source: str
    kind: ContentKind
    content: Union[str, bytes]
    status_code: int

    @property
    def size(self) -> int:
        return len(self.content)


class SourceFetcher:
    """Fetches publisher payloads over one shared httpx client."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = None,
        user_agent: str = None,
        error_body_max_chars: int = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=timeout or settings.fetch_timeout_seconds,
            follow_redirects=True,
        )
        self.user_agent = user_agent or settings.http_user_agent
        self.error_body_max_chars = error_body_max_chars or settings.error_body_max_chars

    def fetch(self, source: SourceConfig) -> FetchResult:
        """
        Fetch one source.

        Args:
            source: Source configuration (URL and expected content kind)

        Returns:
            FetchResult with text content for text/html kinds, bytes for binary
        """
        headers = {"User-Agent": self.user_agent, "Accept": _ACCEPT[source.kind]}
        logger.info(f"Fetching {source.name.value} from {source.url}")

        try:
            with self.client.stream("GET", source.url, headers=headers) as response:
                if not response.is_success:
                    body = self._read_error_body(response)
                    raise FetchStatusError(response.status_code, body)
                try:
                    response.read()
                    content = response.content if source.kind == ContentKind.BINARY else response.text
                except httpx.HTTPError as e:
                    raise FetchReadError(
                        f"Failed to read body from {source.url}: {e}",
                        status_code=response.status_code,
                    ) from e
                result = FetchResult(
                    source=source.name.value,
                    kind=source.kind,
                    content=content,
                    status_code=response.status_code,
                )
        except httpx.TransportError as e:
            raise FetchTransportError(f"Transport failure fetching {source.url}: {e}") from e

        logger.info(f"Fetched {source.name.value}: HTTP {result.status_code}, {result.size} units")
        return result

    def _read_error_body(self, response: httpx.Response) -> str:
        try:
            response.read()
            return response.text[:self.error_body_max_chars]
        except httpx.HTTPError as e:
            logger.warning(f"Could not read error body (HTTP {response.status_code}): {e}")
            return ""

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "SourceFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
