"""Paginated retrieval of the circulars feed."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0
FEED_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "X-Requested-With": "XMLHttpRequest",
    "Accept-Charset": "UTF-8",
}
CORPUS_PREFIX = "<html><body><table>"
CORPUS_SUFFIX = "</table></body></html>"


class FetchError(RuntimeError):
    """Base class for feed retrieval failures."""


class FeedTransportError(FetchError):
    """The request could not be completed or returned an error status."""


class FeedDecodeError(FetchError):
    """The response body is not the expected feed message."""


class FeedPage(BaseModel):
    """One page of the feed as returned by the portal search endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    status: bool = Field(default=False, alias="Status")
    data: int = Field(default=0, alias="Data")
    err: str = Field(default="", alias="Err")
    errdbg: str = Field(default="", alias="Errdbg")
    # Table rows holding the circulars of this page
    htm: str = Field(default="", alias="Htm")
    # Rows still available after this page
    cnt: int = Field(default=0, alias="Cnt")


def search_form(offset: int) -> dict[str, str]:
    return {
        "a": "akSEARCH",
        "field": "default",
        "search_term": "",
        "visua_storico": "false",
        "ls": str(offset),
    }


def wrap_corpus(fragments: list[str]) -> str:
    return CORPUS_PREFIX + "".join(fragments) + CORPUS_SUFFIX


class FeedFetcher:
    """Download every page of the feed, one request at a time."""

    def __init__(
        self,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.page_size = page_size
        self.timeout = timeout
        self.logger = logger or structlog.get_logger("circular_sync.fetcher")
        self._client = httpx.Client(follow_redirects=True, timeout=timeout)

    def __enter__(self) -> "FeedFetcher":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(self, site_url: str) -> str:
        """Return the assembled corpus; any failing page aborts the whole fetch."""

        fragments: list[str] = []
        offset = 0
        while True:
            page = self.fetch_page(site_url, offset)
            fragments.append(page.htm)
            self.logger.debug("feed_page_fetched", offset=offset, remaining=page.cnt)
            if page.cnt <= 0:
                break
            offset += self.page_size
        self.logger.info("feed_fetched", pages=len(fragments))
        return wrap_corpus(fragments)

    def fetch_page(self, site_url: str, offset: int) -> FeedPage:
        try:
            response = self._client.request(
                method="POST",
                url=site_url,
                data=search_form(offset),
                headers=FEED_HEADERS,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FeedTransportError(f"Feed request failed at offset {offset}: {exc}") from exc

        try:
            page = FeedPage.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise FeedDecodeError(f"Can't parse response body at offset {offset}") from exc

        if not page.status:
            self.logger.warning(
                "feed_page_status_false",
                offset=offset,
                error=page.err,
                debug_error=page.errdbg,
            )
        return page


__all__ = [
    "FeedDecodeError",
    "FeedFetcher",
    "FeedPage",
    "FeedTransportError",
    "FetchError",
    "search_form",
    "wrap_corpus",
]
