"""Paginated crawl of a Wix site's orders."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import requests
from pydantic import ValidationError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ordersync.core.errors import CrawlFailed, ProviderRejected, RunCancelled
from ordersync.core.settings import WixSettings
from ordersync.plugins.wix_types import QueryOrdersResponse

logger = logging.getLogger("crawler")

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})

JITTER_MAX_SECONDS = 0.25


@dataclass
class CrawlProgress:
    """Counters of a single crawl, updated as pages arrive."""

    pages_fetched: int = 0
    orders_fetched: int = 0
    total_results: Optional[int] = None


class _RetryablePageError(Exception):
    pass


class OrderCrawler:
    """
    Fetches orders page by page with a fixed page size.

    The crawl stops after a page shorter than the page size, or once the
    number of orders received reaches the `totalResults` reported by Wix.
    """

    def __init__(
        self,
        http: requests.Session,
        settings: WixSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.http = http
        self.settings = settings
        self.sleep = sleep

    def crawl(
        self,
        access_token: str,
        should_stop: Optional[Callable[[], bool]] = None,
        progress: Optional[CrawlProgress] = None,
    ) -> Iterator[dict]:
        """
        Lazily yield every order of the site the access token belongs to.

        Args:
            access_token (str): Wix access token of the instance.
            should_stop (Callable[[], bool] | None): Checked before each page.
            progress (CrawlProgress | None): Updated in place.

        Raises:
            RunCancelled: If `should_stop` returns True between pages.
            ProviderRejected: If Wix refuses the token or the request.
            CrawlFailed: If a page keeps failing after all attempts.
        """
        progress = progress if progress is not None else CrawlProgress()
        page_size = self.settings.page_size
        offset = 0

        while True:
            if should_stop is not None and should_stop():
                logger.info("Crawl cancelled after %s page(s)", progress.pages_fetched)
                raise RunCancelled(f"Cancelled after {progress.pages_fetched} page(s)")

            page = self._fetch_page(access_token, offset, progress.pages_fetched)
            progress.pages_fetched += 1
            progress.orders_fetched += len(page.orders)
            if page.total_results is not None:
                progress.total_results = page.total_results

            logger.info(
                "Fetched page %s: %s order(s), offset %s, total %s",
                progress.pages_fetched,
                len(page.orders),
                offset,
                page.total_results,
            )

            yield from page.orders

            if len(page.orders) < page_size:
                break
            if page.total_results is not None and progress.orders_fetched >= page.total_results:
                break
            offset += len(page.orders)

    def _fetch_page(self, access_token: str, offset: int, pages_succeeded: int) -> QueryOrdersResponse:
        attempts = self.settings.max_page_attempts
        retrying = Retrying(
            retry=retry_if_exception_type(_RetryablePageError),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.settings.retry_backoff_seconds)
            + wait_random(0, JITTER_MAX_SECONDS),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self._request_page, access_token, offset)
        except _RetryablePageError as e:
            logger.error("Giving up on page at offset %s after %s attempt(s)", offset, attempts)
            raise CrawlFailed(
                f"Page at offset {offset} failed after {attempts} attempt(s): {e}",
                pages_succeeded=pages_succeeded,
            ) from e

    def _request_page(self, access_token: str, offset: int) -> QueryOrdersResponse:
        body = {"query": {"paging": {"limit": self.settings.page_size, "offset": offset}}}
        try:
            response = self.http.post(
                self.settings.orders_query_uri,
                json=body,
                headers={"Authorization": access_token},
                timeout=self.settings.timeout,
            )
        except requests.RequestException as e:
            raise _RetryablePageError(type(e).__name__) from e

        if response.status_code in RETRY_STATUS_CODES:
            raise _RetryablePageError(f"HTTP {response.status_code}")
        if response.status_code in AUTH_STATUS_CODES:
            raise ProviderRejected(
                "Wix refused the access token while crawling orders",
                status_code=response.status_code,
            )
        if not response.ok:
            raise ProviderRejected(
                f"Orders query failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return QueryOrdersResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProviderRejected(
                "Wix returned an unusable orders page", status_code=response.status_code
            ) from e
