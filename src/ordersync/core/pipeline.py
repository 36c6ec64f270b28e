"""
Order ingestion pipeline.

One run refreshes the instance's access token, crawls its orders and
normalizes and writes each order as it arrives. Runs are executed on a
thread pool; at most one run per instance is active at a time.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, Optional

from ordersync.core.crawler import CrawlProgress, OrderCrawler
from ordersync.core.errors import (
    CrawlFailed,
    MalformedOrder,
    MissingAddress,
    NetworkError,
    NoCredential,
    ProviderRejected,
    RunCancelled,
    RunInProgress,
    WriteFailed,
)
from ordersync.core.models import RunStatus, RunSummary
from ordersync.core.normalizer import normalize
from ordersync.core.oauth import TokenRefresher
from ordersync.core.runs import RunStore
from ordersync.core.settings import WixSettings
from ordersync.core.writer import IngestionWriter

logger = logging.getLogger("pipeline")

ABORTING_ERRORS = (NoCredential, NetworkError, ProviderRejected, CrawlFailed)


class IngestionPipeline:
    """Composes refresher, crawler, normalizer and writer into per-instance runs."""

    def __init__(
        self,
        refresher: TokenRefresher,
        crawler: OrderCrawler,
        writer: IngestionWriter,
        runs: RunStore,
        settings: WixSettings,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.refresher = refresher
        self.crawler = crawler
        self.writer = writer
        self.runs = runs
        self.settings = settings
        self.executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_concurrent_runs, thread_name_prefix="ingestion"
        )
        self._lock = threading.Lock()
        self._active: Dict[str, threading.Event] = {}
        self.futures: Dict[str, Future] = {}

    def _acquire(self, instance_id: str, cancel_event: Optional[threading.Event]) -> Optional[threading.Event]:
        with self._lock:
            if instance_id in self._active:
                return None
            event = cancel_event or threading.Event()
            self._active[instance_id] = event
            return event

    def _release(self, instance_id: str) -> None:
        with self._lock:
            self._active.pop(instance_id, None)

    def is_running(self, instance_id: str) -> bool:
        with self._lock:
            return instance_id in self._active

    def cancel(self, instance_id: str) -> bool:
        """Ask the active run of an instance to stop before its next page."""
        with self._lock:
            event = self._active.get(instance_id)
        if event is None:
            return False
        event.set()
        return True

    def run(self, instance_id: str, cancel_event: Optional[threading.Event] = None) -> RunSummary:
        """
        Run the pipeline for an instance in the calling thread.

        Unexpected errors mark the run FAILED before they propagate.

        Raises:
            RunInProgress: If a run for the instance is already active.
        """
        event = self._acquire(instance_id, cancel_event)
        if event is None:
            raise RunInProgress(instance_id)
        try:
            run = self.runs.create(instance_id)
            try:
                return self._execute(run.run_id, instance_id, event)
            except Exception as e:
                self._mark_crashed(run.run_id, e)
                raise
        finally:
            self._release(instance_id)

    def trigger_ingestion(self, instance_id: str) -> Optional[str]:
        """
        Start a run in the background and return its id immediately.

        Returns None when a run for the instance is already active.
        """
        event = self._acquire(instance_id, None)
        if event is None:
            logger.info("Ingestion already running for instance %s; trigger ignored", instance_id)
            return None

        try:
            run = self.runs.create(instance_id)
        except Exception:
            self._release(instance_id)
            raise

        logger.info("Queued ingestion run %s for instance %s", run.run_id, instance_id)
        future = self.executor.submit(self._execute_in_background, run.run_id, instance_id, event)
        with self._lock:
            self.futures = {key: f for key, f in self.futures.items() if not f.done()}
            self.futures[run.run_id] = future
        return run.run_id

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for event in self._active.values():
                event.set()
        self.executor.shutdown(wait=wait)

    def _execute_in_background(self, run_id: str, instance_id: str, event: threading.Event) -> RunSummary:
        try:
            return self._execute(run_id, instance_id, event)
        except Exception as e:
            return self._mark_crashed(run_id, e)
        finally:
            self._release(instance_id)

    def _mark_crashed(self, run_id: str, error: Exception) -> RunSummary:
        logger.exception("Ingestion run %s crashed", run_id)
        return self.runs.update(run_id, RunStatus.FAILED, error=f"{type(error).__name__}: {error}")

    def _stop_check(self, event: threading.Event) -> Callable[[], bool]:
        deadline = self.settings.run_deadline_seconds
        started = time.monotonic()

        def should_stop() -> bool:
            if event.is_set():
                return True
            return deadline is not None and time.monotonic() - started >= deadline

        return should_stop

    def _execute(self, run_id: str, instance_id: str, event: threading.Event) -> RunSummary:
        should_stop = self._stop_check(event)

        self.runs.update(run_id, RunStatus.REFRESHING)
        try:
            access_token = self.refresher.refresh(instance_id)
        except ABORTING_ERRORS as e:
            logger.error("Run %s: token refresh failed for instance %s: %s", run_id, instance_id, e)
            return self.runs.update(run_id, RunStatus.FAILED, error=f"{type(e).__name__}: {e}")

        self.runs.update(run_id, RunStatus.CRAWLING)
        progress = CrawlProgress()
        counts = {"orders_seen": 0, "orders_written": 0, "orders_skipped": 0, "orders_failed": 0}
        pages_recorded = 0

        try:
            for order in self.crawler.crawl(access_token, should_stop=should_stop, progress=progress):
                if progress.pages_fetched != pages_recorded:
                    pages_recorded = progress.pages_fetched
                    self.runs.update(run_id, pages_fetched=pages_recorded, **counts)

                counts["orders_seen"] += 1
                order_id = order.get("id", "?")
                try:
                    self.writer.write(normalize(order))
                except (MalformedOrder, MissingAddress) as e:
                    counts["orders_skipped"] += 1
                    logger.warning("Run %s: skipped order %s: %s", run_id, order_id, e)
                    continue
                except WriteFailed as e:
                    counts["orders_failed"] += 1
                    logger.warning("Run %s: failed to write order %s: %s", run_id, order_id, e)
                    continue
                counts["orders_written"] += 1
        except RunCancelled as e:
            logger.info("Run %s for instance %s cancelled", run_id, instance_id)
            return self.runs.update(
                run_id, RunStatus.CANCELLED, pages_fetched=progress.pages_fetched, error=str(e), **counts
            )
        except ABORTING_ERRORS as e:
            logger.error("Run %s for instance %s aborted: %s", run_id, instance_id, e)
            return self.runs.update(
                run_id,
                RunStatus.FAILED,
                pages_fetched=progress.pages_fetched,
                error=f"{type(e).__name__}: {e}",
                **counts,
            )

        summary = self.runs.update(
            run_id, RunStatus.DONE, pages_fetched=progress.pages_fetched, **counts
        )
        logger.info(
            "Run %s for instance %s done: %s page(s), %s written, %s skipped, %s failed",
            run_id,
            instance_id,
            summary.pages_fetched,
            summary.orders_written,
            summary.orders_skipped,
            summary.orders_failed,
        )
        return summary
