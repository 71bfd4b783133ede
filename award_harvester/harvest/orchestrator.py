"""End-to-end harvest run.

The orchestrator owns every run-scoped resource: the rate limiter, the HTTP
client and the cancellation event. It plans the partitions, drives the
worker pool, then persists each category either as enriched per-award files
or as one batch file, and reports what was collected vs. what was written.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import httpx
from loguru import logger

from ..config.schemas import HarvesterConfig
from ..exceptions import FileSystemError
from ..models.awards import AwardRecord
from ..models.query import AwardCategory, QueryPartition, TimeWindow
from ..storage.path_planner import PathPlanner
from ..storage.persister import JsonPersister
from ..utils.logging_config import log_context
from .client import USAspendingClient
from .enricher import DetailEnricher
from .paginator import Paginator
from .rate_limiter import RateLimiter
from .worker_pool import JobStatus, PoolReport, WorkerPool, cancel_when_set


def year_window(year: int, kind: str = "fiscal") -> TimeWindow:
    """Fiscal year Y runs Oct 1 of Y-1 through Sep 30 of Y; calendar is Jan 1..Dec 31."""
    if kind == "calendar":
        return TimeWindow(date(year, 1, 1), date(year, 12, 31))
    return TimeWindow(date(year - 1, 10, 1), date(year, 9, 30))


@dataclass
class HarvestSummary:
    run_id: str
    mode: str
    partitions_total: int = 0
    partitions_completed: int = 0
    partitions_failed: int = 0
    partitions_cancelled: int = 0
    records_collected: int = 0
    records_persisted: int = 0
    records_enriched: int = 0
    records_skipped: int = 0
    persist_failures: int = 0
    cancelled: bool = False
    failed_partitions: list[str] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        """True when there was work to do and not a single partition succeeded."""
        return self.partitions_total > 0 and self.partitions_failed == self.partitions_total


class HarvestOrchestrator:
    """Plans, runs and persists one harvest."""

    def __init__(
        self,
        config: HarvesterConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        run_date: date | None = None,
        run_id: str | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Validated harvester configuration
            http_client: Optional HTTPX client passed to the API client (tests
                use one backed by httpx.MockTransport)
            run_date: Date used in batch file names; defaults to today
            run_id: Identifier bound to every log record of the run
        """
        self.config = config
        self.http_client = http_client
        self.run_date = run_date or date.today()
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self.planner = PathPlanner(config.output.root, config.categories)
        self.persister = JsonPersister(indent=config.output.indent)
        self._cancel_event = asyncio.Event()
        self.rate_limiter: RateLimiter | None = None

    def cancel(self) -> None:
        """Request cooperative cancellation of the running harvest."""
        self._cancel_event.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def build_partitions(self) -> list[QueryPartition]:
        """Category x year in partitioned mode; one static window per category in single-pass."""
        harvest = self.config.harvest
        partitions: list[QueryPartition] = []

        if harvest.mode == "single_pass":
            window = TimeWindow(
                self.config.query.static_start_date, self.config.query.static_end_date
            )
            for category, spec in self.config.categories.items():
                partitions.append(
                    QueryPartition(category, frozenset(spec.type_codes), window)
                )
            return partitions

        end_year = harvest.end_year or self.run_date.year
        if end_year < harvest.start_year:
            logger.warning(
                f"start_year {harvest.start_year} is after the last year to harvest "
                f"({end_year}); no partitions planned"
            )
            return partitions
        for category, spec in self.config.categories.items():
            codes = frozenset(spec.type_codes)
            for year in range(harvest.start_year, end_year + 1):
                partitions.append(
                    QueryPartition(category, codes, year_window(year, harvest.year_window), year)
                )
        return partitions

    async def run(self) -> HarvestSummary:
        """Run the harvest to completion (or cancellation) and return its summary."""
        with log_context(run_id=self.run_id):
            partitions = self.build_partitions()
            summary = HarvestSummary(
                run_id=self.run_id,
                mode=self.config.harvest.mode,
                partitions_total=len(partitions),
            )
            logger.info(
                f"Starting {self.config.harvest.mode} harvest: {len(partitions)} partitions, "
                f"enrich={self.config.harvest.enrich}"
            )

            deadline_handle = None
            if self.config.harvest.deadline_seconds:
                deadline_handle = asyncio.get_running_loop().call_later(
                    self.config.harvest.deadline_seconds, self._deadline_reached
                )

            limiter = RateLimiter(self.config.rate_limit.interval_seconds)
            self.rate_limiter = limiter
            client = USAspendingClient(self.config.api, limiter, http_client=self.http_client)
            try:
                report = await self._collect(client, partitions)
                self._record_pool(summary, report)

                if report.cancelled or self.cancel_requested:
                    summary.cancelled = True
                    logger.warning("Harvest cancelled; nothing will be persisted")
                elif self.config.harvest.enrich:
                    await self._persist_enriched(client, report, summary)
                else:
                    self._persist_batches(report, summary)
            finally:
                if deadline_handle is not None:
                    deadline_handle.cancel()
                await client.aclose()
                limiter.close()

            if self.cancel_requested:
                summary.cancelled = True

            logger.info(
                f"Harvest finished: {summary.records_collected} awards collected, "
                f"{summary.records_persisted} persisted "
                f"({summary.records_enriched} with details, {summary.records_skipped} skipped)"
            )
            return summary

    def _deadline_reached(self) -> None:
        logger.warning(f"Deadline of {self.config.harvest.deadline_seconds}s reached")
        self.cancel()

    async def _collect(
        self, client: USAspendingClient, partitions: list[QueryPartition]
    ) -> PoolReport:
        paginator = Paginator(
            client,
            self.config.query,
            self.config.categories,
            max_pages=self.config.harvest.max_pages,
        )
        # Single-pass mode walks the categories one after another.
        concurrency = self.config.harvest.concurrency
        if self.config.harvest.mode == "single_pass":
            concurrency = 1
        with log_context(stage="partition"):
            return await WorkerPool(paginator, concurrency).run(partitions, self._cancel_event)

    @staticmethod
    def _record_pool(summary: HarvestSummary, report: PoolReport) -> None:
        summary.partitions_completed = report.completed
        summary.partitions_failed = report.failed
        summary.partitions_cancelled = len(report.with_status(JobStatus.CANCELLED))
        summary.records_collected = report.results.total
        summary.failed_partitions = [
            o.partition.label() for o in report.with_status(JobStatus.FAILED)
        ]

    async def _await_cancellable(self, tasks: list[asyncio.Task[None]], what: str) -> None:
        """Wait for every task; once the run is cancelled, cancel the ones still running.

        Task failures other than cancellation propagate to the caller.
        """
        if not tasks:
            return
        watcher = asyncio.create_task(cancel_when_set(self._cancel_event, tasks, what))
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)
            for task in tasks:
                if not task.done():
                    task.cancel()
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                raise outcome

    def _save(self, value: object, path: Path, summary: HarvestSummary) -> bool:
        try:
            self.persister.save(value, path)
        except FileSystemError as e:
            summary.persist_failures += 1
            logger.bind(error=e.to_dict()).error(f"Skipping {path}: {e.message}")
            return False
        return True

    def _persist_batches(self, report: PoolReport, summary: HarvestSummary) -> None:
        with log_context(stage="persist"):
            for category in report.results.categories():
                records = report.results.records_for(category)
                if not records:
                    logger.info(f"No {category.value} awards collected; no batch written")
                    continue
                path = self.planner.batch_path(
                    category, self.run_date, self.config.output.batch_prefix
                )
                if self._save(records, path, summary):
                    summary.records_persisted += len(records)
                    summary.files.append(path)
                    logger.info(f"Saved {len(records)} {category.value} awards to {path}")

    async def _persist_enriched(
        self, client: USAspendingClient, report: PoolReport, summary: HarvestSummary
    ) -> None:
        enricher = DetailEnricher(client)
        semaphore = asyncio.Semaphore(self.config.harvest.concurrency)

        async def process(category: AwardCategory, record: AwardRecord) -> None:
            async with semaphore:
                if self.cancel_requested:
                    return
                enriched = await enricher.enrich(record)
            # A detail that arrives after cancellation is dropped, not written.
            if self.cancel_requested:
                return
            path = self.planner.plan_for_record(category, record, enriched.detail)
            if self._save(enriched, path, summary):
                summary.records_persisted += 1
                summary.files.append(path)
                if enriched.is_enriched:
                    summary.records_enriched += 1

        with log_context(stage="enrich"):
            for category in report.results.categories():
                records = report.results.records_for(category)
                seen: set[str] = set()
                pending: list[AwardRecord] = []
                for index, record in enumerate(records, start=1):
                    if not record.generated_internal_id:
                        summary.records_skipped += 1
                        logger.warning(
                            f"Skipping award {index}/{len(records)} in {category.value}: "
                            "missing generated_internal_id"
                        )
                        continue
                    # The same award can match more than one year window.
                    if record.generated_internal_id in seen:
                        continue
                    seen.add(record.generated_internal_id)
                    pending.append(record)

                logger.info(f"Fetching details for {len(pending)} {category.value} awards")
                tasks = [asyncio.create_task(process(category, r)) for r in pending]
                await self._await_cancellable(tasks, "enrichment")
                if self.cancel_requested:
                    logger.warning("Enrichment cancelled; remaining categories skipped")
                    return

        logger.info(
            f"Enrichment finished: {enricher.succeeded} detailed, {enricher.failed} basic only"
        )
