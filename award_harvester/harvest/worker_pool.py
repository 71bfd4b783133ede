"""Bounded-concurrency execution of partition jobs.

A fixed number of worker tasks drain a pre-filled job queue. Each worker
runs one partition's traversal to completion, keeps the records local to
itself, and merges them into the shared ResultSet once under its lock.
Workers never talk to each other; a failed partition is recorded and
skipped, never requeued. `run()` returns only after every worker has
returned.

Cancellation: setting the run's cancel event makes a watcher cancel every
worker task, which interrupts whatever the worker is awaiting (rate-limit
wait, HTTP call, queue receive). Jobs that had not completed are reported
as cancelled and their records are discarded.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from loguru import logger

from ..exceptions import HarvesterError
from ..models.awards import AwardRecord
from ..models.query import AwardCategory, PartitionKey, QueryPartition


class JobStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class JobOutcome:
    partition: QueryPartition
    status: JobStatus = JobStatus.QUEUED
    record_count: int = 0
    error: str | None = None
    worker_id: int | None = None
    elapsed_seconds: float | None = None


class ResultSet:
    """Partition key -> records, shared by all workers and written under one lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: dict[PartitionKey, list[AwardRecord]] = {}

    async def add(self, key: PartitionKey, records: Sequence[AwardRecord]) -> None:
        async with self._lock:
            if key in self._records:
                raise ValueError(f"partition {key} already has results")
            self._records[key] = list(records)

    def keys(self) -> list[PartitionKey]:
        return sorted(self._records, key=lambda k: (k.category.value, k.year or 0))

    def get(self, key: PartitionKey) -> list[AwardRecord]:
        return list(self._records.get(key, []))

    def categories(self) -> list[AwardCategory]:
        seen: dict[AwardCategory, None] = {}
        for key in self.keys():
            seen.setdefault(key.category, None)
        return list(seen)

    def records_for(self, category: AwardCategory) -> list[AwardRecord]:
        """All records of a category, partitions in year order."""
        records: list[AwardRecord] = []
        for key in self.keys():
            if key.category == category:
                records.extend(self._records[key])
        return records

    @property
    def total(self) -> int:
        return sum(len(records) for records in self._records.values())

    def __len__(self) -> int:
        return len(self._records)


class PartitionCollector(Protocol):
    async def collect(self, partition: QueryPartition) -> list[AwardRecord]: ...


@dataclass
class PoolReport:
    results: ResultSet
    outcomes: list[JobOutcome] = field(default_factory=list)
    cancelled: bool = False

    def with_status(self, status: JobStatus) -> list[JobOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def completed(self) -> int:
        return len(self.with_status(JobStatus.COMPLETED))

    @property
    def failed(self) -> int:
        return len(self.with_status(JobStatus.FAILED))


class WorkerPool:
    """Runs partition jobs with `concurrency` workers over a shared queue."""

    def __init__(self, collector: PartitionCollector, concurrency: int = 10):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.collector = collector
        self.concurrency = concurrency

    async def _worker(
        self,
        worker_id: int,
        queue: asyncio.Queue[JobOutcome],
        results: ResultSet,
    ) -> None:
        while True:
            try:
                outcome = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            partition = outcome.partition
            outcome.status = JobStatus.IN_PROGRESS
            outcome.worker_id = worker_id
            started = time.monotonic()
            try:
                records = await self.collector.collect(partition)
                await results.add(partition.key, records)
            except asyncio.CancelledError:
                outcome.status = JobStatus.CANCELLED
                raise
            except HarvesterError as e:
                outcome.status = JobStatus.FAILED
                outcome.error = e.message
                logger.bind(error=e.to_dict()).error(
                    f"Worker {worker_id}: partition {partition.label()} failed: {e.message}"
                )
            except Exception as e:
                outcome.status = JobStatus.FAILED
                outcome.error = f"{type(e).__name__}: {e}"
                logger.exception(
                    f"Worker {worker_id}: partition {partition.label()} failed unexpectedly"
                )
            else:
                outcome.status = JobStatus.COMPLETED
                outcome.record_count = len(records)
                logger.info(
                    f"Worker {worker_id}: partition {partition.label()} completed "
                    f"with {len(records)} awards"
                )
            finally:
                outcome.elapsed_seconds = time.monotonic() - started
                queue.task_done()

    async def run(
        self,
        partitions: Iterable[QueryPartition],
        cancel_event: asyncio.Event | None = None,
    ) -> PoolReport:
        """Run every partition and return once all workers have returned."""
        queue: asyncio.Queue[JobOutcome] = asyncio.Queue()
        outcomes = [JobOutcome(partition=p) for p in partitions]
        for outcome in outcomes:
            queue.put_nowait(outcome)

        results = ResultSet()
        report = PoolReport(results=results, outcomes=outcomes)
        if not outcomes:
            return report

        worker_count = min(self.concurrency, len(outcomes))
        logger.info(f"Starting {worker_count} workers for {len(outcomes)} partitions")

        workers = [
            asyncio.create_task(self._worker(i, queue, results), name=f"harvest-worker-{i}")
            for i in range(worker_count)
        ]

        watcher: asyncio.Task[None] | None = None
        if cancel_event is not None:
            watcher = asyncio.create_task(cancel_when_set(cancel_event, workers))

        try:
            await asyncio.gather(*workers, return_exceptions=True)
        finally:
            if watcher is not None:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        if cancel_event is not None and cancel_event.is_set():
            report.cancelled = True
            for outcome in outcomes:
                if outcome.status in (JobStatus.QUEUED, JobStatus.IN_PROGRESS):
                    outcome.status = JobStatus.CANCELLED

        logger.info(
            f"Worker pool finished: {report.completed} completed, {report.failed} failed, "
            f"{len(report.with_status(JobStatus.CANCELLED))} cancelled, "
            f"{results.total} awards collected"
        )
        return report


async def cancel_when_set(
    cancel_event: asyncio.Event, tasks: Sequence[asyncio.Task[Any]], what: str = "workers"
) -> None:
    """Wait for the run's cancel event, then cancel every task that is still running."""
    await cancel_event.wait()
    logger.warning(f"Cancellation requested; stopping {what}")
    for task in tasks:
        task.cancel()
