"""Harvesting pipeline: throttled API access, pagination, enrichment, orchestration."""

from .client import USAspendingClient
from .enricher import DetailEnricher
from .orchestrator import HarvestOrchestrator, HarvestSummary, year_window
from .paginator import Paginator
from .rate_limiter import RateLimiter
from .worker_pool import JobOutcome, JobStatus, PoolReport, ResultSet, WorkerPool


__all__ = [
    "DetailEnricher",
    "HarvestOrchestrator",
    "HarvestSummary",
    "JobOutcome",
    "JobStatus",
    "Paginator",
    "PoolReport",
    "RateLimiter",
    "ResultSet",
    "USAspendingClient",
    "WorkerPool",
    "year_window",
]
