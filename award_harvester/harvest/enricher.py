"""Best-effort detail enrichment for basic award records.

Enrichment failure never aborts anything: the record degrades to basic-only
and the failure is logged at WARNING, below the ERROR used for partition
failures.
"""

from __future__ import annotations

from typing import Protocol

from loguru import logger

from ..exceptions import EnrichmentError, HarvesterError
from ..models.awards import AwardRecord, DetailRecord, EnrichedRecord


class DetailClient(Protocol):
    async def get_award_detail(self, generated_internal_id: str) -> DetailRecord: ...


class DetailEnricher:
    """Fetches the detail representation of a record by its generated internal id."""

    def __init__(self, client: DetailClient):
        self.client = client
        self.succeeded = 0
        self.failed = 0

    async def fetch(self, generated_internal_id: str) -> DetailRecord | None:
        """Return the detail record, or None when the fetch failed for any reason."""
        try:
            detail = await self.client.get_award_detail(generated_internal_id)
        except HarvesterError as e:
            self.failed += 1
            error = EnrichmentError(
                f"Failed to fetch details for {generated_internal_id}: {e.message}",
                component="harvest.enricher",
                operation="fetch",
                details={"generated_internal_id": generated_internal_id},
                cause=e,
            )
            logger.bind(error=error.to_dict()).warning(
                f"{error.message}; keeping basic record only"
            )
            return None

        self.succeeded += 1
        return detail

    async def enrich(self, record: AwardRecord) -> EnrichedRecord:
        """Attach detail to a record that has a generated internal id."""
        if not record.generated_internal_id:
            raise ValueError("record has no generated_internal_id")
        detail = await self.fetch(record.generated_internal_id)
        return EnrichedRecord(basic=record, detail=detail)
