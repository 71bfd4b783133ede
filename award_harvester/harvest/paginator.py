"""Page traversal for one query partition.

A partition's pages are requested strictly in sequence (page N+1 only after
page N has been consumed) because the upstream continuation depends on
server-side state. Traversal stops on the first page that reports no
continuation or carries no records. Any request failure fails the whole
partition and the records gathered so far are dropped, so a partition is
either complete or absent.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from loguru import logger

from ..config.schemas import CategorySpec, QueryConfig
from ..exceptions import APIError, PaginationLimitError, PartitionError
from ..models.awards import AwardRecord
from ..models.query import (
    AwardCategory,
    PageRequest,
    PageResponse,
    QueryPartition,
    SearchFilter,
    TimePeriod,
)


class SearchClient(Protocol):
    async def search_awards(self, request: PageRequest) -> PageResponse: ...


class Paginator:
    """Drives one partition through successive pages until the API runs out."""

    def __init__(
        self,
        client: SearchClient,
        query: QueryConfig,
        categories: Mapping[AwardCategory, CategorySpec],
        max_pages: int = 500,
    ):
        self.client = client
        self.query = query
        self.categories = categories
        self.max_pages = max_pages

    def build_filter(self, partition: QueryPartition) -> SearchFilter:
        return SearchFilter(
            keywords=tuple(self.query.keywords),
            time_period=(
                TimePeriod(start_date=partition.window.start, end_date=partition.window.end),
            ),
            award_type_codes=tuple(sorted(partition.type_codes)),
            recipient_type_names=tuple(self.query.recipient_type_names),
            place_of_performance_locations=tuple(self.query.place_of_performance),
        )

    def build_request(
        self, partition: QueryPartition, page: int, search_filter: SearchFilter | None = None
    ) -> PageRequest:
        spec = self.categories[partition.category]
        return PageRequest(
            filters=search_filter or self.build_filter(partition),
            page=page,
            limit=self.query.limit,
            sort=spec.sort_field,
            order=self.query.order,
            fields=spec.fields,
            audit_trail=self.query.audit_trail,
            spending_level=self.query.spending_level,
        )

    async def collect(self, partition: QueryPartition) -> list[AwardRecord]:
        """Fetch every page of the partition and return its records in page order.

        Raises:
            PartitionError: a page request failed (transport, status or decode)
            PaginationLimitError: the API still reported more pages at `max_pages`
        """
        label = partition.label()
        search_filter = self.build_filter(partition)
        records: list[AwardRecord] = []
        page = 1

        logger.info(
            f"[{label}] Starting traversal (codes={sorted(partition.type_codes)}, "
            f"window={partition.window.label()})"
        )

        while True:
            request = self.build_request(partition, page, search_filter)
            try:
                response = await self.client.search_awards(request)
            except APIError as e:
                raise PartitionError(
                    f"[{label}] Page {page} failed: {e.message}",
                    category=partition.category.value,
                    page=page,
                    operation="collect",
                    details={"window": partition.window.label(), "api_error": e.to_dict()},
                    cause=e,
                ) from e

            records.extend(response.results)
            logger.debug(
                f"[{label}] Page {page}: got {len(response.results)} awards, "
                f"total so far: {len(records)}"
            )

            if response.is_last:
                logger.info(f"[{label}] No more pages. Total awards collected: {len(records)}")
                return records

            if page >= self.max_pages:
                raise PaginationLimitError(
                    f"[{label}] Still reporting more results after {page} pages",
                    category=partition.category.value,
                    page=page,
                    max_pages=self.max_pages,
                    operation="collect",
                )
            page += 1
