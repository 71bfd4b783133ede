"""Query-side models: partitions, search filters, page requests and responses.

A QueryPartition is one independent unit of pagination work (an award-type
category plus a time window). The paginator turns it into a SearchFilter and
a sequence of PageRequests; each PageResponse carries the continuation flag
that ends the traversal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .awards import AwardRecord


class AwardCategory(str, Enum):
    """Upstream award-type groups, each mapped to a set of raw type codes."""

    CONTRACTS = "contracts"
    GRANTS = "grants"
    LOANS = "loans"
    IDVS = "idvs"
    OTHER_FINANCIAL_ASSISTANCE = "other_financial_assistance"
    DIRECT_PAYMENTS = "direct_payments"


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive date range sent as one `time_period` entry."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"time window ends before it starts: {self.start} > {self.end}")

    def label(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class QueryPartition:
    """One category x one time window. Immutable once enqueued.

    `year` is set for year-partitioned jobs and None for the single-pass window.
    """

    category: AwardCategory
    type_codes: frozenset[str]
    window: TimeWindow
    year: int | None = None

    @property
    def key(self) -> PartitionKey:
        return PartitionKey(self.category, self.year)

    def label(self) -> str:
        if self.year is None:
            return self.category.value
        return f"{self.category.value}/{self.year}"


@dataclass(frozen=True, order=True)
class PartitionKey:
    """ResultSet key: category, or category + year."""

    category: AwardCategory
    year: int | None = None


class TimePeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    @field_serializer("start_date", "end_date")
    def _iso(self, value: date) -> str:
        return value.isoformat()


class PlaceOfPerformance(BaseModel):
    model_config = ConfigDict(frozen=True)

    country: str
    state: str | None = None


class SearchFilter(BaseModel):
    """Filter block of a search request. Built per request, never mutated."""

    model_config = ConfigDict(frozen=True)

    keywords: tuple[str, ...] = ()
    time_period: tuple[TimePeriod, ...] = ()
    award_type_codes: tuple[str, ...] = ()
    recipient_type_names: tuple[str, ...] = ()
    place_of_performance_locations: tuple[PlaceOfPerformance, ...] = ()


class PageRequest(BaseModel):
    """Body of one POST to the search endpoint."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filters: SearchFilter
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    sort: str
    order: Literal["asc", "desc"] = "desc"
    fields: tuple[str, ...] = ()
    audit_trail: str | None = Field(default=None, alias="auditTrail")
    spending_level: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PageMetadata(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    page: int | None = None
    has_next: bool = Field(default=False, alias="hasNext")
    last_record_unique_id: int | str | None = None
    last_record_sort_value: Any = None


class PageResponse(BaseModel):
    """One page of search results plus its continuation flag."""

    model_config = ConfigDict(extra="allow")

    results: list[AwardRecord] = Field(default_factory=list)
    page_metadata: PageMetadata = Field(default_factory=PageMetadata)

    @property
    def has_next(self) -> bool:
        return self.page_metadata.has_next

    @property
    def is_last(self) -> bool:
        """True when traversal must stop: no continuation or an empty page."""
        return not self.page_metadata.has_next or not self.results
