"""Data models for harvested award records and search queries."""

from .awards import (
    AgencyInfo,
    AwardRecord,
    CodeDescription,
    CodeValue,
    DetailRecord,
    EnrichedRecord,
    FlatLocation,
    Location,
    LocationValue,
    ScalarCode,
    ScalarLocation,
    StructuredCode,
    StructuredLocation,
    ToptierAgency,
)
from .query import (
    AwardCategory,
    PageMetadata,
    PageRequest,
    PageResponse,
    PartitionKey,
    PlaceOfPerformance,
    QueryPartition,
    SearchFilter,
    TimePeriod,
    TimeWindow,
)


__all__ = [
    "AgencyInfo",
    "AwardCategory",
    "AwardRecord",
    "CodeDescription",
    "CodeValue",
    "DetailRecord",
    "EnrichedRecord",
    "FlatLocation",
    "Location",
    "LocationValue",
    "PageMetadata",
    "PageRequest",
    "PageResponse",
    "PartitionKey",
    "PlaceOfPerformance",
    "QueryPartition",
    "ScalarCode",
    "ScalarLocation",
    "SearchFilter",
    "StructuredCode",
    "StructuredLocation",
    "TimePeriod",
    "TimeWindow",
    "ToptierAgency",
]
