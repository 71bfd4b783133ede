"""Configuration schemas using Pydantic for type-safe configuration.

The award-type tables (category -> type codes, output directory, sort field
and requested fields) live here as frozen models with the upstream defaults,
so they are built once at startup and passed explicitly to every component
that needs them.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.query import AwardCategory, PlaceOfPerformance


_COMMON_FIELDS = (
    "Award ID",
    "Recipient Name",
    "Award Amount",
    "Total Outlays",
    "Description",
)
_COVID_INFRA_FIELDS = (
    "def_codes",
    "COVID-19 Obligations",
    "COVID-19 Outlays",
    "Infrastructure Obligations",
    "Infrastructure Outlays",
)
_RECIPIENT_IDS = ("recipient_id", "prime_award_recipient_id")

CONTRACT_FIELDS = (
    *_COMMON_FIELDS,
    "Contract Award Type",
    "Recipient UEI",
    "Recipient Location",
    "Primary Place of Performance",
    *_COVID_INFRA_FIELDS,
    "Awarding Agency",
    "Awarding Sub Agency",
    "Start Date",
    "End Date",
    "NAICS",
    "PSC",
    *_RECIPIENT_IDS,
)
ASSISTANCE_FIELDS = (
    *_COMMON_FIELDS,
    "Recipient UEI",
    "Recipient Location",
    "Primary Place of Performance",
    *_COVID_INFRA_FIELDS,
    "Awarding Agency",
    "Awarding Sub Agency",
    "Start Date",
    "End Date",
    *_RECIPIENT_IDS,
)
LOAN_FIELDS = (
    "Award ID",
    "Recipient Name",
    "Loan Value",
    "Subsidy Cost",
    "Description",
    "Recipient UEI",
    "recipient_location_city_name",
    "recipient_location_state_code",
    "recipient_location_country_name",
    "recipient_location_address_line1",
    "pop_city_name",
    "pop_state_code",
    "pop_country_name",
    *_COVID_INFRA_FIELDS,
    "Awarding Agency",
    "Funding Agency",
    "Issued Date",
    *_RECIPIENT_IDS,
)


class CategorySpec(BaseModel):
    """Per-category request defaults and output directory."""

    model_config = ConfigDict(frozen=True)

    type_codes: tuple[str, ...] = Field(description="Upstream award type codes in this group")
    directory: str = Field(description="Output directory, relative to output.root")
    sort_field: str = Field(default="Award Amount", description="Search sort field")
    fields: tuple[str, ...] = Field(default=ASSISTANCE_FIELDS, description="Requested fields")

    @field_validator("type_codes")
    @classmethod
    def validate_type_codes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("type_codes must not be empty")
        return v


def default_categories() -> dict[AwardCategory, CategorySpec]:
    return {
        AwardCategory.CONTRACTS: CategorySpec(
            type_codes=("A", "B", "C", "D"),
            directory="Contracts",
            fields=CONTRACT_FIELDS,
        ),
        AwardCategory.GRANTS: CategorySpec(
            type_codes=("02", "03", "04", "05"),
            directory="Grants",
        ),
        AwardCategory.LOANS: CategorySpec(
            type_codes=("07", "08"),
            directory="Loans",
            sort_field="Loan Value",
            fields=LOAN_FIELDS,
        ),
        AwardCategory.IDVS: CategorySpec(
            type_codes=("IDV_A", "IDV_B", "IDV_B_A", "IDV_B_B", "IDV_B_C", "IDV_C", "IDV_D", "IDV_E"),
            directory="Contract_IDVs",
            fields=CONTRACT_FIELDS,
        ),
        AwardCategory.OTHER_FINANCIAL_ASSISTANCE: CategorySpec(
            type_codes=("06", "10"),
            directory="Other_Financial_Assistance",
        ),
        AwardCategory.DIRECT_PAYMENTS: CategorySpec(
            type_codes=("09", "11"),
            directory="Direct_Payments",
        ),
    }


class ApiConfig(BaseModel):
    """Upstream endpoints and HTTP collaborator settings."""

    search_url: str = Field(
        default="https://api.usaspending.gov/api/v2/search/spending_by_award/",
        description="Search endpoint (POST)",
    )
    detail_url: str = Field(
        default="https://api.usaspending.gov/api/v2/awards/",
        description="Detail endpoint base; the award id and a trailing slash are appended",
    )
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    user_agent: str = Field(default="UC-Holdings-Scraper/1.0", description="Client identifier")
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per request")
    retry_backoff_seconds: float = Field(default=2.0, ge=0, description="Initial retry wait")
    retry_max_backoff_seconds: float = Field(default=30.0, ge=0, description="Retry wait cap")


class RateLimitConfig(BaseModel):
    interval_seconds: float = Field(
        default=1.0, gt=0, description="Minimum gap between any two outbound requests"
    )


class QueryConfig(BaseModel):
    """Static parts of every search filter and page request."""

    keywords: list[str] = Field(default_factory=lambda: ["University of California"])
    recipient_type_names: list[str] = Field(
        default_factory=lambda: [
            "higher_education",
            "public_institution_of_higher_education",
            "private_institution_of_higher_education",
            "minority_serving_institution_of_higher_education",
            "school_of_forestry",
            "veterinary_college",
            "government",
        ]
    )
    place_of_performance: list[PlaceOfPerformance] = Field(
        default_factory=lambda: [PlaceOfPerformance(country="USA", state="CA")]
    )
    limit: int = Field(default=100, ge=1, le=100, description="Records per page")
    order: Literal["asc", "desc"] = "desc"
    audit_trail: str | None = "Results Table - Spending by award search"
    spending_level: str | None = "awards"
    static_start_date: date = Field(
        default=date(2007, 10, 1), description="Single-pass window start"
    )
    static_end_date: date = Field(default=date(2025, 9, 30), description="Single-pass window end")

    @model_validator(mode="after")
    def validate_static_window(self) -> QueryConfig:
        if self.static_end_date < self.static_start_date:
            raise ValueError("static_end_date must not be before static_start_date")
        return self


class HarvestConfig(BaseModel):
    """Run shape: partitioning mode, concurrency, year range, enrichment."""

    mode: Literal["partitioned", "single_pass"] = "partitioned"
    concurrency: int = Field(default=10, ge=1, le=64, description="Worker count")
    start_year: int = Field(default=2008, ge=2000, le=2100)
    end_year: int | None = Field(
        default=None, description="Last year to harvest; defaults to the current year"
    )
    year_window: Literal["fiscal", "calendar"] = Field(
        default="fiscal",
        description="fiscal: Oct 1 of the prior year to Sep 30; calendar: Jan 1 to Dec 31",
    )
    enrich: bool = Field(default=True, description="Fetch per-award detail records")
    max_pages: int = Field(default=500, ge=1, description="Page cap per partition")
    deadline_seconds: float | None = Field(
        default=None, gt=0, description="Cancel the run after this many seconds"
    )

    @model_validator(mode="after")
    def validate_year_range(self) -> HarvestConfig:
        if self.end_year is not None and self.end_year < self.start_year:
            raise ValueError("end_year must be >= start_year")
        return self


class OutputConfig(BaseModel):
    root: str = Field(default="data/awards", description="Base directory for all output")
    batch_prefix: str = Field(default="uc", description="Prefix of batch file names")
    indent: int = Field(default=2, ge=0)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "text"
    file_path: str | None = "logs/award-harvester.log"
    max_file_size_mb: int = 100
    backup_count: int = 5
    include_stage: bool = True
    include_run_id: bool = True
    include_timestamps: bool = True

    @field_validator("format")
    @classmethod
    def _normalize_format(cls, v: str) -> str:
        """Normalize 'pretty'/'plain' -> 'text' and 'structured' -> 'json'."""
        vv = v.lower()
        if vv in ("pretty", "text", "plain"):
            return "text"
        if vv in ("json", "structured"):
            return "json"
        return v


class HarvesterConfig(BaseModel):
    """Root configuration model for the award harvester."""

    pipeline: dict[str, Any] = Field(
        default_factory=lambda: {
            "name": "award-harvester",
            "version": "0.1.0",
            "environment": "development",
        }
    )
    api: ApiConfig = Field(default_factory=ApiConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    harvest: HarvestConfig = Field(default_factory=HarvestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    categories: dict[AwardCategory, CategorySpec] = Field(default_factory=default_categories)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(validate_assignment=True, extra="allow")

    @field_validator("categories")
    @classmethod
    def validate_categories(
        cls, v: dict[AwardCategory, CategorySpec]
    ) -> dict[AwardCategory, CategorySpec]:
        if not v:
            raise ValueError("at least one award category must be configured")
        return v
