"""Award record models.

Search results are semi-structured: a fixed set of well-known keys plus
whatever else the upstream decides to send. Location and code fields are
polymorphic and arrive either as a nested object, as a flat mapping of string
sub-fields, or as a bare string depending on the award category. Those fields
are decoded into explicit tagged unions so callers can match on the variant
instead of probing an untyped value, and any third shape is rejected at
decode time.

Models serialize back to the upstream shape: keys that were not sent are not
invented, unknown keys are preserved.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_serializer


# ============================================================================
# LOCATION TAGGED UNION
# ============================================================================


class Location(BaseModel):
    """Structured location object as sent by the search and detail endpoints."""

    model_config = ConfigDict(extra="forbid")

    location_country_code: str | None = None
    country_name: str | None = None
    state_code: str | None = None
    state_name: str | None = None
    city_name: str | None = None
    county_code: str | None = None
    county_name: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    address_line3: str | None = None
    congressional_code: str | None = None
    zip4: str | None = None
    zip5: str | None = None
    foreign_postal_code: str | None = None
    foreign_province: str | None = None


class StructuredLocation(BaseModel):
    kind: Literal["structured"] = "structured"
    location: Location

    @model_serializer
    def _serialize(self) -> dict[str, Any]:
        return self.location.model_dump(exclude_unset=True)


class FlatLocation(BaseModel):
    kind: Literal["flat"] = "flat"
    fields: dict[str, str | None] = Field(default_factory=dict)

    @model_serializer
    def _serialize(self) -> dict[str, str | None]:
        return dict(self.fields)


class ScalarLocation(BaseModel):
    kind: Literal["scalar"] = "scalar"
    value: str

    @model_serializer
    def _serialize(self) -> str:
        return self.value


LocationValue = Union[StructuredLocation, FlatLocation, ScalarLocation]

_LOCATION_KEYS = frozenset(Location.model_fields)


def parse_location_value(value: Any) -> Any:
    """Decode a raw location value into its tagged variant."""
    if value is None or isinstance(value, (StructuredLocation, FlatLocation, ScalarLocation)):
        return value
    if isinstance(value, str):
        return ScalarLocation(value=value)
    if isinstance(value, Mapping):
        keys = set(value)
        if keys and keys <= _LOCATION_KEYS:
            return StructuredLocation(location=Location.model_validate(dict(value)))
        if all(isinstance(v, str) or v is None for v in value.values()):
            return FlatLocation(fields={str(k): v for k, v in value.items()})
        raise ValueError(f"location mapping has non-string sub-fields: {sorted(keys)}")
    raise ValueError(f"unsupported location shape: {type(value).__name__}")


LocationField = Annotated[LocationValue | None, BeforeValidator(parse_location_value)]


# ============================================================================
# CODE TAGGED UNION (NAICS / PSC)
# ============================================================================


class CodeDescription(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str | None = None
    description: str | None = None


class StructuredCode(BaseModel):
    kind: Literal["structured"] = "structured"
    code: CodeDescription

    @model_serializer
    def _serialize(self) -> dict[str, Any]:
        return self.code.model_dump(exclude_unset=True)


class ScalarCode(BaseModel):
    kind: Literal["scalar"] = "scalar"
    value: str

    @model_serializer
    def _serialize(self) -> str:
        return self.value


CodeValue = Union[StructuredCode, ScalarCode]

_CODE_KEYS = frozenset(CodeDescription.model_fields)


def parse_code_value(value: Any) -> Any:
    """Decode a NAICS/PSC value that is either `{code, description}` or a string."""
    if value is None or isinstance(value, (StructuredCode, ScalarCode)):
        return value
    if isinstance(value, str):
        return ScalarCode(value=value)
    if isinstance(value, Mapping) and set(value) <= _CODE_KEYS:
        return StructuredCode(code=CodeDescription.model_validate(dict(value)))
    raise ValueError(f"unsupported code shape: {type(value).__name__}")


CodeField = Annotated[CodeValue | None, BeforeValidator(parse_code_value)]

# Monetary fields are numbers for most categories and strings for a few.
Amount = int | float | str | None


# ============================================================================
# BASIC RECORD
# ============================================================================


class AwardRecord(BaseModel):
    """One row of the search endpoint's `results` array."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    internal_id: int | str | None = None
    award_id: str | None = Field(default=None, alias="Award ID")
    recipient_name: str | None = Field(default=None, alias="Recipient Name")
    award_amount: Amount = Field(default=None, alias="Award Amount")
    total_outlays: Amount = Field(default=None, alias="Total Outlays")
    description: str | None = Field(default=None, alias="Description")
    contract_award_type: str | None = Field(default=None, alias="Contract Award Type")
    recipient_uei: str | None = Field(default=None, alias="Recipient UEI")
    recipient_location: LocationField = Field(default=None, alias="Recipient Location")
    primary_place_of_performance: LocationField = Field(
        default=None, alias="Primary Place of Performance"
    )
    def_codes: list[str] | None = None
    covid19_obligations: Amount = Field(default=None, alias="COVID-19 Obligations")
    covid19_outlays: Amount = Field(default=None, alias="COVID-19 Outlays")
    infrastructure_obligations: Amount = Field(default=None, alias="Infrastructure Obligations")
    infrastructure_outlays: Amount = Field(default=None, alias="Infrastructure Outlays")
    awarding_agency: str | None = Field(default=None, alias="Awarding Agency")
    awarding_sub_agency: str | None = Field(default=None, alias="Awarding Sub Agency")
    start_date: str | None = Field(default=None, alias="Start Date")
    end_date: str | None = Field(default=None, alias="End Date")
    naics: CodeField = Field(default=None, alias="NAICS")
    psc: CodeField = Field(default=None, alias="PSC")
    recipient_id: str | None = None
    prime_award_recipient_id: str | None = None
    generated_internal_id: str | None = None
    awarding_agency_id: int | None = None
    agency_slug: str | None = None

    # Loan-specific
    loan_value: Amount = Field(default=None, alias="Loan Value")
    subsidy_cost: Amount = Field(default=None, alias="Subsidy Cost")
    issued_date: str | None = Field(default=None, alias="Issued Date")
    funding_agency: str | None = Field(default=None, alias="Funding Agency")

    def path_date(self) -> str | None:
        """Date used to place the record on disk: start date, else issued date (loans)."""
        return self.start_date or self.issued_date

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ============================================================================
# DETAIL RECORD
# ============================================================================


class ToptierAgency(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None
    code: str | None = None
    abbreviation: str | None = None
    slug: str | None = None


class AgencyInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | None = None
    has_agency_page: bool | None = None
    toptier_agency: ToptierAgency | None = None
    subtier_agency: dict[str, Any] | None = None
    office_agency_name: str | None = None


class DetailRecord(BaseModel):
    """Response of the per-award detail endpoint. Loosely typed beyond a few keys."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    generated_unique_award_id: str | None = None
    piid: str | None = None
    category: str | None = None
    type: str | None = None
    type_description: str | None = None
    description: str | None = None
    total_obligation: float | None = None
    date_signed: str | None = None
    awarding_agency: AgencyInfo | None = None
    funding_agency: AgencyInfo | None = None
    period_of_performance: dict[str, Any] | None = None

    def awarding_agency_name(self) -> str | None:
        if self.awarding_agency and self.awarding_agency.toptier_agency:
            return self.awarding_agency.toptier_agency.name or None
        return None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


@dataclass(frozen=True)
class EnrichedRecord:
    """A basic record plus its detail, when enrichment succeeded."""

    basic: AwardRecord
    detail: DetailRecord | None = None

    @property
    def is_enriched(self) -> bool:
        return self.detail is not None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"basic_data": self.basic.to_payload()}
        if self.detail is not None:
            payload["detailed_data"] = self.detail.to_payload()
        return payload
