"""Deterministic on-disk layout for harvested awards.

Enriched records land at

    <root>/<category-directory>/<recipient>/<year>/<agency>/<identifier>.json

and batches at

    <root>/<category-directory>/<prefix>_<category>_<YYYY-MM-DD>.json

Every segment taken from record data is sanitized on its own; the separators
between segments are only ever introduced here.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from pathlib import Path

from ..config.schemas import CategorySpec
from ..models.awards import AwardRecord, DetailRecord
from ..models.query import AwardCategory


FORBIDDEN_CHARACTERS = frozenset(' /\\:*?"<>|')
REPLACEMENT = "_"

UNKNOWN_RECIPIENT = "Unknown_Recipient"
UNKNOWN_AGENCY = "Unknown_Agency"
UNKNOWN_YEAR = "unknown"
UNKNOWN_IDENTIFIER = "unknown"
FALLBACK_DIRECTORY = "Other"

_TRANSLATION = str.maketrans({ch: REPLACEMENT for ch in FORBIDDEN_CHARACTERS})


def sanitize_segment(value: str) -> str:
    """Replace every forbidden character with an underscore.

    The result never contains a forbidden character, so sanitizing twice is
    the same as sanitizing once.
    """
    return value.translate(_TRANSLATION)


def extract_year(value: str | date | None) -> str:
    """Year from the first four characters of a date string, else "unknown"."""
    if value is None:
        return UNKNOWN_YEAR
    if isinstance(value, date):
        return f"{value.year:04d}"
    head = value[:4]
    if len(head) == 4 and head.isdigit():
        return head
    return UNKNOWN_YEAR


def _segment(value: str | None, placeholder: str) -> str:
    if not value:
        return placeholder
    cleaned = sanitize_segment(value)
    # "." and ".." would step out of the planned directory.
    if cleaned in (".", ".."):
        return placeholder
    return cleaned


class PathPlanner:
    """Maps record attributes to output paths under one root directory."""

    def __init__(
        self,
        output_root: str | Path,
        categories: Mapping[AwardCategory, CategorySpec],
    ):
        self.output_root = Path(output_root)
        self.categories = categories

    def category_directory(self, category: AwardCategory) -> Path:
        spec = self.categories.get(category)
        directory = spec.directory if spec is not None else FALLBACK_DIRECTORY
        return self.output_root / directory

    def plan(
        self,
        category: AwardCategory,
        recipient_name: str | None,
        year: str | date | None,
        awarding_agency: str | None,
        identifier: str | None,
    ) -> Path:
        """Build the path of one enriched record; any missing input gets a placeholder.

        `year` may be a date, a date string (first four characters are used)
        or None.
        """
        return (
            self.category_directory(category)
            / _segment(recipient_name, UNKNOWN_RECIPIENT)
            / extract_year(year)
            / _segment(awarding_agency, UNKNOWN_AGENCY)
            / f"{_segment(identifier, UNKNOWN_IDENTIFIER)}.json"
        )

    def plan_for_record(
        self,
        category: AwardCategory,
        record: AwardRecord,
        detail: DetailRecord | None = None,
    ) -> Path:
        """Path for a basic record, using the detail record to fill a missing year or agency."""
        year = extract_year(record.path_date())
        if year == UNKNOWN_YEAR and detail is not None:
            year = extract_year(detail.date_signed)

        agency = record.awarding_agency
        if not agency and detail is not None:
            agency = detail.awarding_agency_name()

        return self.plan(
            category,
            record.recipient_name,
            year,
            agency,
            record.generated_internal_id,
        )

    def batch_path(self, category: AwardCategory, run_date: date, prefix: str = "uc") -> Path:
        name = f"{prefix}_{category.value}_{run_date.isoformat()}.json"
        return self.category_directory(category) / sanitize_segment(name)
