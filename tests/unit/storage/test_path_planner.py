"""Unit tests for output path planning."""

from datetime import date
from pathlib import Path

import pytest

from award_harvester.config.schemas import default_categories
from award_harvester.models.awards import AwardRecord, DetailRecord
from award_harvester.models.query import AwardCategory
from award_harvester.storage.path_planner import (
    FORBIDDEN_CHARACTERS,
    PathPlanner,
    extract_year,
    sanitize_segment,
)
from tests.factories import make_record


pytestmark = pytest.mark.fast


@pytest.fixture
def planner(tmp_path):
    return PathPlanner(tmp_path / "out", default_categories())


class TestSanitizeSegment:
    @pytest.mark.parametrize(
        "raw",
        [
            "REGENTS OF THE UNIVERSITY OF CALIFORNIA",
            'a/b\\c:d*e?f"g<h>i|j',
            "already_clean",
            "",
        ],
    )
    def test_no_forbidden_characters_survive(self, raw):
        cleaned = sanitize_segment(raw)

        assert not FORBIDDEN_CHARACTERS & set(cleaned)
        assert len(cleaned) == len(raw)
        assert sanitize_segment(cleaned) == cleaned

    def test_each_character_becomes_one_underscore(self):
        assert sanitize_segment("Dept. of A/B: Test") == "Dept._of_A_B__Test"


class TestExtractYear:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2021-03-15", "2021"),
            ("2021", "2021"),
            (date(2019, 12, 31), "2019"),
            ("", "unknown"),
            (None, "unknown"),
            ("20", "unknown"),
            ("FY21-01-01", "unknown"),
        ],
    )
    def test_year_from_prefix(self, value, expected):
        assert extract_year(value) == expected


class TestPlan:
    def test_full_layout(self, planner, tmp_path):
        path = planner.plan(
            AwardCategory.GRANTS,
            "REGENTS OF THE UNIVERSITY OF CALIFORNIA",
            "2020-07-01",
            "National Science Foundation",
            "ASST_NON_123",
        )

        assert path == (
            tmp_path
            / "out"
            / "Grants"
            / "REGENTS_OF_THE_UNIVERSITY_OF_CALIFORNIA"
            / "2020"
            / "National_Science_Foundation"
            / "ASST_NON_123.json"
        )

    def test_missing_inputs_use_placeholders(self, planner, tmp_path):
        path = planner.plan(AwardCategory.LOANS, "", None, None, None)

        assert path.relative_to(tmp_path / "out") == Path(
            "Loans/Unknown_Recipient/unknown/Unknown_Agency/unknown.json"
        )

    def test_dot_segments_cannot_escape(self, planner, tmp_path):
        path = planner.plan(AwardCategory.CONTRACTS, "..", "2020", ".", "..")

        assert ".." not in path.parts
        assert path.relative_to(tmp_path / "out").parts == (
            "Contracts",
            "Unknown_Recipient",
            "2020",
            "Unknown_Agency",
            "unknown.json",
        )

    def test_separator_in_name_stays_in_one_segment(self, planner, tmp_path):
        path = planner.plan(AwardCategory.CONTRACTS, "A/B Corp", "2020", "X", "ID/1")

        assert len(path.relative_to(tmp_path / "out").parts) == 5
        assert path.name == "ID_1.json"

    def test_unconfigured_category_goes_to_fallback(self, tmp_path):
        planner = PathPlanner(tmp_path, {})

        assert planner.category_directory(AwardCategory.IDVS) == tmp_path / "Other"

    def test_same_inputs_same_path(self, planner):
        args = (AwardCategory.GRANTS, "R", "2020-01-01", "A", "ID")
        assert planner.plan(*args) == planner.plan(*args)


class TestPlanForRecord:
    def test_detail_fills_year_and_agency(self, planner):
        record = AwardRecord.model_validate(
            make_record(1, **{"Start Date": None, "Awarding Agency": None})
        )
        detail = DetailRecord.model_validate(
            {
                "date_signed": "2018-02-03",
                "awarding_agency": {"toptier_agency": {"name": "Department of Defense"}},
            }
        )

        path = planner.plan_for_record(AwardCategory.CONTRACTS, record, detail)

        assert path.parts[-3:] == ("2018", "Department_of_Defense", "ASST_NON_00001.json")

    def test_record_values_win_over_detail(self, planner):
        record = AwardRecord.model_validate(make_record(1))
        detail = DetailRecord.model_validate(
            {
                "date_signed": "2018-02-03",
                "awarding_agency": {"toptier_agency": {"name": "Department of Defense"}},
            }
        )

        path = planner.plan_for_record(AwardCategory.CONTRACTS, record, detail)

        assert path.parts[-3:] == ("2020", "National_Science_Foundation", "ASST_NON_00001.json")

    def test_empty_fields_use_placeholders(self, planner):
        record = AwardRecord.model_validate(
            {
                "Recipient Name": "",
                "Awarding Agency": "",
                "Start Date": "",
                "generated_internal_id": "CONT_AWD_1",
            }
        )

        path = planner.plan_for_record(AwardCategory.CONTRACTS, record)

        assert path.parts[-5:] == (
            "Contracts",
            "Unknown_Recipient",
            "unknown",
            "Unknown_Agency",
            "CONT_AWD_1.json",
        )

    def test_loans_use_issued_date(self, planner):
        record = AwardRecord.model_validate(
            {"Recipient Name": "UC", "Issued Date": "2016-04-01", "generated_internal_id": "L1"}
        )

        path = planner.plan_for_record(AwardCategory.LOANS, record)

        assert path.parts[-5:] == ("Loans", "UC", "2016", "Unknown_Agency", "L1.json")


class TestBatchPath:
    def test_batch_name(self, planner, tmp_path):
        path = planner.batch_path(AwardCategory.DIRECT_PAYMENTS, date(2024, 3, 9))

        assert path == (
            tmp_path / "out" / "Direct_Payments" / "uc_direct_payments_2024-03-09.json"
        )

    def test_custom_prefix(self, planner):
        path = planner.batch_path(AwardCategory.IDVS, date(2024, 3, 9), prefix="ca")

        assert path.name == "ca_idvs_2024-03-09.json"
        assert path.parent.name == "Contract_IDVs"
