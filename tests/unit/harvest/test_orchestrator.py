"""End-to-end tests for the harvest orchestrator against a stub API."""

import json
import time
from datetime import date

import pytest
from loguru import logger

from award_harvester.harvest.orchestrator import HarvestOrchestrator, year_window
from award_harvester.models.query import AwardCategory
from tests.factories import make_config, make_record, make_records


pytestmark = pytest.mark.fast


CONTRACT_CODES = ["A", "B", "C", "D"]
RUN_DATE = date(2024, 1, 2)
FY2020 = "2019-10-01"
FY2021 = "2020-10-01"


def _orchestrator(config, stub_api):
    return HarvestOrchestrator(
        config, http_client=stub_api.client(), run_date=RUN_DATE, run_id="test1234"
    )


def _award_path(root, identifier, year="2020", agency="National_Science_Foundation"):
    return (
        root
        / "Contracts"
        / "REGENTS_OF_THE_UNIVERSITY_OF_CALIFORNIA"
        / year
        / agency
        / f"{identifier}.json"
    )


class TestPlanning:
    def test_fiscal_and_calendar_windows(self):
        assert year_window(2021).label() == "2020-10-01..2021-09-30"
        assert year_window(2021, "calendar").label() == "2021-01-01..2021-12-31"

    def test_cartesian_product(self, tmp_path):
        config = make_config(tmp_path)
        partitions = HarvestOrchestrator(config, run_date=RUN_DATE).build_partitions()

        assert len(partitions) == len(AwardCategory) * 2
        assert {(p.category, p.year) for p in partitions} == {
            (category, year) for category in AwardCategory for year in (2020, 2021)
        }
        contracts_2021 = next(
            p for p in partitions if p.category == AwardCategory.CONTRACTS and p.year == 2021
        )
        assert contracts_2021.type_codes == frozenset(CONTRACT_CODES)
        assert contracts_2021.window == year_window(2021)

    def test_end_year_defaults_to_run_year(self, tmp_path, contracts_only):
        config = make_config(
            tmp_path, categories=contracts_only, harvest={"start_year": 2021, "end_year": None}
        )
        partitions = HarvestOrchestrator(config, run_date=RUN_DATE).build_partitions()

        assert [p.year for p in partitions] == [2021, 2022, 2023, 2024]

    def test_start_year_after_run_year_warns(self, tmp_path, contracts_only):
        config = make_config(
            tmp_path, categories=contracts_only, harvest={"start_year": 2030, "end_year": None}
        )
        messages = []
        sink_id = logger.add(lambda m: messages.append(m.record), level="WARNING")
        try:
            partitions = HarvestOrchestrator(config, run_date=RUN_DATE).build_partitions()
        finally:
            logger.remove(sink_id)

        assert partitions == []
        assert any("no partitions planned" in m["message"] for m in messages)

    def test_single_pass(self, tmp_path):
        config = make_config(tmp_path, harvest={"mode": "single_pass"})
        partitions = HarvestOrchestrator(config, run_date=RUN_DATE).build_partitions()

        assert len(partitions) == len(AwardCategory)
        assert all(p.year is None for p in partitions)
        assert {p.window.label() for p in partitions} == {"2007-10-01..2025-09-30"}


class TestBatchMode:
    @pytest.mark.asyncio
    async def test_category_batch_written(self, fast_config, stub_api, tmp_path):
        stub_api.add_pages(
            CONTRACT_CODES, [make_records(100), make_records(37, start=101)], start_date=FY2020
        )
        stub_api.add_pages(CONTRACT_CODES, [make_records(5, start=201)], start_date=FY2021)
        orchestrator = _orchestrator(fast_config, stub_api)

        summary = await orchestrator.run()

        batch = tmp_path / "awards" / "Contracts" / "uc_contracts_2024-01-02.json"
        assert summary.files == [batch]
        saved = json.loads(batch.read_text(encoding="utf-8"))
        assert len(saved) == 142
        assert saved[0] == make_record(1)
        assert summary.records_collected == 142
        assert summary.records_persisted == 142
        assert summary.partitions_completed == 2
        assert orchestrator.rate_limiter.closed is True

    @pytest.mark.asyncio
    async def test_no_batch_for_empty_category(self, fast_config, stub_api, tmp_path):
        summary = await _orchestrator(fast_config, stub_api).run()

        assert summary.files == []
        assert summary.records_persisted == 0
        assert not (tmp_path / "awards").exists()

    @pytest.mark.asyncio
    async def test_single_pass_run(self, tmp_path, stub_api, contracts_only):
        config = make_config(tmp_path, categories=contracts_only, harvest={"mode": "single_pass"})
        stub_api.add_pages(CONTRACT_CODES, [make_records(3)], start_date="2007-10-01")

        summary = await _orchestrator(config, stub_api).run()

        assert summary.partitions_total == 1
        assert summary.records_persisted == 3
        assert stub_api.search_requests[0]["filters"]["time_period"] == [
            {"start_date": "2007-10-01", "end_date": "2025-09-30"}
        ]

    @pytest.mark.asyncio
    async def test_write_failure_is_counted(self, tmp_path, stub_api, contracts_only):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        config = make_config(tmp_path, categories=contracts_only, output={"root": str(blocker)})
        stub_api.add_pages(CONTRACT_CODES, [make_records(2)], start_date=FY2020)

        summary = await _orchestrator(config, stub_api).run()

        assert summary.records_collected == 2
        assert summary.records_persisted == 0
        assert summary.persist_failures == 1


class TestEnrichedMode:
    @pytest.mark.asyncio
    async def test_records_written_with_details(self, tmp_path, stub_api, contracts_only):
        config = make_config(tmp_path, categories=contracts_only, harvest={"enrich": True})
        stub_api.add_pages(CONTRACT_CODES, [make_records(3)], start_date=FY2020)

        summary = await _orchestrator(config, stub_api).run()

        root = tmp_path / "awards"
        assert summary.records_persisted == 3
        assert summary.records_enriched == 3
        assert sorted(stub_api.detail_requests) == [
            "ASST_NON_00001",
            "ASST_NON_00002",
            "ASST_NON_00003",
        ]
        saved = json.loads(_award_path(root, "ASST_NON_00002").read_text(encoding="utf-8"))
        assert saved["basic_data"] == make_record(2)
        assert saved["detailed_data"]["generated_unique_award_id"] == "ASST_NON_00002"

    @pytest.mark.asyncio
    async def test_enrichment_failure_still_persists_every_record(
        self, tmp_path, stub_api, contracts_only
    ):
        config = make_config(tmp_path, categories=contracts_only, harvest={"enrich": True})
        stub_api.add_pages(CONTRACT_CODES, [make_records(4)], start_date=FY2020)
        stub_api.add_pages(CONTRACT_CODES, [make_records(2, start=5)], start_date=FY2021)
        stub_api.detail_status = 500

        summary = await _orchestrator(config, stub_api).run()

        assert summary.records_collected == 6
        assert summary.records_persisted == 6
        assert summary.records_enriched == 0
        for path in summary.files:
            assert list(json.loads(path.read_text(encoding="utf-8"))) == ["basic_data"]

    @pytest.mark.asyncio
    async def test_detail_fills_missing_year_and_agency(self, tmp_path, stub_api, contracts_only):
        config = make_config(tmp_path, categories=contracts_only, harvest={"enrich": True})
        raw = make_record(1, **{"Start Date": "", "Awarding Agency": ""})
        stub_api.add_pages(CONTRACT_CODES, [[raw]], start_date=FY2020)

        await _orchestrator(config, stub_api).run()

        expected = _award_path(
            tmp_path / "awards", "ASST_NON_00001", year="2019", agency="Department_of_Energy"
        )
        assert expected.exists()

    @pytest.mark.asyncio
    async def test_record_without_id_is_skipped(self, tmp_path, stub_api, contracts_only):
        config = make_config(tmp_path, categories=contracts_only, harvest={"enrich": True})
        rows = [make_record(1), make_record(2, generated_internal_id="")]
        stub_api.add_pages(CONTRACT_CODES, [rows], start_date=FY2020)

        summary = await _orchestrator(config, stub_api).run()

        assert summary.records_collected == 2
        assert summary.records_skipped == 1
        assert summary.records_persisted == 1
        assert stub_api.detail_requests == ["ASST_NON_00001"]

    @pytest.mark.asyncio
    async def test_award_in_two_windows_is_fetched_once(self, tmp_path, stub_api, contracts_only):
        config = make_config(tmp_path, categories=contracts_only, harvest={"enrich": True})
        stub_api.add_pages(CONTRACT_CODES, [make_records(1)], start_date=FY2020)
        stub_api.add_pages(CONTRACT_CODES, [make_records(1)], start_date=FY2021)

        summary = await _orchestrator(config, stub_api).run()

        assert summary.records_collected == 2
        assert summary.records_persisted == 1
        assert stub_api.detail_requests == ["ASST_NON_00001"]

    @pytest.mark.asyncio
    async def test_write_failure_skips_only_that_record(self, tmp_path, stub_api, contracts_only):
        config = make_config(tmp_path, categories=contracts_only, harvest={"enrich": True})
        rows = [
            make_record(1),
            make_record(2, **{"Recipient Name": "BLOCKED RECIPIENT"}),
            make_record(3),
        ]
        stub_api.add_pages(CONTRACT_CODES, [rows], start_date=FY2020)
        root = tmp_path / "awards"
        (root / "Contracts").mkdir(parents=True)
        (root / "Contracts" / "BLOCKED_RECIPIENT").write_text("in the way", encoding="utf-8")

        summary = await _orchestrator(config, stub_api).run()

        assert summary.persist_failures == 1
        assert summary.records_persisted == 2
        assert summary.records_enriched == 2
        assert _award_path(root, "ASST_NON_00001").exists()
        assert _award_path(root, "ASST_NON_00003").exists()
        assert sorted(p.name for p in summary.files) == [
            "ASST_NON_00001.json",
            "ASST_NON_00003.json",
        ]


class TestFailures:
    @pytest.mark.asyncio
    async def test_partition_failure_does_not_abort_run(self, fast_config, stub_api):
        stub_api.add_pages(CONTRACT_CODES, [make_records(3)], start_date=FY2020)
        stub_api.fail_search(CONTRACT_CODES, status=500, start_date=FY2021)

        summary = await _orchestrator(fast_config, stub_api).run()

        assert summary.partitions_completed == 1
        assert summary.partitions_failed == 1
        assert summary.failed_partitions == ["contracts/2021"]
        assert summary.records_persisted == 3
        assert summary.all_failed is False

    @pytest.mark.asyncio
    async def test_every_partition_failing(self, fast_config, stub_api):
        stub_api.fail_search(CONTRACT_CODES, status=503)

        summary = await _orchestrator(fast_config, stub_api).run()

        assert summary.all_failed is True
        assert summary.records_collected == 0


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_run_persists_nothing(self, fast_config, stub_api, tmp_path):
        stub_api.add_pages(CONTRACT_CODES, [make_records(3)], start_date=FY2020)
        orchestrator = _orchestrator(fast_config, stub_api)
        orchestrator.cancel()

        summary = await orchestrator.run()

        assert summary.cancelled is True
        assert summary.records_persisted == 0
        assert not (tmp_path / "awards").exists()
        assert orchestrator.rate_limiter.closed is True

    @pytest.mark.asyncio
    async def test_deadline_cancels_run(self, tmp_path, stub_api, contracts_only):
        config = make_config(
            tmp_path,
            categories=contracts_only,
            rate_limit={"interval_seconds": 0.5},
            harvest={"deadline_seconds": 0.2, "start_year": 2015, "end_year": 2021},
        )
        stub_api.always_has_next(CONTRACT_CODES)

        started = time.monotonic()
        summary = await _orchestrator(config, stub_api).run()

        assert time.monotonic() - started < 3
        assert summary.cancelled is True
        assert summary.partitions_cancelled >= 1
        assert summary.files == []
        # only the first grant is immediate; the rest were cut off while waiting
        assert len(stub_api.search_requests) <= 2

    @pytest.mark.asyncio
    async def test_cancel_during_enrichment_stops_pending_details(
        self, tmp_path, stub_api, contracts_only
    ):
        config = make_config(
            tmp_path,
            categories=contracts_only,
            rate_limit={"interval_seconds": 0.2},
            harvest={"enrich": True, "concurrency": 10},
        )
        stub_api.add_pages(CONTRACT_CODES, [make_records(30)], start_date=FY2020)
        orchestrator = _orchestrator(config, stub_api)
        stub_api.on_detail = lambda _award_id: orchestrator.cancel()

        started = time.monotonic()
        summary = await orchestrator.run()

        assert time.monotonic() - started < 2
        assert summary.cancelled is True
        assert len(stub_api.detail_requests) == 1
        assert summary.records_persisted == 0
        assert summary.files == []
        assert not (tmp_path / "awards" / "Contracts").exists()
        assert orchestrator.rate_limiter.closed is True
