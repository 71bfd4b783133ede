"""Tests for best-effort detail enrichment."""

from unittest.mock import AsyncMock

import pytest
from loguru import logger

from award_harvester.exceptions import APIError, ResponseDecodeError
from award_harvester.harvest.enricher import DetailEnricher
from award_harvester.models.awards import AwardRecord, DetailRecord
from tests.factories import make_record


pytestmark = pytest.mark.fast


@pytest.fixture
def detail_client():
    client = AsyncMock()
    client.get_award_detail = AsyncMock(
        return_value=DetailRecord.model_validate({"id": 1, "date_signed": "2019-01-01"})
    )
    return client


class TestDetailEnricher:
    @pytest.mark.asyncio
    async def test_success_attaches_detail(self, detail_client):
        enricher = DetailEnricher(detail_client)
        record = AwardRecord.model_validate(make_record(1))

        enriched = await enricher.enrich(record)

        assert enriched.basic is record
        assert enriched.is_enriched is True
        assert enriched.detail.date_signed == "2019-01-01"
        detail_client.get_award_detail.assert_awaited_once_with("ASST_NON_00001")
        assert (enricher.succeeded, enricher.failed) == (1, 0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            APIError("HTTP 500", api_name="usaspending", http_status=500),
            APIError("connect failed", api_name="usaspending", retryable=True),
            ResponseDecodeError("bad json", api_name="usaspending"),
        ],
    )
    async def test_failure_degrades_to_basic_only(self, detail_client, error):
        detail_client.get_award_detail.side_effect = error
        enricher = DetailEnricher(detail_client)

        enriched = await enricher.enrich(AwardRecord.model_validate(make_record(1)))

        assert enriched.detail is None
        assert enriched.to_payload().keys() == {"basic_data"}
        assert (enricher.succeeded, enricher.failed) == (0, 1)

    @pytest.mark.asyncio
    async def test_failure_logged_as_warning(self, detail_client):
        messages = []
        sink_id = logger.add(lambda m: messages.append(m.record), level="DEBUG")
        try:
            detail_client.get_award_detail.side_effect = APIError("HTTP 404", http_status=404)
            await DetailEnricher(detail_client).fetch("ASST_X")
        finally:
            logger.remove(sink_id)

        warnings = [m for m in messages if m["level"].name == "WARNING"]
        assert len(warnings) == 1
        assert "ASST_X" in warnings[0]["message"]
        assert warnings[0]["extra"]["error"]["error_type"] == "EnrichmentError"

    @pytest.mark.asyncio
    async def test_record_without_id_is_rejected(self, detail_client):
        record = AwardRecord.model_validate(make_record(1, generated_internal_id=None))

        with pytest.raises(ValueError):
            await DetailEnricher(detail_client).enrich(record)

        detail_client.get_award_detail.assert_not_awaited()
