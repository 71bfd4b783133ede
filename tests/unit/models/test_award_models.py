"""Tests for award record models and their polymorphic fields."""

import pytest
from pydantic import ValidationError

from award_harvester.models.awards import (
    AwardRecord,
    DetailRecord,
    EnrichedRecord,
    FlatLocation,
    ScalarCode,
    ScalarLocation,
    StructuredCode,
    StructuredLocation,
    parse_location_value,
)
from tests.factories import make_record


pytestmark = pytest.mark.fast


class TestLocationUnion:
    """Location fields decode into exactly one tagged variant."""

    def test_structured(self):
        record = AwardRecord.model_validate(
            make_record(1, **{"Recipient Location": {"city_name": "OAKLAND", "state_code": "CA"}})
        )

        location = record.recipient_location
        assert isinstance(location, StructuredLocation)
        assert location.kind == "structured"
        assert location.location.city_name == "OAKLAND"

    def test_flat(self):
        value = parse_location_value({"city": "DAVIS", "region": None})

        assert isinstance(value, FlatLocation)
        assert value.fields == {"city": "DAVIS", "region": None}

    def test_scalar(self):
        record = AwardRecord.model_validate(
            make_record(1, **{"Primary Place of Performance": "Berkeley, CA"})
        )

        assert isinstance(record.primary_place_of_performance, ScalarLocation)
        assert record.primary_place_of_performance.value == "Berkeley, CA"

    @pytest.mark.parametrize("raw", [42, ["CA"], {"city_name": {"nested": "x"}, "odd": 1}])
    def test_unexpected_shape_rejected(self, raw):
        with pytest.raises(ValidationError):
            AwardRecord.model_validate(make_record(1, **{"Recipient Location": raw}))

    def test_loans_flat_fields_kept_as_top_level_keys(self):
        raw = make_record(
            1,
            recipient_location_city_name="LOS ANGELES",
            recipient_location_state_code="CA",
            pop_city_name="IRVINE",
        )
        record = AwardRecord.model_validate(raw)

        assert record.recipient_location is None
        assert record.model_extra["pop_city_name"] == "IRVINE"
        assert record.to_payload() == raw

    def test_flat_location_round_trips(self):
        location = {"city": "DAVIS", "region": None}
        record = AwardRecord.model_validate(make_record(1, **{"Recipient Location": location}))

        assert isinstance(record.recipient_location, FlatLocation)
        assert record.to_payload()["Recipient Location"] == location


class TestCodeUnion:
    def test_structured_naics(self):
        record = AwardRecord.model_validate(
            make_record(1, NAICS={"code": "541712", "description": "R&D"})
        )
        assert isinstance(record.naics, StructuredCode)
        assert record.naics.code.code == "541712"

    def test_scalar_psc(self):
        record = AwardRecord.model_validate(make_record(1, PSC="AJ11"))
        assert isinstance(record.psc, ScalarCode)

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            AwardRecord.model_validate(make_record(1, NAICS={"naics": "1", "label": "x"}))


class TestPayloadShape:
    """Records are written back in the shape the upstream sent."""

    def test_round_trips_upstream_keys(self):
        raw = make_record(
            7,
            **{
                "Recipient Location": {"city_name": "DAVIS"},
                "NAICS": "541712",
                "Loan Value": "12.50",
                "some_new_upstream_key": [1, 2],
            },
        )

        payload = AwardRecord.model_validate(raw).to_payload()

        assert payload == raw

    def test_keys_not_sent_are_not_invented(self):
        payload = AwardRecord.model_validate({"Award ID": "X"}).to_payload()
        assert payload == {"Award ID": "X"}

    def test_path_date_falls_back_to_issued_date(self):
        record = AwardRecord.model_validate({"Issued Date": "2015-03-02"})
        assert record.path_date() == "2015-03-02"


class TestDetailAndEnriched:
    def test_awarding_agency_name(self):
        detail = DetailRecord.model_validate(
            {"awarding_agency": {"toptier_agency": {"name": "Department of Energy"}}}
        )
        assert detail.awarding_agency_name() == "Department of Energy"

    def test_awarding_agency_name_missing(self):
        assert DetailRecord.model_validate({}).awarding_agency_name() is None

    def test_enriched_payload_with_detail(self):
        basic = AwardRecord.model_validate(make_record(1))
        detail = DetailRecord.model_validate({"id": 9, "piid": "P1", "extra": {"a": 1}})

        payload = EnrichedRecord(basic=basic, detail=detail).to_payload()

        assert payload["basic_data"]["Award ID"] == "AWD-00001"
        assert payload["detailed_data"] == {"id": 9, "piid": "P1", "extra": {"a": 1}}

    def test_enriched_payload_without_detail_omits_key(self):
        basic = AwardRecord.model_validate(make_record(1))
        enriched = EnrichedRecord(basic=basic)

        assert enriched.is_enriched is False
        assert list(enriched.to_payload()) == ["basic_data"]
