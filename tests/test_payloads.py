"""Tests for typed part payloads and lenient loading of stored documents."""

import json
from decimal import Decimal

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

from form3115_preparer.domain.payloads import (
    PartIIPayload,
    PartIPayload,
    PartIVPayload,
    ScheduleAPayload,
    ScheduleBPayload,
    ScheduleCPayload,
    load_stored_part,
    parse_part,
)
from form3115_preparer.domain.value_objects import FormPart


class TestParsePart:
    def test_camel_case_keys_populate_fields(self, part_i_data) -> None:
        payload = parse_part(FormPart.PART_I, part_i_data)

        assert isinstance(payload, PartIPayload)
        assert payload.filer_ein == "12-3456789"
        assert payload.filer_zip == "62701"

    def test_blank_strings_become_none(self) -> None:
        payload = parse_part(FormPart.PART_II, {"dcn": "  ", "presentMethod": ""})

        assert isinstance(payload, PartIIPayload)
        assert payload.dcn is None
        assert payload.present_method is None

    def test_state_is_upper_cased(self) -> None:
        payload = parse_part(FormPart.PART_I, {"filerState": "il"})
        assert payload.filer_state == "IL"

    def test_spread_period_accepts_text(self) -> None:
        payload = parse_part(FormPart.PART_IV, {"spreadPeriod": "4"})

        assert isinstance(payload, PartIVPayload)
        assert payload.spread_period == 4

    def test_money_is_decimal(self) -> None:
        payload = parse_part(
            FormPart.PART_IV,
            {"presentMethodIncome": "100000", "proposedMethodIncome": 150000.25},
        )
        assert payload.present_method_income == Decimal("100000")
        assert payload.proposed_method_income == Decimal("150000.25")

    def test_explicit_aliases(self) -> None:
        payload = parse_part(
            FormPart.SCHEDULE_B,
            {"section263A": "yes", "section263AMethod": "simplified-production"},
        )

        assert isinstance(payload, ScheduleBPayload)
        assert payload.section_263a == "yes"
        assert payload.section_263a_method == "simplified-production"

    def test_out_of_range_literal_raises(self) -> None:
        with pytest.raises(ValidationError):
            parse_part(FormPart.PART_III, {"priorMethodChange": "maybe"})

    def test_unknown_keys_are_ignored(self) -> None:
        payload = parse_part(FormPart.PART_II, {"dcn": "7", "favoriteColor": "blue"})
        assert payload.to_document() == {"dcn": "7"}

    def test_part_tag_in_data_cannot_switch_model(self) -> None:
        payload = parse_part(FormPart.PART_II, {"part": "part-i", "dcn": "7"})
        assert isinstance(payload, PartIIPayload)

    def test_blank_choice_answer_becomes_none(self) -> None:
        payload = parse_part(
            FormPart.SCHEDULE_A,
            {"currentOverallMethod": "", "proposedOverallMethod": "accrual"},
        )

        assert isinstance(payload, ScheduleAPayload)
        assert payload.current_overall_method is None
        assert payload.proposed_overall_method == "accrual"

    @pytest.mark.parametrize("answer", ["Yes", "YES", " yes "])
    def test_choice_answers_are_normalized(self, answer: str) -> None:
        payload = parse_part(FormPart.PART_III, {"priorMethodChange": answer})
        assert payload.to_document() == {"priorMethodChange": "yes"}

    def test_free_text_keeps_its_case(self) -> None:
        payload = parse_part(FormPart.PART_II, {"presentMethod": "  Cash Method "})
        assert payload.to_document() == {"presentMethod": "Cash Method"}

    def test_ads_can_be_elected(self) -> None:
        payload = parse_part(FormPart.SCHEDULE_C, {"adsRequired": "elected"})

        assert isinstance(payload, ScheduleCPayload)
        assert payload.ads_required == "elected"


class TestToDocument:
    def test_dumps_stored_names_without_unset_answers(self) -> None:
        payload = parse_part(
            FormPart.PART_IV,
            {"requires481a": "yes", "spreadPeriod": 4, "presentMethodIncome": "10.50"},
        )

        assert payload.to_document() == {
            "requires481a": "yes",
            "spreadPeriod": 4,
            "presentMethodIncome": "10.50",
        }

    def test_to_json_is_sorted(self) -> None:
        payload = parse_part(FormPart.PART_II, {"proposedMethod": "b", "dcn": "7"})
        assert payload.to_json() == '{"dcn": "7", "proposedMethod": "b"}'


class TestLoadStoredPart:
    def test_missing_text_gives_empty_payload(self) -> None:
        payload = load_stored_part(FormPart.PART_I, None)
        assert payload.to_document() == {}

    def test_valid_document(self) -> None:
        text = json.dumps({"filerName": "Acme", "filerState": "tx"})
        payload = load_stored_part(FormPart.PART_I, text)
        assert payload.to_document() == {"filerName": "Acme", "filerState": "TX"}

    def test_unparseable_json_is_logged_and_empty(self) -> None:
        with capture_logs() as logs:
            payload = load_stored_part(FormPart.PART_II, "{not json")

        assert payload.to_document() == {}
        assert logs[0]["event"] == "stored_payload_unparseable"
        assert logs[0]["part"] == "part-ii"

    def test_non_object_document_is_empty(self) -> None:
        with capture_logs() as logs:
            payload = load_stored_part(FormPart.PART_II, "[1, 2]")

        assert payload.to_document() == {}
        assert logs[0]["event"] == "stored_payload_not_an_object"

    def test_invalid_fields_are_dropped_and_rest_kept(self) -> None:
        text = json.dumps(
            {"priorMethodChange": "sometimes", "parentName": "Holdco", "parentEin": "98-7654321"}
        )
        with capture_logs() as logs:
            payload = load_stored_part(FormPart.PART_III, text)

        assert payload.to_document() == {
            "parentName": "Holdco",
            "parentEin": "98-7654321",
        }
        assert logs[0]["event"] == "stored_payload_fields_dropped"
        assert logs[0]["fields"] == ["priorMethodChange"]
