"""Tests for the diff engine, history entries and the concurrency guard."""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from buyer_leads.audit import (
    CREATED_ACTION,
    build_history_entry,
    creation_diff,
    diff_records,
    should_record_history,
)
from buyer_leads.concurrency import check_not_modified, parse_timestamp
from buyer_leads.exceptions import ConflictError, ValidationError
from buyer_leads.models import BuyerRecord, City, PropertyType, Status, decode_tags, encode_tags

T1 = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(minutes=5)


class TestDiffRecords:
    """Tests for diff_records."""

    def test_record_against_itself(self, sample_record: BuyerRecord) -> None:
        change_set = diff_records(sample_record, sample_record.editable_values())

        assert change_set == {}
        assert should_record_history(change_set) is False

    def test_status_change(self, sample_record: BuyerRecord) -> None:
        change_set = diff_records(sample_record, {"status": Status.QUALIFIED})

        assert change_set == {"status": {"old": "New", "new": "Qualified"}}
        assert should_record_history(change_set) is True

    def test_enum_equals_plain_value(self, sample_record: BuyerRecord) -> None:
        assert diff_records(sample_record, {"city": "Mohali", "status": "New"}) == {}

    def test_absent_fields_never_included(self, sample_record: BuyerRecord) -> None:
        change_set = diff_records(sample_record, {"notes": "Call after 6pm"})

        assert list(change_set) == ["notes"]
        assert change_set["notes"] == {"old": None, "new": "Call after 6pm"}

    def test_multiple_fields(self, sample_record: BuyerRecord) -> None:
        change_set = diff_records(
            sample_record,
            {"property_type": PropertyType.PLOT, "bhk": None, "budget_max": 7_500_000},
        )

        assert change_set == {
            "property_type": {"old": "Apartment", "new": "Plot"},
            "bhk": {"old": "2", "new": None},
        }

    def test_mapping_previous(self) -> None:
        previous = {"city": "Mohali", "budget_min": None}

        assert diff_records(previous, {"city": City.ZIRAKPUR, "budget_min": 0}) == {
            "city": {"old": "Mohali", "new": "Zirakpur"},
            "budget_min": {"old": None, "new": 0},
        }

    def test_serialized_tags_compared_decoded(self) -> None:
        previous = {"tags": '["a", "b"]'}

        assert diff_records(previous, {"tags": ["a", "b"]}) == {}

    def test_tag_order_matters(self, sample_record: BuyerRecord) -> None:
        record = replace(sample_record, tags=["a", "b"])

        assert diff_records(record, {"tags": ["b", "a"]}) == {
            "tags": {"old": ["a", "b"], "new": ["b", "a"]}
        }


class TestTags:
    """Tests for tag encoding."""

    def test_round_trip_preserves_order(self) -> None:
        assert decode_tags(encode_tags(["a", "b"])) == ["a", "b"]
        assert decode_tags(encode_tags(["b", "a"])) == ["b", "a"]

    def test_decode_empty_forms(self) -> None:
        assert decode_tags(None) == []
        assert decode_tags("") == []
        assert decode_tags("[]") == []

    def test_decode_malformed(self) -> None:
        assert decode_tags("[not json") == []
        assert decode_tags('{"a": 1}') == []

    def test_decode_sequence(self) -> None:
        assert decode_tags(("x", "y")) == ["x", "y"]


class TestHistoryEntries:
    """Tests for history entry construction."""

    def test_creation_diff_snapshot(self, sample_record: BuyerRecord) -> None:
        diff = creation_diff(sample_record)

        assert diff["action"] == CREATED_ACTION
        assert diff["data"]["city"] == "Mohali"
        assert diff["data"]["bhk"] == "2"
        assert diff["data"]["tags"] == ["hot", "investor"]
        assert "owner_id" not in diff["data"]

    def test_build_entry(self, sample_record: BuyerRecord) -> None:
        entry = build_history_entry(sample_record.id, "user-1", {"status": {"old": "New", "new": "Visited"}}, T1)

        assert entry.buyer_id == sample_record.id
        assert entry.changed_by == "user-1"
        assert entry.changed_at == T1
        assert entry.action == "updated"
        assert entry.changed_fields == ["status"]

    def test_created_entry_action(self, sample_record: BuyerRecord) -> None:
        entry = build_history_entry(sample_record.id, "user-1", creation_diff(sample_record), T1)

        assert entry.action == "created"
        assert entry.changed_fields == []

    def test_entry_ids_unique(self) -> None:
        ids = {build_history_entry("b", "u", {}, T1).entry_id for _ in range(50)}
        assert len(ids) == 50


class TestConcurrencyGuard:
    """Tests for check_not_modified."""

    def test_no_observed_timestamp(self) -> None:
        check_not_modified("buyer-1", T2, None)

    def test_stale_read_conflicts(self) -> None:
        with pytest.raises(ConflictError) as excinfo:
            check_not_modified("buyer-1", T2, T1)

        assert excinfo.value.buyer_id == "buyer-1"
        assert excinfo.value.persisted_at == T2
        assert excinfo.value.observed_at == T1

    def test_equal_timestamp_proceeds(self) -> None:
        check_not_modified("buyer-1", T2, T2)

    def test_newer_observed_proceeds(self) -> None:
        check_not_modified("buyer-1", T1, T2)

    def test_iso_string_with_z(self) -> None:
        with pytest.raises(ConflictError):
            check_not_modified("buyer-1", T2, "2024-03-01T10:00:00Z")

        check_not_modified("buyer-1", T2, "2024-03-01T10:05:00+00:00")

    def test_epoch_milliseconds(self) -> None:
        millis = int(T1.timestamp() * 1000)

        with pytest.raises(ConflictError):
            check_not_modified("buyer-1", T2, millis)

    def test_sub_millisecond_persisted_equal_to_echo(self) -> None:
        persisted = datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

        check_not_modified("buyer-1", persisted, int(persisted.timestamp() * 1000))
        check_not_modified("buyer-1", persisted, "2024-03-01T10:00:00.123Z")
        check_not_modified("buyer-1", persisted, persisted)

    def test_one_millisecond_behind_conflicts(self) -> None:
        persisted = datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)

        with pytest.raises(ConflictError):
            check_not_modified("buyer-1", persisted, "2024-03-01T10:00:00.122Z")

    def test_malformed_fails_open(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="buyer_leads.concurrency"):
            check_not_modified("buyer-1", T2, "yesterday-ish")

        assert "Skipping concurrency check" in caplog.text

    def test_naive_observed_fails_open(self) -> None:
        check_not_modified("buyer-1", T2, datetime(2020, 1, 1))

    def test_missing_persisted_fails_open(self) -> None:
        check_not_modified("buyer-1", None, T1)

    def test_malformed_fails_closed(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            check_not_modified("buyer-1", T2, "yesterday-ish", fail_open=False)

        assert excinfo.value.fields == ["updated_at"]

    def test_parse_timestamp_rejects_other_types(self) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(["2024"])
        with pytest.raises(ValueError):
            parse_timestamp(True)
