"""
Test the counter update engine.

Verifies:
- Empty / all-null delta batches are a no-op signal, not an error
- Keys are only ever referenced through placeholders
- Increment-in-place semantics against existing counters
- Bootstrap of a missing counter map, including concurrent initializers
- Only the missing-map error is retried, and only once
"""

from __future__ import annotations

import pytest

from tag_index.errors import (
    ConditionalCheckFailedError,
    MissingFieldPathError,
    StorageError,
)
from tag_index.updater import (
    CounterUpdater,
    build_increment_request,
    build_initialize_request,
)

from fakes import FIXED_NOW, INVALID_PATH_MESSAGE, client_error


@pytest.fixture
def updater(gateway, metrics):
    return CounterUpdater(gateway, metrics, clock=lambda: FIXED_NOW)


class TestBuildIncrementRequest:
    """Request construction, no store involved."""

    def test_empty_deltas_return_none(self):
        assert build_increment_request("tags", {}) is None

    def test_all_null_deltas_return_none(self):
        assert build_increment_request("tags", {"k": None}) is None

    def test_null_entries_are_dropped(self):
        request = build_increment_request("people", {"bob": 2, "eve": None}, now=FIXED_NOW)

        assert request.increments == {"bob": 2}
        assert "eve" not in request.attribute_names.values()

    def test_unknown_slot_rejected(self):
        with pytest.raises(ValueError, match="Unknown index slot"):
            build_increment_request("places", {"paris": 1})

    def test_keys_are_substituted_not_inlined(self):
        """Reserved words, spaces and dots must never appear in the expression."""
        deltas = {"size": 1, "new york": 2, "a.b": -1, "#hash": 3}
        request = build_increment_request("tags", deltas, now=FIXED_NOW)

        for key in deltas:
            assert key not in request.update_expression
        assert sorted(v for k, v in request.attribute_names.items() if k.startswith("#k")) == sorted(deltas)

    def test_expression_shape(self):
        request = build_increment_request("tags", {"red": 3}, now=FIXED_NOW)
        kwargs = request.to_kwargs()

        assert kwargs["Key"] == {"id": "tags"}
        assert kwargs["UpdateExpression"] == (
            "SET #indexKeys.#k0 = if_not_exists(#indexKeys.#k0, :zero) + :d0, "
            "updatedAt = :updatedAt"
        )
        assert kwargs["ExpressionAttributeNames"] == {"#indexKeys": "indexKeys", "#k0": "red"}
        assert kwargs["ExpressionAttributeValues"] == {":zero": 0, ":updatedAt": FIXED_NOW, ":d0": 3}
        assert kwargs["ReturnValues"] == "ALL_NEW"
        assert "ConditionExpression" not in kwargs

    def test_initialize_request_is_guarded(self):
        kwargs = build_initialize_request({"id": "people"}).to_kwargs()

        assert kwargs["UpdateExpression"] == "SET #indexKeys = :emptyMap"
        assert kwargs["ConditionExpression"] == "attribute_not_exists(#indexKeys)"
        assert kwargs["ExpressionAttributeValues"] == {":emptyMap": {}}


class TestApplyIncrements:
    """Increment semantics through the gateway and fake table."""

    def test_increment_against_existing_counters(self, updater, table):
        table.items["tags"] = {"id": "tags", "indexKeys": {"a": 5}}

        record = updater.update_index_record("tags", {"a": 3, "b": -1})

        assert record.index_keys == {"a": 8, "b": -1}
        assert record.updated_at == FIXED_NOW
        assert table.items["tags"]["indexKeys"] == {"a": 8, "b": -1}

    def test_skipped_when_nothing_to_apply(self, updater, table, metrics):
        assert updater.update_index_record("tags", {"a": None}) is None
        assert table.calls == []
        assert metrics.get("updates_skipped_total") == 1

    def test_bootstrap_when_record_missing(self, updater, table, metrics):
        """First write to a slot: fail, initialize, retry once."""
        record = updater.update_index_record("people", {"bob": 1, "cynthia": 2})

        assert record.index_keys == {"bob": 1, "cynthia": 2}
        assert len(table.calls) == 3
        assert "ConditionExpression" in table.calls[1]
        assert table.calls[2] == table.calls[0]
        assert table.condition_successes == 1
        assert metrics.get("bootstrap_initialized_total") == 1
        assert metrics.get("bootstrap_retries_total") == 1

    def test_bootstrap_when_record_has_no_counter_map(self, updater, table):
        table.items["tags"] = {"id": "tags", "updatedAt": 1}

        record = updater.update_index_record("tags", {"red": 4})

        assert record.index_keys == {"red": 4}
        assert table.condition_successes == 1

    def test_concurrent_initializer_loses_race_and_retries(self, gateway, table, metrics):
        """Two first-writers: exactly one initialize succeeds, the other just retries."""
        first = CounterUpdater(gateway, metrics, clock=lambda: FIXED_NOW)
        second = CounterUpdater(gateway, metrics, clock=lambda: FIXED_NOW)
        interleaved = []

        def run_second_writer(kwargs):
            # When the first writer is about to initialize, the second writer
            # completes its whole first write.
            if "ConditionExpression" in kwargs and not interleaved:
                interleaved.append(True)
                second.update_index_record("tags", {"blue": 2})

        table.before_update = run_second_writer

        record = first.update_index_record("tags", {"red": 1})

        assert record.index_keys == {"red": 1, "blue": 2}
        assert table.condition_successes == 1
        assert table.condition_failures == 1
        assert metrics.get("bootstrap_race_lost_total") == 1
        assert metrics.get("updates_applied_total") == 2

    def test_other_errors_are_not_retried(self, updater, table):
        table.errors.append(client_error("ProvisionedThroughputExceededException", "Rate exceeded"))

        with pytest.raises(StorageError) as excinfo:
            updater.update_index_record("tags", {"red": 1})

        assert not isinstance(excinfo.value, MissingFieldPathError)
        assert excinfo.value.code == "ProvisionedThroughputExceededException"
        assert len(table.calls) == 1

    def test_unrelated_validation_error_is_not_retried(self, updater, table):
        table.errors.append(client_error("ValidationException", "Invalid UpdateExpression: Syntax error"))

        with pytest.raises(StorageError):
            updater.update_index_record("tags", {"red": 1})

        assert len(table.calls) == 1

    def test_retry_happens_only_once(self, updater, table):
        def increments_always_miss(kwargs):
            if "ConditionExpression" not in kwargs:
                raise client_error("ValidationException", INVALID_PATH_MESSAGE)

        table.before_update = increments_always_miss

        with pytest.raises(MissingFieldPathError):
            updater.update_index_record("tags", {"red": 1})

        # original, initialize, single retry
        assert len(table.calls) == 3

    def test_initialize_failure_other_than_condition_propagates(self, updater, table):
        table.errors.extend([
            client_error("ValidationException", INVALID_PATH_MESSAGE),
            client_error("InternalServerError", "Internal server error"),
        ])

        with pytest.raises(StorageError) as excinfo:
            updater.update_index_record("tags", {"red": 1})

        assert not isinstance(excinfo.value, ConditionalCheckFailedError)
        assert len(table.calls) == 2
