"""
Test stored record <-> IndexSet translation.
"""

from __future__ import annotations

from decimal import Decimal

from tag_index.codec import batch_keys, decode, decode_record, encode
from tag_index.models import IndexSet


def test_batch_keys_cover_both_slots():
    assert batch_keys() == [{"id": "tags"}, {"id": "people"}]


def test_decode_substitutes_empty_map_for_missing_record():
    """No people record, tags record present."""
    indexes = decode([{"id": "tags", "indexKeys": {"red": 2}}])

    assert indexes.model_dump() == {"people": {}, "tags": {"red": 2}}


def test_decode_with_no_records_is_empty():
    assert decode([]) == IndexSet()


def test_decode_record_without_counter_map():
    """A bootstrapped-but-unwritten record decodes to an empty slot."""
    indexes = decode([
        {"id": "people", "updatedAt": Decimal(1700000000000)},
        {"id": "tags", "indexKeys": {}},
    ])

    assert indexes.people == {}
    assert indexes.tags == {}


def test_decode_normalises_decimals_to_int():
    indexes = decode([
        {"id": "people", "indexKeys": {"bob": Decimal("3"), "cynthia": Decimal("-1")}},
    ])

    assert indexes.people == {"bob": 3, "cynthia": -1}
    assert all(type(v) is int for v in indexes.people.values())


def test_decode_ignores_unknown_ids():
    indexes = decode([
        {"id": "places", "indexKeys": {"paris": 1}},
        {"id": "tags", "indexKeys": {"red": 1}},
    ])

    assert indexes.model_dump() == {"tags": {"red": 1}, "people": {}}


def test_decode_record_keeps_timestamp():
    record = decode_record({"id": "tags", "indexKeys": {"red": Decimal(1)}, "updatedAt": Decimal(42)})

    assert record.id == "tags"
    assert record.index_keys == {"red": 1}
    assert record.updated_at == 42
    assert record.to_item() == {"id": "tags", "indexKeys": {"red": 1}, "updatedAt": 42}


def test_encode_produces_one_overwrite_document_per_slot():
    docs = encode(IndexSet(tags={"red": 2}, people={"bob": 1}))

    assert docs == [
        {"id": "tags", "indexKeys": {"red": 2}},
        {"id": "people", "indexKeys": {"bob": 1}},
    ]


def test_index_sets_do_not_share_default_maps():
    a = IndexSet()
    b = IndexSet()
    a.tags["red"] = 1

    assert b.tags == {}
