"""
Translation between stored index items and the in-memory IndexSet.

Stored items come back from boto3 with numbers as decimal.Decimal; they are
normalised to int here so nothing above the codec sees Decimal.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from tag_index import INDEX_KEYS_PROP, SLOTS, UPDATED_AT_PROP
from tag_index.models import CounterMap, IndexSet, StoredIndexRecord


def batch_keys() -> List[Dict[str, str]]:
    """Primary keys of both slot records, in slot order."""
    return [{"id": slot} for slot in SLOTS]


def _counters(raw: Any) -> CounterMap:
    if not raw:
        return {}
    return {str(k): int(v) for k, v in raw.items()}


def decode_record(raw: Mapping[str, Any]) -> StoredIndexRecord:
    """Validate one stored item (e.g. an ALL_NEW update response)."""
    item: Dict[str, Any] = {"id": raw["id"]}
    if raw.get(INDEX_KEYS_PROP) is not None:
        item[INDEX_KEYS_PROP] = _counters(raw[INDEX_KEYS_PROP])
    if raw.get(UPDATED_AT_PROP) is not None:
        item[UPDATED_AT_PROP] = int(raw[UPDATED_AT_PROP])
    return StoredIndexRecord.model_validate(item)


def decode_records(raw_records: Iterable[Mapping[str, Any]]) -> List[StoredIndexRecord]:
    """Decode the records of known slots, ignoring any other ids."""
    return [decode_record(r) for r in raw_records if r.get("id") in SLOTS]


def decode(raw_records: Iterable[Mapping[str, Any]]) -> IndexSet:
    """
    Build an IndexSet from batch-read results.

    A slot with no record, or a record without counters, decodes to an empty
    mapping. Absent records are a slot never written to, not an error.
    """
    indexes = IndexSet()
    for record in decode_records(raw_records):
        if record.index_keys:
            setattr(indexes, record.id, dict(record.index_keys))
    return indexes


def encode(index_set: IndexSet) -> List[Dict[str, Any]]:
    """One full-overwrite document per slot, used only by prune write-back."""
    return [
        {"id": slot, INDEX_KEYS_PROP: dict(index_set.slot(slot))}
        for slot in SLOTS
    ]
