from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictInt, ValidationError

from tag_index import PEOPLE_ID, TAGS_ID
from tag_index.errors import MalformedRequestError

Slot = Literal["tags", "people"]
CounterMap = Dict[str, int]


class IndexSet(BaseModel):
    """Snapshot of both counter indexes; the unit of read and of pruning."""
    tags: Dict[str, int] = Field(default_factory=dict)
    people: Dict[str, int] = Field(default_factory=dict)

    def slot(self, slot_id: str) -> Dict[str, int]:
        if slot_id == TAGS_ID:
            return self.tags
        if slot_id == PEOPLE_ID:
            return self.people
        raise KeyError(f"Unknown index slot: {slot_id!r}")


class IndexUpdate(BaseModel):
    """
    Requested batch of signed deltas per slot.

    A null delta is accepted at the boundary and dropped by the update engine;
    an absent or empty slot is skipped.
    """
    tags: Optional[Dict[str, Optional[StrictInt]]] = None
    people: Optional[Dict[str, Optional[StrictInt]]] = None

    def deltas(self, slot_id: str) -> Dict[str, Optional[int]]:
        if slot_id not in (TAGS_ID, PEOPLE_ID):
            raise KeyError(f"Unknown index slot: {slot_id!r}")
        return getattr(self, slot_id) or {}


class PutIndexRequest(BaseModel):
    index_update: IndexUpdate = Field(alias="indexUpdate")

    model_config = {"populate_by_name": True}


class StoredIndexRecord(BaseModel):
    """One persisted index item. `indexKeys` is absent on a freshly bootstrapped record."""
    id: Slot
    index_keys: Optional[Dict[str, int]] = Field(default=None, alias="indexKeys")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")  # epoch ms

    model_config = {"populate_by_name": True, "extra": "ignore"}

    def to_item(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass
class SlotUpdateResult:
    """Outcome of a write against one slot."""
    slot: str
    status: Literal["updated", "skipped"]
    record: Optional[StoredIndexRecord] = None

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"slot": self.slot, "status": self.status}
        if self.record is not None:
            out["record"] = self.record.to_item()
        return out


@dataclass
class IndexReadResult:
    """Everything derived during a read: requested keys, raw records, decoded and reconciled snapshots."""
    keys: List[Dict[str, str]]
    records: List[StoredIndexRecord]
    indexes: IndexSet
    cleaned: IndexSet
    changed: bool = False
    removed: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keys": self.keys,
            "records": [r.to_item() for r in self.records],
            "indexes": self.indexes.model_dump(),
            "cleanIndexes": self.cleaned.model_dump(),
            "pruned": self.removed,
        }


def parse_put_request(body: Union[str, bytes, Dict[str, Any], None]) -> PutIndexRequest:
    """
    Validate an inbound write request body.

    Raises:
        MalformedRequestError: If the body is missing, not JSON, or not an index update
    """
    if body is None or body == "" or body == b"":
        raise MalformedRequestError("Missing request body")
    if isinstance(body, (str, bytes)):
        try:
            data = json.loads(body)
        except ValueError as e:
            raise MalformedRequestError(f"Request body is not valid JSON: {e}") from e
    else:
        data = body
    try:
        return PutIndexRequest.model_validate(data)
    except ValidationError as e:
        raise MalformedRequestError(f"Invalid index update request: {e}") from e
