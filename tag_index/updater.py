"""
Counter update engine.

Applies a batch of signed deltas to one slot's counter map in a single
UpdateItem call. Current values are never read first: each key is
incremented in place with

    #indexKeys.#kN = if_not_exists(#indexKeys.#kN, :zero) + :dN

Keys are arbitrary caller strings (reserved words, spaces, dots), so every
key is referenced through an expression attribute name placeholder.

Bootstrap:
A nested SET fails while the slot item has no `indexKeys` map. On that one
error the engine creates the empty map with an `attribute_not_exists` guard
and retries the original update exactly once.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from tag_index import INDEX_KEYS_PROP, SLOTS, UPDATED_AT_PROP
from tag_index.codec import decode_record
from tag_index.errors import ConditionalCheckFailedError, MissingFieldPathError
from tag_index.metrics import Metrics
from tag_index.models import StoredIndexRecord

logger = logging.getLogger(__name__)

INDEX_KEYS_NAME = "#indexKeys"


@dataclass(frozen=True)
class UpdateRequest:
    """A single UpdateItem call, independent of any client library."""

    key: Dict[str, str]
    update_expression: str
    attribute_names: Dict[str, str]
    attribute_values: Dict[str, Any]
    condition_expression: Optional[str] = None
    return_values: str = "ALL_NEW"
    increments: Dict[str, int] = field(default_factory=dict)

    def to_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for boto3 `Table.update_item`."""
        kwargs: Dict[str, Any] = {
            "Key": dict(self.key),
            "UpdateExpression": self.update_expression,
            "ExpressionAttributeNames": dict(self.attribute_names),
            "ExpressionAttributeValues": dict(self.attribute_values),
            "ReturnValues": self.return_values,
        }
        if self.condition_expression:
            kwargs["ConditionExpression"] = self.condition_expression
        return kwargs


def now_ms() -> int:
    return int(time.time() * 1000)


def build_increment_request(
    slot_id: str,
    deltas: Mapping[str, Optional[int]],
    *,
    now: Optional[int] = None,
) -> Optional[UpdateRequest]:
    """
    Build the atomic increment for one slot.

    Args:
        slot_id: "tags" or "people"
        deltas: key -> signed delta; None entries are dropped
        now: updatedAt value in epoch ms (defaults to current time)

    Returns:
        UpdateRequest, or None when no valid delta remains (nothing to do)
    """
    if slot_id not in SLOTS:
        raise ValueError(f"Unknown index slot: {slot_id!r}")

    valid = {k: d for k, d in deltas.items() if d is not None}
    if not valid:
        return None

    names = {INDEX_KEYS_NAME: INDEX_KEYS_PROP}
    values: Dict[str, Any] = {
        ":zero": 0,
        ":updatedAt": now if now is not None else now_ms(),
    }
    assignments = []
    for i, (key, delta) in enumerate(valid.items()):
        path = f"{INDEX_KEYS_NAME}.#k{i}"
        names[f"#k{i}"] = key
        values[f":d{i}"] = delta
        assignments.append(f"{path} = if_not_exists({path}, :zero) + :d{i}")
    assignments.append(f"{UPDATED_AT_PROP} = :updatedAt")

    return UpdateRequest(
        key={"id": slot_id},
        update_expression="SET " + ", ".join(assignments),
        attribute_names=names,
        attribute_values=values,
        increments=valid,
    )


def build_initialize_request(key: Mapping[str, str]) -> UpdateRequest:
    """Create an empty counter map, only if none exists yet."""
    return UpdateRequest(
        key=dict(key),
        update_expression=f"SET {INDEX_KEYS_NAME} = :emptyMap",
        attribute_names={INDEX_KEYS_NAME: INDEX_KEYS_PROP},
        attribute_values={":emptyMap": {}},
        condition_expression=f"attribute_not_exists({INDEX_KEYS_NAME})",
        return_values="NONE",
    )


class CounterUpdater:
    """
    Applies delta batches to slot records through a storage gateway.

    The gateway must provide `update(UpdateRequest) -> dict` and raise
    MissingFieldPathError / ConditionalCheckFailedError for those two cases.
    """

    def __init__(
        self,
        gateway: Any,
        metrics: Optional[Metrics] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.gateway = gateway
        self.metrics = metrics or Metrics()
        self.clock = clock

    def build_increment_request(
        self, slot_id: str, deltas: Mapping[str, Optional[int]]
    ) -> Optional[UpdateRequest]:
        return build_increment_request(slot_id, deltas, now=self.clock())

    def _initialize(self, key: Mapping[str, str]) -> None:
        try:
            self.gateway.update(build_initialize_request(key))
            self.metrics.inc("bootstrap_initialized_total")
            logger.info(f"Initialized empty counter map for {key}")
        except ConditionalCheckFailedError:
            # Another writer created the map between our failure and now
            self.metrics.inc("bootstrap_race_lost_total")
            logger.warning(f"Counter map for {key} already initialized by a concurrent writer")

    def apply(self, request: UpdateRequest) -> StoredIndexRecord:
        """
        Submit an increment, bootstrapping the counter map if needed.

        Raises:
            StorageError: Any failure other than the single missing-map case,
                or a failure of the one retry
        """
        try:
            attributes = self.gateway.update(request)
        except MissingFieldPathError:
            logger.info(f"Counter map missing for {request.key}; bootstrapping")
            self._initialize(request.key)
            self.metrics.inc("bootstrap_retries_total")
            attributes = self.gateway.update(request)

        self.metrics.inc("updates_applied_total")
        return decode_record(attributes)

    def update_index_record(
        self, slot_id: str, deltas: Mapping[str, Optional[int]]
    ) -> Optional[StoredIndexRecord]:
        """
        Apply deltas to one slot.

        Returns:
            Updated record, or None when there was nothing to apply (skipped)
        """
        request = self.build_increment_request(slot_id, deltas)
        if request is None:
            self.metrics.inc("updates_skipped_total")
            logger.debug(f"No valid deltas for {slot_id}; skipping")
            return None

        logger.debug(f"Updating {slot_id}: {request.update_expression}")
        record = self.apply(request)
        logger.info(f"Applied {len(request.increments)} delta(s) to {slot_id}")
        return record
