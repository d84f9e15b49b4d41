"""
Index service: the write and read operations behind every entry point.

Write: per slot (tags, then people) apply the requested deltas.
Read:  batch-fetch both slots, decode, prune and write back if needed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from tag_index import SLOTS
from tag_index.codec import batch_keys, decode, decode_records
from tag_index.metrics import Metrics
from tag_index.models import IndexReadResult, IndexUpdate, SlotUpdateResult
from tag_index.pruning import IndexReconciler
from tag_index.settings import Settings
from tag_index.updater import CounterUpdater, now_ms

logger = logging.getLogger(__name__)


class IndexService:
    """
    Composes the update and pruning engines over one storage gateway.

    Usage:
        service = IndexService.from_settings(Settings.load())
        service.update(IndexUpdate(tags={"red": 1}))
        result = service.read()
    """

    def __init__(self, gateway: Any, metrics: Optional[Metrics] = None, clock=now_ms):
        self.gateway = gateway
        self.metrics = metrics or Metrics()
        self.updater = CounterUpdater(gateway, self.metrics, clock=clock)
        self.reconciler = IndexReconciler(gateway, self.metrics)

    @staticmethod
    def from_settings(settings: Settings, *, metrics: Optional[Metrics] = None) -> IndexService:
        # tag_index must not import boto3 at module level
        from index_store.dynamo import DynamoIndexGateway

        metrics = metrics or Metrics()
        gateway = DynamoIndexGateway.from_settings(settings, metrics=metrics)
        logger.info(f"Index service bound to table {settings.DYNAMODB_TABLE_INDEXES}")
        return IndexService(gateway, metrics)

    def update(self, index_update: IndexUpdate) -> Dict[str, SlotUpdateResult]:
        """Apply deltas to each slot independently; empty or absent slots are skipped."""
        results: Dict[str, SlotUpdateResult] = {}
        for slot in SLOTS:
            record = self.updater.update_index_record(slot, index_update.deltas(slot))
            if record is None:
                results[slot] = SlotUpdateResult(slot=slot, status="skipped")
            else:
                results[slot] = SlotUpdateResult(slot=slot, status="updated", record=record)
        return results

    def read(self) -> IndexReadResult:
        """Fetch both slots and return the decoded and reconciled snapshots."""
        keys = batch_keys()
        raw = self.gateway.batch_get(keys)
        indexes = decode(raw)
        pruned = self.reconciler.reconcile_with_result(indexes)
        return IndexReadResult(
            keys=keys,
            records=decode_records(raw),
            indexes=indexes,
            cleaned=pruned.cleaned,
            changed=pruned.changed,
            removed=pruned.removed,
        )
