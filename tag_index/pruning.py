from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tag_index import SLOTS
from tag_index.codec import encode
from tag_index.metrics import Metrics
from tag_index.models import IndexSet

logger = logging.getLogger(__name__)


@dataclass
class PruneResult:
    cleaned: IndexSet
    changed: bool
    removed: Dict[str, List[str]] = field(default_factory=dict)


def prune(index_set: IndexSet) -> PruneResult:
    """Drop every counter <= 0 from both slots. Does not mutate the input."""
    cleaned = IndexSet()
    removed: Dict[str, List[str]] = {}
    for slot in SLOTS:
        kept = {k: v for k, v in index_set.slot(slot).items() if v > 0}
        dropped = [k for k in index_set.slot(slot) if k not in kept]
        setattr(cleaned, slot, kept)
        if dropped:
            removed[slot] = dropped
    return PruneResult(cleaned=cleaned, changed=bool(removed), removed=removed)


class IndexReconciler:
    """
    Enforces "every stored counter > 0" lazily at read time.

    The write-back replaces both slot items wholesale and is not guarded
    against increments that land between the read and the write.
    """

    def __init__(self, gateway: Any, metrics: Optional[Metrics] = None):
        self.gateway = gateway
        self.metrics = metrics or Metrics()

    def reconcile(self, index_set: IndexSet) -> IndexSet:
        return self.reconcile_with_result(index_set).cleaned

    def reconcile_with_result(self, index_set: IndexSet) -> PruneResult:
        result = prune(index_set)
        if not result.changed:
            return result

        total = sum(len(keys) for keys in result.removed.values())
        logger.warning(
            f"Overwriting both index items to prune {total} non-positive counter(s): {result.removed}"
        )
        self.gateway.batch_put(encode(result.cleaned))
        self.metrics.inc("prune_writes_total")
        self.metrics.inc("keys_pruned_total", total)
        return result
