"""
Process-local service metrics.

Counters describe store traffic (updates, bootstrap writes, prune
write-backs), never the index keys themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Metrics:
    """Counters and gauges shared by the update and pruning engines."""

    counters: Dict[str, int] = field(default_factory=dict)
    gauges: Dict[str, float] = field(default_factory=dict)

    def inc(self, name: str, by: int = 1) -> None:
        """Increment counter by value."""
        self.counters[name] = self.counters.get(name, 0) + by

    def observe(self, name: str, value: float) -> None:
        """Record gauge value."""
        self.gauges[name] = float(value)

    def get(self, name: str) -> int:
        return self.counters.get(name, 0)

    def snapshot(self) -> dict:
        """Return current metrics snapshot."""
        return {
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
        }
