"""
FastAPI v2 Observability Endpoints for the Tag Index.

Provides:
- Process-local metrics snapshot (updates, bootstrap writes, prune write-backs)
- Index summary: slot sizes, totals and the most used keys

Usage:
    uvicorn "api.v2.observability:create_app" --factory --host 0.0.0.0 --port 8081
"""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from tag_index import SLOTS
from tag_index.errors import StorageError
from tag_index.service import IndexService
from tag_index.settings import Settings, configure_logging


# --- Pydantic Models for API Responses ---

class MetricsResponse(BaseModel):
    """Current counters and gauges of this process."""
    counters: Dict[str, int]
    gauges: Dict[str, float]


class KeyCount(BaseModel):
    key: str
    count: int


class SlotSummary(BaseModel):
    """Size and heaviest keys of one slot after pruning."""
    slot: str
    keys: int
    total: int
    top: List[KeyCount]


class IndexSummaryResponse(BaseModel):
    slots: List[SlotSummary]
    pruned: Dict[str, List[str]]


# --- Helper Functions ---

def summarize_slot(slot: str, counters: Dict[str, int], top: int) -> SlotSummary:
    """Sort by count descending, then key, and keep the first `top`."""
    ranked = sorted(counters.items(), key=lambda kv: (-kv[1], kv[0]))[:top]
    return SlotSummary(
        slot=slot,
        keys=len(counters),
        total=sum(counters.values()),
        top=[KeyCount(key=k, count=v) for k, v in ranked],
    )


def create_app(service: Optional[IndexService] = None) -> FastAPI:
    if service is None:
        settings = Settings.load()
        configure_logging(settings.LOG_LEVEL)
        service = IndexService.from_settings(settings)

    app = FastAPI(
        title="Tag Index Observability API",
        description="Metrics and index summaries",
        version="2.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/v2/metrics", response_model=MetricsResponse)
    def get_metrics() -> MetricsResponse:
        return MetricsResponse(**service.metrics.snapshot())

    @app.get("/v2/indexes/summary", response_model=IndexSummaryResponse)
    def get_index_summary(top: int = Query(10, ge=1, le=100)) -> IndexSummaryResponse:
        """Read (and reconcile) both indexes, then summarize each slot."""
        try:
            result = service.read()
        except StorageError as e:
            raise HTTPException(status_code=502, detail=f"Index store unavailable: {e}")
        return IndexSummaryResponse(
            slots=[summarize_slot(s, result.cleaned.slot(s), top) for s in SLOTS],
            pruned=result.removed,
        )

    return app
