from typing import Any, Dict

from fastapi import APIRouter, Body

from stylist_app.observability.metrics import metrics, track_event

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.post("")
async def record_event(payload: Dict[str, Any] = Body(...)):
    """Record a client-side product event ({event, ...properties})"""
    await track_event(str(payload.get("event") or "unknown"), payload)
    return {"ok": True}


@router.get("")
async def get_counters():
    """Event counts since process start"""
    return {"ok": True, "data": metrics.snapshot()}
