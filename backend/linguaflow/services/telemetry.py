"""
Structured events for lesson generation and completion.

Each event is one JSON log line on "linguaflow.telemetry". With
ENABLE_TELEMETRY_DB=1 it is also inserted into ``telemetry_events``;
that insert is best-effort and never fails the caller.
"""
import asyncio
import json
import logging
import os
import time
from functools import wraps
from typing import Optional

logger = logging.getLogger("linguaflow.telemetry")

EVENTS = frozenset({"lesson_generated", "lesson_fallback", "completion_recorded", "api_call"})


def _persist(row: dict):
    try:
        from linguaflow.core.deps import get_supabase_client
        get_supabase_client().table("telemetry_events").insert(row).execute()
    except Exception as e:
        logger.error("[telemetry._persist] %s", e, exc_info=True)


def emit_event(event: str, *, route: str, student_id: Optional[str] = None,
               template_id: Optional[str] = None, logical_unit_id: Optional[str] = None,
               quality: Optional[str] = None, error_type: Optional[str] = None,
               latency_ms: Optional[int] = None, ok: Optional[bool] = None) -> dict:
    if event not in EVENTS:
        raise ValueError(f"unknown telemetry event {event!r}")
    row = {
        "event": event,
        "route": route,
        "student_id": student_id,
        "template_id": template_id,
        "logical_unit_id": logical_unit_id,
        "quality": quality,
        "error_type": error_type,
        "latency_ms": latency_ms,
        "ok": ok,
    }
    logger.info("telemetry=%s", json.dumps(dict(row, ts=time.time()), separators=(",", ":")))
    if os.getenv("ENABLE_TELEMETRY_DB", "0") == "1":
        _persist(row)
    return row


def instrument(route: str):
    """Emit an ``api_call`` event with latency and outcome for each call of a route handler."""
    def record(t0: float, err: Optional[BaseException]):
        emit_event("api_call", route=route, latency_ms=int((time.time() - t0) * 1000),
                   ok=err is None, error_type=type(err).__name__ if err else None)

    def deco(fn):
        if asyncio.iscoroutinefunction(fn):
            @wraps(fn)
            async def wrapped_async(*args, **kwargs):
                t0 = time.time()
                try:
                    out = await fn(*args, **kwargs)
                except Exception as e:
                    record(t0, e)
                    raise
                record(t0, None)
                return out
            return wrapped_async

        @wraps(fn)
        def wrapped(*args, **kwargs):
            t0 = time.time()
            try:
                out = fn(*args, **kwargs)
            except Exception as e:
                record(t0, e)
                raise
            record(t0, None)
            return out
        return wrapped
    return deco
