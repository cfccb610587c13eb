"""Tests for telemetry event logging and the route instrument decorator."""
import sys
import os
import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from linguaflow.services.telemetry import emit_event, instrument


def test_emit_event_logs_one_json_line(caplog, monkeypatch):
    monkeypatch.delenv("ENABLE_TELEMETRY_DB", raising=False)
    with caplog.at_level("INFO", logger="linguaflow.telemetry"):
        emit_event("lesson_fallback", route="svc", student_id="s1", quality="fallback", ok=True)
    line = caplog.records[-1].getMessage()
    payload = json.loads(line.split("telemetry=", 1)[1])
    assert payload["event"] == "lesson_fallback"
    assert payload["quality"] == "fallback"


def test_unknown_event_rejected():
    with pytest.raises(ValueError):
        emit_event("made_up", route="svc")


def test_db_insert_failure_is_swallowed(monkeypatch):
    monkeypatch.setenv("ENABLE_TELEMETRY_DB", "1")
    sb = MagicMock()
    sb.table.return_value.insert.return_value.execute.side_effect = ConnectionError("down")
    with patch("linguaflow.core.deps.get_supabase_client", return_value=sb):
        row = emit_event("completion_recorded", route="svc", ok=True)
    assert row["event"] == "completion_recorded"
    sb.table.assert_called_with("telemetry_events")


def test_instrument_reports_errors():
    @instrument(route="/x")
    async def handler():
        raise KeyError("nope")

    with patch("linguaflow.services.telemetry.emit_event") as emit:
        with pytest.raises(KeyError):
            asyncio.run(handler())
    assert emit.call_args.kwargs["ok"] is False
    assert emit.call_args.kwargs["error_type"] == "KeyError"


def test_instrument_sync_success():
    @instrument(route="/y")
    def handler(x):
        return x * 2

    with patch("linguaflow.services.telemetry.emit_event") as emit:
        assert handler(3) == 6
    assert emit.call_args.kwargs["ok"] is True
