import json
import logging
from datetime import datetime, timezone

from models.records import Severity
from ops.structured_logger import JsonFormatter
from utils.log_context import bind_sync_id, clear_request_id, reset_sync_id, set_request_id


def _record(msg, extra=None):
    rec = logging.LogRecord("notifier.test", logging.INFO, __file__, 1, msg, None, None)
    if extra is not None:
        rec.extra = extra
    return rec


def test_formatter_emits_event_and_extras():
    payload = json.loads(
        JsonFormatter().format(
            _record("sync_run_metrics", {"created": 3, "at": datetime(2026, 10, 18, tzinfo=timezone.utc)})
        )
    )
    assert payload["message"] == "sync_run_metrics"
    assert payload["severity"] == "INFO"
    assert payload["created"] == 3
    assert payload["at"].startswith("2026-10-18")
    assert "sync_id" not in payload


def test_formatter_serializes_enums_without_failing():
    payload = json.loads(JsonFormatter().format(_record("x", {"priority": Severity.HIGH})))
    assert "high" in payload["priority"]


def test_formatter_picks_up_request_and_sync_ids():
    set_request_id("req-9")
    token = bind_sync_id("sync-1")
    try:
        payload = json.loads(JsonFormatter().format(_record("reconcile_error")))
    finally:
        reset_sync_id(token)
        clear_request_id()

    assert payload["request_id"] == "req-9"
    assert payload["sync_id"] == "sync-1"

    after = json.loads(JsonFormatter().format(_record("later")))
    assert "request_id" not in after and "sync_id" not in after
