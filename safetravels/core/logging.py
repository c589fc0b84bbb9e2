"""
safetravels/core/logging.py — loguru structured JSON logging setup
Log helpers never receive the submitter's network identity (or anything
derived from it), so nothing identifying can reach the logs.
"""
from __future__ import annotations

import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger


def setup_logging(log_level: str = "INFO") -> None:
    """Configure loguru for structured JSON output to stdout."""
    # Remove default loguru handler
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,       # loguru built-in JSON serialization
        backtrace=True,
        diagnose=False,       # locals may hold request data
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_report_stored(report_id: str, safety_score: int, tag_count: int) -> None:
    """Every accepted report is logged by id only."""
    record = _build_log_record("ingestion", "report_stored", {
        "report_id": report_id,
        "safety_score": safety_score,
        "tag_count": tag_count,
    })
    logger.info(json.dumps(record))


def log_submission_rejected(field: str) -> None:
    """Validation failure. Only the failing field name is recorded."""
    record = _build_log_record("ingestion", "submission_rejected", {
        "field": field,
    })
    logger.info(json.dumps(record))


def log_submission_throttled(retry_after: Optional[float]) -> None:
    record = _build_log_record("rate_limiter", "submission_throttled", {
        "retry_after": round(retry_after, 2) if retry_after is not None else None,
    })
    logger.info(json.dumps(record))


def log_store_operation(
    operation: str,  # load | append
    success: bool,
    latency_ms: float,
    record_count: int,
    error: Optional[str] = None,
) -> None:
    """Every durable read/write of the report log."""
    record = _build_log_record("report_store", operation, {
        "success": success,
        "latency_ms": round(latency_ms, 2),
        "record_count": record_count,
        "error": error,
    })
    if success:
        logger.info(json.dumps(record))
    else:
        logger.error(json.dumps(record))


def log_windows_pruned(removed: int, remaining: int) -> None:
    record = _build_log_record("rate_limiter", "prune", {
        "removed": removed,
        "remaining": remaining,
    })
    logger.debug(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every unexpected error is logged with its stack trace."""
    tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))
