"""
safetravels/services/report_store.py — Durable report log with in-memory mirror
The durable medium is the source of truth; the mirror is rebuilt from it at
startup and is the canonical read path afterwards.

Write path (JsonFileReportStore.append), under a single writer lock:
  1. Build the record (id + monotonic timestamp) and the post-append snapshot.
  2. Write the snapshot to a temp file in the same directory, fsync it.
  3. os.replace() it over the log, then fsync the directory.
  4. Swap the mirror to the new snapshot and return.
A failure before the replace leaves the log and the mirror at the pre-write
snapshot and raises StorageError. Readers see an immutable tuple and never
wait on the writer.
"""
from __future__ import annotations

import json
import os
import tempfile
import threading
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from loguru import logger
from pydantic import ValidationError

from safetravels.core.errors import StorageError
from safetravels.core.logging import log_store_operation
from safetravels.core.tag_catalog import TagCatalog
from safetravels.models import (
    CURRENT_SCHEMA_VERSION,
    GeoPoint,
    ReportFilter,
    ReportLogFile,
    SafetyReport,
    ValidatedReport,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_report_id() -> str:
    return f"report_{uuid.uuid4().hex}"


class ReportStore(ABC):
    """Append-only report store. Subclasses provide the durable step."""

    def __init__(
        self,
        catalog: TagCatalog,
        clock: Callable[[], datetime] = utc_now,
        reports: Iterable[SafetyReport] = (),
    ) -> None:
        self._catalog = catalog
        self._clock = clock
        self._write_lock = threading.Lock()
        self._reports: tuple[SafetyReport, ...] = tuple(reports)
        self._ids: frozenset[str] = frozenset(r.id for r in self._reports)

    # ── Durable step ─────────────────────────────────────────────────────────

    @abstractmethod
    def _persist(self, snapshot: tuple[SafetyReport, ...]) -> None:
        """Make `snapshot` durable, all or nothing. Raise StorageError on failure."""

    # ── Public API ───────────────────────────────────────────────────────────

    def append(self, validated: ValidatedReport) -> SafetyReport:
        """Assign id + timestamp, persist, update the mirror, return the record."""
        with self._write_lock:
            current = self._reports
            report = SafetyReport(
                id=self._new_id(),
                location=GeoPoint.from_lat_lon(validated.latitude, validated.longitude),
                safety_score=validated.safety_score,
                tags=validated.tags,
                comment=validated.comment,
                timestamp=self._next_timestamp(current),
            )
            snapshot = current + (report,)
            self._persist(snapshot)
            self._reports = snapshot
            self._ids = self._ids | {report.id}
        return report

    def list(self, report_filter: Optional[ReportFilter] = None) -> list[SafetyReport]:
        """All reports matching `report_filter`, in log order."""
        snapshot = self._reports
        if report_filter is None:
            return list(snapshot)
        return [r for r in snapshot if report_filter.matches(r)]

    def allowed_tags(self) -> list[str]:
        return self._catalog.as_list()

    def __len__(self) -> int:
        return len(self._reports)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _new_id(self) -> str:
        report_id = generate_report_id()
        while report_id in self._ids:
            report_id = generate_report_id()
        return report_id

    def _next_timestamp(self, current: tuple[SafetyReport, ...]) -> datetime:
        now = self._clock()
        if current and current[-1].timestamp > now:
            # Wall clock stepped back; keep the log non-decreasing
            return current[-1].timestamp
        return now


class InMemoryReportStore(ReportStore):
    """Store without a durable medium. Same atomicity contract; used in tests."""

    def _persist(self, snapshot: tuple[SafetyReport, ...]) -> None:
        return None


class JsonFileReportStore(ReportStore):
    """Report log kept as one human-readable JSON document on local disk."""

    def __init__(
        self,
        path: Union[str, Path],
        catalog: TagCatalog,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.path = Path(path)
        super().__init__(catalog, clock, reports=self._load())

    # ── Load ─────────────────────────────────────────────────────────────────

    def _load(self) -> list[SafetyReport]:
        """Read the full log. Missing file → empty store; corrupt file → StorageError."""
        start = time.perf_counter()
        if not self.path.exists():
            logger.info(f"No report log at {self.path}. Starting with an empty store.")
            return []

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            version = raw.get("schema_version") if isinstance(raw, dict) else None
            if isinstance(raw, list):
                # Bare array layout from before the log carried a schema_version
                raw = {"reports": raw}
            log_file = ReportLogFile.model_validate(raw)
        except (OSError, ValueError, AttributeError, ValidationError) as exc:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            latency = (time.perf_counter() - start) * 1000
            log_store_operation("load", False, latency, 0, error=type(exc).__name__)
            raise StorageError(f"Report log {self.path} is unreadable.") from exc

        if version != CURRENT_SCHEMA_VERSION:
            logger.warning(
                f"{self.path.name}: schema_version {version!r} != "
                f"{CURRENT_SCHEMA_VERSION!r}. Will attempt compatible read."
            )

        ids = [r.id for r in log_file.reports]
        if len(set(ids)) != len(ids):
            raise StorageError(f"Report log {self.path} contains duplicate ids.")

        latency = (time.perf_counter() - start) * 1000
        log_store_operation("load", True, latency, len(log_file.reports))
        return log_file.reports

    # ── Persist ──────────────────────────────────────────────────────────────

    def _serialize(self, snapshot: tuple[SafetyReport, ...]) -> str:
        payload = {
            "schema_version": CURRENT_SCHEMA_VERSION,
            "reports": [r.to_public_dict() for r in snapshot],
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

    def _persist(self, snapshot: tuple[SafetyReport, ...]) -> None:
        start = time.perf_counter()
        data = self._serialize(snapshot)
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            latency = (time.perf_counter() - start) * 1000
            log_store_operation("append", False, latency, len(snapshot) - 1, error=type(exc).__name__)
            raise StorageError("Failed to persist report log.") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning(f"Could not remove temp file {tmp_name}")

        # The new log is in place from here on; failing now would report an
        # error for a record that is already on disk.
        try:
            self._fsync_dir()
        except OSError as exc:
            logger.warning(f"Directory fsync failed for {self.path.parent}: {exc}")

        latency = (time.perf_counter() - start) * 1000
        log_store_operation("append", True, latency, len(snapshot))

    def _fsync_dir(self) -> None:
        # Directory fsync makes the rename durable; not supported on Windows
        if not hasattr(os, "O_DIRECTORY"):
            return
        dir_fd = os.open(self.path.parent, os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
