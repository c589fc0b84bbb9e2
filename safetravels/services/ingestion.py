"""
safetravels/services/ingestion.py — Submission orchestration
limiter → validator → store. The identity goes to the limiter only; the
store only ever sees a validated payload.
"""
from __future__ import annotations

from typing import Any, Optional

from safetravels.core.errors import ClientInputError, ThrottledError
from safetravels.core.logging import (
    log_report_stored,
    log_submission_rejected,
    log_submission_throttled,
)
from safetravels.core.rate_limiter import FixedWindowRateLimiter
from safetravels.core.tag_catalog import TagCatalog
from safetravels.models import SafetyReport
from safetravels.services import validator
from safetravels.services.report_store import ReportStore


class IngestionService:
    def __init__(
        self,
        limiter: FixedWindowRateLimiter,
        store: ReportStore,
        catalog: TagCatalog,
        max_comment_length: int = validator.MAX_COMMENT_LENGTH,
    ) -> None:
        self.limiter = limiter
        self.store = store
        self.catalog = catalog
        self.max_comment_length = max_comment_length

    def submit(self, identity: str, raw: Any, now: Optional[float] = None) -> SafetyReport:
        """
        Accept one submission.
        Raises ThrottledError before looking at the body when the quota is
        exhausted, ClientInputError on invalid input, StorageError when the
        durable write fails.
        """
        decision = self.limiter.check_and_record(identity, now)
        if not decision.allowed:
            log_submission_throttled(decision.retry_after)
            raise ThrottledError(retry_after=decision.retry_after)

        try:
            validated = validator.validate(raw, self.catalog, self.max_comment_length)
        except ClientInputError as exc:
            log_submission_rejected(exc.field)
            raise

        report = self.store.append(validated)
        log_report_stored(report.id, report.safety_score, len(report.tags))
        return report

    def allowed_tags(self) -> list[str]:
        return self.store.allowed_tags()
