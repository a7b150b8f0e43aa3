"""Structured logging for collaborator calls."""

import logging
from typing import Any

from backend.tripwatch.tools.executor import CallContext

logger = logging.getLogger(__name__)


class StructuredCallLogger:
    """Structured logger for collaborator calls."""

    def log_attempt(
        self,
        ctx: CallContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log one call attempt with structured data."""
        log_data: dict[str, Any] = {
            "trace_id": ctx.trace_id,
            "session_id": ctx.session_id,
            "collaborator": ctx.collaborator,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if ctx.target:
            log_data["target"] = ctx.target
        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Collaborator call: {ctx.collaborator} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
