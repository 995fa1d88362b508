"""Audit trail for session transitions."""

import logging
from dataclasses import dataclass
from typing import Protocol

_logger = logging.getLogger(__name__)


class AuditRepository(Protocol):
    """Persistence interface for audit events."""

    def create_event(
        self,
        session_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""


@dataclass
class LoggingAuditRepository(AuditRepository):
    """Audit repository that writes events to the application log."""

    def create_event(
        self,
        session_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Log the audit event."""
        _logger.info(
            "Audit %s for session %s: before=%s after=%s",
            event_type,
            session_id,
            before,
            after,
        )


@dataclass
class AuditService:
    """Service for recording session audit events."""

    repository: AuditRepository

    def record_event(
        self,
        session_id: str,
        event_type: str,
        before: dict[str, object] | None = None,
        after: dict[str, object] | None = None,
    ) -> None:
        """Persist an audit event; failures are logged, never raised."""
        try:
            self.repository.create_event(
                session_id=session_id,
                event_type=event_type,
                before=before,
                after=after,
            )
        except Exception:
            _logger.exception(
                "Failed to record audit event",
                extra={"session_id": session_id, "event_type": event_type},
            )
