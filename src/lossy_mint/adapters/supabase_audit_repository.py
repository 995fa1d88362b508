"""Supabase repository for session audit events."""

from dataclasses import dataclass

from supabase import Client

from lossy_mint.services.audit import AuditRepository


@dataclass
class SupabaseAuditRepository(AuditRepository):
    """Supabase-backed audit repository."""

    client: Client

    def create_event(
        self,
        session_id: str,
        event_type: str,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        """Create an audit event row."""
        self.client.table("escrow_session_events").insert(
            {
                "session_id": session_id,
                "event_type": event_type,
                "before_json": before,
                "after_json": after,
            }
        ).execute()
