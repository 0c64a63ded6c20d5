"""Identity of the caller, attached to every written row as provenance."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class ActorContext:
    """
    The current user and organization.

    Recorded on created and updated rows.  The ledger never interprets
    these values.
    """

    user_id: UUID
    organization_id: UUID | None = None

    def log_context(self) -> dict[str, str | None]:
        """Fields for ``LogContext.bind``."""
        return {
            "actor_id": str(self.user_id),
            "organization_id": str(self.organization_id) if self.organization_id else None,
        }
