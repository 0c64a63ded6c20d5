"""
BaseService -- abstract base for the ledger services.

Responsibility:
    Common constructor and session-handling contract for every service that
    writes ledger rows.  Services use ``session.flush()``, never
    ``session.commit()``.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back.  The caller (``session_scope()`` or a
      test harness) owns commit/rollback, so a series, a propagation batch
      or a transfer pair is written as one unit.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_services.identity import ActorContext


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Args:
        session: SQLAlchemy session for database operations.
        actor: Identity of the user and organization performing the work.
    """

    def __init__(self, session: Session, actor: ActorContext):
        self.session = session
        self.actor = actor
