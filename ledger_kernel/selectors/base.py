"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Selectors return domain values, not ORM instances.
    - The caller owns the session and its transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Subclasses implement the domain-specific queries.
    """

    def __init__(self, session: Session):
        self.session = session
