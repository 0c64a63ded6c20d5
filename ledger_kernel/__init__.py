"""
Ledger Kernel - scheduling and reconciliation core.

Shared foundations for the ledger engines and services:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Decimal-only money helpers and the LedgerEntry value object
- SQLAlchemy persistence for ledger entries and contract payment plans
"""

__version__ = "0.1.0"
