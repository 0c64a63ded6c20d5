"""Pure domain layer: value helpers, clock abstraction and ledger entry types."""
