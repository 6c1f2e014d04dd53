from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class ConcurrentModificationError(DomainError):
    """Raised when ledger state changed between the read and the write of a settlement."""


class SchemaCompatibilityError(DomainError):
    """Raised when a supporting table is missing from the record store."""

    def __init__(self, table: str, message: str | None = None):
        self.table = table
        super().__init__(
            message
            or f"Table '{table}' is missing. Apply database/schema.sql and try again."
        )


class DocumentLookupError(DomainError):
    """Raised when the receipt validation service cannot answer."""
