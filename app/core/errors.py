"""
Error taxonomy shared by the ledger, the tracked write path and rollback.
"""

from typing import Dict


class LedgerError(Exception):
    """Base error carrying a stable machine-readable kind."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class Unauthorized(LedgerError):
    """Actor missing or not privileged."""
    kind = "unauthorized"


class ValidationError(LedgerError):
    """Bad or missing rollback type, identifiers or field values."""
    kind = "validation_error"


class NotFound(LedgerError):
    """Change, batch, entity or snapshot absent."""
    kind = "not_found"


class InvalidData(LedgerError):
    """Stored data present but unparsable."""
    kind = "invalid_data"


class StorageError(LedgerError):
    """Transaction or commit failure. Nothing was written."""
    kind = "storage_error"


STATUS_BY_KIND = {
    Unauthorized.kind: 401,
    ValidationError.kind: 400,
    NotFound.kind: 404,
    InvalidData.kind: 400,
    StorageError.kind: 500,
}


def status_for(error: LedgerError) -> int:
    """HTTP status reported for a ledger error."""
    return STATUS_BY_KIND.get(error.kind, 500)
