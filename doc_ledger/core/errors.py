"""
Error taxonomy for document ingestion.

Every failure carries a machine-readable kind so callers can map it to a
transport-level status without inspecting messages.
"""

from typing import Any, Dict, Optional

from doc_ledger.storage.models import DocumentRecord


class DocLedgerError(Exception):
    """Base class for ingestion and accounting failures."""
    kind = "error"

    def to_dict(self) -> Dict[str, Any]:
        """Structured error result."""
        return {"error": str(self), "kind": self.kind}


class InvalidInput(DocLedgerError):
    """Submitted buffer is missing or empty. Raised before any side effect."""
    kind = "invalid_input"


class StorageWriteFailure(DocLedgerError):
    """The document record could not be persisted."""
    kind = "storage_write_failure"

    def __init__(self, message: str, content_id: Optional[str] = None):
        super().__init__(message)
        self.content_id = content_id


class LedgerUpdateFailure(DocLedgerError):
    """The usage ledger could not be written.

    The document record may already be stored; it is attached when known.
    """
    kind = "ledger_update_failure"

    def __init__(self, message: str, record: Optional[DocumentRecord] = None):
        super().__init__(message)
        self.record = record

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.record is not None:
            result["record"] = self.record.to_dict()
        return result


class LedgerCorrupt(DocLedgerError):
    """Ledger contents are not parseable or do not match the schema."""
    kind = "ledger_corrupt"
