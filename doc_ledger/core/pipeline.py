"""
Document ingestion pipeline.

Hashes a submitted buffer, stores its record and accounts it in the
usage ledger.

Processing Order:
1. Input validation - Rejects empty buffers before any side effect
2. Record storage - The record must be durable before it is accounted
3. Ledger update - Failures here are reported separately, the record stays
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from doc_ledger.config.loader import AppConfig
from doc_ledger.storage.ledger import LedgerStore, get_ledger_store
from doc_ledger.storage.models import DocumentRecord, day_key, format_timestamp, utc_now
from doc_ledger.storage.records import RecordStore
from .errors import InvalidInput, LedgerUpdateFailure, StorageWriteFailure
from .hasher import hash_bytes

logger = logging.getLogger(__name__)

# Documents are not metered yet; the ledger still accounts the amount.
DEFAULT_TOKENS_USED = 0
STATUS_OK = "ok"


class IngestionPipeline:
    """Single entry point for ingesting one document."""

    def __init__(
        self,
        record_store: RecordStore,
        ledger_store: LedgerStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.record_store = record_store
        self.ledger_store = ledger_store
        self.clock = clock

    def ingest(self, buffer: Optional[bytes]) -> DocumentRecord:
        """Ingest a document buffer.

        Args:
            buffer: Raw bytes of the uploaded document

        Returns:
            The stored DocumentRecord

        Raises:
            InvalidInput: If the buffer is missing or empty
            StorageWriteFailure: If the record could not be stored
            LedgerUpdateFailure: If the record was stored but the usage
                ledger could not be updated
        """
        if not buffer:
            raise InvalidInput("Document buffer is missing or empty")

        content_id = hash_bytes(buffer)
        now = self.clock()
        record = DocumentRecord(content_id=content_id, timestamp=format_timestamp(now))

        try:
            location = self.record_store.put(date.fromisoformat(day_key(now)), content_id, record)
        except OSError as e:
            logger.error("Failed to store record for %s: %s", content_id, e)
            raise StorageWriteFailure(
                f"Could not store record for {content_id}: {e}", content_id=content_id
            ) from e

        try:
            self.ledger_store.record_usage(DEFAULT_TOKENS_USED, content_id, STATUS_OK)
        except LedgerUpdateFailure as e:
            e.record = record
            raise

        logger.info("Ingested %s (%d bytes) -> %s", content_id, len(buffer), location)
        return record


def build_pipeline(config: AppConfig) -> IngestionPipeline:
    """Wire stores for the configured storage root and initialize the ledger.

    Args:
        config: Application configuration

    Returns:
        A ready IngestionPipeline
    """
    record_store = RecordStore(config.storage.root)
    ledger_store = get_ledger_store(
        config.storage.usage_file, recent_limit=config.storage.recent_limit
    )
    record_store.base_dir.mkdir(parents=True, exist_ok=True)
    ledger_store.initialize()
    return IngestionPipeline(record_store, ledger_store)
