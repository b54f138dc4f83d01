"""
Date-partitioned record store.

Persists one JSON record per ingested document under
``<root>/json/<YYYY-MM-DD>/<contentId>.json``.
"""

import logging
from datetime import date
from pathlib import Path
from typing import List, Optional, Union

from doc_ledger.core.hasher import is_content_id
from .files import read_json, write_json_atomic
from .models import DocumentRecord

logger = logging.getLogger(__name__)

RECORDS_DIRNAME = "json"


class RecordStore:
    """Content-addressed store for document records, partitioned by day.

    Writes for different keys are independent and need no coordination.
    Writing an existing key replaces the previous record.
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize the store.

        Args:
            root: Storage root; records live in its ``json`` subdirectory
        """
        self.root = Path(root)
        self.base_dir = self.root / RECORDS_DIRNAME

    def path_for(self, day: date, content_id: str) -> Path:
        """Location of the record for a (day, content id) key."""
        if not is_content_id(content_id):
            raise ValueError(f"Invalid content id: {content_id!r}")
        return self.base_dir / day.isoformat() / f"{content_id}.json"

    def put(self, day: date, content_id: str, record: DocumentRecord) -> Path:
        """Persist a record under its day partition.

        Args:
            day: Ingestion day, selects the partition
            content_id: Content identifier, used as the key
            record: Record to store

        Returns:
            Path of the stored record

        Raises:
            OSError: If the partition or record cannot be written
        """
        path = self.path_for(day, content_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        write_json_atomic(path, record.to_dict())
        logger.debug("Stored record %s at %s", content_id, path)
        return path

    def get(self, day: date, content_id: str) -> Optional[DocumentRecord]:
        """Load a stored record, or None if there is none for the key."""
        path = self.path_for(day, content_id)
        if not path.exists():
            return None
        return DocumentRecord.from_dict(read_json(path))

    def list_dates(self) -> List[str]:
        """Day partitions present in the store, oldest first.

        Directories whose names are not YYYY-MM-DD dates are ignored.
        """
        if not self.base_dir.exists():
            return []
        return sorted(
            p.name for p in self.base_dir.iterdir() if p.is_dir() and _is_day(p.name)
        )

    def list_records(self, day: date) -> List[DocumentRecord]:
        """All records stored for a day, ordered by content id."""
        partition = self.base_dir / day.isoformat()
        if not partition.exists():
            return []
        return [
            DocumentRecord.from_dict(read_json(path))
            for path in sorted(partition.glob("*.json"))
        ]


def _is_day(name: str) -> bool:
    try:
        return date.fromisoformat(name).isoformat() == name
    except ValueError:
        return False
