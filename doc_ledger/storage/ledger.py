"""
Usage ledger persistence.

Maintains the singleton monthly usage ledger file with rollover and a
bounded recent-activity window.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Union

from doc_ledger.core.errors import LedgerCorrupt, LedgerUpdateFailure
from .files import read_json, write_json_atomic
from .models import (
    DEFAULT_RECENT_LIMIT,
    RecentEntry,
    UsageLedger,
    day_key,
    format_timestamp,
    month_key,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_PATH = "uploads/usage.json"


class LedgerStore:
    """Owner of the usage ledger file.

    Every read-modify-write cycle runs under one lock, so concurrent
    updates from the same process cannot overwrite each other. Writers in
    other processes are not coordinated.
    """

    def __init__(
        self,
        path: Union[str, Path] = DEFAULT_LEDGER_PATH,
        clock: Callable[[], datetime] = utc_now,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ):
        """Initialize the store.

        Args:
            path: Path to the ledger JSON file
            clock: Returns the current time; months and days derive from it
            recent_limit: Maximum number of entries in the recent window
        """
        if recent_limit <= 0:
            raise ValueError("recent_limit must be > 0")
        self.path = Path(path)
        self.clock = clock
        self.recent_limit = recent_limit
        self._lock = threading.Lock()

    def initialize(self) -> UsageLedger:
        """Create the ledger file with a zero state if it doesn't exist.

        Safe to call on every startup; an existing file is left untouched.
        """
        with self._lock:
            if self.path.exists():
                return self._load_or_fresh(month_key(self.clock()))
            ledger = UsageLedger.fresh(month_key(self.clock()))
            self._write(ledger)
            logger.info("Created usage ledger at %s", self.path)
            return ledger

    def read(self) -> UsageLedger:
        """Load the ledger without modifying it.

        Raises:
            FileNotFoundError: If the ledger file doesn't exist
            LedgerCorrupt: If the file isn't a valid ledger document
        """
        try:
            data = read_json(self.path)
        except json.JSONDecodeError as e:
            raise LedgerCorrupt(f"Ledger {self.path} is not valid JSON: {e}") from e
        except UnicodeDecodeError as e:
            raise LedgerCorrupt(f"Ledger {self.path} is not valid UTF-8: {e}") from e
        try:
            return UsageLedger.from_dict(data, self.recent_limit)
        except ValueError as e:
            raise LedgerCorrupt(f"Ledger {self.path} has an invalid shape: {e}") from e

    def record_usage(self, tokens_used: int, content_id: str, status: str) -> UsageLedger:
        """Account one processed document and persist the ledger.

        A missing or corrupt ledger is replaced by a fresh one rather than
        failing the caller. When the stored month is not the current month
        the counters restart from zero.

        Args:
            tokens_used: Non-negative usage amount for this document
            content_id: Identifier of the processed document
            status: Outcome label recorded in the recent window

        Returns:
            The updated ledger

        Raises:
            ValueError: If tokens_used is not a non-negative integer
            LedgerUpdateFailure: If the ledger cannot be written
        """
        if not isinstance(tokens_used, int) or isinstance(tokens_used, bool) or tokens_used < 0:
            raise ValueError("tokens_used must be a non-negative integer")

        with self._lock:
            now = self.clock()
            month = month_key(now)
            ledger = self._load_or_fresh(month)

            if ledger.month != month:
                logger.info("Usage ledger rollover from %s to %s", ledger.month, month)
                ledger = UsageLedger.fresh(month)

            entry = RecentEntry(
                timestamp=format_timestamp(now),
                content_id=content_id,
                status=status,
                tokens_used=tokens_used,
            )
            ledger.apply(entry, day_key(now), self.recent_limit)

            try:
                self._write(ledger)
            except OSError as e:
                logger.error(
                    "Failed to write usage ledger %s for %s: %s", self.path, content_id, e
                )
                raise LedgerUpdateFailure(f"Could not write usage ledger: {e}") from e
            return ledger

    def reset(self) -> UsageLedger:
        """Overwrite the ledger with a zero state for the current month."""
        with self._lock:
            ledger = UsageLedger.fresh(month_key(self.clock()))
            try:
                self._write(ledger)
            except OSError as e:
                raise LedgerUpdateFailure(f"Could not write usage ledger: {e}") from e
            logger.warning("Usage ledger %s was reset", self.path)
            return ledger

    def get_status(self) -> Dict[str, Any]:
        """Report ledger state for health checks. Never raises."""
        try:
            ledger = self.read()
        except FileNotFoundError:
            return {"online": True, "error": f"usage ledger not found: {self.path}"}
        except (LedgerCorrupt, OSError) as e:
            return {"online": True, "error": str(e)}
        return {"online": True, "ledger": ledger.to_dict()}

    def _load_or_fresh(self, month: str) -> UsageLedger:
        try:
            return self.read()
        except FileNotFoundError:
            logger.warning("Usage ledger %s is missing, starting a fresh one", self.path)
        except LedgerCorrupt as e:
            logger.warning("%s; starting a fresh ledger", e)
        except OSError as e:
            logger.warning("Usage ledger %s is unreadable (%s), starting a fresh one", self.path, e)
        return UsageLedger.fresh(month)

    def _write(self, ledger: UsageLedger) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        write_json_atomic(self.path, ledger.to_dict())


# One store per ledger file, so every writer of a file shares its lock
_stores: Dict[Path, LedgerStore] = {}
_stores_lock = threading.Lock()


def get_ledger_store(
    path: Union[str, Path] = DEFAULT_LEDGER_PATH,
    recent_limit: int = DEFAULT_RECENT_LIMIT,
) -> LedgerStore:
    """Get the process-wide ledger store for a ledger file.

    Repeated calls for the same file return the same instance.

    Args:
        path: Path to the ledger JSON file
        recent_limit: Maximum number of entries in the recent window

    Returns:
        The shared LedgerStore

    Raises:
        ValueError: If the file already has a store with another recent_limit
    """
    key = Path(path).resolve()
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = LedgerStore(path, recent_limit=recent_limit)
            _stores[key] = store
        elif store.recent_limit != recent_limit:
            raise ValueError(
                f"Ledger store for {key} uses recent_limit={store.recent_limit}, "
                f"not {recent_limit}"
            )
        return store


def reset_ledger_stores() -> None:
    """Forget all process-wide ledger stores."""
    with _stores_lock:
        _stores.clear()
