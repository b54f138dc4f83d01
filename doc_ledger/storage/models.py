"""
Data models for storage layer.

Defines the persisted document record and the usage ledger structures.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

DEFAULT_RECENT_LIMIT = 5

_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-(0[1-9]|[12]\d|3[01])$")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as UTC ISO-8601 with milliseconds and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def month_key(moment: datetime) -> str:
    """Calendar month of a moment (YYYY-MM, UTC)."""
    return format_timestamp(moment)[:7]


def day_key(moment: datetime) -> str:
    """Calendar day of a moment (YYYY-MM-DD, UTC)."""
    return format_timestamp(moment)[:10]


def _require_count(data: Dict[str, Any], key: str) -> int:
    if key not in data:
        raise ValueError(f"missing field '{key}'")
    value = data[key]
    # bool is an int subclass, reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"'{key}' must be an integer")
    if value < 0:
        raise ValueError(f"'{key}' cannot be negative")
    return value


def _require_str(data: Dict[str, Any], key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


@dataclass(frozen=True)
class DocumentRecord:
    """Immutable metadata about one ingested buffer.

    Written once per ingestion under its (date, contentId) key.
    """
    content_id: str
    timestamp: str
    submitted_flag: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted field names."""
        return {
            "contentId": self.content_id,
            "submittedFlag": self.submitted_flag,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRecord":
        """Build a record from its persisted form."""
        submitted = data.get("submittedFlag", True)
        if not isinstance(submitted, bool):
            raise ValueError("'submittedFlag' must be a boolean")
        return cls(
            content_id=_require_str(data, "contentId"),
            timestamp=_require_str(data, "timestamp"),
            submitted_flag=submitted,
        )


@dataclass(frozen=True)
class RecentEntry:
    """One entry of the ledger's recent-activity window."""
    timestamp: str
    content_id: str
    status: str
    tokens_used: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "contentId": self.content_id,
            "status": self.status,
            "tokensUsed": self.tokens_used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecentEntry":
        if not isinstance(data, dict):
            raise ValueError("recent entries must be objects")
        return cls(
            timestamp=_require_str(data, "timestamp"),
            content_id=_require_str(data, "contentId"),
            status=_require_str(data, "status"),
            tokens_used=_require_count(data, "tokensUsed"),
        )


@dataclass
class UsageLedger:
    """Usage accounting for a single calendar month.

    Counters never span two months: a ledger whose month differs from the
    current one is replaced by a fresh one before any update is applied.
    """
    month: str
    total_tokens: int = 0
    daily: Dict[str, int] = field(default_factory=dict)
    processed_count: int = 0
    recent: List[RecentEntry] = field(default_factory=list)

    @classmethod
    def fresh(cls, month: str) -> "UsageLedger":
        """Zero-state ledger stamped with the given month."""
        return cls(month=month)

    def apply(self, entry: RecentEntry, day: str, recent_limit: int = DEFAULT_RECENT_LIMIT) -> None:
        """Account one processed document against this ledger.

        Args:
            entry: Activity entry to prepend to the recent window
            day: Calendar day (YYYY-MM-DD) the usage belongs to
            recent_limit: Maximum size of the recent window
        """
        self.total_tokens += entry.tokens_used
        self.daily[day] = self.daily.get(day, 0) + entry.tokens_used
        self.processed_count += 1
        self.recent.insert(0, entry)
        del self.recent[recent_limit:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "total_tokens": self.total_tokens,
            "daily": dict(self.daily),
            "processed_count": self.processed_count,
            "recent": [entry.to_dict() for entry in self.recent],
        }

    @classmethod
    def from_dict(cls, data: Any, recent_limit: int = DEFAULT_RECENT_LIMIT) -> "UsageLedger":
        """Validate and build a ledger from parsed JSON.

        Besides field types, the monthly invariants are checked: every
        daily entry belongs to the ledger's month, total_tokens is the sum
        of the daily counts and the recent window fits recent_limit.

        Raises:
            ValueError: If the document does not match the ledger schema
        """
        if not isinstance(data, dict):
            raise ValueError("ledger must be a JSON object")

        missing = {"month", "total_tokens", "daily", "processed_count", "recent"} - set(data)
        if missing:
            raise ValueError(f"ledger is missing fields: {sorted(missing)}")

        month = _require_str(data, "month")
        if not _MONTH_PATTERN.match(month):
            raise ValueError(f"'month' must be YYYY-MM, got {month!r}")

        daily_data = data["daily"]
        if not isinstance(daily_data, dict):
            raise ValueError("'daily' must be an object")
        for day in daily_data:
            if not _DAY_PATTERN.match(day) or not day.startswith(month + "-"):
                raise ValueError(f"daily entry {day!r} is outside month {month}")
        daily = {day: _require_count(daily_data, day) for day in daily_data}

        total_tokens = _require_count(data, "total_tokens")
        if total_tokens != sum(daily.values()):
            raise ValueError("'total_tokens' does not match the daily counts")

        recent_data = data["recent"]
        if not isinstance(recent_data, list):
            raise ValueError("'recent' must be a list")
        if len(recent_data) > recent_limit:
            raise ValueError(f"'recent' holds more than {recent_limit} entries")

        return cls(
            month=month,
            total_tokens=total_tokens,
            daily=daily,
            processed_count=_require_count(data, "processed_count"),
            recent=[RecentEntry.from_dict(item) for item in recent_data],
        )
