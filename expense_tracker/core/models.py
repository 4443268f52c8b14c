# expense_tracker/core/models.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone


@dataclass
class Category:
    id: int
    name: str
    color: str


@dataclass
class Expense:
    id: int
    amount: float
    category_id: int
    date: str
    notes: str | None = None


@dataclass
class CategoryTotal:
    category_id: int
    category_name: str
    color: str
    total: float = 0.0


def canonical_timestamp(value) -> str:
    """Return *value* as a canonical UTC timestamp string.

    Stored dates and range bounds all go through this function so that
    comparing the strings in SQL gives the same answer as comparing instants.
    Naive values are taken to be UTC and sub-second precision is dropped.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    m = moment.astimezone(timezone.utc)
    # fixed width, strftime does not pad years below 1000 everywhere
    return (
        f"{m.year:04d}-{m.month:02d}-{m.day:02d}"
        f"T{m.hour:02d}:{m.minute:02d}:{m.second:02d}Z"
    )
