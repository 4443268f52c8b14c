# expense_tracker/aggregation.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Tuple

from expense_tracker.core.models import CategoryTotal, canonical_timestamp
from expense_tracker.database import ExpenseStore


def _utc(ref: datetime | None) -> datetime:
    if ref is None:
        return datetime.now(timezone.utc)
    if ref.tzinfo is None:
        return ref.replace(tzinfo=timezone.utc)
    return ref.astimezone(timezone.utc)


def _add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    month_index = month - 1 + months
    return year + month_index // 12, month_index % 12 + 1


def month_bounds(ref: datetime | None = None) -> Tuple[str, str]:
    """Return ``(start, end)`` of the UTC calendar month containing *ref*.

    The window is half-open: *start* is the first instant of the month and
    *end* the first instant of the following one.
    """
    ref = _utc(ref)
    start = datetime(ref.year, ref.month, 1, tzinfo=timezone.utc)
    next_year, next_month = _add_months(ref.year, ref.month, 1)
    end = datetime(next_year, next_month, 1, tzinfo=timezone.utc)
    return canonical_timestamp(start), canonical_timestamp(end)


def previous_month_anchor(ref: datetime | None = None) -> datetime:
    """The 15th of the month before *ref*, which exists in every month."""
    ref = _utc(ref)
    year, month = _add_months(ref.year, ref.month, -1)
    return datetime(year, month, 15, tzinfo=timezone.utc)


def last_month_bounds(ref: datetime | None = None) -> Tuple[str, str]:
    return month_bounds(previous_month_anchor(ref))


def category_totals(store: ExpenseStore, from_iso, to_iso) -> List[CategoryTotal]:
    """Total spend per category over ``[from_iso, to_iso)``.

    Every category is returned, with ``0.0`` when nothing matched, ordered by
    total descending and then by name.
    """
    rows = store.query(
        """
        SELECT c.id AS category_id,
               c.name AS category_name,
               c.color AS color,
               COALESCE(SUM(e.amount), 0.0) AS total
        FROM categories c
        LEFT JOIN expenses e
          ON e.category_id = c.id
         AND e.date >= ? AND e.date < ?
        GROUP BY c.id, c.name, c.color
        ORDER BY total DESC, c.name ASC
        """,
        (canonical_timestamp(from_iso), canonical_timestamp(to_iso)),
    )
    return [
        CategoryTotal(
            category_id=int(row["category_id"]),
            category_name=row["category_name"],
            color=row["color"],
            total=float(row["total"] or 0.0),
        )
        for row in rows
    ]


def sum_totals(totals: List[CategoryTotal]) -> float:
    return sum(t.total for t in totals)


def compare_months(store: ExpenseStore, ref: datetime | None = None) -> Dict[str, object]:
    """Compare spend in the month of *ref* with the month before it.

    ``difference`` is this month minus last month; ``percent_change`` is
    None when last month had no spend.
    """
    this_start, this_end = month_bounds(ref)
    last_start, last_end = last_month_bounds(ref)
    this_total = sum_totals(category_totals(store, this_start, this_end))
    last_total = sum_totals(category_totals(store, last_start, last_end))

    diff = this_total - last_total
    pct_change = diff / last_total if last_total else None

    return {
        "this_month": {"start": this_start, "end": this_end, "total": this_total},
        "last_month": {"start": last_start, "end": last_end, "total": last_total},
        "difference": diff,
        "percent_change": pct_change,
    }
