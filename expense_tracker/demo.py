# expense_tracker/demo.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Tuple

from expense_tracker.core.models import canonical_timestamp
from expense_tracker.database import ExpenseStore

# (amount, category name, days ago, notes)
DEMO_EXPENSES: List[Tuple[float, str, int, str]] = [
    (45.5, "Food", 1, "Lunch"),
    (12.0, "Transport", 2, "Bus"),
    (89.9, "Shopping", 3, "Shoes"),
    (220.0, "Bills", 7, "Electricity bill"),
    (60.0, "Entertainment", 10, "Cinema"),
    (25.0, "Food", 15, "Snacks"),
]


def seed_demo_data(store: ExpenseStore, now: datetime | None = None) -> int:
    """Replace every expense with a small demo set dated relative to *now*.

    Meant for development only. All expenses are deleted and the demo rows
    inserted in a single transaction. Returns the number of demo rows.
    """
    now = now or datetime.now(timezone.utc)
    rows = store.query("SELECT id, name FROM categories")
    ids = {row["name"]: row["id"] for row in rows}
    missing = sorted({name for _, name, _, _ in DEMO_EXPENSES} - set(ids))
    if missing:
        raise ValueError(f"Demo data needs categories: {', '.join(missing)}")

    statements = [("DELETE FROM expenses", ())]
    for amount, name, days_ago, notes in DEMO_EXPENSES:
        statements.append(
            (
                "INSERT INTO expenses (amount, category_id, date, notes) VALUES (?, ?, ?, ?)",
                (amount, ids[name], canonical_timestamp(now - timedelta(days=days_ago)), notes),
            )
        )
    store.run_in_transaction(statements)
    return len(DEMO_EXPENSES)
