# expense_tracker/state.py
from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from expense_tracker.aggregation import (
    category_totals,
    last_month_bounds,
    month_bounds,
    sum_totals,
)
from expense_tracker.core.errors import StorageError
from expense_tracker.core.models import Category, CategoryTotal, Expense
from expense_tracker.database import ExpenseStore
from expense_tracker.repositories import CategoryRepository, ExpenseRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseState:
    """In-memory copy of the store plus this/last month aggregates.

    The cache is never written on its own: every mutation goes to the
    repositories first and is followed by a full :meth:`reload`.
    """

    def __init__(
        self,
        store: ExpenseStore,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.category_repo = CategoryRepository(store)
        self.expense_repo = ExpenseRepository(store)
        self._now = now or _utcnow

        self.categories: List[Category] = []
        self.expenses: List[Expense] = []
        self.this_month_totals: List[CategoryTotal] = []
        self.last_month_totals: List[CategoryTotal] = []
        self.is_loading = False
        self.load_error: Optional[StorageError] = None

    def _reset(self) -> None:
        self.categories = []
        self.expenses = []
        self.this_month_totals = []
        self.last_month_totals = []

    def load_initial_data(self) -> bool:
        """Populate the cache, falling back to empty collections on failure.

        Returns False when the load failed; the error is kept in
        :attr:`load_error` so callers can tell "no data" from "load failed".
        """
        try:
            self.reload()
        except StorageError as exc:
            logger.exception("Initial load from %s failed", self.store.db_path)
            self._reset()
            self.load_error = exc
            return False
        return True

    def reload(self) -> None:
        self.is_loading = True
        try:
            categories = self.category_repo.list()
            expenses = self.expense_repo.list_all()
            self.categories = categories
            self.expenses = expenses
            self.refresh_aggregates()
            self.load_error = None
        finally:
            self.is_loading = False

    def refresh_aggregates(self) -> None:
        now = self._now()
        this_start, this_end = month_bounds(now)
        last_start, last_end = last_month_bounds(now)
        self.this_month_totals = category_totals(self.store, this_start, this_end)
        self.last_month_totals = category_totals(self.store, last_start, last_end)

    # Mutations ---------------------------------------------------------------

    def add_expense(self, amount: float, category_id: int, date=None, notes: str | None = None) -> Expense:
        created = self.expense_repo.add(
            amount, category_id, date if date is not None else self._now(), notes
        )
        self.reload()
        return created

    def update_expense(self, expense_id: int, amount: float, category_id: int, date, notes: str | None = None) -> bool:
        updated = self.expense_repo.update(expense_id, amount, category_id, date, notes)
        self.reload()
        return updated

    def delete_expense(self, expense_id: int) -> bool:
        deleted = self.expense_repo.delete(expense_id)
        self.reload()
        return deleted

    def add_category(self, name: str, color: str | None = None) -> Category:
        created = self.category_repo.add(name, color)
        self.reload()
        return created

    def delete_category(self, category_id: int) -> bool:
        deleted = self.category_repo.delete(category_id)
        self.reload()
        return deleted

    # Derived values ----------------------------------------------------------

    @property
    def this_month_sum(self) -> float:
        return sum_totals(self.this_month_totals)

    @property
    def last_month_sum(self) -> float:
        return sum_totals(self.last_month_totals)

    def recent_expenses(self, limit: int = 10) -> List[Expense]:
        return self.expenses[:limit]

    def category_lookup(self) -> Dict[int, Category]:
        return {c.id: c for c in self.categories}

    def dashboard(self, limit: int = 10) -> Dict[str, object]:
        """Summary used by the CLI ``summary`` command and the MCP server."""
        lookup = self.category_lookup()
        recent = []
        for expense in self.recent_expenses(limit):
            row = asdict(expense)
            category = lookup.get(expense.category_id)
            row["category_name"] = category.name if category else None
            recent.append(row)
        return {
            "this_month_total": self.this_month_sum,
            "last_month_total": self.last_month_sum,
            "this_month": [asdict(t) for t in self.this_month_totals if t.total > 0],
            "last_month": [asdict(t) for t in self.last_month_totals if t.total > 0],
            "recent": recent,
        }
