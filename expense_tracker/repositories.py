# expense_tracker/repositories.py
from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

from expense_tracker.core.models import Category, Expense, canonical_timestamp
from expense_tracker.database import ExpenseStore

_EXPENSE_COLUMNS = "id, amount, category_id, date, notes"

MIN_CATEGORY_NAME_LENGTH = 2


def random_color() -> str:
    return f"#{random.randint(0, 0xFFFFFF):06X}"


def _to_category(row: Dict[str, Any]) -> Category:
    return Category(id=int(row["id"]), name=row["name"], color=row["color"])


def _to_expense(row: Dict[str, Any]) -> Expense:
    return Expense(
        id=int(row["id"]),
        amount=float(row["amount"]),
        category_id=int(row["category_id"]),
        date=row["date"],
        notes=row["notes"],
    )


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    notes = notes.strip()
    return notes or None


def _validate_amount(amount) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value > 0:
        raise ValueError(f"Amount must be greater than 0, got {amount!r}")
    return value


class CategoryRepository:
    def __init__(self, store: ExpenseStore) -> None:
        self.store = store

    def list(self) -> List[Category]:
        rows = self.store.query("SELECT id, name, color FROM categories ORDER BY name ASC")
        return [_to_category(r) for r in rows]

    def get(self, category_id: int) -> Optional[Category]:
        rows = self.store.query(
            "SELECT id, name, color FROM categories WHERE id = ?", (category_id,)
        )
        return _to_category(rows[0]) if rows else None

    def find_by_name(self, name: str) -> Optional[Category]:
        rows = self.store.query(
            "SELECT id, name, color FROM categories WHERE name = ?", (name.strip(),)
        )
        return _to_category(rows[0]) if rows else None

    def add(self, name: str, color: str | None = None) -> Category:
        """Insert a category and return it with its assigned id.

        A random color is picked when *color* is omitted. Raises
        :class:`ConstraintViolation` when the trimmed name is taken.
        """
        name = (name or "").strip()
        if len(name) < MIN_CATEGORY_NAME_LENGTH:
            raise ValueError(
                f"Category name must be at least {MIN_CATEGORY_NAME_LENGTH} characters"
            )
        color = color or random_color()
        result = self.store.execute(
            "INSERT INTO categories (name, color) VALUES (?, ?)", (name, color)
        )
        return Category(id=result.inserted_id, name=name, color=color)

    def delete(self, category_id: int) -> bool:
        """Remove a category and, through the foreign key, its expenses."""
        result = self.store.execute("DELETE FROM categories WHERE id = ?", (category_id,))
        return result.rowcount > 0


class ExpenseRepository:
    def __init__(self, store: ExpenseStore) -> None:
        self.store = store

    def add(
        self,
        amount: float,
        category_id: int,
        date,
        notes: str | None = None,
    ) -> Expense:
        """Insert an expense and return the stored row.

        Parameters
        ----------
        amount:
            Positive amount; anything else raises ``ValueError``.
        category_id:
            Id of an existing category, otherwise
            :class:`ForeignKeyViolation` is raised.
        date:
            ``datetime``, ``date`` or ISO string, stored in canonical UTC form.
        notes:
            Optional free text. Blank notes are stored as NULL.
        """
        result = self.store.execute(
            "INSERT INTO expenses (amount, category_id, date, notes) VALUES (?, ?, ?, ?)",
            (_validate_amount(amount), int(category_id), canonical_timestamp(date), _clean_notes(notes)),
        )
        return self.get(result.inserted_id)

    def get(self, expense_id: int) -> Optional[Expense]:
        rows = self.store.query(
            f"SELECT {_EXPENSE_COLUMNS} FROM expenses WHERE id = ?", (expense_id,)
        )
        return _to_expense(rows[0]) if rows else None

    def list_all(self) -> List[Expense]:
        rows = self.store.query(
            f"SELECT {_EXPENSE_COLUMNS} FROM expenses ORDER BY date DESC, id DESC"
        )
        return [_to_expense(r) for r in rows]

    def list_in_range(self, from_iso, to_iso) -> List[Expense]:
        """Expenses dated in the half-open window ``[from_iso, to_iso)``."""
        rows = self.store.query(
            f"""
            SELECT {_EXPENSE_COLUMNS}
            FROM expenses
            WHERE date >= ? AND date < ?
            ORDER BY date DESC, id DESC
            """,
            (canonical_timestamp(from_iso), canonical_timestamp(to_iso)),
        )
        return [_to_expense(r) for r in rows]

    def list_recent(self, limit: int = 10) -> List[Expense]:
        rows = self.store.query(
            f"SELECT {_EXPENSE_COLUMNS} FROM expenses ORDER BY date DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [_to_expense(r) for r in rows]

    def update(
        self,
        expense_id: int,
        amount: float,
        category_id: int,
        date,
        notes: str | None = None,
    ) -> bool:
        """Overwrite every field of an expense.

        Returns False when no expense has *expense_id*.
        """
        result = self.store.execute(
            """
            UPDATE expenses
            SET amount = ?, category_id = ?, date = ?, notes = ?
            WHERE id = ?
            """,
            (
                _validate_amount(amount),
                int(category_id),
                canonical_timestamp(date),
                _clean_notes(notes),
                expense_id,
            ),
        )
        return result.rowcount > 0

    def delete(self, expense_id: int) -> bool:
        result = self.store.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
        return result.rowcount > 0
