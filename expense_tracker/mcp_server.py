from __future__ import annotations

import threading

import anyio
from mcp.server.fastmcp import FastMCP

from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from expense_tracker.aggregation import category_totals, compare_months
from expense_tracker.core.models import canonical_timestamp
from expense_tracker.database import ExpenseStore
from expense_tracker.repositories import CategoryRepository, ExpenseRepository
from expense_tracker.state import ExpenseState

server = FastMCP(name="MoneySaver", instructions="Record and summarize personal expenses")


def _check_timestamp(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    try:
        return canonical_timestamp(value)
    except ValueError as exc:
        raise ValueError(f"Invalid {field}: {value}") from exc


def _check_range(start: str | None, end: str | None) -> tuple[str | None, str | None]:
    start = _check_timestamp(start, "start")
    end = _check_timestamp(end, "end")
    if (start is None) != (end is None):
        raise ValueError("start and end must be given together")
    if start and end and start > end:
        raise ValueError("start must be on or before end")
    return start, end


_stores: dict[Path, ExpenseStore] = {}
_stores_lock = threading.Lock()


def _get_store(db_path: str, must_exist: bool) -> ExpenseStore:
    """Return the process-wide store for *db_path*, initializing it once."""
    path = Path(db_path).expanduser().resolve()
    with _stores_lock:
        store = _stores.get(path)
        if store is not None:
            return store
        if must_exist and not path.exists():
            raise FileNotFoundError(f"Database not found: {db_path}")
        store = ExpenseStore(path)
        store.initialize()
        _stores[path] = store
        return store


def close_stores() -> None:
    with _stores_lock:
        for store in _stores.values():
            store.close()
        _stores.clear()


async def _with_store(db_path: str, func, must_exist: bool = True):
    """Run *func(store)* in a worker thread.

    With *must_exist* a missing database raises ``FileNotFoundError``;
    otherwise the file is created and seeded.
    """

    def _run():
        return func(_get_store(db_path, must_exist))

    return await anyio.to_thread.run_sync(_run)


@server.tool(name="get_categories", description="List expense categories")
async def get_categories(db_path: str) -> list[dict]:
    return await _with_store(
        db_path, lambda store: [asdict(c) for c in CategoryRepository(store).list()]
    )


@server.tool(name="create_category", description="Add an expense category")
async def create_category(db_path: str, name: str, color: str | None = None) -> dict:
    return await _with_store(
        db_path,
        lambda store: asdict(CategoryRepository(store).add(name, color)),
        must_exist=False,
    )


@server.tool(
    name="remove_category",
    description="Delete a category and every expense recorded against it",
)
async def remove_category(db_path: str, category_id: int) -> bool:
    return await _with_store(
        db_path, lambda store: CategoryRepository(store).delete(category_id)
    )


@server.tool(name="create_expense", description="Record an expense")
async def create_expense(
    db_path: str,
    amount: float,
    category_id: int,
    date: str | None = None,
    notes: str | None = None,
) -> dict:
    """Insert an expense and return the stored row.

    ``date`` defaults to the current time.
    """
    when = _check_timestamp(date, "date") or canonical_timestamp(datetime.now(timezone.utc))
    return await _with_store(
        db_path,
        lambda store: asdict(ExpenseRepository(store).add(amount, category_id, when, notes)),
        must_exist=False,
    )


@server.tool(name="get_expenses", description="List expenses, newest first")
async def get_expenses(
    db_path: str,
    start: str | None = None,
    end: str | None = None,
) -> list[dict]:
    """Return expenses from ``db_path``.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    start, end:
        Optional ISO timestamps bounding a half-open window ``[start, end)``.
    """
    start, end = _check_range(start, end)

    def _run(store):
        repo = ExpenseRepository(store)
        rows = repo.list_in_range(start, end) if start else repo.list_all()
        return [asdict(e) for e in rows]

    return await _with_store(db_path, _run)


@server.tool(name="edit_expense", description="Replace every field of an expense")
async def edit_expense(
    db_path: str,
    expense_id: int,
    amount: float,
    category_id: int,
    date: str,
    notes: str | None = None,
) -> bool:
    when = _check_timestamp(date, "date")
    return await _with_store(
        db_path,
        lambda store: ExpenseRepository(store).update(
            expense_id, amount, category_id, when, notes
        ),
    )


@server.tool(name="remove_expense", description="Delete an expense")
async def remove_expense(db_path: str, expense_id: int) -> bool:
    return await _with_store(
        db_path, lambda store: ExpenseRepository(store).delete(expense_id)
    )


@server.tool(
    name="get_category_totals",
    description="Total spend per category over a half-open date window",
)
async def get_category_totals(db_path: str, start: str, end: str) -> list[dict]:
    start, end = _check_range(start, end)
    return await _with_store(
        db_path, lambda store: [asdict(t) for t in category_totals(store, start, end)]
    )


@server.tool(
    name="get_monthly_summary",
    description="This month against last month with the most recent expenses",
)
async def get_monthly_summary(db_path: str, limit: int = 10) -> dict:
    def _run(store):
        state = ExpenseState(store)
        state.reload()
        summary = state.dashboard(limit)
        summary["comparison"] = compare_months(store)
        return summary

    return await _with_store(db_path, _run)


def main() -> None:
    try:
        server.run()
    finally:
        close_stores()


if __name__ == "__main__":
    main()
