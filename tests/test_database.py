import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from expense_tracker.core.errors import (
    ConstraintViolation,
    ForeignKeyViolation,
    StorageUnavailable,
)
from expense_tracker.database import DEFAULT_CATEGORIES, ExpenseStore


def test_initialize_creates_tables_and_seeds(tmp_path):
    db_path = tmp_path / "money.db"
    with ExpenseStore(db_path) as store:
        assert store.initialize() == 6
        rows = store.query("SELECT name, color FROM categories ORDER BY id")

    assert rows == DEFAULT_CATEGORIES
    conn = sqlite3.connect(db_path)
    tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    conn.close()
    assert {"categories", "expenses"} <= tables


def test_initialize_twice_does_not_duplicate_seed(tmp_path):
    db_path = tmp_path / "money.db"
    with ExpenseStore(db_path) as store:
        store.initialize()
        first = store.query("SELECT COUNT(*) AS count FROM categories")[0]["count"]
        assert store.initialize() == 0
        second = store.query("SELECT COUNT(*) AS count FROM categories")[0]["count"]
    assert first == second == 6

    # a fresh handle on the same file sees the existing seed
    with ExpenseStore(db_path) as store:
        assert store.initialize() == 0


def test_initialize_with_custom_seed(tmp_path):
    seed = [{"name": " Rent ", "color": "#000000"}, {"name": "Pets", "color": "#111111"}]
    with ExpenseStore(tmp_path / "money.db") as store:
        assert store.initialize(seed) == 2
        names = [r["name"] for r in store.query("SELECT name FROM categories ORDER BY name")]
    assert names == ["Pets", "Rent"]


def test_execute_and_query(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        store.initialize([])
        result = store.execute(
            "INSERT INTO categories (name, color) VALUES (?, ?)", ("Books", "#123456")
        )
        assert result.inserted_id == 1
        assert result.rowcount == 1

        rows = store.query("SELECT id, name, color FROM categories WHERE name = ?", ("Books",))
        assert rows == [{"id": 1, "name": "Books", "color": "#123456"}]

        deleted = store.execute("DELETE FROM categories WHERE id = ?", (1,))
        assert deleted.inserted_id is None
        assert deleted.rowcount == 1


def test_parameters_are_bound_not_interpolated(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        store.initialize([])
        name = "x'); DROP TABLE categories; --"
        store.execute("INSERT INTO categories (name, color) VALUES (?, ?)", (name, "#fff"))
        assert store.query("SELECT name FROM categories") == [{"name": name}]


def test_unique_name_raises_constraint_violation(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        store.initialize()
        with pytest.raises(ConstraintViolation):
            store.execute("INSERT INTO categories (name, color) VALUES (?, ?)", ("Food", "#fff"))


def test_foreign_keys_are_enforced(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        store.initialize()
        with pytest.raises(ForeignKeyViolation):
            store.execute(
                "INSERT INTO expenses (amount, category_id, date) VALUES (?, ?, ?)",
                (1.0, 999, "2025-01-01T00:00:00Z"),
            )


def test_run_in_transaction_is_atomic(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        store.initialize()
        statements = [
            ("INSERT INTO categories (name, color) VALUES (?, ?)", ("Travel", "#fff")),
            ("INSERT INTO categories (name, color) VALUES (?, ?)", ("Food", "#fff")),
        ]
        with pytest.raises(ConstraintViolation):
            store.run_in_transaction(statements)
        assert store.query("SELECT id FROM categories WHERE name = 'Travel'") == []


def test_bad_statement_raises_storage_unavailable(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        with pytest.raises(StorageUnavailable):
            store.query("SELECT * FROM missing_table")


def test_unopenable_path_raises_storage_unavailable(tmp_path):
    store = ExpenseStore(tmp_path)
    with pytest.raises(StorageUnavailable):
        store.initialize()


def test_context_manager_closes_connection(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        assert store.is_open
    assert not store.is_open
    store.close()


def test_concurrent_first_initialize_seeds_once(tmp_path):
    db_path = tmp_path / "money.db"
    stores = [ExpenseStore(db_path) for _ in range(6)]

    with ThreadPoolExecutor(max_workers=len(stores)) as pool:
        seeded = list(pool.map(lambda store: store.initialize(), stores))

    assert sorted(seeded) == [0, 0, 0, 0, 0, 6]
    rows = stores[0].query("SELECT COUNT(*) AS count FROM categories")
    assert rows[0]["count"] == 6
    for store in stores:
        store.close()


def test_initialize_rejects_incomplete_seed(tmp_path):
    with ExpenseStore(tmp_path / "money.db") as store:
        with pytest.raises(ValueError, match="name and a color"):
            store.initialize([{"name": "Rent"}])
        assert store.query("SELECT COUNT(*) AS count FROM categories")[0]["count"] == 0
