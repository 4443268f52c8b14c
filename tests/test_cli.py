import os
import re
from datetime import datetime, timezone

from click.testing import CliRunner

from expense_tracker.cli import main as cli
from expense_tracker.database import ExpenseStore
from expense_tracker.repositories import ExpenseRepository


def _invoke(tmp_path, *args, **kwargs):
    runner = CliRunner()
    base = [
        '--db', str(tmp_path / 'money.db'),
        '--config', str(tmp_path / 'moneysaver.yaml'),
    ]
    return runner.invoke(cli, base + list(args), **kwargs)


def test_init_seeds_categories(tmp_path):
    res = _invoke(tmp_path, 'init')
    assert res.exit_code == 0, res.output
    assert '6 categories' in res.output

    res = _invoke(tmp_path, 'categories')
    assert res.exit_code == 0, res.output
    lines = res.output.splitlines()
    assert len(lines) == 6
    assert 'Bills' in lines[0]


def test_init_can_write_config(tmp_path):
    res = _invoke(tmp_path, 'init', '--save-config')
    assert res.exit_code == 0, res.output
    assert (tmp_path / 'moneysaver.yaml').exists()


def test_category_commands(tmp_path):
    res = _invoke(tmp_path, 'add-category', 'Travel', '--color', '#123456')
    assert res.exit_code == 0, res.output
    assert 'Added category #7 Travel.' in res.output

    dup = _invoke(tmp_path, 'add-category', ' Travel ')
    assert dup.exit_code != 0
    assert 'ConstraintViolation' in dup.output

    res = _invoke(tmp_path, 'delete-category', '7')
    assert res.exit_code == 0, res.output
    assert 'Deleted category #7.' in res.output

    res = _invoke(tmp_path, 'delete-category', '7')
    assert 'No category #7.' in res.output


def test_expense_commands(tmp_path):
    res = _invoke(
        tmp_path, 'add',
        '--amount', '45.50',
        '--category', 'Food',
        '--date', '2025-01-10T12:00:00Z',
        '--notes', 'Lunch',
    )
    assert res.exit_code == 0, res.output
    assert 'Added expense #1 45.50 on 2025-01-10T12:00:00Z.' in res.output

    res = _invoke(tmp_path, 'add', '--amount', '12', '--category', '2', '--date', '2025-02-01T00:00:00Z')
    assert res.exit_code == 0, res.output

    res = _invoke(tmp_path, 'list')
    lines = res.output.splitlines()
    assert len(lines) == 2
    assert '2025-02-01T00:00:00Z' in lines[0]
    assert 'Lunch' in lines[1]

    res = _invoke(tmp_path, 'list', '--from', '2025-01-01T00:00:00Z', '--to', '2025-02-01T00:00:00Z')
    assert res.exit_code == 0, res.output
    assert len(res.output.splitlines()) == 1
    assert 'Food' in res.output

    res = _invoke(tmp_path, 'totals', '--from', '2025-01-01T00:00:00Z', '--to', '2025-02-01T00:00:00Z')
    assert res.exit_code == 0, res.output
    lines = res.output.splitlines()
    assert lines[0].split() == ['Food', '45.50']
    assert len(lines) == 7
    assert lines[-1].split() == ['Total', '45.50']

    res = _invoke(
        tmp_path, 'update', '1',
        '--amount', '50', '--category', 'Bills', '--date', '2025-01-11T00:00:00Z',
    )
    assert res.exit_code == 0, res.output
    assert 'Updated expense #1.' in res.output

    with ExpenseStore(tmp_path / 'money.db') as store:
        updated = ExpenseRepository(store).get(1)
    assert updated.amount == 50.0
    assert updated.notes is None

    res = _invoke(tmp_path, 'delete', '1')
    assert 'Deleted expense #1.' in res.output
    res = _invoke(tmp_path, 'delete', '1')
    assert 'No expense #1.' in res.output


def test_expense_errors_are_reported(tmp_path):
    res = _invoke(tmp_path, 'add', '--amount=-5', '--category', 'Food')
    assert res.exit_code != 0
    assert 'greater than 0' in res.output

    res = _invoke(tmp_path, 'add', '--amount', '5', '--category', 'Nope')
    assert res.exit_code != 0
    assert 'Unknown category: Nope' in res.output

    res = _invoke(tmp_path, 'add', '--amount', '5', '--category', 'Food', '--date', 'soon')
    assert res.exit_code != 0
    assert 'Invalid timestamp' in res.output

    res = _invoke(tmp_path, 'list', '--from', '2025-01-01')
    assert res.exit_code != 0


def test_summary(tmp_path):
    now = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')
    _invoke(tmp_path, 'add', '--amount', '30', '--category', 'Food', '--date', now, '--notes', 'Dinner')

    res = _invoke(tmp_path, 'summary')
    assert res.exit_code == 0, res.output
    assert 'This month: 30.00' in res.output
    assert 'Last month: 0.00' in res.output
    assert 'Dinner' in res.output


def test_seed_demo(tmp_path):
    res = _invoke(tmp_path, 'seed-demo', '--yes')
    assert res.exit_code == 0, res.output
    assert 'Inserted 6 demo expense(s).' in res.output

    res = _invoke(tmp_path, 'list')
    assert len(res.output.splitlines()) == 6


def test_env_file_sets_database(tmp_path, monkeypatch):
    monkeypatch.delenv('MONEYSAVER_DB', raising=False)
    db_path = tmp_path / 'from-env.db'
    env_file = tmp_path / '.env'
    env_file.write_text(f'MONEYSAVER_DB={db_path}\n')

    runner = CliRunner()
    try:
        res = runner.invoke(
            cli,
            ['--env-file', str(env_file), '--config', str(tmp_path / 'none.yaml'), 'init'],
        )
    finally:
        os.environ.pop('MONEYSAVER_DB', None)
    assert res.exit_code == 0, res.output
    assert db_path.exists()


def test_add_category_defaults_to_random_color_and_rejects_short_names(tmp_path):
    res = _invoke(tmp_path, 'add-category', 'Travel')
    assert res.exit_code == 0, res.output

    res = _invoke(tmp_path, 'categories')
    travel = next(line for line in res.output.splitlines() if 'Travel' in line)
    assert re.search(r'#[0-9A-F]{6}$', travel)

    res = _invoke(tmp_path, 'add-category', 'X')
    assert res.exit_code != 0
    assert 'at least 2' in res.output


def test_malformed_config_is_reported(tmp_path):
    (tmp_path / 'moneysaver.yaml').write_text('db_path: [unclosed\n')
    res = _invoke(tmp_path, 'init')
    assert res.exit_code == 1
    assert 'Invalid configuration' in res.output

    (tmp_path / 'moneysaver.yaml').write_text('- not\n- a mapping\n')
    res = _invoke(tmp_path, 'init')
    assert res.exit_code == 1
    assert 'Invalid configuration' in res.output


def test_seed_without_color_is_reported(tmp_path):
    (tmp_path / 'moneysaver.yaml').write_text('default_categories:\n  - name: Rent\n')
    res = _invoke(tmp_path, 'init')
    assert res.exit_code == 1
    assert 'name and a color' in res.output


def test_unknown_log_level_is_reported(tmp_path, monkeypatch):
    monkeypatch.setenv('MONEYSAVER_LOG_LEVEL', 'LOUD')
    res = _invoke(tmp_path, 'init')
    assert res.exit_code == 1
    assert 'Unknown log level: LOUD' in res.output
