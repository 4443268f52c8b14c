# expense_tracker/cli.py
import logging
from functools import wraps

import click
import yaml
from dotenv import load_dotenv

from expense_tracker.aggregation import category_totals, compare_months
from expense_tracker.config import load_config, save_config
from expense_tracker.core.errors import StorageError
from expense_tracker.database import ExpenseStore
from expense_tracker.demo import seed_demo_data
from expense_tracker.repositories import CategoryRepository, ExpenseRepository
from expense_tracker.state import ExpenseState

logger = logging.getLogger(__name__)


def _fail_cleanly(func):
    """Report storage and validation errors as click errors."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (StorageError, ValueError) as exc:
            raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc
    return wrapper


def _resolve_category(store, value):
    """Accept a category id or name and return the category id."""
    repo = CategoryRepository(store)
    category = repo.get(int(value)) if value.isdigit() else repo.find_by_name(value)
    if category is None:
        raise click.ClickException(f"Unknown category: {value}")
    return category.id


def _format_expense(expense, names):
    notes = f"  {expense.notes}" if expense.notes else ""
    category = names.get(expense.category_id, expense.category_id)
    return f"#{expense.id:<4} {expense.date}  {expense.amount:>10.2f}  {category}{notes}"


def _category_names(store):
    return {c.id: c.name for c in CategoryRepository(store).list()}


@click.group()
@click.option(
    '--db', 'db_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='SQLite database file (overrides config and MONEYSAVER_DB)'
)
@click.option(
    '--config', 'config_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='Path to moneysaver.yaml'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with MONEYSAVER_* settings'
)
@click.option(
    '--log-level', 'log_level',
    default=None,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Logging verbosity'
)
@click.pass_context
def main(ctx, db_path, config_path, env_file, log_level):
    """
    Track personal expenses in a local SQLite database and report spending
    per category for this month and the month before.
    """
    if env_file:
        load_dotenv(env_file)

    try:
        cfg = load_config(config_path)
        level = str(log_level or cfg['log_level']).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {level}")
        logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    except (ValueError, yaml.YAMLError) as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc

    db_path = db_path or cfg['db_path']
    logger.debug("Using database %s", db_path)
    try:
        store = ctx.with_resource(ExpenseStore(db_path))
        store.initialize(cfg['default_categories'])
    except (StorageError, ValueError) as exc:
        raise click.ClickException(f"Could not initialize {db_path}: {exc}") from exc

    ctx.obj = {'config': cfg, 'config_path': config_path, 'store': store}


@main.command()
@click.option('--save-config', 'write_config', is_flag=True, default=False,
              help='Write the effective configuration to the config file')
@click.pass_obj
def init(obj, write_config):
    """Create the database and seed default categories."""
    store = obj['store']
    if write_config:
        save_config(obj['config'], obj['config_path'])
    count = len(CategoryRepository(store).list())
    click.echo(f"Database ready at {store.db_path} ({count} categories).")


@main.command('categories')
@click.pass_obj
@_fail_cleanly
def list_categories(obj):
    """List categories by name."""
    for category in CategoryRepository(obj['store']).list():
        click.echo(f"#{category.id:<4} {category.name:<20} {category.color}")


@main.command('add-category')
@click.argument('name')
@click.option('--color', default=None, help='Hex display color (random when omitted)')
@click.pass_obj
@_fail_cleanly
def add_category(obj, name, color):
    """Add a category."""
    category = CategoryRepository(obj['store']).add(name, color)
    click.echo(f"Added category #{category.id} {category.name}.")


@main.command('delete-category')
@click.argument('category_id', type=int)
@click.pass_obj
@_fail_cleanly
def delete_category(obj, category_id):
    """Delete a category together with its expenses."""
    if CategoryRepository(obj['store']).delete(category_id):
        click.echo(f"Deleted category #{category_id}.")
    else:
        click.echo(f"No category #{category_id}.")


@main.command('add')
@click.option('--amount', required=True, type=float, help='Positive amount')
@click.option('--category', 'category', required=True, help='Category id or name')
@click.option('--date', 'date', default=None, help='ISO timestamp (default: now)')
@click.option('--notes', default=None, help='Optional notes')
@click.pass_obj
@_fail_cleanly
def add_expense(obj, amount, category, date, notes):
    """Record an expense."""
    store = obj['store']
    state = ExpenseState(store)
    expense = state.add_expense(amount, _resolve_category(store, category), date, notes)
    click.echo(f"Added expense #{expense.id} {expense.amount:.2f} on {expense.date}.")


@main.command('list')
@click.option('--from', 'from_iso', default=None, help='Inclusive start timestamp')
@click.option('--to', 'to_iso', default=None, help='Exclusive end timestamp')
@click.pass_obj
@_fail_cleanly
def list_expenses(obj, from_iso, to_iso):
    """List expenses, newest first."""
    store = obj['store']
    repo = ExpenseRepository(store)
    if bool(from_iso) != bool(to_iso):
        raise click.UsageError('--from and --to must be given together')
    expenses = repo.list_in_range(from_iso, to_iso) if from_iso else repo.list_all()
    if not expenses:
        click.echo("No expenses.")
        return
    names = _category_names(store)
    for expense in expenses:
        click.echo(_format_expense(expense, names))


@main.command('update')
@click.argument('expense_id', type=int)
@click.option('--amount', required=True, type=float)
@click.option('--category', 'category', required=True, help='Category id or name')
@click.option('--date', 'date', required=True, help='ISO timestamp')
@click.option('--notes', default=None)
@click.pass_obj
@_fail_cleanly
def update_expense(obj, expense_id, amount, category, date, notes):
    """Replace every field of an expense."""
    store = obj['store']
    updated = ExpenseRepository(store).update(
        expense_id, amount, _resolve_category(store, category), date, notes
    )
    click.echo(f"Updated expense #{expense_id}." if updated else f"No expense #{expense_id}.")


@main.command('delete')
@click.argument('expense_id', type=int)
@click.pass_obj
@_fail_cleanly
def delete_expense(obj, expense_id):
    """Delete an expense."""
    if ExpenseRepository(obj['store']).delete(expense_id):
        click.echo(f"Deleted expense #{expense_id}.")
    else:
        click.echo(f"No expense #{expense_id}.")


@main.command('totals')
@click.option('--from', 'from_iso', required=True, help='Inclusive start timestamp')
@click.option('--to', 'to_iso', required=True, help='Exclusive end timestamp')
@click.pass_obj
@_fail_cleanly
def totals(obj, from_iso, to_iso):
    """Spend per category over a half-open window."""
    rows = category_totals(obj['store'], from_iso, to_iso)
    for row in rows:
        click.echo(f"{row.category_name:<20} {row.total:>10.2f}")
    click.echo(f"{'Total':<20} {sum(r.total for r in rows):>10.2f}")


@main.command('summary')
@click.pass_obj
@_fail_cleanly
def summary(obj):
    """This month against last month, with the most recent expenses."""
    store = obj['store']
    state = ExpenseState(store)
    if not state.load_initial_data():
        raise click.ClickException(f"Could not load data: {state.load_error}")
    limit = int(obj['config'].get('recent_limit', 10))
    board = state.dashboard(limit)
    change = compare_months(store)

    click.echo(f"This month: {board['this_month_total']:.2f}")
    click.echo(f"Last month: {board['last_month_total']:.2f}")
    if change['percent_change'] is not None:
        click.echo(f"Change:     {change['percent_change'] * 100:+.1f}%")
    for row in board['this_month']:
        click.echo(f"  {row['category_name']:<18} {row['total']:>10.2f}")
    click.echo("Recent:")
    names = {c.id: c.name for c in state.categories}
    for expense in state.recent_expenses(limit):
        click.echo("  " + _format_expense(expense, names))


@main.command('seed-demo')
@click.confirmation_option(prompt='This deletes every expense. Continue?')
@click.pass_obj
@_fail_cleanly
def seed_demo(obj):
    """Replace all expenses with demo data (development aid)."""
    count = seed_demo_data(obj['store'])
    click.echo(f"Inserted {count} demo expense(s).")


if __name__ == '__main__':
    main()
