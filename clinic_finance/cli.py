# clinic_finance/cli.py
import logging
import os

import click
from dotenv import load_dotenv

from clinic_finance.backends import Mode
from clinic_finance.config import load_config
from clinic_finance.core.models import ALL_CATEGORIES, EXPENSE_CATEGORIES, INCOME_CATEGORIES
from clinic_finance.session import Session
from clinic_finance.view import FilterState, expense_by_category


def _configure_logging():
    level = os.environ.get('CLINIC_FINANCE_LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


def _open_session(ctx):
    cfg = ctx.obj['config']
    session = Session.from_config(cfg)
    mode = session.refresh()
    source = cfg['api_url'] if mode is Mode.REMOTE else session.cache.path
    click.echo(f"Mode: {mode.value} ({source})", err=True)
    return session


def _format_row(tx):
    sign = '+' if tx.type.value == 'INCOME' else '-'
    return f"{tx.id:>14}  {tx.date.isoformat()}  {sign}{tx.amount:>10.2f}  {tx.category:<24}  {tx.description}"


@click.group()
@click.option(
    '--config', 'config_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults to ./config.yaml when present)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with PORT, API_KEY and other settings'
)
@click.option('--api-url', default=None, help='Override the remote store URL')
@click.option('--cache-dir', default=None, type=click.Path(file_okay=False), help='Override the fallback cache directory')
@click.pass_context
def main(ctx, config_path, env_file, api_url, cache_dir):
    """
    Income/expense tracking for a medical office. Client commands talk to the
    remote store when it answers and fall back to the local cache otherwise.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    _configure_logging()

    cfg = load_config(config_path)
    if api_url:
        cfg['api_url'] = api_url
    if cache_dir:
        cfg['cache_dir'] = cache_dir
    ctx.obj = {'config': cfg}


@main.command()
@click.option('--host', default=None, help='Host to bind (default from config: 0.0.0.0)')
@click.option('--port', type=int, default=None, help='Port to bind (default: $PORT or 3000)')
@click.pass_context
def serve(ctx, host, port):
    """Run the REST transaction store."""
    from clinic_finance.web import run_server

    store_cfg = ctx.obj['config']['store']
    run_server(host or store_cfg['host'], port or store_cfg['port'])


@main.command()
@click.option('--host', default=None, help='Host to bind (default: 127.0.0.1)')
@click.option('--port', type=int, default=None, help='Port to bind (default: 8000)')
@click.pass_context
def dashboard(ctx, host, port):
    """Run the web dashboard."""
    import uvicorn

    from webapp import main as webapp_main

    webapp_main.configure(ctx.obj['config'])
    dash_cfg = ctx.obj['config']['dashboard']
    uvicorn.run(webapp_main.app, host=host or dash_cfg['host'], port=port or dash_cfg['port'])


@main.command('list')
@click.option('--type', 'tx_type', type=click.Choice(['INCOME', 'EXPENSE'], case_sensitive=False), default=None)
@click.option('--category', default=None, help='Exact category name')
@click.option('--start-date', default=None, help='First date included (YYYY-MM-DD)')
@click.option('--end-date', default=None, help='Last date included (YYYY-MM-DD)')
@click.option('--search', default=None, help='Case-insensitive text in description or category')
@click.pass_context
def list_transactions(ctx, tx_type, category, start_date, end_date, search):
    """List transactions, newest first, optionally filtered."""
    session = _open_session(ctx)
    filters = FilterState.from_params({
        'type': tx_type,
        'category': category,
        'start_date': start_date,
        'end_date': end_date,
        'search': search,
    })
    rows = session.filtered(filters)
    for tx in rows:
        click.echo(_format_row(tx))
    click.echo(f"{len(rows)} of {len(session.transactions)} transaction(s).")


@main.command()
@click.option('--amount', required=True, help='Positive amount')
@click.option('--description', required=True)
@click.option('--type', 'tx_type', type=click.Choice(['INCOME', 'EXPENSE'], case_sensitive=False), default='INCOME')
@click.option('--category', default=None, help='Defaults to the first category of the type')
@click.option('--date', 'tx_date', default=None, help='YYYY-MM-DD, defaults to today')
@click.pass_context
def add(ctx, amount, description, tx_type, category, tx_date):
    """Record a new income or expense."""
    session = _open_session(ctx)
    candidate = {
        'amount': amount,
        'description': description,
        'type': tx_type.upper(),
        'category': category,
        'date': tx_date,
    }
    if category and category not in ALL_CATEGORIES:
        click.echo(f"⚠️  '{category}' is not a known category; saving it anyway.", err=True)
    if session.create(candidate):
        click.echo(f"Saved. {len(session.transactions)} transaction(s) in total.")
    else:
        click.echo('Nothing saved.', err=True)
        ctx.exit(1)


@main.command()
@click.argument('tx_id')
@click.pass_context
def delete(ctx, tx_id):
    """Delete a transaction by id."""
    session = _open_session(ctx)
    known = tx_id in session.state
    # Remote deletes always go to the store, which owns the collection.
    if session.delete(tx_id):
        click.echo(f"Deleted {tx_id}." if known else f"Store accepted delete of {tx_id}.")
    elif not known and session.mode is Mode.LOCAL:
        click.echo(f"No transaction with id {tx_id}.", err=True)
    else:
        click.echo(f"Could not delete {tx_id}.", err=True)
        ctx.exit(1)


@main.command()
@click.pass_context
def stats(ctx):
    """Show totals, balance and expenses by category."""
    session = _open_session(ctx)
    summary = session.stats()
    click.echo(f"Income:  {summary.total_income:12.2f}")
    click.echo(f"Expense: {summary.total_expense:12.2f}")
    click.echo(f"Balance: {summary.balance:12.2f}")
    click.echo(f"Ratio:   {summary.ratio:>11}%")
    by_category = expense_by_category(session.transactions)
    if by_category:
        click.echo('\nExpenses by category:')
        for name, total in by_category.items():
            click.echo(f"  {name:<24} {total:12.2f}")
    if summary.monthly_data:
        click.echo('\nMonthly:')
        for row in summary.monthly_data:
            click.echo(f"  {row['month']}  +{row['income']:.2f}  -{row['expense']:.2f}")


@main.command()
def categories():
    """Print the category vocabularies."""
    click.echo('Income: ' + ', '.join(INCOME_CATEGORIES))
    click.echo('Expense: ' + ', '.join(EXPENSE_CATEGORIES))
    click.echo('All: ' + ', '.join(ALL_CATEGORIES))


@main.command()
@click.pass_context
def insights(ctx):
    """Send all transactions to the LLM and print its analysis."""
    session = _open_session(ctx)
    report = session.insights()
    if report is None:
        click.echo('No transactions to analyze.', err=True)
        return
    click.echo("\nAI Report:\n" + report)


if __name__ == '__main__':
    main()
