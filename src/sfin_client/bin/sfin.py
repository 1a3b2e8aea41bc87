"""bin/sfin — SimpleFIN command line client.

Claims a setup token once, keeps the access URL in a local store, and
shows balances and recent transactions.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.table import Table

from sfin_client.lib.access_url import redact_access_url
from sfin_client.lib.client import SimpleFINClient
from sfin_client.lib.config import ClientConfig
from sfin_client.lib.errors import SimpleFINError
from sfin_client.lib.facade import (
    clear_stored_access_url,
    fetch_account,
    fetch_data,
    is_access_revoked,
)
from sfin_client.lib.models import Account, Transaction
from sfin_client.lib.storage import JSONFileStore

console = Console()

TOKEN_ENVVAR = "SIMPLEFIN_SETUP_TOKEN"


class Context:
    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self.store = JSONFileStore(config.store_path)

    def transport(self):
        return self.config.transport()


def _fail(error: SimpleFINError) -> None:
    click.echo(f"Error: {error}", err=True)
    if is_access_revoked(error):
        click.echo("Run 'sfin setup' with a new setup token.", err=True)
    raise SystemExit(1)


def _since(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def _money(amount: float, currency: str = "USD") -> str:
    prefix = "$" if currency == "USD" else f"{currency} "
    sign = "-" if amount < 0 else ""
    return f"{sign}{prefix}{abs(amount):,.2f}"


def _account_table(accounts: list[Account]) -> Table:
    table = Table(title="Accounts")
    table.add_column("Account")
    table.add_column("Institution")
    table.add_column("Balance", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("As of")
    for acct in accounts:
        available = acct.available_balance_in_dollars
        table.add_row(
            acct.name,
            acct.org.display_name,
            _money(acct.balance_in_dollars, acct.currency),
            _money(available, acct.currency) if available is not None else "",
            acct.balance_as_of.isoformat(),
        )
    return table


def _transaction_table(title: str, rows: list[tuple[Account, Transaction]]) -> Table:
    table = Table(title=title)
    table.add_column("Date")
    table.add_column("Account")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    for acct, txn in rows:
        style = "red" if txn.is_debit else "green"
        table.add_row(
            txn.posted_date.isoformat(),
            acct.name,
            txn.payee or txn.description,
            f"[{style}]{_money(txn.amount_in_dollars, acct.currency)}[/{style}]",
            "pending" if txn.is_pending else "",
        )
    return table


def _show_provider_errors(errors: list[str]) -> None:
    for err in errors:
        console.print(f"[yellow]SimpleFIN warning:[/yellow] {err}")


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="YAML config file (default ~/.config/sfin/config.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Log requests to stderr")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """sfin — read bank balances and transactions via SimpleFIN Bridge."""
    try:
        config = ClientConfig.load(Path(config_path) if config_path else None)
    except (ValueError, yaml.YAMLError) as e:
        click.echo(f"Error: invalid config: {e}", err=True)
        raise SystemExit(1)
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = Context(config)


@main.command()
@click.option("--token", envvar=TOKEN_ENVVAR, default=None, help="SimpleFIN setup token")
@click.pass_obj
def setup(obj: Context, token: str | None) -> None:
    """Claim a setup token and save the access URL."""
    key = obj.config.storage_key
    existing = obj.store.get(key)
    if existing:
        click.echo(f"SimpleFIN is already configured ({redact_access_url(existing)}).")
        if not click.confirm("Replace existing connection?"):
            return

    if not token:
        click.echo("\nSimpleFIN Setup")
        click.echo("=" * 40)
        click.echo("1. Go to: https://bridge.simplefin.org/simplefin/create")
        click.echo("2. Connect your bank account(s)")
        click.echo("3. Copy the Setup Token\n")
        token = click.prompt("Paste your SimpleFIN Setup Token")
    token = token.strip()

    client = SimpleFINClient(transport=obj.transport())
    click.echo("Claiming access URL...")
    try:
        access_url = client.claim_setup_token(token)
    except SimpleFINError as e:
        _fail(e)

    obj.store.set(key, access_url)
    click.echo(f"Access URL saved to {obj.store.path}.")

    click.echo("Testing connection...")
    try:
        response = client.fetch_accounts(balances_only=True)
    except SimpleFINError as e:
        click.echo(f"Warning: Connection test failed: {e}", err=True)
        click.echo("The access URL was saved — retry with 'sfin accounts'.")
        return

    click.echo(f"\nConnected! Found {len(response.accounts)} account(s).")
    console.print(_account_table(response.accounts))


@main.command()
@click.option("--token", envvar=TOKEN_ENVVAR, default="", help="Setup token, used if no access URL is stored")
@click.option("--days", "-d", default=None, type=int, help="Include transactions from the last N days")
@click.option("--balances-only/--with-transactions", default=True,
              help="Skip transaction history (default)")
@click.pass_obj
def accounts(obj: Context, token: str, days: int | None, balances_only: bool) -> None:
    """Show account balances."""
    try:
        response = fetch_data(
            token,
            obj.store,
            obj.config.storage_key,
            start_date=_since(days) if days else None,
            balances_only=balances_only,
            transport=obj.transport(),
        )
    except SimpleFINError as e:
        _fail(e)

    _show_provider_errors(response.errors)
    console.print(_account_table(response.accounts))
    if not balances_only:
        for acct in response.accounts:
            click.echo(f"  {acct.name}: {len(acct.transactions)} transactions")


@main.command()
@click.argument("account", required=False)
@click.option("--token", envvar=TOKEN_ENVVAR, default="", help="Setup token, used if no access URL is stored")
@click.option("--days", "-d", default=7, help="Days of history to fetch")
@click.option("--pending/--no-pending", default=True, help="Include pending transactions")
@click.pass_obj
def transactions(
    obj: Context, account: str | None, token: str, days: int, pending: bool
) -> None:
    """Show recent transactions, optionally for one ACCOUNT (name or ID)."""
    filters = dict(start_date=_since(days), pending=pending, transport=obj.transport())
    key = obj.config.storage_key
    try:
        if account:
            accts = [fetch_account(token, obj.store, key, account, **filters)]
            errors: list[str] = []
        else:
            response = fetch_data(token, obj.store, key, **filters)
            accts = response.accounts
            errors = response.errors
    except SimpleFINError as e:
        _fail(e)

    _show_provider_errors(errors)
    rows = [(acct, txn) for acct in accts for txn in acct.transactions]
    rows.sort(key=lambda row: row[1].posted, reverse=True)
    console.print(_transaction_table(f"Transactions, last {days} days", rows))

    pending_count = sum(1 for _, txn in rows if txn.is_pending)
    click.echo(f"{len(rows)} total, {pending_count} pending")


@main.command()
@click.pass_obj
def forget(obj: Context) -> None:
    """Remove the stored access URL."""
    clear_stored_access_url(obj.store, obj.config.storage_key)
    click.echo("Stored access URL removed.")


if __name__ == "__main__":
    main()
