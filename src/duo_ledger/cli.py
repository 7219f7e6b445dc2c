"""CLI for duo-ledger using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, load_settings
from .db import Database
from .exceptions import (
    ConcurrencyError,
    DuoLedgerError,
    TransactionNotFoundError,
    ValidationError,
)
from .models import NetBalance, Party
from .service import LedgerService
from .split_rules import KNOWN_CATEGORIES
from .ui import select_category_interactive

app = typer.Typer(
    name="duo-ledger",
    help="Track shared expenses between two parties and settle up safely",
)
rules_app = typer.Typer(help="Manage category split rules")
app.add_typer(rules_app, name="rules")

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def ledger_session(verbose: bool) -> Iterator[tuple[LedgerService, Settings]]:
    """Open settings, database and service; report failures and exit 1."""
    setup_logging(verbose)
    db = None
    try:
        settings = load_settings()
        db = Database(settings.database_path, settings.db_busy_timeout_seconds)
        yield LedgerService(settings, db), settings
    except ConcurrencyError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]")
        console.print("[dim]Check the balance again and retry.[/dim]\n")
        sys.exit(1)
    except (ValidationError, TransactionNotFoundError) as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        sys.exit(1)
    except DuoLedgerError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def format_money(amount: Decimal | float, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            return f"($[red]{abs_amount:,.2f}[/red])"
        return f"(${abs_amount:,.2f})"
    if use_color:
        return f" [green]${abs_amount:,.2f}[/green] "
    return f" ${abs_amount:,.2f} "


def describe_balance(balance: NetBalance, settings: Settings) -> str:
    """One-line human summary of who owes whom."""
    if balance.net_outstanding == 0:
        return "✅ All settled! No outstanding balance."

    a_name = settings.party_name(Party.A)
    b_name = settings.party_name(Party.B)
    if balance.party_a_owes > 0 and balance.party_b_owes > 0:
        return (
            f"{a_name} owes {settings.currency} {balance.party_a_owes:,.2f}; "
            f"{b_name} owes {settings.currency} {balance.party_b_owes:,.2f}"
        )
    if balance.party_a_owes > 0:
        debtor, creditor, owed = a_name, b_name, balance.party_a_owes
    else:
        debtor, creditor, owed = b_name, a_name, balance.party_b_owes
    return f"{debtor} owes {creditor} {settings.currency} {owed:,.2f}"


def parse_party_option(value: str) -> Party:
    try:
        return Party.parse(value)
    except ValidationError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def balance(
    detailed: bool = typer.Option(
        False, "--detailed", "-d", help="Show paid/share breakdown"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the current outstanding balance."""
    with ledger_session(verbose) as (service, settings):
        net = service.compute_net_balance()
        console.print(f"\n[bold]{describe_balance(net, settings)}[/bold]\n")

        if not detailed:
            return

        details = service.compute_detailed_balance()
        a_name = settings.party_name(Party.A)
        b_name = settings.party_name(Party.B)

        table = Table(
            title="Balance Summary", show_header=True, header_style="bold magenta"
        )
        table.add_column("", style="cyan")
        table.add_column(a_name, justify="right")
        table.add_column(b_name, justify="right")
        table.add_row(
            "Paid",
            format_money(details.party_a_paid),
            format_money(details.party_b_paid),
        )
        table.add_row(
            "Share",
            format_money(details.party_a_share),
            format_money(details.party_b_share),
        )
        table.add_row(
            "Average split",
            f"{details.avg_percent_a:.0f}%",
            f"{details.avg_percent_b:.0f}%",
        )
        table.add_row(
            "Net",
            format_money(details.party_a_net),
            format_money(details.party_b_net),
        )
        console.print(table)
        console.print(
            f"  Total spending: {format_money(details.total_spending, use_color=False)}"
        )


@app.command()
def add(
    amount: str = typer.Argument(..., help="Expense amount"),
    payer: str = typer.Option(..., "--payer", "-p", help="Who paid: A or B"),
    category: str | None = typer.Option(None, "--category", "-c", help="Category"),
    description: str = typer.Option("", "--description", "-m", help="Description"),
    split_a: float | None = typer.Option(None, "--split-a", help="Party A share 0-1"),
    split_b: float | None = typer.Option(None, "--split-b", help="Party B share 0-1"),
    spent_on: str | None = typer.Option(None, "--date", help="Date (YYYY-MM-DD)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a shared expense. Without --split-a/--split-b the category rule applies."""
    party = parse_party_option(payer)
    with ledger_session(verbose) as (service, settings):
        if category is None:
            category = select_category_interactive(
                sorted({*KNOWN_CATEGORIES, *service.list_split_rules()})
            )
            if category is None:
                console.print("[yellow]Cancelled.[/yellow]")
                return

        transaction = service.add_expense(
            payer=party,
            amount=amount,
            category=category,
            description=description,
            percent_a=split_a,
            percent_b=split_b,
            spent_on=_parse_date(spent_on),
        )
        console.print(
            f"\n[bold green]✓ Recorded #{transaction.id}:[/bold green] "
            f"{format_money(transaction.amount)} {transaction.category} "
            f"paid by {settings.party_name(transaction.payer)} "
            f"({transaction.percent_a:.0%}/{transaction.percent_b:.0%})"
        )
        console.print(describe_balance(service.compute_net_balance(), settings))


@app.command()
def pending(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List unsettled transactions, newest first."""
    with ledger_session(verbose) as (service, settings):
        rows = service.list_pending()
        if not rows:
            console.print("[green]✅ No pending transactions.[/green]")
            return

        table = Table(
            title="Pending Transactions", show_header=True, header_style="bold magenta"
        )
        table.add_column("ID", style="dim", width=6)
        table.add_column("Date", width=10)
        table.add_column("Description", style="cyan", width=30)
        table.add_column("Category", style="yellow")
        table.add_column("Payer")
        table.add_column("Amount", justify="right", width=12)
        table.add_column(f"{settings.party_name(Party.A)} owes", justify="right")
        table.add_column(f"{settings.party_name(Party.B)} owes", justify="right")

        for row in rows:
            tx = row.transaction
            desc = tx.description or "No description"
            table.add_row(
                str(tx.id),
                tx.spent_on.isoformat(),
                desc[:30] + "..." if len(desc) > 30 else desc,
                tx.category,
                settings.party_name(tx.payer),
                format_money(tx.amount),
                format_money(row.party_a_owes, use_color=False),
                format_money(row.party_b_owes, use_color=False),
            )

        console.print(table)
        console.print(describe_balance(service.compute_net_balance(), settings))


@app.command()
def amend(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    amount: str | None = typer.Option(None, "--amount", help="New amount"),
    category: str | None = typer.Option(None, "--category", "-c", help="New category"),
    payer: str | None = typer.Option(None, "--payer", "-p", help="New payer: A or B"),
    description: str | None = typer.Option(
        None, "--description", "-m", help="New description"
    ),
    split_a: float | None = typer.Option(None, "--split-a", help="New party A share"),
    split_b: float | None = typer.Option(None, "--split-b", help="New party B share"),
    clear_split: bool = typer.Option(
        False, "--clear-split", help="Drop the row split; use the category rule"
    ),
    spent_on: str | None = typer.Option(None, "--date", help="New date (YYYY-MM-DD)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Correct fields on an existing transaction."""
    with ledger_session(verbose) as (service, settings):
        changes: dict = {}
        if amount is not None:
            changes["amount"] = amount
        if category is not None:
            changes["category"] = category
        if payer is not None:
            changes["payer"] = Party.parse(payer)
        if description is not None:
            changes["description"] = description
        if spent_on is not None:
            changes["spent_on"] = _parse_date(spent_on)
        if clear_split:
            changes["percent_a"] = changes["percent_b"] = None
        elif split_a is not None or split_b is not None:
            changes["percent_a"] = split_a
            changes["percent_b"] = split_b

        if not changes:
            console.print("[yellow]Nothing to change.[/yellow]")
            return

        transaction = service.amend_transaction(transaction_id, **changes)
        console.print(f"\n[bold green]✓ Updated #{transaction.id}[/bold green]")
        console.print(describe_balance(service.compute_net_balance(), settings))


@app.command()
def delete(
    transaction_id: str = typer.Argument(..., help="Transaction ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete a transaction."""
    with ledger_session(verbose) as (service, settings):
        transaction = service.get_transaction(transaction_id)
        if not yes:
            console.print(
                f"Delete #{transaction.id}: {format_money(transaction.amount)} "
                f"{transaction.description or transaction.category}?"
            )
            confirm = input("Continue? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

        service.delete_transaction(transaction.id)
        console.print(f"[bold green]✓ Deleted #{transaction.id}[/bold green]")
        console.print(describe_balance(service.compute_net_balance(), settings))


@app.command()
def settle(
    watermark: str | None = typer.Option(
        None, "--watermark", "-w", help="Confirm a previously previewed watermark"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Mark all pending transactions as settled.

    Shows a preview first; only transactions included in that preview are
    settled, even if new ones are added before you confirm.
    """
    with ledger_session(verbose) as (service, settings):
        if watermark is None:
            preview = service.preview_settlement()
            if preview.watermark is None:
                console.print("[green]✅ All expenses are already settled![/green]")
                return

            console.print(
                f"\n[bold]{describe_balance(service.compute_net_balance(), settings)}"
                f"[/bold]"
            )
            console.print(
                f"  {preview.count} transactions, "
                f"total {format_money(preview.total_amount)} "
                f"(up to #{preview.watermark})"
            )

            if not yes:
                console.print(
                    "\n[bold yellow]⚠️  Mark these as paid and reset the balance?"
                    "[/bold yellow]"
                )
                confirm = input("Continue? [y/N] ").strip().lower()
                if confirm not in ("y", "yes"):
                    service.cancel_settlement()
                    console.print("[yellow]Settlement cancelled.[/yellow]")
                    return
            watermark = str(preview.watermark)

        result = service.confirm_settlement(watermark)
        if result.settled_count:
            console.print(
                f"\n[bold green]🤝 All settled! Marked {result.settled_count} "
                f"transactions as paid.[/bold green]"
            )
        else:
            console.print("[green]✅ All expenses are already settled![/green]")
        console.print(describe_balance(service.compute_net_balance(), settings))


@app.command()
def revert(
    transaction_ids: list[str] = typer.Argument(..., help="Transaction IDs"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark settled transactions as unsettled again."""
    with ledger_session(verbose) as (service, settings):
        reverted = service.revert_settlement(transaction_ids)
        if not reverted:
            console.print("[yellow]None of those transactions were settled.[/yellow]")
            return
        console.print(
            f"[bold green]✓ Reverted {len(reverted)} transactions: "
            f"{', '.join(str(i) for i in reverted)}[/bold green]"
        )
        console.print(describe_balance(service.compute_net_balance(), settings))


@app.command()
def pay(
    payer: str = typer.Argument(..., help="Who is paying: A or B"),
    amount: str = typer.Argument(..., help="Amount paid"),
    description: str = typer.Option("", "--description", "-m", help="Description"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Record a partial or full payment toward the outstanding balance."""
    party = parse_party_option(payer)
    with ledger_session(verbose) as (service, settings):
        result = service.record_payment(party, amount, description)
        console.print(
            f"\n[bold green]✓ Payment of {format_money(result.transaction.amount)} "
            f"recorded.[/bold green]"
        )
        if result.was_settled:
            console.print("[bold green]🎉 All settled! Balance cleared.[/bold green]")
        else:
            console.print(describe_balance(result.new_balance, settings))


@rules_app.command("list")
def rules_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List stored category split rules."""
    with ledger_session(verbose) as (service, settings):
        rules = service.list_split_rules()
        if not rules:
            console.print("[dim]No custom rules; every category splits 50/50.[/dim]")
            return

        table = Table(
            title="Split Rules", show_header=True, header_style="bold magenta"
        )
        table.add_column("Category", style="yellow")
        table.add_column(settings.party_name(Party.A), justify="right")
        table.add_column(settings.party_name(Party.B), justify="right")
        for category, rule in sorted(rules.items()):
            table.add_row(category, f"{rule.percent_a:.0%}", f"{rule.percent_b:.0%}")
        console.print(table)


@rules_app.command("get")
def rules_get(
    category: str = typer.Argument(..., help="Category"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the effective split for a category."""
    with ledger_session(verbose) as (service, settings):
        rule = service.get_split_rule(category)
        console.print(
            f"{category}: {settings.party_name(Party.A)} {rule.percent_a:.0%} / "
            f"{settings.party_name(Party.B)} {rule.percent_b:.0%}"
        )


@rules_app.command("set")
def rules_set(
    category: str = typer.Argument(..., help="Category"),
    percent_a: float = typer.Argument(..., help="Party A share 0-1"),
    percent_b: float = typer.Argument(..., help="Party B share 0-1"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Set the split for a category."""
    with ledger_session(verbose) as (service, settings):
        service.update_split_rule(category, percent_a, percent_b)
        rule = service.get_split_rule(category)
        console.print(
            f"[bold green]✓ {category}:[/bold green] "
            f"{settings.party_name(Party.A)} {rule.percent_a:.0%} / "
            f"{settings.party_name(Party.B)} {rule.percent_b:.0%}"
        )


@rules_app.command("reset")
def rules_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete all custom rules (every category back to 50/50)."""
    with ledger_session(verbose) as (service, _settings):
        if not yes:
            confirm = input("Reset all split rules? [y/N] ").strip().lower()
            if confirm not in ("y", "yes"):
                console.print("[yellow]Cancelled.[/yellow]")
                return
        service.reset_split_rules()
        console.print("[bold green]✓ Split rules reset to 50/50[/bold green]")


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD") from e


if __name__ == "__main__":
    app()
