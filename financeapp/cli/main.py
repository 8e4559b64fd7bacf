"""
CLI interface for FinanceApp Pro.

Every command opens the stored session, applies at most one mutation,
persists it and prints the result.
"""

import logging
import sys
from dataclasses import dataclass
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from financeapp.config.loader import CONFIG_ENV_VAR, AppConfig, load_app_config
from financeapp.core.export import KIND_LABELS, export_expenses_csv
from financeapp.core.items import ExpenseKind, find_item
from financeapp.core.model import FinancialSummary, round_display
from financeapp.core.session import FinanceSession
from financeapp.core.taxes import TaxRegime
from financeapp.storage.repository import get_repository

app = typer.Typer()
expense_app = typer.Typer(help="Manage operating expenses.")
cost_app = typer.Typer(help="Manage direct costs.")
app.add_typer(expense_app, name="expense")
app.add_typer(cost_app, name="cost")

console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

REGIME_LABELS = {
    TaxRegime.FLAT_MONTHLY_FEE: "MEI (flat monthly fee)",
    TaxRegime.REVENUE_PERCENTAGE: "Simples Nacional (% of revenue)",
}


@dataclass
class CliState:
    """Options shared by every command."""
    config: AppConfig
    db_path: str


def _configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(
        None,
        "--db",
        help="SQLite file holding the snapshot (overrides config)"
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        help="YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging"
    )
):
    """FinanceApp Pro - expenses, margins and profit distribution for micro-entrepreneurs."""
    try:
        config = load_app_config(config_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _configure_logging("DEBUG" if verbose else config.logging.level)
    ctx.obj = CliState(config=config, db_path=db or config.storage.db_path)

    if ctx.invoked_subcommand is None:
        console.print("FinanceApp Pro - Use --help to see available commands")


def _open_session(ctx: typer.Context) -> FinanceSession:
    state: CliState = ctx.find_root().obj
    return FinanceSession.open(
        repository=get_repository(state.db_path),
        snapshot_key=state.config.storage.snapshot_key,
        default_allocation=state.config.allocation
    )


def _reject(message: str) -> None:
    console.print(f"[yellow]Rejected:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


def _format_currency(amount: float) -> str:
    """Format a monetary value in reais."""
    sign = "-" if amount < 0 else ""
    return f"{sign}R$ {abs(amount):,.2f}"


def _format_percent(value: float) -> str:
    return f"{round_display(value):.1f}%"


@app.command()
def show(ctx: typer.Context):
    """Show KPIs, the result statement, break-even and the allocation plan."""
    session = _open_session(ctx)
    _display_summary(session)


@app.command("set")
def set_inputs(
    ctx: typer.Context,
    regime: Optional[TaxRegime] = typer.Option(None, "--regime", help="Tax regime"),
    revenue: Optional[float] = typer.Option(None, "--revenue", min=0, help="Monthly revenue"),
    draw: Optional[float] = typer.Option(None, "--draw", min=0, help="Monthly pro-labore"),
    flat_fee: Optional[float] = typer.Option(None, "--flat-fee", min=0, help="Flat monthly fee (MEI DAS)"),
    rate: Optional[float] = typer.Option(
        None, "--rate", min=0, max=100, clamp=True, help="Effective Simples rate (%)"
    ),
    other_taxes: Optional[float] = typer.Option(None, "--other-taxes", min=0, help="Other monthly taxes/fees")
):
    """Update revenue, owner draw and tax parameters."""
    session = _open_session(ctx)
    if regime is not None:
        session.set_regime(regime)
    setters = (
        ("--revenue", revenue, session.set_revenue),
        ("--draw", draw, session.set_owner_draw),
        ("--flat-fee", flat_fee, session.set_flat_fee),
        ("--rate", rate, session.set_tax_rate),
        ("--other-taxes", other_taxes, session.set_other_taxes),
    )
    rejected = [flag for flag, value, setter in setters if value is not None and not setter(value)]
    _display_summary(session)
    if rejected:
        _reject(f"{', '.join(rejected)} must be a finite, non-negative number")


@app.command()
def allocate(
    ctx: typer.Context,
    reserve: Optional[float] = typer.Option(None, "--reserve", min=0, max=100, clamp=True),
    future_taxes: Optional[float] = typer.Option(None, "--future-taxes", min=0, max=100, clamp=True),
    reinvestment: Optional[float] = typer.Option(None, "--reinvestment", min=0, max=100, clamp=True),
    distribution: Optional[float] = typer.Option(None, "--distribution", min=0, max=100, clamp=True)
):
    """Adjust profit allocation targets (%)."""
    session = _open_session(ctx)
    accepted = session.set_allocation(
        reserve=reserve,
        future_taxes=future_taxes,
        reinvestment=reinvestment,
        distribution=distribution
    )
    _display_allocation(session.summary, session)
    if not accepted:
        _reject("percentages must be finite and non-negative")


@app.command()
def export(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(None, "--output", "-o", help="File to write (stdout when omitted)")
):
    """Export operating expenses as semicolon-separated text."""
    state: CliState = ctx.find_root().obj
    session = _open_session(ctx)
    text = export_expenses_csv(
        session.inputs.operating_expenses,
        path=output,
        delimiter=state.config.export.delimiter,
        decimal_separator=state.config.export.decimal_separator
    )
    if output is None:
        sys.stdout.write(text)
    else:
        console.print(f"[green]✓[/] Exported {len(session.inputs.operating_expenses)} expenses to {output}")


@app.command()
def reset(ctx: typer.Context):
    """Restore the example scenario."""
    session = _open_session(ctx)
    session.reset()
    console.print("[green]✓[/] Default scenario restored")


@expense_app.command("list")
def list_expenses(ctx: typer.Context):
    """List operating expenses."""
    _display_expenses(_open_session(ctx))


@expense_app.command("add")
def add_expense(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Expense name"),
    amount: float = typer.Argument(..., help="Monthly amount"),
    kind: ExpenseKind = typer.Option(ExpenseKind.FIXED, "--kind", "-k"),
    category: Optional[str] = typer.Option(None, "--category")
):
    """Add an operating expense."""
    session = _open_session(ctx)
    item = session.add_operating_expense(name, amount, kind, category)
    if item is None:
        _reject("name cannot be empty and amount must be a finite number greater than zero")
    console.print(f"[green]✓[/] Added {item.name} ({item.id})")


@expense_app.command("edit")
def edit_expense(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Expense id"),
    name: str = typer.Argument(..., help="New name"),
    amount: float = typer.Argument(..., help="New monthly amount"),
    kind: Optional[ExpenseKind] = typer.Option(None, "--kind", "-k", help="Keeps the current kind when omitted"),
    category: Optional[str] = typer.Option(None, "--category", help="Keeps the current category when omitted")
):
    """Replace the name and amount of an operating expense, and optionally its kind and category."""
    session = _open_session(ctx)
    current = find_item(session.inputs.operating_expenses, item_id)
    if current is None:
        _reject(f"no expense with id {item_id}")
    if kind is None:
        kind = current.kind
    if category is None:
        category = current.category
    if not session.edit_operating_expense(item_id, name, amount, kind, category):
        _reject("name cannot be empty and amount must be a finite number greater than zero")
    console.print(f"[green]✓[/] Updated {item_id}")


@expense_app.command("remove")
def remove_expense(ctx: typer.Context, item_id: str = typer.Argument(..., help="Expense id")):
    """Remove an operating expense."""
    session = _open_session(ctx)
    if not session.remove_operating_expense(item_id):
        console.print(f"[dim]No expense with id {item_id}[/]")
        return
    console.print(f"[green]✓[/] Removed {item_id}")


@cost_app.command("list")
def list_costs(ctx: typer.Context):
    """List direct costs."""
    _display_costs(_open_session(ctx))


@cost_app.command("add")
def add_cost(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Cost name"),
    amount: float = typer.Argument(..., help="Average monthly amount")
):
    """Add a direct cost."""
    session = _open_session(ctx)
    item = session.add_direct_cost(name, amount)
    if item is None:
        _reject("name cannot be empty and amount must be a finite number greater than zero")
    console.print(f"[green]✓[/] Added {item.name} ({item.id})")


@cost_app.command("edit")
def edit_cost(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Cost id"),
    name: str = typer.Argument(..., help="New name"),
    amount: float = typer.Argument(..., help="New average monthly amount")
):
    """Replace name and amount of a direct cost."""
    session = _open_session(ctx)
    if not session.edit_direct_cost(item_id, name, amount):
        _reject("name cannot be empty and amount must be a finite number greater than zero")
    console.print(f"[green]✓[/] Updated {item_id}")


@cost_app.command("remove")
def remove_cost(ctx: typer.Context, item_id: str = typer.Argument(..., help="Cost id")):
    """Remove a direct cost."""
    session = _open_session(ctx)
    if not session.remove_direct_cost(item_id):
        console.print(f"[dim]No direct cost with id {item_id}[/]")
        return
    console.print(f"[green]✓[/] Removed {item_id}")


def _display_expenses(session: FinanceSession) -> None:
    summary = session.summary
    table = Table(title="Operating expenses")
    for column in ("Id", "Name", "Kind", "Category", "Amount", "% Revenue"):
        table.add_column(column, justify="right" if column in ("Amount", "% Revenue") else "left")
    for item in session.inputs.operating_expenses:
        table.add_row(
            item.id,
            item.name,
            KIND_LABELS[item.kind],
            item.category or "-",
            _format_currency(item.amount),
            _format_percent(summary.percent_of_revenue(item.amount))
        )
    console.print(table)
    if not session.inputs.operating_expenses:
        console.print("[dim]No expenses registered.[/]")
    console.print(
        f"Fixed: {_format_currency(summary.fixed_expenses_total)} "
        f"({_format_percent(summary.percent_of_revenue(summary.fixed_expenses_total))})  "
        f"Variable: {_format_currency(summary.variable_expenses_total)} "
        f"({_format_percent(summary.percent_of_revenue(summary.variable_expenses_total))})  "
        f"Total: {_format_currency(summary.operating_expenses_total)} "
        f"({_format_percent(summary.percent_of_revenue(summary.operating_expenses_total))})"
    )


def _display_costs(session: FinanceSession) -> None:
    summary = session.summary
    table = Table(title="Direct costs (monthly average)")
    for column in ("Id", "Name", "Amount", "% Revenue"):
        table.add_column(column, justify="right" if column in ("Amount", "% Revenue") else "left")
    for item in session.inputs.direct_costs:
        table.add_row(
            item.id,
            item.name,
            _format_currency(item.amount),
            _format_percent(summary.percent_of_revenue(item.amount))
        )
    console.print(table)
    if not session.inputs.direct_costs:
        console.print("[dim]No direct costs registered.[/]")
    console.print(
        f"Total direct costs: {_format_currency(summary.direct_costs_total)} "
        f"({_format_percent(summary.percent_of_revenue(summary.direct_costs_total))})"
    )


def _display_summary(session: FinanceSession) -> None:
    """Display the full financial picture."""
    summary = session.summary
    inputs = session.inputs

    console.print("\n[bold]FinanceApp Pro[/bold]")
    console.print("-" * 40)
    console.print(f"Regime: {REGIME_LABELS[inputs.regime]}")
    console.print(f"Taxes: {_format_currency(summary.taxes)} / month")

    kpis = Table(title="KPIs")
    kpis.add_column("Metric")
    kpis.add_column("Value", justify="right")
    kpis.add_column("Note")
    kpis.add_row("Revenue", _format_currency(summary.revenue), "Monthly gross revenue")
    kpis.add_row(
        "Direct costs",
        _format_currency(summary.direct_costs_total),
        f"{_format_percent(summary.percent_of_revenue(summary.direct_costs_total))} of revenue"
    )
    kpis.add_row(
        "Operating expenses",
        _format_currency(summary.operating_expenses_total),
        f"{_format_percent(summary.percent_of_revenue(summary.operating_expenses_total))} of revenue"
    )
    kpis.add_row("Gross margin", _format_percent(summary.gross_margin_pct), "(Revenue - direct costs) / revenue")
    kpis.add_row("Operating margin", _format_percent(summary.operating_margin_pct), "After expenses, draw and taxes")
    console.print(kpis)

    result = Table(title="Result")
    result.add_column("Line")
    result.add_column("Amount", justify="right")
    result.add_row("Revenue", _format_currency(summary.revenue))
    result.add_row("Direct costs", _format_currency(summary.direct_costs_total))
    result.add_row("Gross profit", _format_currency(summary.gross_profit))
    result.add_row("Operating expenses", _format_currency(summary.operating_expenses_total))
    result.add_row("Pro-labore", _format_currency(summary.owner_draw))
    result.add_row("Taxes", _format_currency(summary.taxes))
    result.add_row("[bold]Operating result[/bold]", f"[bold]{_format_currency(summary.operating_result)}[/bold]")
    console.print(result)

    console.print(
        f"Estimated break-even: [bold]{_format_currency(round_display(summary.break_even_revenue, 0))}[/bold] revenue/month"
    )
    _display_allocation(summary, session)


def _display_allocation(summary: FinancialSummary, session: FinanceSession) -> None:
    plan = summary.allocation
    targets = session.inputs.allocation

    table = Table(title="Profit distribution")
    table.add_column("Bucket")
    table.add_column("Target", justify="right")
    table.add_column("Amount", justify="right")
    for label, pct, amount in (
        ("Reserve", targets.reserve, plan.reserve),
        ("Future taxes", targets.future_taxes, plan.future_taxes),
        ("Reinvestment", targets.reinvestment, plan.reinvestment),
        ("Distribution", targets.distribution, plan.distribution),
    ):
        table.add_row(label, f"{pct:g}%", _format_currency(round_display(amount, 0)))
    console.print(table)
    console.print(f"Unallocated: {_format_currency(plan.unallocated)}")

    if summary.no_positive_profit:
        console.print(
            "[yellow]No positive profit in the current scenario. "
            "Review prices, costs and expenses.[/]"
        )


if __name__ == "__main__":
    app()
