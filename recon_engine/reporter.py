from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

CENT = Decimal("0.01")

ALERT_LABELS = {
    "insufficient_cash": "Real cash does not cover user principal",
    "bonus_ratio_high": "Bonus share of wallet balances is high",
    "rtp_low": "Scratch-card return to player is low",
}


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def format_money(value: Any) -> str:
    amount = _decimal(value).quantize(CENT)
    style = "red" if amount < 0 else "green"
    return f"[{style}]{amount:,}[/{style}]"


def format_pct(value: Any) -> str:
    return f"{_decimal(value).quantize(CENT)}%"


def _section(title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED, show_header=False, title_justify="left")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    return table


def _revenue_table(revenue: Dict[str, Any]) -> Table:
    table = Table(title="Revenue & Margin", box=box.ROUNDED, title_justify="left")
    table.add_column("Product line", style="cyan", no_wrap=True)
    table.add_column("Sales", justify="right", style="magenta")
    table.add_column("Revenue", justify="right")
    table.add_column("Payout", justify="right")
    table.add_column("Margin", justify="right", style="bold")

    for line in revenue.get("lines", []):
        table.add_row(
            str(line["product_line"]),
            f"{line['sales']:,}",
            format_money(line["revenue"]),
            format_money(line["payout"]),
            format_pct(line["margin_pct"]),
        )
    table.add_row(
        "[bold]total[/bold]",
        "",
        format_money(revenue["revenue"]),
        format_money(revenue["payout"]),
        format_pct(revenue["margin_pct"]),
    )
    return table


def print_snapshot(payload: Dict[str, Any], console: Optional[Console] = None) -> None:
    """
    Render one snapshot payload (FinancialSnapshot.to_payload()) as rich tables.
    """
    console = console or Console()
    label = payload.get("range", payload.get("range_label", ""))

    if "error" in payload:
        console.print(
            f"[bold red]{label}: {payload.get('error_type', 'Error')}[/bold red] {payload['error']}"
        )
        return

    console.rule(f"[bold]Financial snapshot[/bold] · {label} · computed {payload['computed_at']}")

    cash = payload["cash"]
    cash_table = _section("Cash Reserve")
    cash_table.add_row("Deposits", f"{format_money(cash['total_deposits'])} ({cash['deposit_count']:,})")
    cash_table.add_row("User withdrawals", format_money(cash["total_user_withdrawals"]))
    cash_table.add_row("Admin withdrawals", format_money(cash["total_admin_withdrawals"]))
    cash_table.add_row("Real cash", format_money(cash["real_cash"]))
    cash_table.add_row("Committed principal", format_money(cash["committed_principal"]))
    cash_table.add_row("[bold]Available to operator[/bold]", format_money(cash["available_to_operator"]))
    console.print(cash_table)

    wallets = payload["wallets"]
    wallet_table = _section("Wallet Composition")
    wallet_table.add_row("Wallets", f"{wallets['wallet_count']:,}")
    wallet_table.add_row("Principal", format_money(wallets["principal"]))
    wallet_table.add_row("Bonus", format_money(wallets["bonus"]))
    wallet_table.add_row("Commission", format_money(wallets["commission"]))
    wallet_table.add_row("Bonus ratio", format_pct(wallets["bonus_ratio_pct"]))
    console.print(wallet_table)

    console.print(_revenue_table(payload["revenue"]))

    scratch = payload["scratch"]
    raffles = payload["raffles"]
    games = _section("Games")
    games.add_row("Scratch plays (revealed)", f"{scratch['plays']:,}")
    games.add_row("Scratch wins", f"{scratch['wins']:,}")
    games.add_row("Win rate", format_pct(scratch["win_rate_pct"]))
    games.add_row("RTP", format_pct(scratch["rtp_pct"]))
    games.add_row("House edge", format_pct(scratch["house_edge_pct"]))
    games.add_row("Raffles open / finished", f"{raffles['open']:,} / {raffles['finished']:,}")
    games.add_row("Raffle tickets sold", f"{raffles['tickets_sold']:,}")
    console.print(games)

    programs = payload["programs"]
    program_table = _section("Referral & Affiliate Cost")
    program_table.add_row(
        "Referral bonuses",
        f"{format_money(programs['referral_cost'])} ({programs['referral_count']:,})",
    )
    program_table.add_row(
        "Affiliate commissions",
        f"{format_money(programs['affiliate_cost'])} ({programs['affiliate_sale_count']:,})",
    )
    program_table.add_row("Total", format_money(programs["total_program_cost"]))
    program_table.add_row("Share of revenue", format_pct(programs["cost_pct_of_revenue"]))
    console.print(program_table)

    engagement = payload["engagement"]
    engagement_table = _section("Engagement")
    engagement_table.add_row("Users", f"{engagement['total_users']:,}")
    engagement_table.add_row("Users with deposit", f"{engagement['users_with_deposit']:,}")
    engagement_table.add_row("Conversion", format_pct(engagement["conversion_rate_pct"]))
    engagement_table.add_row("Average deposit", format_money(engagement["average_deposit"]))
    engagement_table.add_row("Average spend / user", format_money(engagement["average_spend_per_user"]))
    console.print(engagement_table)

    active = payload.get("active_alerts", [])
    if active:
        for name in active:
            console.print(f"[bold red]ALERT[/bold red] {ALERT_LABELS.get(name, name)}")
    else:
        console.print("[green]No health alerts.[/green]")

    for warning in payload.get("data_quality", {}).get("warnings", []):
        console.print(f"[yellow]Data quality:[/yellow] {warning}")


def print_results(results: List[Dict[str, Any]], console: Optional[Console] = None) -> None:
    """
    Render every range of a run, one snapshot after another.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    for payload in results:
        print_snapshot(payload, console=console)


__all__ = ["format_money", "format_pct", "print_results", "print_snapshot"]
