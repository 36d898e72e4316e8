"""Plain-text and JSON rendering of a rebalance result."""

from __future__ import annotations

from dataclasses import asdict
import json

from .engine import AccountResult, RebalanceResult

RULE = "-" * 62


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _shares(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def render_account(account: AccountResult) -> str:
    lines = [
        f"{account.kind.value} ({account.pool} pool)",
        f"{'Symbol':<8}{'Buy/Sell':>10}{'Price':>14}{'Current':>15}{'Target':>15}",
        RULE,
    ]
    for trade in account.trades:
        lines.append(
            f"{trade.symbol:<8}{_shares(trade.shares):>10}{_money(trade.price):>14}"
            f"{_money(trade.current_value):>15}{_money(trade.target_value):>15}"
        )
    lines.append(RULE)
    lines.append(f"{'Current total':<32}{_money(account.current_value):>30}")
    lines.append(f"{'Target total':<32}{_money(account.target_value):>30}")
    if account.contribution:
        lines.append(f"{'Contribution':<32}{_money(account.contribution):>30}")
    if account.rmd:
        lines.append(f"{'Required distribution':<32}{_money(account.rmd):>30}")
    lines.append(f"{'Residual cash':<32}{_money(account.residual_cash):>30}")
    return "\n".join(lines)


def render_text(result: RebalanceResult) -> str:
    sections = [
        f"Rebalance for {result.year}",
        f"Retirement stock/bond: {result.retirement_stock_pct:.1f}/{100 - result.retirement_stock_pct:.1f}",
        f"Brokerage stock/bond: {result.brokerage_stock_pct:.1f}/{100 - result.brokerage_stock_pct:.1f}",
        "",
    ]
    for account in result.accounts:
        sections.append(render_account(account))
        sections.append("")
    if result.shortfalls:
        sections.append("Capacity shortfall (target not placed in any account):")
        for shortfall in result.shortfalls:
            sections.append(f"  {shortfall.symbol:<8}{_money(shortfall.amount):>15}")
        sections.append(f"  {'Total':<8}{_money(result.total_shortfall):>15}")
    return "\n".join(sections).rstrip() + "\n"


def result_to_dict(result: RebalanceResult) -> dict:
    data = asdict(result)
    data["total_shortfall"] = result.total_shortfall
    return data


def render_json(result: RebalanceResult) -> str:
    return json.dumps(result_to_dict(result), indent=2, sort_keys=True)
