"""CLI entry point for rebal."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

from .categories import CategoryTable, default_category_table, load_category_table
from .engine import run_rebalance, symbols_needing_prices
from .errors import CategoryTableError, DivisorTableError, MissingPrice, RebalanceError
from .logging_setup import configure_logging
from .quotes import resolve_prices
from .report import render_json, render_text
from .rmd import UNIFORM_LIFETIME_DIVISORS, load_divisor_table
from .schema import Portfolio, PriceSheet, SchemaError, load_portfolio, load_price_sheet
from .validate import validate_portfolio


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Portfolio rebalancer for brokerage, Roth and traditional accounts")
    parser.add_argument("portfolio", help="Path to portfolio JSON file")
    parser.add_argument("--categories", help="Category table JSON (overrides the portfolio file)")
    parser.add_argument("--divisors", help="RMD divisor table CSV (overrides the portfolio file)")
    parser.add_argument(
        "--fallback-prices",
        help="Cached price JSON used for symbols the portfolio prices are missing or unusable for",
    )
    parser.add_argument("--year", type=int, help="Calculation year (default: config.year or the current year)")
    parser.add_argument("--validate", action="store_true", help="Validate input only")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL or WARNING)")
    parser.add_argument("--log-json", action="store_true", help="Emit log events as JSON lines")
    return parser


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}", file=sys.stderr)
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def _load_tables(args: argparse.Namespace, portfolio: Portfolio) -> tuple[CategoryTable, dict[int, float]]:
    categories_path = Path(args.categories) if args.categories else portfolio.category_table
    divisors_path = Path(args.divisors) if args.divisors else portfolio.divisor_table
    table = load_category_table(categories_path) if categories_path else default_category_table()
    divisors = load_divisor_table(divisors_path) if divisors_path else UNIFORM_LIFETIME_DIVISORS
    return table, divisors


def _resolve_portfolio_prices(
    portfolio: Portfolio,
    table: CategoryTable,
    cached: PriceSheet,
    year: int | None,
) -> PriceSheet:
    def from_portfolio(symbol: str) -> float:
        return portfolio.prices[symbol]

    wanted = symbols_needing_prices(portfolio, table, year)
    return {**portfolio.prices, **resolve_prices(wanted, from_portfolio, fallback=cached)}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, json=args.log_json)

    try:
        portfolio = load_portfolio(args.portfolio)
        table, divisors = _load_tables(args, portfolio)
        cached = load_price_sheet(args.fallback_prices) if args.fallback_prices else None
    except (SchemaError, CategoryTableError, DivisorTableError, OSError, ValueError) as exc:
        print(f"Failed to load input: {exc}", file=sys.stderr)
        return 2

    if cached is not None:
        try:
            portfolio.prices = _resolve_portfolio_prices(portfolio, table, cached, args.year)
        except MissingPrice as exc:
            print(f"Rebalance failed: {exc}", file=sys.stderr)
            return 1

    validation = validate_portfolio(portfolio, table, year=args.year)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Portfolio is valid.")
        return 0

    try:
        result = run_rebalance(portfolio, table, divisors, year=args.year)
    except RebalanceError as exc:
        print(f"Rebalance failed: {exc}", file=sys.stderr)
        return 1

    for shortfall in result.shortfalls:
        print(f"WARNING: {shortfall.symbol}: ${shortfall.amount:,.2f} of target could not be placed", file=sys.stderr)

    if args.json:
        print(render_json(result))
    else:
        print(render_text(result), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
