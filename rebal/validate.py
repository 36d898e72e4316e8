"""Semantic and cross-reference validation for portfolio inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
import math

from .categories import CategoryTable
from .engine import table_symbols_needing_prices
from .schema import AccountKind, Portfolio

MIN_BIRTH_YEAR = 1900


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_non_negative(result: ValidationResult, path: str, value: float) -> None:
    if not math.isfinite(value):
        result.errors.append(f"{path}: must be a finite number")
    elif value < 0:
        result.errors.append(f"{path}: must be >= 0")


def _check_percent(result: ValidationResult, path: str, value: float) -> None:
    if not math.isfinite(value) or value < 0 or value > 100:
        result.errors.append(f"{path}: must be between 0 and 100")


def validate_portfolio(
    portfolio: Portfolio,
    table: CategoryTable | None = None,
    *,
    year: int | None = None,
) -> ValidationResult:
    result = ValidationResult()
    config = portfolio.config

    _check_percent(result, "config.retirement_stock_pct", config.retirement_stock_pct)
    _check_percent(result, "config.brokerage_stock_pct", config.brokerage_stock_pct)
    if config.birth_year is not None and config.birth_year < MIN_BIRTH_YEAR:
        result.errors.append(f"config.birth_year: must be >= {MIN_BIRTH_YEAR}")
    if config.birth_year is not None and config.retirement_year is not None and config.retirement_year < config.birth_year:
        result.errors.append("config.retirement_year: must be >= config.birth_year")
    if config.rmd_start_age <= 0:
        result.errors.append("config.rmd_start_age: must be > 0")
    if config.glide_path and config.retirement_year is None:
        result.warnings.append("config.glide_path: ignored without config.retirement_year")

    for symbol, price in portfolio.prices.items():
        if not math.isfinite(price) or price <= 0:
            result.errors.append(f"prices.{symbol}: must be > 0")

    if not portfolio.accounts:
        result.warnings.append("accounts: no accounts to rebalance")

    seen: set[AccountKind] = set()
    held: set[str] = set()
    for idx, account in enumerate(portfolio.accounts):
        base = f"accounts[{idx}]"
        if account.kind in seen:
            result.errors.append(f"{base}.kind: duplicate {account.kind.value} account")
        seen.add(account.kind)

        _check_non_negative(result, f"{base}.cash", account.cash)
        _check_non_negative(result, f"{base}.contribution", account.contribution)
        _check_non_negative(result, f"{base}.distributions_taken", account.distributions_taken)
        if account.prior_year_end_value is not None:
            _check_non_negative(result, f"{base}.prior_year_end_value", account.prior_year_end_value)

        for symbol, shares in account.holdings.items():
            _check_non_negative(result, f"{base}.holdings.{symbol}", shares)
            if shares and symbol not in portfolio.prices:
                result.errors.append(f"{base}.holdings.{symbol}: no price in prices")
            if shares:
                held.add(symbol)

        if account.merge_with_retirement and account.kind is not AccountKind.BROKERAGE:
            result.errors.append(f"{base}.merge_with_retirement: only valid for Brokerage accounts")
        if account.kind is not AccountKind.TRADITIONAL and account.distributions_taken:
            result.warnings.append(f"{base}.distributions_taken: ignored for {account.kind.value} accounts")

    if table is not None:
        for symbol in table_symbols_needing_prices(portfolio, table, year):
            if symbol not in portfolio.prices:
                result.errors.append(f"prices.{symbol}: missing price for category table security")
        for symbol in sorted(held):
            if symbol not in table:
                result.warnings.append(f"holdings.{symbol}: not in the category table; the full position will be sold")

    if AccountKind.TRADITIONAL in seen and config.birth_year is None:
        result.warnings.append("config.birth_year: not set; required minimum distributions are skipped")

    return result
