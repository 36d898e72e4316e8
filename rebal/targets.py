"""Pool-level per-security dollar targets."""

from __future__ import annotations

import math

import structlog

from .categories import AssetClass, CategoryTable
from .errors import InvalidSplit

log = structlog.get_logger(__name__)

DEFAULT_STOCK_PCT = 90.0


def check_split(stock_pct: float) -> None:
    if not math.isfinite(stock_pct) or stock_pct < 0.0 or stock_pct > 100.0:
        raise InvalidSplit(stock_pct)


def class_pct(asset_class: AssetClass, stock_pct: float) -> float:
    if asset_class is AssetClass.STOCK:
        return stock_pct
    return 100.0 - stock_pct


def compute_targets(pool_value: float, stock_pct: float, table: CategoryTable) -> dict[str, float]:
    """Dollar target per security for a pool.

    Targets stay fractional; rounding to whole shares happens when orders are built.
    """
    check_split(stock_pct)
    targets = {
        security.symbol: pool_value * class_pct(security.asset_class, stock_pct) / 100.0 * security.weight / 100.0
        for security in table
    }
    log.debug("targets.computed", pool_value=round(pool_value, 2), stock_pct=stock_pct, securities=len(targets))
    return targets


def glide_path_stock_pct(retirement_year: int, current_year: int) -> float:
    """Stock percentage that steps down as retirement approaches."""
    years_to_retirement = retirement_year - current_year
    if years_to_retirement >= 30:
        stock_pct = DEFAULT_STOCK_PCT
    elif years_to_retirement >= 5:
        stock_pct = min(DEFAULT_STOCK_PCT, 90.0 - 1.5 * (25 - years_to_retirement))
    elif years_to_retirement >= -5:
        # Inflation-protected bonds count toward the bond side.
        stock_pct = 60.0 + 2.8 * (years_to_retirement - 5)
    else:
        stock_pct = 29.0
    return max(0.0, min(100.0, stock_pct))


def apply_outside_holdings(
    targets: dict[str, float],
    table: CategoryTable,
    *,
    outside_stock: float = 0.0,
    outside_bond: float = 0.0,
) -> dict[str, float]:
    """Subtract value held outside the managed accounts from each class, pro rata by weight."""
    outside = {AssetClass.STOCK: max(0.0, outside_stock), AssetClass.BOND: max(0.0, outside_bond)}
    if not any(outside.values()):
        return dict(targets)

    adjusted = dict(targets)
    for security in table:
        if security.symbol not in adjusted:
            continue
        reduction = outside[security.asset_class] * security.weight / 100.0
        adjusted[security.symbol] = max(0.0, adjusted[security.symbol] - reduction)
    return adjusted
