"""One rebalancing run: capacities, RMD, pool targets, account fills and orders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import structlog

from .allocator import AllocationResult, CapacityShortfall, allocate, merge_results, residual_targets
from .categories import AssetClass, CategoryTable, default_category_table
from .errors import RebalanceError
from .orders import OrderBook, TradeInstruction, compute_orders
from .rmd import UNIFORM_LIFETIME_DIVISORS, age_in_year, remaining_distribution, required_distribution
from .schema import AccountKind, AccountState, MergePolicy, OutsideHoldings, Portfolio
from .targets import apply_outside_holdings, check_split, class_pct, compute_targets, glide_path_stock_pct

log = structlog.get_logger(__name__)

RETIREMENT_FILL_ORDER = (AccountKind.ROTH, AccountKind.TRADITIONAL)
RESULT_ORDER = (AccountKind.ROTH, AccountKind.TRADITIONAL, AccountKind.BROKERAGE)


@dataclass(slots=True)
class AccountResult:
    kind: AccountKind
    trades: list[TradeInstruction]
    residual_cash: float
    current_value: float
    target_value: float
    capacity: float
    contribution: float = 0.0
    rmd: float = 0.0
    pool: str = "retirement"


@dataclass(slots=True)
class RebalanceResult:
    year: int
    retirement_stock_pct: float
    brokerage_stock_pct: float
    accounts: list[AccountResult] = field(default_factory=list)
    retirement_targets: dict[str, float] = field(default_factory=dict)
    brokerage_targets: dict[str, float] = field(default_factory=dict)
    shortfalls: list[CapacityShortfall] = field(default_factory=list)

    @property
    def total_shortfall(self) -> float:
        return sum(s.amount for s in self.shortfalls)

    def account(self, kind: AccountKind) -> AccountResult | None:
        return next((a for a in self.accounts if a.kind is kind), None)


@dataclass(slots=True)
class _Capacity:
    state: AccountState
    current_value: float
    capacity: float
    rmd: float = 0.0


def _retirement_stock_pct(portfolio: Portfolio, year: int) -> float:
    config = portfolio.config
    if config.glide_path and config.retirement_year is not None:
        return glide_path_stock_pct(config.retirement_year, year)
    return config.retirement_stock_pct


def _run_year(portfolio: Portfolio, year: int | None) -> int:
    return year or portfolio.config.year or datetime.now().year


def pool_stock_pcts(portfolio: Portfolio, year: int | None = None) -> list[float]:
    """Stock percentage of every pool the portfolio's accounts will fill."""
    kinds = {account.kind: account for account in portfolio.accounts}
    brokerage = kinds.get(AccountKind.BROKERAGE)
    merged = brokerage is not None and brokerage.merge_with_retirement
    pcts: list[float] = []
    if merged or any(kind in kinds for kind in RETIREMENT_FILL_ORDER):
        pcts.append(_retirement_stock_pct(portfolio, _run_year(portfolio, year)))
    if brokerage is not None and not merged:
        pcts.append(portfolio.config.brokerage_stock_pct)
    return pcts


def table_symbols_needing_prices(portfolio: Portfolio, table: CategoryTable, year: int | None = None) -> list[str]:
    """Category table securities that can receive a nonzero target in some pool."""
    funded = {
        asset_class
        for stock_pct in pool_stock_pcts(portfolio, year)
        for asset_class in AssetClass
        if class_pct(asset_class, stock_pct) > 0
    }
    return [s.symbol for s in table if s.weight > 0 and s.asset_class in funded]


def symbols_needing_prices(portfolio: Portfolio, table: CategoryTable, year: int | None = None) -> list[str]:
    """Every symbol a run will have to price: nonzero holdings plus fundable table securities."""
    held = {symbol for account in portfolio.accounts for symbol, shares in account.holdings.items() if shares}
    return sorted(held | set(table_symbols_needing_prices(portfolio, table, year)))


def _resolve_capacities(
    portfolio: Portfolio,
    year: int,
    divisor_table: dict[int, float],
) -> dict[AccountKind, _Capacity]:
    capacities: dict[AccountKind, _Capacity] = {}
    for state in portfolio.accounts:
        if state.kind in capacities:
            raise RebalanceError(f"more than one {state.kind.value} account")
        current = state.current_value(portfolio.prices)
        capacities[state.kind] = _Capacity(state=state, current_value=current, capacity=current + state.contribution)

    traditional = capacities.get(AccountKind.TRADITIONAL)
    birth_year = portfolio.config.birth_year
    if traditional is not None and birth_year is not None:
        age = age_in_year(birth_year, year)
        basis = traditional.state.prior_year_end_value
        if basis is None:
            basis = traditional.current_value
        required = required_distribution(basis, age, divisor_table, portfolio.config.rmd_start_age)
        owed = remaining_distribution(required, traditional.state.distributions_taken)
        if owed > 0:
            traditional.rmd = owed
            traditional.capacity = max(0.0, traditional.capacity - owed)
            log.info("rmd.applied", age=age, required=round(required, 2), owed=round(owed, 2))
    return capacities


def _pool_targets(
    pool_value: float,
    stock_pct: float,
    table: CategoryTable,
    outside: OutsideHoldings,
) -> dict[str, float]:
    outside_total = max(0.0, outside.stock) + max(0.0, outside.bond)
    targets = compute_targets(pool_value + outside_total, stock_pct, table)
    return apply_outside_holdings(targets, table, outside_stock=outside.stock, outside_bond=outside.bond)


def _fill_retirement_pool(
    targets: dict[str, float],
    members: list[tuple[AccountKind, float]],
    risk_order: list[str],
    policy: MergePolicy,
) -> AllocationResult:
    capacity = dict(members)
    if policy is MergePolicy.APPEND or AccountKind.BROKERAGE not in capacity:
        return allocate(targets, members, risk_order)

    # Roth takes the riskiest holdings, merged brokerage the safest, and the
    # traditional account absorbs whatever is left in the middle.
    stages: list[AllocationResult] = []
    remaining = targets
    plan = [
        (AccountKind.ROTH, risk_order),
        (AccountKind.BROKERAGE, list(reversed(risk_order))),
        (AccountKind.TRADITIONAL, risk_order),
    ]
    for kind, order in plan:
        accounts = [(kind, capacity[kind])] if kind in capacity else []
        stage = allocate(remaining, accounts, order)
        stages.append(stage)
        remaining = residual_targets(remaining, stage)
    return merge_results(stages)


def _account_result(
    entry: _Capacity,
    assigned: dict[str, float],
    portfolio: Portfolio,
    pool: str,
) -> AccountResult:
    book: OrderBook = compute_orders(assigned, entry.state.holdings, portfolio.prices)
    return AccountResult(
        kind=entry.state.kind,
        trades=book.trades,
        residual_cash=book.residual_cash,
        current_value=entry.current_value,
        target_value=sum(assigned.values()),
        capacity=entry.capacity,
        contribution=entry.state.contribution,
        rmd=entry.rmd,
        pool=pool,
    )


def run_rebalance(
    portfolio: Portfolio,
    table: CategoryTable | None = None,
    divisor_table: dict[int, float] | None = None,
    *,
    year: int | None = None,
) -> RebalanceResult:
    """Compute per-account trades that bring the portfolio to its target split."""
    if table is None:
        table = default_category_table()
    divisors = UNIFORM_LIFETIME_DIVISORS if divisor_table is None else divisor_table
    run_year = _run_year(portfolio, year)

    retirement_pct = _retirement_stock_pct(portfolio, run_year)
    brokerage_pct = portfolio.config.brokerage_stock_pct
    check_split(retirement_pct)
    check_split(brokerage_pct)

    capacities = _resolve_capacities(portfolio, run_year, divisors)
    risk_order = table.risk_order()
    result = RebalanceResult(year=run_year, retirement_stock_pct=retirement_pct, brokerage_stock_pct=brokerage_pct)

    brokerage = capacities.get(AccountKind.BROKERAGE)
    merged = brokerage is not None and brokerage.state.merge_with_retirement

    members = [(kind, capacities[kind].capacity) for kind in RETIREMENT_FILL_ORDER if kind in capacities]
    if merged:
        members.append((AccountKind.BROKERAGE, brokerage.capacity))

    assigned: dict[AccountKind, dict[str, float]] = {}
    pools: dict[AccountKind, str] = {}
    if members:
        pool_value = sum(capacity for _, capacity in members)
        result.retirement_targets = _pool_targets(pool_value, retirement_pct, table, portfolio.outside_retirement)
        fill = _fill_retirement_pool(result.retirement_targets, members, risk_order, portfolio.config.merge_policy)
        result.shortfalls.extend(fill.shortfalls)
        for kind, _ in members:
            assigned[kind] = fill.for_account(kind)
            pools[kind] = "retirement"
        log.debug("pool.filled", pool="retirement", value=round(pool_value, 2), stock_pct=retirement_pct)

    if brokerage is not None and not merged:
        result.brokerage_targets = _pool_targets(brokerage.capacity, brokerage_pct, table, portfolio.outside_brokerage)
        fill = allocate(result.brokerage_targets, [(AccountKind.BROKERAGE, brokerage.capacity)], risk_order)
        result.shortfalls.extend(fill.shortfalls)
        assigned[AccountKind.BROKERAGE] = fill.for_account(AccountKind.BROKERAGE)
        pools[AccountKind.BROKERAGE] = "brokerage"
        log.debug("pool.filled", pool="brokerage", value=round(brokerage.capacity, 2), stock_pct=brokerage_pct)

    for kind in RESULT_ORDER:
        if kind in capacities:
            result.accounts.append(_account_result(capacities[kind], assigned.get(kind, {}), portfolio, pools[kind]))

    for shortfall in result.shortfalls:
        log.warning("allocation.shortfall", symbol=shortfall.symbol, amount=round(shortfall.amount, 2))
    log.info(
        "rebalance.finished",
        year=run_year,
        accounts=len(result.accounts),
        shortfall=round(result.total_shortfall, 2),
    )
    return result
