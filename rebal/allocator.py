"""Greedy, risk-ranked distribution of pool targets across accounts.

Accounts are filled in the order given. Walking securities from riskiest to
safest, each security's pool target is poured into the first account that still
has capacity, spilling into the next one when that account runs out. A risky
security can therefore consume an account entirely before a safer one receives
anything there. Demand left over once every account is full is reported as a
shortfall rather than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import reduce
from typing import Sequence

from .schema import AccountKind

# Dollar amounts at or below this are treated as fully assigned.
EPSILON = 1e-6


@dataclass(frozen=True, slots=True)
class CapacityShortfall:
    symbol: str
    amount: float


@dataclass(frozen=True, slots=True)
class FillState:
    accounts: tuple[AccountKind, ...]
    remaining: tuple[float, ...]
    assignments: dict[tuple[AccountKind, str], float] = field(default_factory=dict)
    shortfalls: tuple[CapacityShortfall, ...] = ()


@dataclass(slots=True)
class AllocationResult:
    assignments: dict[tuple[AccountKind, str], float]
    shortfalls: list[CapacityShortfall]

    @property
    def total_shortfall(self) -> float:
        return sum(s.amount for s in self.shortfalls)

    def for_account(self, kind: AccountKind) -> dict[str, float]:
        return {symbol: amount for (account, symbol), amount in self.assignments.items() if account == kind}

    def assigned_to_symbol(self, symbol: str) -> float:
        return sum(amount for (_, sym), amount in self.assignments.items() if sym == symbol)


def _fill_security(pool_targets: dict[str, float], state: FillState, symbol: str) -> FillState:
    demand = max(0.0, pool_targets.get(symbol, 0.0))
    remaining = list(state.remaining)
    assignments = dict(state.assignments)

    for idx, kind in enumerate(state.accounts):
        if demand <= EPSILON:
            break
        if remaining[idx] <= EPSILON:
            continue
        amount = min(demand, remaining[idx])
        remaining[idx] -= amount
        demand -= amount
        key = (kind, symbol)
        assignments[key] = assignments.get(key, 0.0) + amount

    shortfalls = state.shortfalls
    if demand > EPSILON:
        shortfalls = shortfalls + (CapacityShortfall(symbol=symbol, amount=demand),)

    return replace(state, remaining=tuple(remaining), assignments=assignments, shortfalls=shortfalls)


def _walk_order(pool_targets: dict[str, float], risk_order: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    order: list[str] = []
    for symbol in risk_order:
        if symbol not in seen:
            seen.add(symbol)
            order.append(symbol)
    # Anything without a rank goes last, alphabetically.
    order.extend(sorted(s for s in pool_targets if s not in seen))
    return order


def allocate(
    pool_targets: dict[str, float],
    accounts: Sequence[tuple[AccountKind, float]],
    risk_order: Sequence[str],
) -> AllocationResult:
    """Assign each security's pool target to accounts in fill order."""
    kinds = tuple(kind for kind, _ in accounts)
    if len(set(kinds)) != len(kinds):
        raise ValueError("each account kind may appear only once in the fill order")

    initial = FillState(accounts=kinds, remaining=tuple(max(0.0, capacity) for _, capacity in accounts))
    final = reduce(
        lambda state, symbol: _fill_security(pool_targets, state, symbol),
        _walk_order(pool_targets, risk_order),
        initial,
    )

    return AllocationResult(assignments=final.assignments, shortfalls=list(final.shortfalls))


def residual_targets(pool_targets: dict[str, float], result: AllocationResult) -> dict[str, float]:
    """Pool targets minus what a previous allocation already placed."""
    return {
        symbol: max(0.0, target - result.assigned_to_symbol(symbol))
        for symbol, target in pool_targets.items()
    }


def merge_results(results: Sequence[AllocationResult]) -> AllocationResult:
    """Combine staged allocations; only the last stage's leftovers are real shortfalls."""
    assignments: dict[tuple[AccountKind, str], float] = {}
    for result in results:
        for key, amount in result.assignments.items():
            assignments[key] = assignments.get(key, 0.0) + amount
    shortfalls = results[-1].shortfalls if results else []
    return AllocationResult(assignments=assignments, shortfalls=list(shortfalls))
