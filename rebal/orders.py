"""Whole-share trade instructions from assigned dollar targets."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from .errors import MissingPrice
from .schema import PriceSheet


@dataclass(frozen=True, slots=True)
class TradeInstruction:
    symbol: str
    shares: int
    current_value: float
    target_value: float
    price: float

    @property
    def is_buy(self) -> bool:
        return self.shares > 0

    @property
    def trade_value(self) -> float:
        return self.shares * self.price


@dataclass(slots=True)
class OrderBook:
    trades: list[TradeInstruction] = field(default_factory=list)
    residual_cash: float = 0.0

    @property
    def current_value(self) -> float:
        return sum(t.current_value for t in self.trades)

    @property
    def target_value(self) -> float:
        return sum(t.target_value for t in self.trades)


def round_half_away_from_zero(value: float) -> int:
    # Decimal(value) is exact, so only true ties round away from zero.
    return int(Decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


def compute_orders(
    assigned_targets: dict[str, float],
    holdings: dict[str, float],
    prices: PriceSheet,
) -> OrderBook:
    """Diff targets against holdings at current prices.

    Residual cash collects the part of each dollar delta that whole shares cannot
    cover: negative means more cash is needed, positive means cash is left over.
    """
    symbols = sorted(
        s for s in set(assigned_targets) | set(holdings) if assigned_targets.get(s, 0.0) or holdings.get(s, 0.0)
    )
    missing = [s for s in symbols if prices.get(s, 0.0) <= 0]
    if missing:
        raise MissingPrice(missing)

    book = OrderBook()
    for symbol in symbols:
        price = prices[symbol]
        target = assigned_targets.get(symbol, 0.0)
        current = holdings.get(symbol, 0.0) * price
        delta = target - current
        shares = round_half_away_from_zero(delta / price)
        book.residual_cash += delta - shares * price
        book.trades.append(
            TradeInstruction(symbol=symbol, shares=shares, current_value=current, target_value=target, price=price)
        )
    return book
