"""Typed error kinds raised by the allocation and order engine."""

from __future__ import annotations

from typing import Iterable


class RebalanceError(ValueError):
    """Base class for errors that abort a single calculation run."""


class InvalidSplit(RebalanceError):
    def __init__(self, stock_pct: float) -> None:
        super().__init__(f"stock percentage {stock_pct} is outside [0, 100]")
        self.stock_pct = stock_pct


class MissingPrice(RebalanceError):
    def __init__(self, symbols: Iterable[str]) -> None:
        self.symbols = sorted(set(symbols))
        super().__init__(f"no usable price for: {', '.join(self.symbols)}")


class MissingDivisor(RebalanceError):
    def __init__(self, age: int) -> None:
        super().__init__(f"distribution table has no divisor for age {age}")
        self.age = age


class CategoryTableError(RebalanceError):
    """Raised when a category table violates its construction invariants."""


class DivisorTableError(RebalanceError):
    """Raised when a distribution divisor file cannot be parsed."""
