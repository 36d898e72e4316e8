"""Category table: which securities make up each asset class, and in what order of risk."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import math
from pathlib import Path
from typing import Any, Iterable

from .errors import CategoryTableError

WEIGHT_TOLERANCE = 1e-3


class AssetClass(str, Enum):
    STOCK = "Stock"
    BOND = "Bond"


@dataclass(frozen=True, slots=True)
class Security:
    symbol: str
    asset_class: AssetClass
    weight: float
    risk_rank: int
    description: str = ""


class CategoryTable:
    """Immutable set of securities whose weights sum to 100 within each asset class.

    The invariant is checked once here; nothing downstream re-validates it.
    """

    __slots__ = ("_securities",)

    def __init__(self, securities: Iterable[Security]) -> None:
        by_symbol: dict[str, Security] = {}
        for security in securities:
            if security.symbol in by_symbol:
                raise CategoryTableError(f"duplicate symbol '{security.symbol}'")
            if security.weight < 0 or not math.isfinite(security.weight):
                raise CategoryTableError(f"{security.symbol}: weight must be a non-negative number")
            by_symbol[security.symbol] = security

        for asset_class in AssetClass:
            members = [s for s in by_symbol.values() if s.asset_class is asset_class]
            if not members:
                continue
            total = sum(s.weight for s in members)
            if abs(total - 100.0) > WEIGHT_TOLERANCE:
                raise CategoryTableError(
                    f"{asset_class.value} weights sum to {total:.6f}; expected 100"
                )
        self._securities = dict(sorted(by_symbol.items()))

    def __iter__(self):
        return iter(self._securities.values())

    def __len__(self) -> int:
        return len(self._securities)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._securities

    def get(self, symbol: str) -> Security | None:
        return self._securities.get(symbol)

    @property
    def symbols(self) -> list[str]:
        return list(self._securities)

    def in_class(self, asset_class: AssetClass) -> list[Security]:
        return [s for s in self._securities.values() if s.asset_class is asset_class]

    def risk_order(self) -> list[str]:
        """Symbols from riskiest to safest; ties broken by symbol."""
        ranked = sorted(self._securities.values(), key=lambda s: (s.risk_rank, s.symbol))
        return [s.symbol for s in ranked]


# US stock is 2/3 of stock split evenly across large, mid and small cap.
# International stock is 1/3 of stock: 2/3 total international, 1/3 emerging.
# Bonds split evenly across US corporate, US total and international.
DEFAULT_SECURITIES: tuple[Security, ...] = (
    Security("VWO", AssetClass.STOCK, 100.0 / 9, 1, "Emerging markets stock"),
    Security("VXUS", AssetClass.STOCK, 200.0 / 9, 2, "Total international stock"),
    Security("VB", AssetClass.STOCK, 200.0 / 9, 3, "US small cap"),
    Security("VO", AssetClass.STOCK, 200.0 / 9, 4, "US mid cap"),
    Security("VV", AssetClass.STOCK, 200.0 / 9, 5, "US large cap"),
    Security("BNDX", AssetClass.BOND, 100.0 / 3, 6, "Total international bond"),
    Security("BND", AssetClass.BOND, 100.0 / 3, 7, "US total bond"),
    Security("VTC", AssetClass.BOND, 100.0 / 3, 8, "US total corporate bond"),
)


def default_category_table() -> CategoryTable:
    return CategoryTable(DEFAULT_SECURITIES)


def _security_from_dict(data: Any, path: str) -> Security:
    if not isinstance(data, dict):
        raise CategoryTableError(f"{path}: expected object")
    for key in ("symbol", "asset_class", "weight", "risk_rank"):
        if key not in data:
            raise CategoryTableError(f"{path}.{key}: missing required field")
    try:
        asset_class = AssetClass(data["asset_class"])
    except ValueError:
        expected = ", ".join(c.value for c in AssetClass)
        raise CategoryTableError(
            f"{path}.asset_class: '{data['asset_class']}' is not valid; expected one of [{expected}]"
        ) from None
    try:
        weight = float(data["weight"])
        risk_rank = int(data["risk_rank"])
    except (TypeError, ValueError) as exc:
        raise CategoryTableError(f"{path}: {exc}") from exc
    return Security(
        symbol=str(data["symbol"]),
        asset_class=asset_class,
        weight=weight,
        risk_rank=risk_rank,
        description=str(data.get("description", "")),
    )


def category_table_from_dict(data: Any) -> CategoryTable:
    if not isinstance(data, dict) or not isinstance(data.get("securities"), list):
        raise CategoryTableError("category table: expected object with a 'securities' array")
    return CategoryTable(
        _security_from_dict(item, f"securities[{idx}]") for idx, item in enumerate(data["securities"])
    )


def load_category_table(path: str | Path) -> CategoryTable:
    """Load and validate a category table JSON file."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return category_table_from_dict(raw)
