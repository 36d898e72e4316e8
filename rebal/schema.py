"""Portfolio input dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
from pathlib import Path
from typing import Any

from .errors import MissingPrice


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


class AccountKind(str, Enum):
    BROKERAGE = "Brokerage"
    ROTH = "Roth"
    TRADITIONAL = "Traditional"


class MergePolicy(str, Enum):
    APPEND = "append"
    LEAST_RISKY_FIRST = "least_risky_first"


PriceSheet = dict[str, float]


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemaError(f"{path}: expected number")
    return float(value)


def _optional_int(value: Any, path: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"{path}: expected integer")
    return value


def _number_map(value: Any, path: str) -> dict[str, float]:
    raw = _expect_dict(value, path)
    return {str(symbol): _number(amount, f"{path}.{symbol}") for symbol, amount in raw.items()}


@dataclass(slots=True)
class AccountState:
    kind: AccountKind
    holdings: dict[str, float] = field(default_factory=dict)
    cash: float = 0.0
    contribution: float = 0.0
    merge_with_retirement: bool = False
    prior_year_end_value: float | None = None
    distributions_taken: float = 0.0

    def holdings_value(self, prices: PriceSheet) -> float:
        missing = [s for s, shares in self.holdings.items() if shares and prices.get(s, 0.0) <= 0]
        if missing:
            raise MissingPrice(missing)
        return sum(shares * prices[symbol] for symbol, shares in self.holdings.items() if shares)

    def current_value(self, prices: PriceSheet) -> float:
        return self.holdings_value(prices) + self.cash

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "AccountState":
        raw_kind = _require(data, "kind", path)
        try:
            kind = AccountKind(raw_kind)
        except ValueError:
            expected = ", ".join(k.value for k in AccountKind)
            raise SchemaError(f"{path}.kind: '{raw_kind}' is not valid; expected one of [{expected}]") from None
        prior = _optional(data, "prior_year_end_value")
        return cls(
            kind=kind,
            holdings=_number_map(_optional(data, "holdings", {}), f"{path}.holdings"),
            cash=_number(_optional(data, "cash", 0.0), f"{path}.cash"),
            contribution=_number(_optional(data, "contribution", 0.0), f"{path}.contribution"),
            merge_with_retirement=bool(_optional(data, "merge_with_retirement", False)),
            prior_year_end_value=_number(prior, f"{path}.prior_year_end_value") if prior is not None else None,
            distributions_taken=_number(_optional(data, "distributions_taken", 0.0), f"{path}.distributions_taken"),
        )


@dataclass(slots=True)
class SplitConfig:
    retirement_stock_pct: float = 90.0
    brokerage_stock_pct: float = 60.0
    retirement_year: int | None = None
    birth_year: int | None = None
    rmd_start_age: int = 73
    glide_path: bool = False
    merge_policy: MergePolicy = MergePolicy.APPEND
    year: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "config") -> "SplitConfig":
        raw_policy = _optional(data, "merge_policy", MergePolicy.APPEND.value)
        try:
            merge_policy = MergePolicy(raw_policy)
        except ValueError:
            expected = ", ".join(p.value for p in MergePolicy)
            raise SchemaError(f"{path}.merge_policy: '{raw_policy}' is not valid; expected one of [{expected}]") from None
        rmd_start_age = _optional_int(_optional(data, "rmd_start_age"), f"{path}.rmd_start_age")
        return cls(
            retirement_stock_pct=_number(_optional(data, "retirement_stock_pct", 90.0), f"{path}.retirement_stock_pct"),
            brokerage_stock_pct=_number(_optional(data, "brokerage_stock_pct", 60.0), f"{path}.brokerage_stock_pct"),
            retirement_year=_optional_int(_optional(data, "retirement_year"), f"{path}.retirement_year"),
            birth_year=_optional_int(_optional(data, "birth_year"), f"{path}.birth_year"),
            rmd_start_age=73 if rmd_start_age is None else rmd_start_age,
            glide_path=bool(_optional(data, "glide_path", False)),
            merge_policy=merge_policy,
            year=_optional_int(_optional(data, "year"), f"{path}.year"),
        )


@dataclass(slots=True)
class OutsideHoldings:
    stock: float = 0.0
    bond: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "OutsideHoldings":
        return cls(
            stock=_number(_optional(data, "stock", 0.0), f"{path}.stock"),
            bond=_number(_optional(data, "bond", 0.0), f"{path}.bond"),
        )


@dataclass(slots=True)
class Portfolio:
    config: SplitConfig
    prices: PriceSheet
    accounts: list[AccountState]
    outside_retirement: OutsideHoldings = field(default_factory=OutsideHoldings)
    outside_brokerage: OutsideHoldings = field(default_factory=OutsideHoldings)
    category_table: Path | None = None
    divisor_table: Path | None = None

    def account(self, kind: AccountKind) -> AccountState | None:
        return next((a for a in self.accounts if a.kind is kind), None)

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path | None = None) -> "Portfolio":
        outside = _expect_dict(_optional(data, "outside", {}), "outside")

        def _path(key: str) -> Path | None:
            raw = _optional(data, key)
            if raw is None:
                return None
            if not isinstance(raw, str):
                raise SchemaError(f"{key}: expected string path")
            path = Path(raw)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            return path

        return cls(
            config=SplitConfig.from_dict(_expect_dict(_optional(data, "config", {}), "config")),
            prices=_number_map(_optional(data, "prices", {}), "prices"),
            accounts=[
                AccountState.from_dict(_expect_dict(item, f"accounts[{idx}]"), f"accounts[{idx}]")
                for idx, item in enumerate(_expect_list(_require(data, "accounts", "portfolio"), "accounts"))
            ],
            outside_retirement=OutsideHoldings.from_dict(
                _expect_dict(_optional(outside, "retirement", {}), "outside.retirement"), "outside.retirement"
            ),
            outside_brokerage=OutsideHoldings.from_dict(
                _expect_dict(_optional(outside, "brokerage", {}), "outside.brokerage"), "outside.brokerage"
            ),
            category_table=_path("category_table"),
            divisor_table=_path("divisor_table"),
        )


def load_portfolio(path: str | Path) -> Portfolio:
    """Load portfolio JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("portfolio: root must be a JSON object")
    return Portfolio.from_dict(raw, base_dir=source.parent)


def load_price_sheet(path: str | Path) -> PriceSheet:
    """Load a ``{"symbol": price}`` JSON object such as a cache of earlier quotes."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return _number_map(raw, "prices")
