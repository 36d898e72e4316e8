"""Required Minimum Distribution helpers."""

from __future__ import annotations

import csv
from pathlib import Path

import structlog

from .errors import DivisorTableError, MissingDivisor

log = structlog.get_logger(__name__)

DEFAULT_RMD_START_AGE = 73
DIVISOR_HEADER = ("Age", "Distribution Period")

# IRS Uniform Lifetime Table (Publication 590-B, Appendix B).
UNIFORM_LIFETIME_DIVISORS: dict[int, float] = {
    72: 27.4,
    73: 26.5,
    74: 25.5,
    75: 24.6,
    76: 23.7,
    77: 22.9,
    78: 22.0,
    79: 21.1,
    80: 20.2,
    81: 19.4,
    82: 18.5,
    83: 17.7,
    84: 16.8,
    85: 16.0,
    86: 15.2,
    87: 14.4,
    88: 13.7,
    89: 12.9,
    90: 12.2,
    91: 11.5,
    92: 10.8,
    93: 10.1,
    94: 9.5,
    95: 8.9,
    96: 8.4,
    97: 7.8,
    98: 7.3,
    99: 6.8,
    100: 6.4,
    101: 6.0,
    102: 5.6,
    103: 5.2,
    104: 4.9,
    105: 4.6,
    106: 4.3,
    107: 4.1,
    108: 3.9,
    109: 3.7,
    110: 3.5,
    111: 3.4,
    112: 3.3,
    113: 3.1,
    114: 3.0,
    115: 2.9,
    116: 2.8,
    117: 2.7,
    118: 2.5,
    119: 2.3,
    120: 2.0,
}


def age_in_year(birth_year: int, year: int) -> int:
    return max(0, year - birth_year)


def required_distribution(
    account_value: float,
    age: int,
    divisor_table: dict[int, float],
    start_age: int = DEFAULT_RMD_START_AGE,
) -> float:
    """Minimum withdrawal owed for the year.

    Zero below ``start_age``. At or above it the table must carry the age;
    a gap raises MissingDivisor instead of understating the withdrawal.
    """
    if age < start_age:
        return 0.0
    divisor = divisor_table.get(age)
    if divisor is None:
        raise MissingDivisor(age)
    if account_value <= 0:
        return 0.0
    return account_value / divisor


def remaining_distribution(required: float, taken: float) -> float:
    return max(0.0, required - max(0.0, taken))


def load_divisor_table(path: str | Path) -> dict[int, float]:
    """Read an ``Age,Distribution Period`` CSV.

    Lines without a comma (titles, notes copied from the IRS publication) are skipped.
    """
    table: dict[int, float] = {}
    header: list[str] | None = None
    with Path(path).open(encoding="utf-8", newline="") as handle:
        for line_no, row in enumerate(csv.reader(handle), start=1):
            cells = [cell.strip() for cell in row]
            if len(cells) < 2 or not any(cells[1:]):
                continue
            if header is None:
                header = cells
                if tuple(header[:2]) != DIVISOR_HEADER:
                    raise DivisorTableError(
                        f"{path}: header {header[:2]} does not match {list(DIVISOR_HEADER)}"
                    )
                continue
            try:
                age, divisor = int(cells[0]), float(cells[1])
            except ValueError as exc:
                raise DivisorTableError(f"{path}:{line_no}: {exc}") from exc
            if divisor <= 0:
                raise DivisorTableError(f"{path}:{line_no}: divisor must be > 0")
            table[age] = divisor

    if header is None:
        raise DivisorTableError(f"{path}: no table rows found")
    log.debug("rmd.divisors_loaded", path=str(path), ages=len(table))
    return table
