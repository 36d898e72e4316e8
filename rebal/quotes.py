"""Resolve a complete price sheet before the engine runs."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
import math
import time
from typing import Callable, Iterable

import structlog

from .errors import MissingPrice
from .schema import PriceSheet

log = structlog.get_logger(__name__)

QuoteFetcher = Callable[[str], float]


def _usable(price: float | None) -> bool:
    return price is not None and math.isfinite(price) and price > 0


def _wait_for_quote(future: Future, symbol: str, started: dict[str, float], timeout: float, horizon: float) -> float:
    """Wait until the lookup finishes or its own ``timeout`` has run out.

    The clock starts when the fetch begins, not when it is queued. A lookup
    still queued at ``horizon`` is given up on.
    """
    while True:
        began = started.get(symbol)
        deadline = horizon if began is None else began + timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise FutureTimeout()
        try:
            return float(future.result(timeout=remaining))
        except FutureTimeout:
            if began is not None or symbol not in started:
                raise


def resolve_prices(
    symbols: Iterable[str],
    fetch: QuoteFetcher,
    *,
    timeout: float = 10.0,
    fallback: PriceSheet | None = None,
    max_workers: int = 8,
) -> PriceSheet:
    """Fetch one quote per symbol concurrently.

    Each lookup gets ``timeout`` seconds from the moment its fetch starts. A
    failed, slow or non-positive quote falls back to ``fallback`` when it has
    a usable price for the symbol; otherwise every unresolved symbol is
    reported together in MissingPrice.
    """
    wanted = sorted(set(symbols))
    if not wanted:
        return {}
    fallback = fallback or {}
    prices: PriceSheet = {}
    unresolved: list[str] = []
    started: dict[str, float] = {}

    def _timed_fetch(symbol: str) -> float:
        started[symbol] = time.monotonic()
        return fetch(symbol)

    workers = max(1, min(max_workers, len(wanted)))
    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        futures = {symbol: executor.submit(_timed_fetch, symbol) for symbol in wanted}
        # Queued lookups run in rounds of ``workers``; each round is bounded by one timeout.
        horizon = time.monotonic() + timeout * math.ceil(len(wanted) / workers)
        for symbol, future in futures.items():
            try:
                price = _wait_for_quote(future, symbol, started, timeout, horizon)
                reason = None if _usable(price) else f"unusable price {price}"
            except FutureTimeout:
                future.cancel()
                price, reason = None, "timeout"
            except Exception as exc:  # any fetcher failure leaves the symbol unresolved
                price, reason = None, str(exc) or type(exc).__name__

            if reason is None:
                prices[symbol] = price
                continue
            cached = fallback.get(symbol)
            if _usable(cached):
                log.warning("quotes.fallback", symbol=symbol, reason=reason, price=cached)
                prices[symbol] = cached
            else:
                log.error("quotes.unresolved", symbol=symbol, reason=reason)
                unresolved.append(symbol)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    if unresolved:
        raise MissingPrice(unresolved)
    log.debug("quotes.resolved", symbols=len(prices))
    return prices
