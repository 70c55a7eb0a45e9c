from __future__ import annotations

from collections.abc import Mapping

from doviz.core.errors import UnknownBaseCurrency

PIVOT_CURRENCY = "USD"


def rebase(rates_in_usd: Mapping[str, float], new_base: str) -> dict[str, float]:
    """Re-express a USD-quoted rate table against ``new_base``.

    ``rates_in_usd[code]`` is the number of ``code`` units per 1 USD; the result
    holds the number of ``code`` units per 1 ``new_base``.
    """
    if new_base == PIVOT_CURRENCY:
        return dict(rates_in_usd)

    base_rate = rates_in_usd.get(new_base)
    if not base_rate:
        raise UnknownBaseCurrency(new_base)

    out: dict[str, float] = {}
    for code, rate in rates_in_usd.items():
        out[code] = 1.0 if code == new_base else rate / base_rate
    return out


def cross_rate(rates_in_usd: Mapping[str, float], *, code: str, base: str) -> float | None:
    """Units of ``code`` per 1 ``base``, or None when either leg is missing."""
    quote = 1.0 if code == PIVOT_CURRENCY else rates_in_usd.get(code)
    base_rate = 1.0 if base == PIVOT_CURRENCY else rates_in_usd.get(base)
    if not quote or not base_rate:
        return None
    return quote / base_rate
