from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Mapping

from ..config import EngineSettings

ZERO = Decimal("0")


def _step_months_from_frequency(freq: str) -> int:
    # monthly -> every month, quarterly -> every 3rd, yearly -> every 12th
    return {"monthly": 1, "quarterly": 3, "yearly": 12}[freq]


def is_rebalance_month(month_index: int, freq: str) -> bool:
    """Month 0 is the initial purchase, not a rebalance."""
    return month_index > 0 and month_index % _step_months_from_frequency(freq) == 0


def assumed_dividend(holding_value: Decimal, annual_yield: float, calendar_month: int,
                     settings: EngineSettings) -> Decimal:
    """Yield-model payout: the annual yield is split evenly across the dividend months."""
    if annual_yield <= 0 or calendar_month not in settings.dividend_months:
        return ZERO
    share = Decimal(str(annual_yield)) / Decimal(len(settings.dividend_months))
    return (holding_value * share).quantize(settings.money_quantum, rounding=ROUND_HALF_UP)


def allocate_by_target(cash: Decimal, weights: Mapping[str, float]) -> Dict[str, Decimal]:
    if cash <= 0:
        return {t: ZERO for t in weights}
    return {t: cash * Decimal(str(w)) for t, w in weights.items()}


def allocate_toward_target(cash: Decimal, values: Mapping[str, Decimal],
                           weights: Mapping[str, float]) -> Dict[str, Decimal]:
    """Split `cash` over the assets below their target weight, in proportion to the shortfall.

    Buy-only: an overweight asset gets nothing and is never sold.
    """
    if cash <= 0:
        return {t: ZERO for t in weights}
    total = sum(values.values(), ZERO) + cash
    deficits = {}
    for t, w in weights.items():
        gap = total * Decimal(str(w)) - values.get(t, ZERO)
        deficits[t] = gap if gap > 0 else ZERO
    shortfall = sum(deficits.values(), ZERO)
    if shortfall <= 0:
        return allocate_by_target(cash, weights)
    return {t: cash * d / shortfall for t, d in deficits.items()}
