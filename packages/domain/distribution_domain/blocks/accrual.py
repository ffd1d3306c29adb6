"""Preferred-return (hurdle) accrual.

The hurdle accrues on each capital call's *unreturned* balance from its call
date to the accrual date. Prior returns of capital reduce balances first-in,
first-out on the date they were made, so capital returned early stops
accruing from that date.

For a tranche called at t0, accrual over a segment [s, e] with balance B is:

    B × (g(e − t0) − g(s − t0))

where g(t) is the growth factor for t years:
    simple:     1 + r·t
    annual:     (1 + r)^t
    quarterly:  (1 + r/4)^(4t)
    monthly:    (1 + r/12)^(12t)
    daily:      (1 + r/365)^(365t)

With a single segment this reduces to the textbook B·r·t (simple) or
B·((1+r)^t − 1) (annual compounding).
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, localcontext
from typing import List, Optional

from ..errors import MissingFundStateError
from ..money import quantize, ZERO
from ..schemas import CapitalAccount, EngineCFG, DEFAULT_ENGINE_CFG, PreferredReturnTier

logger = logging.getLogger(__name__)

_PERIODS_PER_YEAR = {
    "annual": 1,
    "quarterly": 4,
    "monthly": 12,
    "daily": 365,
}


def year_fraction(start: date, end: date, day_count: str = "actual/365") -> Decimal:
    """Year fraction between two dates under a day-count convention.

    30/360 uses the US (bond basis) rule: day 31 becomes 30, and the end day
    is capped at 30 only when the start day is 30 or 31.
    """
    if day_count == "actual/365":
        return Decimal((end - start).days) / Decimal(365)
    if day_count == "actual/360":
        return Decimal((end - start).days) / Decimal(360)
    if day_count == "30/360":
        d1 = min(start.day, 30)
        d2 = end.day
        if d1 == 30:
            d2 = min(d2, 30)
        days = 360 * (end.year - start.year) + 30 * (end.month - start.month) + (d2 - d1)
        return Decimal(days) / Decimal(360)
    raise ValueError(f"Unknown day-count convention: {day_count}")


def growth_factor(years: Decimal, rate: Decimal, compounding: str) -> Decimal:
    """Value of 1 unit after ``years`` at ``rate`` under the given compounding."""
    with localcontext() as ctx:
        ctx.prec = 40
        if compounding == "simple":
            return Decimal(1) + rate * years
        periods = _PERIODS_PER_YEAR.get(compounding)
        if periods is None:
            raise ValueError(f"Unknown compounding convention: {compounding}")
        base = Decimal(1) + rate / periods
        return base ** (years * periods)


@dataclass
class _Tranche:
    call_date: date
    balance: Decimal
    accrued_to: date
    accrued: Decimal = ZERO


def _accrue(tranche: _Tranche, to_date: date, tier: PreferredReturnTier) -> None:
    if to_date <= tranche.accrued_to or tranche.balance <= 0:
        tranche.accrued_to = max(tranche.accrued_to, to_date)
        return
    start = year_fraction(tranche.call_date, tranche.accrued_to, tier.day_count)
    end = year_fraction(tranche.call_date, to_date, tier.day_count)
    tranche.accrued += tranche.balance * (
        growth_factor(end, tier.hurdle_rate, tier.compounding)
        - growth_factor(start, tier.hurdle_rate, tier.compounding)
    )
    tranche.accrued_to = to_date


def accrue_preferred(
    account: CapitalAccount,
    tier: PreferredReturnTier,
    as_of: Optional[date] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Decimal:
    """Cumulative preferred return accrued on the account as of a date.

    Args:
        account: Capital state (fund-wide or deal-level)
        tier: Preferred return tier supplying rate and conventions
        as_of: Accrual end date (defaults to account.as_of_date)
        cfg: Engine configuration

    Returns:
        Accrued hurdle on the money unit. An explicit ``preferred_accrued`` on
        the account is returned as-is.

    Raises:
        MissingFundStateError: If there are no dated capital calls to accrue
            on, or no accrual date
    """
    if account.preferred_accrued is not None:
        return account.preferred_accrued

    if not account.capital_calls:
        if account.total_contributed == 0:
            return ZERO
        raise MissingFundStateError(
            "Preferred return accrual needs dated capital calls or an explicit preferred_accrued"
        )

    as_of = as_of or account.as_of_date
    if as_of is None:
        raise MissingFundStateError("Preferred return accrual needs an accrual date")

    tranches: List[_Tranche] = [
        _Tranche(call_date=c.call_date, balance=c.amount, accrued_to=c.call_date)
        for c in sorted(account.capital_calls, key=lambda c: c.call_date)
        if c.call_date <= as_of
    ]

    for capital_return in sorted(account.capital_returns, key=lambda r: r.return_date):
        if capital_return.return_date > as_of:
            break
        live = [t for t in tranches if t.call_date <= capital_return.return_date]
        for tranche in live:
            _accrue(tranche, capital_return.return_date, tier)
        remaining = capital_return.amount
        for tranche in live:
            if remaining <= 0:
                break
            reduction = min(tranche.balance, remaining)
            tranche.balance -= reduction
            remaining -= reduction

    for tranche in tranches:
        _accrue(tranche, as_of, tier)

    accrued = sum((t.accrued for t in tranches), ZERO)
    logger.debug(
        "Accrued %s preferred return on %d tranches to %s (%s, %s)",
        accrued, len(tranches), as_of, tier.compounding, tier.day_count,
    )
    return quantize(accrued, cfg.money_quantum, cfg.rounding_mode)


def hurdle_outstanding(
    account: CapitalAccount,
    tier: PreferredReturnTier,
    as_of: Optional[date] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Decimal:
    """Preferred return still owed: accrued hurdle less preferred already paid."""
    return max(ZERO, accrue_preferred(account, tier, as_of, cfg) - account.preferred_paid)
