"""Exit-value sensitivity sweep.

Runs the waterfall tier engine over an evenly spaced range of net proceeds to
show how carry and LP proceeds respond to exit value, and where each tier
starts paying (activation) and where it is first paid in full (satisfaction).
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

import pandas as pd

from .waterfall import run_waterfall
from ..money import ratio, to_money
from ..schemas import CapitalAccount, EngineCFG, DEFAULT_ENGINE_CFG, WaterfallScenario

logger = logging.getLogger(__name__)


def sensitivity_analysis(
    scenario: WaterfallScenario,
    min_value: Decimal,
    max_value: Decimal,
    steps: int = 20,
    fund_state: Optional[CapitalAccount] = None,
    deal_state: Optional[CapitalAccount] = None,
    as_of: Optional[date] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Sweep net proceeds from ``min_value`` to ``max_value`` in ``steps`` intervals.

    Args:
        scenario: Waterfall scenario to evaluate
        min_value: Lowest net proceeds (inclusive)
        max_value: Highest net proceeds (inclusive)
        steps: Number of intervals (the sweep has steps + 1 points)
        fund_state: Fund-wide capital state
        deal_state: Deal-level capital state
        as_of: Accrual date for the preferred return
        cfg: Engine configuration

    Returns:
        (points, break_even):
            points: one row per exit value with columns
                exit_value, gp_carry, gp_carry_pct, lp_total, lp_multiple, total_multiple
            break_even: one row per tier with columns
                tier_index, name, activated_at, satisfied_at
                (NaN when the tier never activates / is never satisfied in range)

    Raises:
        ValueError: If the range is negative or inverted, or steps < 1
        InvalidTierConfigurationError, MissingFundStateError: From the engine
    """
    min_value = to_money(min_value, cfg.money_quantum)
    max_value = to_money(max_value, cfg.money_quantum)
    if steps < 1:
        raise ValueError(f"steps must be at least 1, got {steps}")
    if min_value < 0 or max_value < min_value:
        raise ValueError(f"Invalid exit value range: {min_value} to {max_value}")

    step = (max_value - min_value) / steps
    account = fund_state if scenario.model != "american" else deal_state
    invested = account.total_contributed if account is not None else Decimal("0")

    rows = []
    activated = {}
    satisfied = {}
    names = {}
    for i in range(steps + 1):
        exit_value = max_value if i == steps else to_money(min_value + step * i, cfg.money_quantum)
        result = run_waterfall(exit_value, scenario, fund_state, deal_state, as_of, cfg)

        rows.append({
            "exit_value": float(exit_value),
            "gp_carry": float(result.total_gp),
            "gp_carry_pct": float(ratio(result.total_gp, exit_value)),
            "lp_total": float(result.total_lp),
            "lp_multiple": float(ratio(result.total_lp, invested)),
            "total_multiple": float(ratio(exit_value, invested)),
        })

        for tier in result.tiers:
            names[tier.tier_index] = tier.name
            if tier.total > 0 and tier.tier_index not in activated:
                activated[tier.tier_index] = float(exit_value)
            if tier.required is not None and tier.is_satisfied and tier.tier_index not in satisfied:
                satisfied[tier.tier_index] = float(exit_value)

    points = pd.DataFrame(rows, columns=[
        "exit_value", "gp_carry", "gp_carry_pct", "lp_total", "lp_multiple", "total_multiple",
    ])
    break_even = pd.DataFrame(
        [
            {
                "tier_index": index,
                "name": name,
                "activated_at": activated.get(index, float("nan")),
                "satisfied_at": satisfied.get(index, float("nan")),
            }
            for index, name in names.items()
        ],
        columns=["tier_index", "name", "activated_at", "satisfied_at"],
    )
    logger.debug("Sensitivity sweep of %s: %d points", scenario.id, len(rows))
    return points, break_even
