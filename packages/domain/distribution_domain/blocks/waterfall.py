"""Waterfall tier engine.

Splits a distribution's net proceeds across an ordered list of tiers:

1. Return of Capital: 100% to LP until unreturned capital is repaid
2. Preferred Return: 100% to LP until the accrued hurdle is paid
3. GP Catch-Up: GP (at the catch-up rate) until GP holds its target share
   of cumulative profit
4. Carry Split: remaining proceeds split GP/LP at a fixed ratio

A tier whose requirement exceeds what is left takes exactly the remainder and
every later tier gets zero. Anything left after the last tier goes to the last
tier's split, so the tier amounts always sum to net proceeds exactly.

Models differ only in which capital state the tiers are evaluated against:
- european: fund-wide state (aggregate hurdle across all LPs since inception)
- american: deal-level state (deal-by-deal carry)
- blended:  both; the emitted result is the weighted blend, with the interim
            (american) and fund-wide (european) evaluations attached
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from .accrual import hurdle_outstanding
from .base import Block, BlockContext, record_warning
from ..errors import ComputationError, InvalidTierConfigurationError, MissingFundStateError
from ..money import allocate_largest_remainder, quantize, ratio, to_money, ZERO
from ..schemas import (
    CapitalAccount,
    CarrySplitTier,
    CatchUpTier,
    ClawbackSummary,
    EngineCFG,
    DEFAULT_ENGINE_CFG,
    PreferredReturnTier,
    ReturnOfCapitalTier,
    TierResult,
    WaterfallResult,
    WaterfallScenario,
)

logger = logging.getLogger(__name__)

ONE = Decimal("1")

_MODELS = frozenset({"european", "american", "blended"})


# =============================================================================
# Validation
# =============================================================================

def validate_scenario(scenario: WaterfallScenario) -> List:
    """Check a scenario's tier configuration and return its tiers.

    Raises:
        InvalidTierConfigurationError: If the scenario has no tiers, a tier of
            unknown kind, non-increasing order indices, more than one ROC or
            preferred-return tier, a carry split that doesn't sum to 100%,
            a catch-up rate not above the target carry, or blended weights
            that don't sum to 100%
    """
    if scenario.model not in _MODELS:
        raise InvalidTierConfigurationError(f"Unknown waterfall model '{scenario.model}'")

    tiers = list(scenario.tiers)
    if not tiers:
        raise InvalidTierConfigurationError(
            f"Waterfall scenario '{scenario.id}' has no tiers configured"
        )

    previous_order = None
    counts: Dict[str, int] = {}
    for tier in tiers:
        kind = getattr(tier, "kind", None)
        if kind not in _TIER_HANDLERS:
            raise InvalidTierConfigurationError(f"Unknown tier kind '{kind}'")
        if previous_order is not None and tier.order <= previous_order:
            raise InvalidTierConfigurationError(
                f"Tier order indices must be strictly increasing "
                f"(got {tier.order} after {previous_order})"
            )
        previous_order = tier.order
        counts[kind] = counts.get(kind, 0) + 1

        if isinstance(tier, CarrySplitTier) and tier.gp_share + tier.lp_share != ONE:
            raise InvalidTierConfigurationError(
                f"Carry split tier {tier.order} GP/LP shares sum to "
                f"{(tier.gp_share + tier.lp_share) * 100}%, expected 100%"
            )
        if isinstance(tier, CatchUpTier) and tier.catch_up_rate <= tier.target_carry:
            raise InvalidTierConfigurationError(
                f"Catch-up tier {tier.order} rate ({tier.catch_up_rate}) must exceed "
                f"its target carry ({tier.target_carry})"
            )

    for kind in ("return_of_capital", "preferred_return"):
        if counts.get(kind, 0) > 1:
            raise InvalidTierConfigurationError(
                f"Scenario '{scenario.id}' has {counts[kind]} '{kind}' tiers; at most one is allowed"
            )

    if scenario.model == "blended" and scenario.blended is not None:
        weights = scenario.blended.european_weight + scenario.blended.american_weight
        if weights != ONE:
            raise InvalidTierConfigurationError(
                f"Blended weights sum to {weights * 100}%, expected 100%"
            )

    return tiers


# =============================================================================
# Tier evaluation
# =============================================================================

@dataclass
class _Running:
    """State carried from tier to tier within one evaluation."""

    remaining: Decimal
    account: CapitalAccount
    as_of: Optional[date]
    cfg: EngineCFG
    profit_paid: Decimal = ZERO
    gp_paid: Decimal = ZERO

    def money(self, value: Decimal) -> Decimal:
        return quantize(value, self.cfg.money_quantum, self.cfg.rounding_mode)


def _return_of_capital(tier: ReturnOfCapitalTier, run: _Running) -> Tuple[Decimal, Decimal, Optional[Decimal]]:
    required = run.money(run.account.unreturned_capital)
    return ZERO, min(run.remaining, required), required


def _preferred_return(tier: PreferredReturnTier, run: _Running) -> Tuple[Decimal, Decimal, Optional[Decimal]]:
    required = hurdle_outstanding(run.account, tier, run.as_of, run.cfg)
    lp = min(run.remaining, required)
    run.profit_paid += lp
    return ZERO, lp, required


def _gp_catchup(tier: CatchUpTier, run: _Running) -> Tuple[Decimal, Decimal, Optional[Decimal]]:
    # Solve G + r·x = c·(P + x) for x:
    #   P = cumulative profit so far, G = GP's cumulative profit so far
    profit = run.account.prior_profit + run.profit_paid
    gp_profit = run.account.gp_profit_paid + run.gp_paid
    shortfall = tier.target_carry * profit - gp_profit
    required = ZERO
    if shortfall > 0:
        required = run.money(ratio(shortfall, tier.catch_up_rate - tier.target_carry))

    taken = min(run.remaining, required)
    gp = min(taken, run.money(taken * tier.catch_up_rate))
    lp = taken - gp
    run.profit_paid += taken
    run.gp_paid += gp
    return gp, lp, required


def _carry_split(tier: CarrySplitTier, run: _Running) -> Tuple[Decimal, Decimal, Optional[Decimal]]:
    taken = run.remaining
    gp = min(taken, run.money(taken * tier.gp_share))
    lp = taken - gp
    run.profit_paid += taken
    run.gp_paid += gp
    return gp, lp, None


_TIER_HANDLERS: Dict[str, Callable] = {
    "return_of_capital": _return_of_capital,
    "preferred_return": _preferred_return,
    "gp_catchup": _gp_catchup,
    "carry_split": _carry_split,
}


def _final_split(tier, amount: Decimal, run: _Running) -> Tuple[Decimal, Decimal]:
    """Split leftover proceeds using the last tier's GP/LP ratio."""
    if isinstance(tier, CarrySplitTier):
        gp_share = tier.gp_share
    elif isinstance(tier, CatchUpTier):
        gp_share = tier.catch_up_rate
    else:
        gp_share = ZERO
    gp = min(amount, run.money(amount * gp_share))
    return gp, amount - gp


def evaluate_tiers(
    net: Decimal,
    tiers: List,
    account: CapitalAccount,
    as_of: Optional[date] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> List[TierResult]:
    """Run already-validated tiers against one capital account.

    Returns:
        One TierResult per tier, in order; amounts sum to ``net`` exactly
    """
    run = _Running(remaining=to_money(net, cfg.money_quantum), account=account, as_of=as_of, cfg=cfg)
    results: List[TierResult] = []

    for tier in tiers:
        if run.remaining <= 0:
            results.append(TierResult(
                tier_index=tier.order, kind=tier.kind, name=tier.name,
                required=_required_only(tier, run),
            ))
            continue

        gp, lp, required = _TIER_HANDLERS[tier.kind](tier, run)
        run.remaining -= gp + lp
        results.append(TierResult(
            tier_index=tier.order,
            kind=tier.kind,
            name=tier.name,
            required=required,
            amount_to_gp=gp,
            amount_to_lp=lp,
        ))
        logger.debug("Tier %d (%s): GP %s, LP %s, remaining %s", tier.order, tier.kind, gp, lp, run.remaining)

    if run.remaining > 0 and results:
        gp, lp = _final_split(tiers[-1], run.remaining, run)
        last = results[-1]
        last.amount_to_gp += gp
        last.amount_to_lp += lp
        logger.debug("Remainder %s allocated to final tier %d", run.remaining, last.tier_index)

    return results


def _required_only(tier, run: _Running) -> Optional[Decimal]:
    """Requirement of a tier that received nothing, for display."""
    if isinstance(tier, ReturnOfCapitalTier):
        return run.money(run.account.unreturned_capital)
    if isinstance(tier, PreferredReturnTier):
        return hurdle_outstanding(run.account, tier, run.as_of, run.cfg)
    return None


# =============================================================================
# Models
# =============================================================================

def _require(state: Optional[CapitalAccount], model: str, scope: str) -> CapitalAccount:
    if state is None:
        raise MissingFundStateError(
            f"The {model} waterfall requires {scope} capital state"
        )
    return state


def _blend(
    net: Decimal,
    interim: List[TierResult],
    fund_wide: List[TierResult],
    american_weight: Decimal,
    european_weight: Decimal,
    cfg: EngineCFG,
) -> List[TierResult]:
    """Weighted blend of two tier evaluations with exact cents."""
    if net == 0:
        return [
            TierResult(tier_index=t.tier_index, kind=t.kind, name=t.name, required=t.required)
            for t in fund_wide
        ]

    weights: Dict[Tuple[int, str], Decimal] = {}
    for a, e in zip(interim, fund_wide):
        weights[(e.tier_index, "gp")] = american_weight * a.amount_to_gp + european_weight * e.amount_to_gp
        weights[(e.tier_index, "lp")] = american_weight * a.amount_to_lp + european_weight * e.amount_to_lp

    parts = allocate_largest_remainder(net, weights, quantum=cfg.money_quantum)
    return [
        TierResult(
            tier_index=e.tier_index,
            kind=e.kind,
            name=e.name,
            required=e.required,
            amount_to_gp=parts[(e.tier_index, "gp")],
            amount_to_lp=parts[(e.tier_index, "lp")],
        )
        for e in fund_wide
    ]


def run_waterfall(
    net: Decimal,
    scenario: WaterfallScenario,
    fund_state: Optional[CapitalAccount] = None,
    deal_state: Optional[CapitalAccount] = None,
    as_of: Optional[date] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> WaterfallResult:
    """Split net proceeds across the scenario's tiers.

    Args:
        net: Net proceeds (after fees)
        scenario: Waterfall scenario (model + tiers)
        fund_state: Fund-wide capital state (european, blended)
        deal_state: Deal-level capital state (american, blended)
        as_of: Accrual date for the preferred return
        cfg: Engine configuration

    Returns:
        WaterfallResult whose tier amounts sum to ``net`` exactly

    Raises:
        InvalidTierConfigurationError: If the tiers are misconfigured
        MissingFundStateError: If the model's capital state is missing

    Example:
        run_waterfall(Decimal("9800000"), european_scenario, fund_state=state)
        → tiers: ROC LP 8.0M, pref LP 400K, catch-up GP 100K, carry GP 260K / LP 1.04M
    """
    tiers = validate_scenario(scenario)
    net = to_money(net, cfg.money_quantum)
    if net < 0:
        raise ValueError(f"Net proceeds cannot be negative: {net}")

    if scenario.model == "european":
        account = _require(fund_state, "european", "fund-wide")
        result = WaterfallResult(
            model="european",
            net_proceeds=net,
            tiers=evaluate_tiers(net, tiers, account, as_of, cfg),
        )
    elif scenario.model == "american":
        account = _require(deal_state, "american", "deal-level")
        result = WaterfallResult(
            model="american",
            net_proceeds=net,
            tiers=evaluate_tiers(net, tiers, account, as_of, cfg),
        )
    else:
        fund_account = _require(fund_state, "blended", "fund-wide")
        deal_account = _require(deal_state, "blended", "deal-level")
        interim = WaterfallResult(
            model="american",
            net_proceeds=net,
            tiers=evaluate_tiers(net, tiers, deal_account, as_of, cfg),
        )
        fund_wide = WaterfallResult(
            model="european",
            net_proceeds=net,
            tiers=evaluate_tiers(net, tiers, fund_account, as_of, cfg),
        )
        weights = scenario.blended
        american_weight = weights.american_weight if weights else Decimal("0.5")
        european_weight = weights.european_weight if weights else Decimal("0.5")
        blended = _blend(net, interim.tiers, fund_wide.tiers, american_weight, european_weight, cfg)
        result = WaterfallResult(
            model="blended",
            net_proceeds=net,
            tiers=blended,
            interim=interim,
            fund_wide=fund_wide,
        )
        result.true_up = result.total_gp - interim.total_gp
        account = fund_account

    if scenario.clawback is not None and scenario.clawback.enabled:
        result.clawback = clawback_summary(scenario, account, result, cfg)

    logger.info(
        "Waterfall %s (%s): net %s → GP %s, LP %s",
        scenario.id, scenario.model, net, result.total_gp, result.total_lp,
    )
    return result


def clawback_summary(
    scenario: WaterfallScenario,
    account: CapitalAccount,
    result: WaterfallResult,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> ClawbackSummary:
    """GP clawback test after this distribution.

    Compares cumulative LP distributions (including this one) against the
    required return on called capital; up to ``clawback_rate`` of any shortfall
    is due back from cumulative GP carry.
    """
    provision = scenario.clawback
    required = to_money(
        account.total_contributed * (ONE + provision.hurdle_rate * provision.distribution_life_years),
        cfg.money_quantum,
    )
    lp_total = (
        account.total_returned
        + account.preferred_paid
        + account.lp_excess_profit_paid
        + result.total_lp
    )
    carry = account.gp_profit_paid + result.total_gp
    shortfall = max(ZERO, required - lp_total)
    due = min(carry, quantize(shortfall * provision.clawback_rate, cfg.money_quantum, cfg.rounding_mode))

    if due > 0:
        status = "triggered"
    elif shortfall > 0:
        status = "at_risk"
    else:
        status = "clear"

    return ClawbackSummary(
        total_carry_paid=carry,
        required_return=required,
        lp_total_return=lp_total,
        shortfall=shortfall,
        clawback_due=due,
        net_carry_after_clawback=carry - due,
        status=status,
    )


# =============================================================================
# Block
# =============================================================================

class WaterfallBlock(Block):
    """Runs the waterfall tier engine.

    Inputs (from context):
        - net_proceeds: Decimal (from FeeLedgerBlock)
        - waterfall_scenario: WaterfallScenario (may be None while a draft has none selected)
        - fund_state (optional): CapitalAccount, fund-wide
        - deal_state (optional): CapitalAccount, deal-level
        - as_of_date (optional): accrual date
        - engine_cfg (optional): EngineCFG

    Outputs (to context):
        - waterfall_result: WaterfallResult, or None if the engine couldn't run
        - waterfall_tiers: DataFrame with columns:
            * tier_index: Tier order index
            * kind: Tier kind
            * name: Tier name
            * required: Amount needed to satisfy the tier (NaN if open-ended)
            * amount_to_gp: GP amount
            * amount_to_lp: LP amount
            * total: GP + LP
            * cumulative: Running total across tiers
            * share_of_net: total / net proceeds

    Computation errors are recorded in ``engine_warnings``.
    """

    def inputs(self) -> List[str]:
        return ["net_proceeds", "waterfall_scenario"]

    def outputs(self) -> List[str]:
        return ["waterfall_result", "waterfall_tiers"]

    def execute(self, context: BlockContext) -> None:
        cfg: EngineCFG = context.get_optional("engine_cfg", DEFAULT_ENGINE_CFG)
        net: Decimal = context.get("net_proceeds")
        scenario: Optional[WaterfallScenario] = context.get("waterfall_scenario")

        result = None
        if scenario is None:
            record_warning(
                context,
                InvalidTierConfigurationError("No waterfall scenario selected"),
                step="waterfall",
            )
        else:
            try:
                result = run_waterfall(
                    net,
                    scenario,
                    fund_state=context.get_optional("fund_state"),
                    deal_state=context.get_optional("deal_state"),
                    as_of=context.get_optional("as_of_date"),
                    cfg=cfg,
                )
            except ComputationError as exc:
                logger.warning("Waterfall: %s", exc)
                record_warning(context, exc, step="waterfall")

        context.set("waterfall_result", result)
        context.set("waterfall_tiers", tiers_frame(result))


def tiers_frame(result: Optional[WaterfallResult]) -> pd.DataFrame:
    """Tier breakdown as a DataFrame."""
    columns = [
        "tier_index", "kind", "name", "required", "amount_to_gp",
        "amount_to_lp", "total", "cumulative", "share_of_net",
    ]
    if result is None or not result.tiers:
        return pd.DataFrame(columns=columns)

    rows = []
    cumulative = ZERO
    for tier in result.tiers:
        cumulative += tier.total
        rows.append({
            "tier_index": tier.tier_index,
            "kind": tier.kind,
            "name": tier.name,
            "required": float(tier.required) if tier.required is not None else float("nan"),
            "amount_to_gp": float(tier.amount_to_gp),
            "amount_to_lp": float(tier.amount_to_lp),
            "total": float(tier.total),
            "cumulative": float(cumulative),
            "share_of_net": float(ratio(tier.total, result.net_proceeds)),
        })
    return pd.DataFrame(rows, columns=columns)
