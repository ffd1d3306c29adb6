"""LP allocation calculator.

Turns the waterfall's LP-bound tier amounts into per-LP allocation lines:

1. Ownership share per LP: committed capital ÷ total committed capital, or the
   explicit ownership percentages (normalised) when the fund pins them
2. Each tier's LP amount is split by ownership with largest-remainder
   rounding, so Σ LP gross per tier == tier LP amount exactly
3. Gross is summed across tiers per LP, then tax is withheld:
       tax = round(gross × rate), net = gross − tax

Leftover cents go to the largest fractional remainders; ties go to the larger
commitment, then the lower LP id. With three or more LPs a one-cent rise in a
tier amount can cost an LP its remainder cent (see allocate_largest_remainder).
Share computation may run on a thread pool for large LP counts, but the
remainder pass always runs once, in a single deterministic order.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .base import Block, BlockContext, record_warning
from ..errors import ComputationError, DuplicateLPError, InvalidOwnershipError, InvalidTaxRateError
from ..money import allocate_largest_remainder, quantize, ratio, ZERO
from ..schemas import (
    AllocationResult,
    EngineCFG,
    DEFAULT_ENGINE_CFG,
    LPAllocationLine,
    LPCommitment,
    TaxWithholdingConfig,
    TierResult,
    WaterfallResult,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Ownership
# =============================================================================

def check_unique_lps(commitments: Sequence[LPCommitment]) -> None:
    """Raise DuplicateLPError if an LP id appears on more than one commitment."""
    counts = Counter(c.lp_id for c in commitments)
    duplicates = sorted(lp_id for lp_id, count in counts.items() if count > 1)
    if duplicates:
        raise DuplicateLPError(f"Duplicate LP ids in commitments: {', '.join(duplicates)}")


def check_ownership(commitments: Sequence[LPCommitment], cfg: EngineCFG = DEFAULT_ENGINE_CFG) -> None:
    """Validate that ownership percentages sum to 100%.

    Raises:
        DuplicateLPError: If an LP id appears twice
        InvalidOwnershipError: If some but not all LPs pin ownership_pct, the
            pinned percentages are more than ``ownership_epsilon`` away from
            100%, or there is no committed capital to weight by
    """
    if not commitments:
        return
    check_unique_lps(commitments)
    pinned = [c for c in commitments if c.ownership_pct is not None]
    if pinned and len(pinned) != len(commitments):
        missing = sorted(c.lp_id for c in commitments if c.ownership_pct is None)
        raise InvalidOwnershipError(
            f"Ownership percentages are set for some LPs but missing for: {', '.join(missing)}"
        )
    if pinned:
        total = sum((c.ownership_pct for c in commitments), ZERO)
        if abs(total - 1) > cfg.ownership_epsilon:
            raise InvalidOwnershipError(
                f"Ownership percentages sum to {total * 100}%, expected 100%"
            )
    elif sum((c.committed_capital for c in commitments), ZERO) <= 0:
        raise InvalidOwnershipError("Total committed capital is zero")


def _share(weight: Decimal, total: Decimal) -> Decimal:
    return ratio(weight, total)


def ownership_shares(
    commitments: Sequence[LPCommitment],
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Dict[str, Decimal]:
    """Pro-rata share per LP, normalised to sum to 1.

    Uses explicit ownership percentages when every LP has one, otherwise
    committed capital. Runs the per-LP division on a thread pool when the LP
    count exceeds ``cfg.parallel_allocation_threshold``; results are keyed by
    LP id so completion order never matters.

    Raises:
        DuplicateLPError: If an LP id appears twice
        InvalidOwnershipError: If the weights sum to zero
    """
    if not commitments:
        return {}
    check_unique_lps(commitments)

    if all(c.ownership_pct is not None for c in commitments):
        weights = [c.ownership_pct for c in commitments]
    else:
        weights = [c.committed_capital for c in commitments]

    total = sum(weights, ZERO)
    if total <= 0:
        raise InvalidOwnershipError("LP ownership weights sum to zero")

    threshold = cfg.parallel_allocation_threshold
    if threshold is not None and len(commitments) > threshold:
        logger.debug("Computing %d LP shares on %d workers", len(commitments), cfg.max_workers)
        with ThreadPoolExecutor(max_workers=cfg.max_workers) as pool:
            shares = list(pool.map(_share, weights, [total] * len(weights)))
    else:
        shares = [_share(w, total) for w in weights]

    return {c.lp_id: share for c, share in zip(commitments, shares)}


# =============================================================================
# Tax
# =============================================================================

def check_tax_rates(tax_config: TaxWithholdingConfig, lp_ids: Optional[Sequence[str]] = None) -> None:
    """Raise InvalidTaxRateError if any applicable rate is outside 0-100%."""
    bad = tax_config.invalid_rates()
    if lp_ids is not None:
        applicable = set(lp_ids) | {"*"}
        bad = {k: v for k, v in bad.items() if k in applicable}
    if bad:
        details = ", ".join(
            f"{'default' if k == '*' else k}={v * 100}%" for k, v in bad.items()
        )
        raise InvalidTaxRateError(f"Tax withholding rates must be between 0% and 100% ({details})")


def clamp_tax_rates(tax_config: TaxWithholdingConfig) -> TaxWithholdingConfig:
    """Copy of the config with every rate clamped into 0-100%."""
    def clamp(rate: Decimal) -> Decimal:
        return min(max(rate, ZERO), Decimal("1"))

    return TaxWithholdingConfig(
        default_rate=clamp(tax_config.default_rate),
        lp_rates={lp_id: clamp(rate) for lp_id, rate in tax_config.lp_rates.items()},
    )


# =============================================================================
# Allocation
# =============================================================================

def allocate(
    tier_results,
    commitments: Sequence[LPCommitment],
    tax_config: Optional[TaxWithholdingConfig] = None,
    distribution_id: str = "",
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> AllocationResult:
    """Allocate each tier's LP amount across LPs and withhold tax.

    Args:
        tier_results: WaterfallResult or list of TierResult
        commitments: LP commitments participating in the distribution
        tax_config: Withholding rates (default: no withholding)
        distribution_id: Owning distribution, stamped on every line
        cfg: Engine configuration

    Returns:
        AllocationResult with one line per LP, in commitment order

    Raises:
        InvalidOwnershipError: If there are LP amounts but no LPs, an LP id
            appears twice, or ownership can't be determined
        InvalidTaxRateError: If an applicable rate is outside 0-100%

    Example:
        Two LPs committing 6M and 2M sharing an LP tier amount of 1,040,000.01:
        → lp_a 780,000.01 (larger remainder), lp_b 260,000.00
    """
    tiers: List[TierResult] = list(
        tier_results.tiers if isinstance(tier_results, WaterfallResult) else tier_results
    )
    tax_config = tax_config or TaxWithholdingConfig()
    lp_total = sum((t.amount_to_lp for t in tiers), ZERO)

    if not commitments:
        if lp_total > 0:
            raise InvalidOwnershipError("No LP commitments to allocate to")
        return AllocationResult(distribution_id=distribution_id)

    check_tax_rates(tax_config, [c.lp_id for c in commitments])
    shares = ownership_shares(commitments, cfg)
    committed = {c.lp_id: c.committed_capital for c in commitments}

    def tie_break(lp_id: str):
        return -committed[lp_id]

    tier_amounts: Dict[str, Dict[int, Decimal]] = {c.lp_id: {} for c in commitments}
    for tier in tiers:
        if tier.amount_to_lp <= 0:
            continue
        parts = allocate_largest_remainder(
            tier.amount_to_lp, shares, tie_break=tie_break, quantum=cfg.money_quantum
        )
        for lp_id, amount in parts.items():
            tier_amounts[lp_id][tier.tier_index] = amount

    lines = []
    for commitment in commitments:
        lp_id = commitment.lp_id
        gross = sum(tier_amounts[lp_id].values(), ZERO)
        rate = tax_config.rate_for(lp_id)
        tax = quantize(gross * rate, cfg.money_quantum, cfg.rounding_mode)
        lines.append(LPAllocationLine(
            distribution_id=distribution_id,
            lp_id=lp_id,
            pro_rata_share=shares[lp_id],
            gross_amount=gross,
            tax_rate=rate,
            tax_withheld=tax,
            net_amount=gross - tax,
            tier_amounts=tier_amounts[lp_id],
        ))

    result = AllocationResult(distribution_id=distribution_id, lines=lines)
    logger.debug(
        "Allocated %s across %d LPs (tax withheld %s)",
        result.total_gross, len(lines), result.total_tax_withheld,
    )
    return result


# =============================================================================
# Block
# =============================================================================

class AllocationBlock(Block):
    """Allocates LP-bound waterfall amounts to individual LPs.

    Inputs (from context):
        - waterfall_result: WaterfallResult or None (from WaterfallBlock)
        - commitments: List[LPCommitment]
        - tax_config: TaxWithholdingConfig
        - distribution_id: str
        - engine_cfg (optional): EngineCFG

    Outputs (to context):
        - allocation_result: AllocationResult, or None without a waterfall result
        - lp_allocations: DataFrame with columns:
            * lp_id: LP identifier
            * name: LP display name
            * pro_rata_share: Ownership share
            * gross_amount: Total allocated before tax
            * tax_rate: Withholding rate applied
            * tax_withheld: Tax withheld
            * net_amount: Amount payable
            * tier_<n>: Gross amount from tier n (one column per tier)

    Ownership and tax-rate problems are recorded in ``engine_warnings``; the
    block still allocates using normalised ownership and clamped rates.
    Duplicate LP ids leave ``allocation_result`` as None.
    """

    def inputs(self) -> List[str]:
        return ["waterfall_result", "commitments", "tax_config", "distribution_id"]

    def outputs(self) -> List[str]:
        return ["allocation_result", "lp_allocations"]

    def execute(self, context: BlockContext) -> None:
        cfg: EngineCFG = context.get_optional("engine_cfg", DEFAULT_ENGINE_CFG)
        waterfall: Optional[WaterfallResult] = context.get("waterfall_result")
        commitments: List[LPCommitment] = context.get("commitments")
        tax_config: TaxWithholdingConfig = context.get("tax_config") or TaxWithholdingConfig()
        distribution_id: str = context.get("distribution_id")

        duplicate_lps = False
        try:
            check_ownership(commitments, cfg)
        except InvalidOwnershipError as exc:
            logger.warning("Allocation: %s", exc)
            record_warning(context, exc, step="allocations")
            duplicate_lps = isinstance(exc, DuplicateLPError)

        try:
            check_tax_rates(tax_config, [c.lp_id for c in commitments])
        except InvalidTaxRateError as exc:
            logger.warning("Allocation: %s", exc)
            record_warning(context, exc, step="tax")
            tax_config = clamp_tax_rates(tax_config)

        result = None
        if waterfall is not None and not duplicate_lps:
            try:
                result = allocate(waterfall, commitments, tax_config, distribution_id, cfg)
            except ComputationError as exc:
                logger.warning("Allocation: %s", exc)
                record_warning(context, exc, step="allocations")

        context.set("allocation_result", result)
        context.set("lp_allocations", allocations_frame(result, commitments, waterfall))


def allocations_frame(
    result: Optional[AllocationResult],
    commitments: Sequence[LPCommitment],
    waterfall: Optional[WaterfallResult] = None,
) -> pd.DataFrame:
    """Allocation lines as a DataFrame, one row per LP."""
    tier_columns = [f"tier_{t.tier_index}" for t in waterfall.tiers] if waterfall else []
    columns = [
        "lp_id", "name", "pro_rata_share", "gross_amount",
        "tax_rate", "tax_withheld", "net_amount",
    ] + tier_columns
    if result is None or not result.lines:
        return pd.DataFrame(columns=columns)

    names = {c.lp_id: c.display_name for c in commitments}
    rows = []
    for line in result.lines:
        row = {
            "lp_id": line.lp_id,
            "name": names.get(line.lp_id, line.lp_id),
            "pro_rata_share": float(line.pro_rata_share),
            "gross_amount": float(line.gross_amount),
            "tax_rate": float(line.tax_rate),
            "tax_withheld": float(line.tax_withheld),
            "net_amount": float(line.net_amount),
        }
        for tier in (waterfall.tiers if waterfall else []):
            row[f"tier_{tier.tier_index}"] = float(line.tier_amounts.get(tier.tier_index, ZERO))
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)
