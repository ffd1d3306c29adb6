"""Distribution orchestrator.

Composes the fee ledger, waterfall engine and allocation calculator into a
single recompute:

    allocate(waterfall(net_proceeds(gross, fees), scenario, fund state), commitments, tax)

Recompute is a pure function of the distribution draft, the fund context and
the engine configuration. Callers invoke it after every edit; it never raises
for computation problems. Those come back as warnings next to a best-effort
result, so a draft can always be saved (warnings only block submission).
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from ..blocks import (
    AllocationBlock,
    BlockContext,
    BlockExecutor,
    FeeLedgerBlock,
    WaterfallBlock,
)
from ..errors import ImmutableDistributionError
from ..money import quantize, ratio, ZERO
from ..schemas import (
    AllocationResult,
    DistributionEvent,
    EngineCFG,
    DEFAULT_ENGINE_CFG,
    EngineWarning,
    FundContext,
    FundMetrics,
    ImpactPreview,
    RecomputeResult,
    RunningTotals,
    WaterfallResult,
)

logger = logging.getLogger(__name__)

METRIC_QUANTUM = Decimal("0.0001")


def build_pipeline() -> BlockExecutor:
    """Fee ledger → waterfall → allocation."""
    return BlockExecutor([FeeLedgerBlock(), WaterfallBlock(), AllocationBlock()])


def run_pipeline(
    event: DistributionEvent,
    fund: FundContext,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
    as_of: Optional[date] = None,
) -> BlockContext:
    """Run the recompute blocks and return the populated context.

    Besides the domain results, the context holds the ``fee_ledger``,
    ``waterfall_tiers`` and ``lp_allocations`` DataFrames.
    """
    context = BlockContext()
    context.set("engine_cfg", cfg)
    context.set("engine_warnings", [])
    context.set("distribution_id", event.id)
    context.set("gross_proceeds", event.gross_proceeds)
    context.set("fee_line_items", list(event.fee_line_items))
    context.set("waterfall_scenario", event.scenario)
    context.set("fund_state", fund.fund_state)
    context.set("deal_state", event.deal_state)
    context.set("as_of_date", as_of or event.event_date)
    context.set("commitments", list(event.commitments))
    context.set("tax_config", event.tax_config)

    build_pipeline().execute(context)
    return context


def recompute(
    event: DistributionEvent,
    fund: FundContext,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
    as_of: Optional[date] = None,
) -> RecomputeResult:
    """Recompute net proceeds, tier amounts, allocation lines and running totals.

    Args:
        event: Distribution draft (not modified)
        fund: Fund context supplying fund-wide capital state and metrics
        cfg: Engine configuration
        as_of: Accrual date for the preferred return (default: event date)

    Returns:
        RecomputeResult; identical inputs always give an identical result
    """
    context = run_pipeline(event, fund, cfg, as_of)

    waterfall: Optional[WaterfallResult] = context.get("waterfall_result")
    allocation: Optional[AllocationResult] = context.get("allocation_result")
    net: Decimal = context.get("net_proceeds")
    total_fees, total_expenses = context.get("fee_totals")
    warnings: List[EngineWarning] = list(context.get("engine_warnings"))

    gross = max(event.gross_proceeds, ZERO)
    deductions = total_fees + total_expenses
    if gross > 0 and ratio(deductions, gross) > cfg.unusual_fee_ratio:
        warnings.append(EngineWarning(
            code="unusual_fee_ratio",
            message=(
                f"Fees and expenses are {quantize(ratio(deductions, gross) * 100, Decimal('0.1'))}% "
                f"of gross proceeds (threshold {cfg.unusual_fee_ratio * 100}%)"
            ),
            step="fees",
        ))

    total_gp = waterfall.total_gp if waterfall else ZERO
    if allocation is not None:
        lp_gross = allocation.total_gross
        tax_withheld = allocation.total_tax_withheld
        lp_net = allocation.total_net
    else:
        lp_gross = waterfall.total_lp if waterfall else ZERO
        tax_withheld = ZERO
        lp_net = lp_gross

    if waterfall is not None and allocation is not None and total_gp + lp_gross != net:
        warnings.append(EngineWarning(
            code="allocation_mismatch",
            message=(
                f"GP amount ({total_gp}) plus LP allocations ({lp_gross}) "
                f"don't sum to net proceeds ({net})"
            ),
            step="allocations",
        ))

    prior = fund.metrics.distributed_to_date if fund.metrics else ZERO
    totals = RunningTotals(
        gross_proceeds=gross,
        total_fees=total_fees,
        total_expenses=total_expenses,
        net_proceeds=net,
        total_gp=total_gp,
        total_lp_gross=lp_gross,
        total_tax_withheld=tax_withheld,
        total_lp_net=lp_net,
        distributed_to_date=prior + total_gp + lp_gross,
    )

    if warnings:
        logger.debug("Recompute of %s produced %d warnings", event.id, len(warnings))
    return RecomputeResult(
        distribution_id=event.id,
        waterfall=waterfall,
        allocation=allocation,
        totals=totals,
        warnings=warnings,
    )


def apply_recompute(event: DistributionEvent, result: RecomputeResult) -> DistributionEvent:
    """Copy of the draft with its allocation lines replaced by the recompute output.

    Raises:
        ImmutableDistributionError: If the distribution is no longer editable
    """
    if not event.is_mutable:
        raise ImmutableDistributionError(
            f"Distribution '{event.id}' is {event.status}; allocation lines are frozen"
        )
    updated = event.model_copy(deep=True)
    updated.allocation_lines = list(result.allocation.lines) if result.allocation else []
    return updated


def impact_preview(metrics: FundMetrics, total_distributed: Decimal) -> ImpactPreview:
    """Fund metrics before and after paying out ``total_distributed``.

    DPI = distributed ÷ paid-in; TVPI = (distributed + NAV) ÷ paid-in.
    NAV falls by the distributed amount (floored at zero); the recallable
    share of the distribution is added back to undrawn commitments.

    Example:
        FundMetrics(nav=50M, paid_in_capital=40M, distributed_to_date=10M)
        with 9.8M distributed:
        → NAV 50M → 40.2M, DPI 0.25 → 0.495, TVPI 1.5 → 1.5
    """
    nav_after = max(ZERO, metrics.nav - total_distributed)
    distributed_after = metrics.distributed_to_date + total_distributed

    def multiple(value: Decimal) -> Decimal:
        return quantize(ratio(value, metrics.paid_in_capital), METRIC_QUANTUM)

    return ImpactPreview(
        nav_before=metrics.nav,
        nav_after=nav_after,
        dpi_before=multiple(metrics.distributed_to_date),
        dpi_after=multiple(distributed_after),
        tvpi_before=multiple(metrics.distributed_to_date + metrics.nav),
        tvpi_after=multiple(distributed_after + nav_after),
        undrawn_capital_before=metrics.undrawn_commitments,
        undrawn_capital_after=metrics.undrawn_commitments + total_distributed * metrics.recallable_share,
    )
