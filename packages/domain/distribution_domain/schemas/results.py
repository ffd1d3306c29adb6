"""Calculation result models.

These are produced by the calculators and the orchestrator; callers never
construct them by hand except in tests.
"""

from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import Field

from .base import DomainModel, MoneyAmount, SignedAmount
from .investors import LPAllocationLine


# =============================================================================
# Waterfall
# =============================================================================

class TierResult(DomainModel):
    """Amounts a single tier paid to GP and LP."""

    tier_index: int = Field(
        description="Order index of the tier"
    )

    kind: str = Field(
        description="Tier kind"
    )

    name: str = Field(
        default="",
        description="Tier display name"
    )

    required: Optional[MoneyAmount] = Field(
        default=None,
        description="Amount needed to fully satisfy the tier (None for open-ended tiers)"
    )

    amount_to_gp: MoneyAmount = Decimal("0")
    amount_to_lp: MoneyAmount = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.amount_to_gp + self.amount_to_lp

    @property
    def is_satisfied(self) -> bool:
        """True if the tier received everything it required."""
        return self.required is None or self.total >= self.required


ClawbackStatus = Literal["clear", "at_risk", "triggered"]


class ClawbackSummary(DomainModel):
    """Result of the GP clawback test."""

    total_carry_paid: MoneyAmount
    required_return: MoneyAmount
    lp_total_return: MoneyAmount
    shortfall: MoneyAmount
    clawback_due: MoneyAmount
    net_carry_after_clawback: MoneyAmount
    status: ClawbackStatus


class WaterfallResult(DomainModel):
    """Ordered tier results covering the entire net proceeds.

    For the blended model, ``interim`` holds the deal-by-deal evaluation,
    ``fund_wide`` the fund-level evaluation, and ``true_up`` the GP amount
    the emitted result adds (or removes) relative to the interim figure.
    """

    model: str
    net_proceeds: MoneyAmount
    tiers: List[TierResult] = Field(default_factory=list)

    interim: Optional["WaterfallResult"] = None
    fund_wide: Optional["WaterfallResult"] = None
    true_up: Optional[SignedAmount] = None

    clawback: Optional[ClawbackSummary] = None

    @property
    def total_gp(self) -> Decimal:
        return sum((t.amount_to_gp for t in self.tiers), Decimal("0"))

    @property
    def total_lp(self) -> Decimal:
        return sum((t.amount_to_lp for t in self.tiers), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.total_gp + self.total_lp

    def tier(self, tier_index: int) -> TierResult:
        for tier in self.tiers:
            if tier.tier_index == tier_index:
                return tier
        raise KeyError(f"No tier with index {tier_index}")


WaterfallResult.model_rebuild()


# =============================================================================
# Allocation
# =============================================================================

class AllocationResult(DomainModel):
    """Per-LP allocation lines plus distribution-level totals."""

    distribution_id: str
    lines: List[LPAllocationLine] = Field(default_factory=list)

    @property
    def total_gross(self) -> Decimal:
        return sum((line.gross_amount for line in self.lines), Decimal("0"))

    @property
    def total_tax_withheld(self) -> Decimal:
        return sum((line.tax_withheld for line in self.lines), Decimal("0"))

    @property
    def total_net(self) -> Decimal:
        return sum((line.net_amount for line in self.lines), Decimal("0"))

    def line_for(self, lp_id: str) -> LPAllocationLine:
        for line in self.lines:
            if line.lp_id == lp_id:
                return line
        raise KeyError(f"No allocation line for LP '{lp_id}'")


# =============================================================================
# Orchestrator output
# =============================================================================

class EngineWarning(DomainModel):
    """Non-blocking problem found during recompute.

    Warnings never prevent saving a draft but do block submission.
    """

    code: str
    message: str
    step: Optional[str] = Field(
        default=None,
        description="Wizard step the warning belongs to"
    )


class RunningTotals(DomainModel):
    """Continuously displayed totals for a distribution draft."""

    gross_proceeds: MoneyAmount = Decimal("0")
    total_fees: SignedAmount = Decimal("0")
    total_expenses: SignedAmount = Decimal("0")
    net_proceeds: MoneyAmount = Decimal("0")
    total_gp: MoneyAmount = Decimal("0")
    total_lp_gross: MoneyAmount = Decimal("0")
    total_tax_withheld: MoneyAmount = Decimal("0")
    total_lp_net: MoneyAmount = Decimal("0")
    distributed_to_date: MoneyAmount = Decimal("0")

    @property
    def total_deductions(self) -> Decimal:
        return self.total_fees + self.total_expenses


class RecomputeResult(DomainModel):
    """Everything one recompute produces."""

    distribution_id: str
    waterfall: Optional[WaterfallResult] = None
    allocation: Optional[AllocationResult] = None
    totals: RunningTotals = Field(default_factory=RunningTotals)
    warnings: List[EngineWarning] = Field(default_factory=list)

    @property
    def blocks_submission(self) -> bool:
        return bool(self.warnings)

    def warning_codes(self) -> List[str]:
        return [w.code for w in self.warnings]


class ImpactPreview(DomainModel):
    """Projected fund metrics before and after a distribution."""

    nav_before: Decimal
    nav_after: Decimal
    dpi_before: Decimal
    dpi_after: Decimal
    tvpi_before: Decimal
    tvpi_after: Decimal
    undrawn_capital_before: Decimal
    undrawn_capital_after: Decimal

    @property
    def nav_change(self) -> Decimal:
        return self.nav_after - self.nav_before

    @property
    def dpi_change(self) -> Decimal:
        return self.dpi_after - self.dpi_before

    @property
    def tvpi_change(self) -> Decimal:
        return self.tvpi_after - self.tvpi_before
