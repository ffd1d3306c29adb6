"""Limited partner commitments, tax withholding and allocation lines."""

from decimal import Decimal
from typing import Dict, Literal, Optional
from pydantic import Field

from .base import DomainModel, LPId, MoneyAmount, Percentage, Rate


PaymentStatus = Literal["pending", "paid"]


class LPCommitment(DomainModel):
    """An LP's commitment to the fund.

    Ownership defaults to committed capital ÷ total committed capital across
    the distribution's LPs, recomputed on every distribution. Funds with
    side-letter economics can pin ``ownership_pct`` explicitly; when any LP
    pins it, every LP must.

    Example:
        LPCommitment(lp_id="calpers", committed_capital=Decimal("6000000"),
                     called_capital=Decimal("4800000"))
    """

    lp_id: LPId = Field(
        description="LP identifier"
    )

    name: Optional[str] = Field(
        default=None,
        description="Display name (defaults to lp_id)"
    )

    committed_capital: MoneyAmount = Field(
        description="Total committed capital"
    )

    called_capital: MoneyAmount = Field(
        default=Decimal("0"),
        description="Capital called to date"
    )

    prior_distributions: MoneyAmount = Field(
        default=Decimal("0"),
        description="Distributions received before this one (cost basis tracking)"
    )

    ownership_pct: Optional[Percentage] = Field(
        default=None,
        description="Explicit ownership percentage (overrides commitment-weighted share)"
    )

    @property
    def display_name(self) -> str:
        return self.name or self.lp_id


class TaxWithholdingConfig(DomainModel):
    """Tax withholding rates for a distribution.

    Rates are fractions (0.30 = 30%). They are not range-checked here so a
    draft can hold an out-of-range rate; the Tax wizard step and the allocation
    calculator report rates outside 0-100%.
    """

    default_rate: Rate = Field(
        default=Decimal("0"),
        description="Rate applied to LPs without an override"
    )

    lp_rates: Dict[str, Rate] = Field(
        default_factory=dict,
        description="Per-LP rate overrides keyed by LP id"
    )

    def rate_for(self, lp_id: str) -> Decimal:
        return self.lp_rates.get(lp_id, self.default_rate)

    def invalid_rates(self) -> Dict[str, Decimal]:
        """Rates outside 0-100%, keyed by LP id ('*' for the default rate)."""
        bad = {}
        if not (0 <= self.default_rate <= 1):
            bad["*"] = self.default_rate
        for lp_id, rate in sorted(self.lp_rates.items()):
            if not (0 <= rate <= 1):
                bad[lp_id] = rate
        return bad


class LPAllocationLine(DomainModel):
    """One LP's share of a distribution.

    Invariant: net_amount = gross_amount - tax_withheld.
    """

    distribution_id: str = Field(
        description="Owning distribution"
    )

    lp_id: LPId = Field(
        description="LP receiving this line"
    )

    pro_rata_share: Decimal = Field(
        ge=0,
        le=1,
        description="Ownership share used for the allocation"
    )

    gross_amount: MoneyAmount = Field(
        description="Total allocated across all tiers before tax"
    )

    tax_rate: Decimal = Field(
        default=Decimal("0"),
        description="Withholding rate applied"
    )

    tax_withheld: MoneyAmount = Field(
        default=Decimal("0"),
        description="Tax withheld from gross"
    )

    net_amount: MoneyAmount = Field(
        description="Amount payable to the LP"
    )

    tier_amounts: Dict[int, Decimal] = Field(
        default_factory=dict,
        description="Gross amount by tier order index"
    )

    payment_status: PaymentStatus = Field(
        default="pending",
        description="Payment status, set to 'paid' when execution is confirmed"
    )
