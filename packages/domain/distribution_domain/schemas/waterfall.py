"""Waterfall scenario, tier and capital-state models.

A WaterfallScenario is a reusable template: an ordered list of tiers plus the
model (European, American or Blended) that decides which capital state the
tiers are evaluated against. Distributions select a scenario and snapshot it
when they are submitted for approval.

Tier types use a discriminated union on ``kind`` so each tier only carries the
parameters that make sense for it.

Capital state (CapitalAccount) is supplied by the caller:
    - European: fund-wide account (all LPs' called capital and distributions
      since inception)
    - American: deal-level account (capital attributable to the investment
      being distributed)
    - Blended: both
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union
from pydantic import Field

from .base import DomainModel, MoneyAmount, Percentage


WaterfallModel = Literal["european", "american", "blended"]

TierKind = Literal["return_of_capital", "preferred_return", "gp_catchup", "carry_split"]

Compounding = Literal["simple", "annual", "quarterly", "monthly", "daily"]

DayCount = Literal["actual/365", "actual/360", "30/360"]


# =============================================================================
# Tiers
# =============================================================================

class ReturnOfCapitalTier(DomainModel):
    """Pays LPs 100% until cumulative return of capital equals contributed capital."""

    kind: Literal["return_of_capital"] = "return_of_capital"

    order: int = Field(
        description="Processing order (strictly increasing across the scenario)"
    )

    name: str = Field(
        default="Return of Capital",
        description="Display name"
    )


class PreferredReturnTier(DomainModel):
    """Pays LPs 100% until the accrued hurdle on unreturned capital is satisfied.

    Example:
        8% simple hurdle, actual/365:
            PreferredReturnTier(order=2, hurdle_rate=Decimal("0.08"))

        8% compounded monthly on a 30/360 basis:
            PreferredReturnTier(order=2, hurdle_rate=Decimal("0.08"),
                                compounding="monthly", day_count="30/360")
    """

    kind: Literal["preferred_return"] = "preferred_return"

    order: int = Field(
        description="Processing order (strictly increasing across the scenario)"
    )

    name: str = Field(
        default="Preferred Return",
        description="Display name"
    )

    hurdle_rate: Percentage = Field(
        default=Decimal("0.08"),
        description="Annual hurdle rate (e.g., 0.08 = 8%)"
    )

    compounding: Compounding = Field(
        default="simple",
        description="Accrual convention: simple interest or compounding frequency"
    )

    day_count: DayCount = Field(
        default="actual/365",
        description="Day-count convention for year fractions"
    )


class CatchUpTier(DomainModel):
    """Pays GP until its cumulative share of profit reaches ``target_carry``.

    ``catch_up_rate`` is the share of each catch-up dollar that goes to the GP
    (1.0 = full catch-up, 0.8 = 80/20 catch-up). It must exceed target_carry,
    otherwise the GP can never catch up.
    """

    kind: Literal["gp_catchup"] = "gp_catchup"

    order: int = Field(
        description="Processing order (strictly increasing across the scenario)"
    )

    name: str = Field(
        default="GP Catch-Up",
        description="Display name"
    )

    target_carry: Percentage = Field(
        default=Decimal("0.20"),
        description="GP's target share of cumulative profit (e.g., 0.20 = 20%)"
    )

    catch_up_rate: Percentage = Field(
        default=Decimal("1"),
        description="Share of catch-up proceeds paid to GP (1.0 = 100% catch-up)"
    )


class CarrySplitTier(DomainModel):
    """Splits remaining proceeds between GP and LP at a fixed ratio."""

    kind: Literal["carry_split"] = "carry_split"

    order: int = Field(
        description="Processing order (strictly increasing across the scenario)"
    )

    name: str = Field(
        default="Carried Interest",
        description="Display name"
    )

    gp_share: Percentage = Field(
        default=Decimal("0.20"),
        description="GP share of proceeds in this tier"
    )

    lp_share: Percentage = Field(
        default=Decimal("0.80"),
        description="LP share of proceeds in this tier (gp_share + lp_share must equal 100%)"
    )


WaterfallTier = Annotated[
    Union[ReturnOfCapitalTier, PreferredReturnTier, CatchUpTier, CarrySplitTier],
    Field(discriminator="kind"),
]


# =============================================================================
# Scenario-level provisions
# =============================================================================

class BlendedConfig(DomainModel):
    """Weights for the Blended model (must sum to 100%)."""

    european_weight: Percentage = Field(
        default=Decimal("0.5"),
        description="Weight of the fund-wide (European) evaluation"
    )

    american_weight: Percentage = Field(
        default=Decimal("0.5"),
        description="Weight of the deal-by-deal (American) interim evaluation"
    )


class ClawbackProvision(DomainModel):
    """GP clawback test run after each distribution.

    Required LP return = total called × (1 + hurdle_rate × distribution_life_years).
    If cumulative LP distributions fall short, up to ``clawback_rate`` of the
    shortfall is recaptured from GP carry.
    """

    enabled: bool = True

    hurdle_rate: Percentage = Field(
        default=Decimal("0.08"),
        description="Annual hurdle used for the clawback test"
    )

    clawback_rate: Percentage = Field(
        default=Decimal("1"),
        description="Share of the LP shortfall recaptured from GP carry"
    )

    distribution_life_years: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        description="Fund life used for the required-return test"
    )


class WaterfallScenario(DomainModel):
    """A waterfall template selected by distributions.

    Example:
        WaterfallScenario(
            id="fund_iii_standard",
            name="Fund III Standard",
            model="european",
            tiers=[
                ReturnOfCapitalTier(order=1),
                PreferredReturnTier(order=2, hurdle_rate=Decimal("0.08")),
                CatchUpTier(order=3, target_carry=Decimal("0.20")),
                CarrySplitTier(order=4, gp_share=Decimal("0.20"), lp_share=Decimal("0.80")),
            ],
        )
    """

    id: str = Field(
        description="Unique scenario identifier"
    )

    name: str = Field(
        default="",
        description="Human-readable scenario name"
    )

    model: WaterfallModel = Field(
        default="european",
        description="Waterfall model: european (fund-wide), american (deal-by-deal) or blended"
    )

    tiers: List[WaterfallTier] = Field(
        default_factory=list,
        description="Tiers in processing order"
    )

    blended: Optional[BlendedConfig] = Field(
        default=None,
        description="Blend weights for the blended model (default 50/50)"
    )

    clawback: Optional[ClawbackProvision] = Field(
        default=None,
        description="Optional GP clawback test"
    )

    version: int = Field(
        default=1,
        ge=1,
        description="Template version, bumped when the template is edited"
    )

    is_template: bool = Field(
        default=True,
        description="True for shared templates; False for snapshots taken at submission"
    )

    def snapshot(self) -> "WaterfallScenario":
        """Immutable copy used by a submitted distribution.

        Later edits to the shared template don't reach the snapshot.
        """
        snap = self.model_copy(deep=True)
        snap.is_template = False
        return snap


def standard_tiers(
    hurdle_rate: Decimal = Decimal("0.08"),
    carry: Decimal = Decimal("0.20"),
    compounding: str = "simple",
) -> List:
    """The common four-tier structure: ROC, hurdle, full catch-up, carry split."""
    return [
        ReturnOfCapitalTier(order=1),
        PreferredReturnTier(order=2, hurdle_rate=hurdle_rate, compounding=compounding),
        CatchUpTier(order=3, target_carry=carry),
        CarrySplitTier(order=4, gp_share=carry, lp_share=Decimal("1") - carry),
    ]


# =============================================================================
# Capital State
# =============================================================================

class CapitalCall(DomainModel):
    """Capital contributed on a given date."""

    call_date: date
    amount: MoneyAmount


class CapitalReturn(DomainModel):
    """Capital returned to LPs on a given date (reduces the accrual base)."""

    return_date: date
    amount: MoneyAmount


class CapitalAccount(DomainModel):
    """Running capital state the waterfall is evaluated against.

    The same shape serves fund-wide state (European) and deal-level state
    (American). Contributed capital and capital returned can be given as
    totals or derived from dated calls/returns; dated entries are needed for
    the hurdle accrual unless ``preferred_accrued`` is supplied directly.

    Profit tracking for the catch-up:
        prior profit = preferred_paid + lp_excess_profit_paid + gp_profit_paid
    """

    capital_calls: List[CapitalCall] = Field(
        default_factory=list,
        description="Dated capital calls (basis for hurdle accrual)"
    )

    contributed_capital: Optional[MoneyAmount] = Field(
        default=None,
        description="Total contributed capital. None = sum of capital_calls"
    )

    capital_returns: List[CapitalReturn] = Field(
        default_factory=list,
        description="Dated prior returns of capital"
    )

    capital_returned: Optional[MoneyAmount] = Field(
        default=None,
        description="Total capital returned to date. None = sum of capital_returns"
    )

    preferred_accrued: Optional[MoneyAmount] = Field(
        default=None,
        description="Cumulative hurdle accrued since inception, when supplied by the caller. "
                    "Overrides accrual from capital_calls."
    )

    preferred_paid: MoneyAmount = Field(
        default=Decimal("0"),
        description="Preferred return already paid to LPs"
    )

    lp_excess_profit_paid: MoneyAmount = Field(
        default=Decimal("0"),
        description="LP profit above the preferred return already paid (catch-up and carry tiers)"
    )

    gp_profit_paid: MoneyAmount = Field(
        default=Decimal("0"),
        description="GP catch-up and carry already paid"
    )

    as_of_date: Optional[date] = Field(
        default=None,
        description="Default accrual end date when the distribution doesn't supply one"
    )

    @property
    def total_contributed(self) -> Decimal:
        if self.contributed_capital is not None:
            return self.contributed_capital
        return sum((c.amount for c in self.capital_calls), Decimal("0"))

    @property
    def total_returned(self) -> Decimal:
        if self.capital_returned is not None:
            return self.capital_returned
        return sum((r.amount for r in self.capital_returns), Decimal("0"))

    @property
    def unreturned_capital(self) -> Decimal:
        return max(Decimal("0"), self.total_contributed - self.total_returned)

    @property
    def prior_profit(self) -> Decimal:
        return self.preferred_paid + self.lp_excess_profit_paid + self.gp_profit_paid
