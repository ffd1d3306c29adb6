"""Advanced distribution options.

Holdbacks, staged payments, side-letter terms, LP elections and the
fractional-share policy are captured on the Advanced wizard step. They are
recorded with the distribution and frozen with it at approval; the waterfall
and allocation calculators don't read them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import Field

from .base import DomainModel, LPId, MoneyAmount, Percentage


HoldbackStatus = Literal["held", "scheduled", "released"]

StageStatus = Literal["scheduled", "processing", "completed", "on_hold"]

ElectionType = Literal["cash", "in_kind"]

ElectionStatus = Literal["pending", "submitted"]

FractionalShareMethod = Literal["cash_in_lieu", "round_down", "round_up"]


class HoldbackEscrow(DomainModel):
    """Proceeds reserved for contingent liabilities or escrow."""

    amount: MoneyAmount = Decimal("0")
    percentage: Percentage = Field(
        default=Decimal("0"),
        description="Share of gross proceeds held back"
    )
    reason: str = ""
    release_date: Optional[date] = None
    status: HoldbackStatus = "scheduled"


class PaymentStage(DomainModel):
    """One tranche of a distribution paid out in stages."""

    id: str
    label: str
    scheduled_date: Optional[date] = None
    amount: MoneyAmount = Decimal("0")
    status: StageStatus = "scheduled"
    notes: Optional[str] = None


class SideLetterTerm(DomainModel):
    """A special term granted to one LP by side letter.

    ``adjustment_value`` is free text ("50 bps fee offset", "TBD") since
    side-letter economics are negotiated per LP.
    """

    id: str
    lp_id: LPId
    term_type: str
    description: str = ""
    adjustment_type: str = "other"
    adjustment_value: str = ""
    applied: bool = False


class LPElection(DomainModel):
    """An LP's cash vs. in-kind preference for this distribution."""

    id: str
    lp_id: LPId
    election_type: ElectionType = "cash"
    status: ElectionStatus = "pending"
    submitted_at: Optional[datetime] = None


class FractionalSharePolicy(DomainModel):
    """Rounding and cash-in-lieu rules for in-kind share distributions."""

    method: FractionalShareMethod = "cash_in_lieu"
    cash_in_lieu_rate: Percentage = Field(
        default=Decimal("1"),
        description="Fraction of fair value paid in cash for fractional shares"
    )
    rounding_precision: int = Field(
        default=2,
        ge=0,
        description="Decimal places kept on share counts"
    )
