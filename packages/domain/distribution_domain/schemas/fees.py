"""Fee and expense line items.

Fee line items reduce a distribution's gross proceeds to net proceeds. Each
line is owned by exactly one DistributionEvent.

A line carries either a fixed amount or a percentage of gross proceeds. When
both are set the fixed amount wins; a line with neither is a validation error
on the Fees wizard step (it contributes zero to the ledger).
"""

from decimal import Decimal
from typing import Literal, Optional
from pydantic import Field

from .base import DomainModel, Percentage


FeeCategory = Literal[
    "management_fee",
    "transaction_cost",
    "legal_fee",
    "audit_fee",
    "admin_fee",
    "other",
]

# Categories reported as "fees" in running totals; everything else is an expense
FEE_CATEGORIES = frozenset({"management_fee", "admin_fee"})


class FeeLineItem(DomainModel):
    """A fee or expense deducted from gross proceeds.

    Examples:
        Fixed legal fee:
            FeeLineItem(id="legal", label="Deal counsel", category="legal_fee",
                        amount=Decimal("150000"))

        Percentage transaction cost:
            FeeLineItem(id="banker", label="Sell-side advisor",
                        category="transaction_cost", percentage=Decimal("0.02"))
    """

    id: str = Field(
        description="Unique identifier within the distribution"
    )

    label: str = Field(
        description="Human-readable description of the fee"
    )

    category: FeeCategory = Field(
        default="other",
        description="Fee category (management/admin are fees, the rest expenses)"
    )

    amount: Decimal = Field(
        default=Decimal("0"),
        description="Fixed amount. Negative values are kept so validation can report them."
    )

    percentage: Optional[Percentage] = Field(
        default=None,
        description="Percentage of gross proceeds, used when amount is zero"
    )

    notes: Optional[str] = Field(
        default=None,
        description="Free-form notes"
    )

    @property
    def is_expense(self) -> bool:
        return self.category not in FEE_CATEGORIES

    def resolve_amount(self, gross: Decimal) -> Decimal:
        """Amount this line deducts from the given gross proceeds (unrounded)."""
        if self.amount != 0:
            return self.amount
        if self.percentage:
            return gross * self.percentage
        return Decimal("0")
