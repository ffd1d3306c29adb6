"""Fund context: the explicit per-call replacement for a global fund selection.

Every orchestrator and lifecycle call receives a FundContext value. It carries
the fund's approval rules, the fund-wide capital state from the fund-state
provider, and the metrics needed for the impact preview.
"""

from decimal import Decimal
from typing import List, Optional
from pydantic import Field, model_validator

from .base import DomainModel, FundId, MoneyAmount, Percentage, ApproverId
from .waterfall import CapitalAccount


class ApproverSpec(DomainModel):
    """One approver in a fund's configured approval chain."""

    approver_id: ApproverId = Field(
        description="Identity allowed to act on this step"
    )

    role: str = Field(
        description="Approver role (e.g., 'CFO', 'Managing Partner')"
    )

    order: int = Field(
        ge=1,
        description="Position in the chain (1 = first)"
    )


class ApprovalRule(DomainModel):
    """Approval chain applied to distributions within an amount band.

    Example:
        ApprovalRule(
            id="large",
            name="Large distributions",
            min_amount=Decimal("5000000"),
            approvers=[
                ApproverSpec(approver_id="cfo", role="CFO", order=1),
                ApproverSpec(approver_id="mp", role="Managing Partner", order=2),
                ApproverSpec(approver_id="ic_chair", role="IC Chair", order=3),
            ],
        )
    """

    id: str
    name: str = ""

    min_amount: MoneyAmount = Field(
        default=Decimal("0"),
        description="Inclusive lower bound on net proceeds"
    )

    max_amount: Optional[MoneyAmount] = Field(
        default=None,
        description="Exclusive upper bound on net proceeds (None = no upper limit)"
    )

    approvers: List[ApproverSpec] = Field(
        default_factory=list,
        description="Approvers in order"
    )

    is_active: bool = True

    @model_validator(mode='after')
    def validate_approver_order(self):
        """Approver order indices must be unique."""
        orders = [a.order for a in self.approvers]
        if len(orders) != len(set(orders)):
            raise ValueError(f"Approval rule '{self.id}' has duplicate approver order indices")
        return self

    def matches(self, amount: Decimal) -> bool:
        if not self.is_active or amount < self.min_amount:
            return False
        return self.max_amount is None or amount < self.max_amount


class FundMetrics(DomainModel):
    """Fund-level metrics used for the distribution impact preview."""

    nav: MoneyAmount = Decimal("0")
    paid_in_capital: MoneyAmount = Decimal("0")
    distributed_to_date: MoneyAmount = Decimal("0")
    undrawn_commitments: MoneyAmount = Decimal("0")

    recallable_share: Percentage = Field(
        default=Decimal("0"),
        description="Share of distributed amounts that is recallable (adds back to undrawn)"
    )


class FundContext(DomainModel):
    """Explicit fund context passed into every engine call."""

    fund_id: FundId

    approval_rules: List[ApprovalRule] = Field(
        default_factory=list,
        description="Approval chains by amount band"
    )

    fund_state: Optional[CapitalAccount] = Field(
        default=None,
        description="Fund-wide capital state (required for european and blended models)"
    )

    metrics: Optional[FundMetrics] = Field(
        default=None,
        description="Fund metrics for the impact preview"
    )

    def approval_rule_for(self, amount: Decimal) -> Optional[ApprovalRule]:
        """First active rule whose band contains ``amount``."""
        for rule in self.approval_rules:
            if rule.matches(amount):
                return rule
        return None
