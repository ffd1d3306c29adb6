"""Distribution event and approval workflow models.

A DistributionEvent is created when a GP starts the distribution wizard and
moves through the lifecycle:

    draft → submitted → (approved → processing → completed)
                      ↘ returned_for_revision (editable, resubmittable)
                      ↘ draft (after a rejection, with rejection_reason set)

``rejected`` is the terminal status of a cancelled approval chain.

Approval steps are append-only: each submission opens a new approval round
and earlier rounds stay in ``approval_steps`` as audit trail.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import Field

from .advanced import FractionalSharePolicy, HoldbackEscrow, LPElection, PaymentStage, SideLetterTerm
from .base import DomainModel, DistributionId, FundId, ApproverId
from .fees import FeeLineItem
from .investors import LPCommitment, TaxWithholdingConfig, LPAllocationLine
from .waterfall import WaterfallScenario, CapitalAccount


DistributionStatus = Literal[
    "draft",
    "submitted",
    "approved",
    "rejected",
    "returned_for_revision",
    "processing",
    "completed",
]

DistributionEventType = Literal[
    "exit",
    "dividend",
    "recapitalization",
    "refinancing",
    "partial_exit",
    "other",
]

ApprovalStatus = Literal["pending", "approved", "rejected", "returned"]

StatementTemplate = Literal["standard", "ilpa_compliant", "custom"]

MUTABLE_STATUSES = frozenset({"draft", "returned_for_revision"})

WORKFLOW_FIELDS = frozenset({
    "status",
    "approval_rule_id",
    "approval_round",
    "approval_steps",
    "rejection_reason",
    "revision_number",
    "status_history",
    "submitted_at",
    "approved_at",
    "completed_at",
    "version",
})


# =============================================================================
# Approval Step
# =============================================================================

class ApprovalStep(DomainModel):
    """One approver's decision on one approval round."""

    distribution_id: DistributionId
    approver_id: ApproverId
    approver_role: str = ""

    order: int = Field(
        description="Position in the chain; steps are acted on in ascending order"
    )

    round: int = Field(
        default=1,
        ge=1,
        description="Submission round this step belongs to"
    )

    status: ApprovalStatus = "pending"

    acted_at: Optional[datetime] = Field(
        default=None,
        description="When the approver acted"
    )

    comment: Optional[str] = None


# =============================================================================
# Audit records
# =============================================================================

class DistributionComment(DomainModel):
    """Audit comment attached to a distribution."""

    author_id: str
    comment: str
    created_at: datetime
    is_internal: bool = False


class StatusTransition(DomainModel):
    """Audit record of a lifecycle transition."""

    from_status: DistributionStatus
    to_status: DistributionStatus
    actor_id: str
    at: datetime
    note: Optional[str] = None


# =============================================================================
# Distribution Event
# =============================================================================

class DistributionEvent(DomainModel):
    """An exit, dividend or recapitalization distribution being prepared or approved.

    Example:
        DistributionEvent(
            id="acme_exit",
            fund_id="fund_iii",
            name="Acme Corp exit",
            event_type="exit",
            event_date=date(2025, 3, 31),
            payment_date=date(2025, 4, 15),
            gross_proceeds=Decimal("10000000"),
            fee_line_items=[FeeLineItem(id="legal", label="Legal", amount=Decimal("200000"))],
            scenario=fund_iii_standard,
            commitments=[...],
        )
    """

    id: DistributionId
    fund_id: FundId

    name: str = ""
    description: Optional[str] = None

    event_type: Optional[DistributionEventType] = "exit"
    event_date: Optional[date] = None
    payment_date: Optional[date] = None

    gross_proceeds: Decimal = Field(
        default=Decimal("0"),
        description="Gross proceeds before fees. Not bounded so validation can report <= 0."
    )

    fee_line_items: List[FeeLineItem] = Field(default_factory=list)

    scenario_id: Optional[str] = Field(
        default=None,
        description="Selected waterfall scenario template"
    )

    scenario: Optional[WaterfallScenario] = Field(
        default=None,
        description="Selected scenario; replaced by an immutable snapshot at submission"
    )

    deal_state: Optional[CapitalAccount] = Field(
        default=None,
        description="Deal-level capital state for american and blended models"
    )

    commitments: List[LPCommitment] = Field(default_factory=list)
    tax_config: TaxWithholdingConfig = Field(default_factory=TaxWithholdingConfig)

    allocation_lines: List[LPAllocationLine] = Field(
        default_factory=list,
        description="Latest recompute output; frozen once approved"
    )

    # Advanced step
    holdback_escrow: Optional[HoldbackEscrow] = None
    staged_payments: List[PaymentStage] = Field(default_factory=list)
    side_letter_terms: List[SideLetterTerm] = Field(default_factory=list)
    elections: List[LPElection] = Field(default_factory=list)
    fractional_share_policy: Optional[FractionalSharePolicy] = None

    # Preview step
    statement_template: Optional[StatementTemplate] = "standard"
    email_subject: Optional[str] = None
    email_body: Optional[str] = None

    # Workflow
    status: DistributionStatus = "draft"
    approval_rule_id: Optional[str] = None
    approval_round: int = Field(default=0, ge=0)
    approval_steps: List[ApprovalStep] = Field(default_factory=list)
    rejection_reason: Optional[str] = None
    revision_number: int = Field(default=0, ge=0)

    comments: List[DistributionComment] = Field(default_factory=list)
    status_history: List[StatusTransition] = Field(default_factory=list)

    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    version: int = Field(
        default=0,
        ge=0,
        description="Optimistic concurrency version, bumped by the repository on save"
    )

    @property
    def is_mutable(self) -> bool:
        return self.status in MUTABLE_STATUSES

    def current_round_steps(self) -> List[ApprovalStep]:
        """Approval steps of the latest round, in order."""
        steps = [s for s in self.approval_steps if s.round == self.approval_round]
        return sorted(steps, key=lambda s: s.order)

    def current_step(self) -> Optional[ApprovalStep]:
        """The active step: lowest-order pending step of the current round.

        None unless the distribution is awaiting approval.
        """
        if self.status != "submitted":
            return None
        for step in self.current_round_steps():
            if step.status == "pending":
                return step
        return None

    @property
    def current_approver_index(self) -> Optional[int]:
        step = self.current_step()
        return step.order if step else None

    @property
    def total_allocated(self) -> Decimal:
        return sum((line.gross_amount for line in self.allocation_lines), Decimal("0"))
