"""Interfaces to collaborators outside the engine.

The engine never reaches these on its own. Callers hand in their results
(fund state via FundContext, payment confirmations via ``mark_completed``) or
register implementations with the ApprovalService.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable
from pydantic import Field

from ..schemas import (
    ApprovalRule,
    CapitalAccount,
    CapitalCall,
    DistributionEvent,
    DomainModel,
    FundContext,
    FundMetrics,
)


class PaymentConfirmation(DomainModel):
    """Confirmation from the payment executor that a distribution was paid."""

    distribution_id: str
    confirmed_at: datetime
    reference: Optional[str] = Field(
        default=None,
        description="Payment batch or wire reference"
    )
    paid_lp_ids: List[str] = Field(
        default_factory=list,
        description="LPs confirmed as paid (empty = all lines)"
    )


@runtime_checkable
class FundStateProvider(Protocol):
    """Supplies cumulative fund-wide capital state (called capital, returns, accrual)."""

    def capital_state(self, fund_id: str, as_of: Optional[date] = None) -> CapitalAccount:
        ...


@runtime_checkable
class StatementGenerator(Protocol):
    """Produces LP statements once a distribution is completed."""

    def generate(self, event: DistributionEvent) -> None:
        ...


@runtime_checkable
class PaymentExecutor(Protocol):
    """Moves money for a processing distribution and confirms execution."""

    def execute(self, event: DistributionEvent) -> PaymentConfirmation:
        ...


@runtime_checkable
class CompletionForecaster(Protocol):
    """Predicts when a capital call will be fully collected.

    Informational only: nothing in the waterfall or allocation path reads it.
    """

    def predict_completion(self, call_history: Sequence[CapitalCall]) -> Tuple[date, Decimal]:
        ...


def build_fund_context(
    provider: FundStateProvider,
    fund_id: str,
    approval_rules: Optional[List[ApprovalRule]] = None,
    metrics: Optional[FundMetrics] = None,
    as_of: Optional[date] = None,
) -> FundContext:
    """FundContext with fund-wide capital state fetched from ``provider``."""
    return FundContext(
        fund_id=fund_id,
        approval_rules=approval_rules or [],
        fund_state=provider.capital_state(fund_id, as_of),
        metrics=metrics,
    )
