"""Distribution store with optimistic concurrency and serialised approvals.

DistributionRepository is an in-memory reference store. Every save is a
compare-and-swap on ``version``: two users editing the same draft can't
silently overwrite each other, the second save raises StaleVersionError.

Once a distribution leaves draft the store only accepts changes to workflow
fields (status, approval steps, audit trail, timestamps, comments and line
payment status); anything else raises ImmutableDistributionError.

ApprovalService runs each lifecycle action as load → act → save inside a
lock keyed by distribution id, so two approvers can never both act as the
current approver, and an approval and a rejection of the same step can't
interleave. The lock is dropped once the distribution reaches a terminal
status.
"""

import logging
import threading
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from .collaborators import PaymentConfirmation, PaymentExecutor, StatementGenerator
from .lifecycle import allowed_transitions, approve, cancel, mark_completed, reject, return_for_revision, submit
from ..errors import ImmutableDistributionError, InvalidTransitionError, StaleVersionError
from ..schemas import (
    DistributionEvent,
    DomainModel,
    EngineCFG,
    DEFAULT_ENGINE_CFG,
    FundContext,
    LPAllocationLine,
    WORKFLOW_FIELDS,
)

logger = logging.getLogger(__name__)


def _frozen_content(event: DistributionEvent) -> dict:
    content = event.model_dump(exclude=set(WORKFLOW_FIELDS) | {"comments", "allocation_lines"})
    content["allocation_lines"] = [
        line.model_dump(exclude={"payment_status"}) for line in event.allocation_lines
    ]
    return content


class DistributionRepository:
    """In-memory distribution store with version compare-and-swap."""

    def __init__(self):
        self._events: Dict[str, DistributionEvent] = {}
        self._lock = threading.Lock()

    def get(self, distribution_id: str) -> DistributionEvent:
        """Copy of the stored distribution.

        Raises:
            KeyError: If no distribution has this id
        """
        with self._lock:
            if distribution_id not in self._events:
                raise KeyError(f"Distribution '{distribution_id}' not found")
            return self._events[distribution_id].model_copy(deep=True)

    def save(self, event: DistributionEvent, expected_version: Optional[int] = None) -> DistributionEvent:
        """Store ``event`` if the stored version still equals ``expected_version``.

        Args:
            event: Distribution to store
            expected_version: Version the caller loaded (default: ``event.version``).
                New distributions have version 0.

        Returns:
            Stored copy with its version bumped

        Raises:
            StaleVersionError: If another save got there first
            ImmutableDistributionError: If the stored distribution has left
                draft and ``event`` changes anything but workflow fields
        """
        expected = event.version if expected_version is None else expected_version
        with self._lock:
            current = self._events.get(event.id)
            actual = current.version if current is not None else 0
            if actual != expected:
                raise StaleVersionError(event.id, expected, actual)
            if current is not None and not current.is_mutable:
                if _frozen_content(event) != _frozen_content(current):
                    raise ImmutableDistributionError(
                        f"Distribution '{event.id}' is {current.status}; only workflow fields can change"
                    )
            stored = event.model_copy(deep=True)
            stored.version = actual + 1
            self._events[event.id] = stored
            logger.debug("Saved distribution %s at version %d", event.id, stored.version)
            return stored.model_copy(deep=True)

    def list(self, fund_id: Optional[str] = None) -> List[DistributionEvent]:
        with self._lock:
            events = [
                e.model_copy(deep=True) for e in self._events.values()
                if fund_id is None or e.fund_id == fund_id
            ]
        return sorted(events, key=lambda e: e.id)


class ApprovalService:
    """Runs lifecycle actions against the repository, one at a time per distribution.

    Example:
        service = ApprovalService(repository, statement_generator=statements)
        service.submit("acme_exit", fund, actor_id="gp_ops")
        service.approve("acme_exit", "cfo", comment="Checked fees")
    """

    def __init__(
        self,
        repository: DistributionRepository,
        cfg: EngineCFG = DEFAULT_ENGINE_CFG,
        statement_generator: Optional[StatementGenerator] = None,
        payment_executor: Optional[PaymentExecutor] = None,
    ):
        self.repository = repository
        self.cfg = cfg
        self.statement_generator = statement_generator
        self.payment_executor = payment_executor
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, distribution_id: str) -> threading.Lock:
        with self._locks_guard:
            if distribution_id not in self._locks:
                self._locks[distribution_id] = threading.Lock()
            return self._locks[distribution_id]

    def _drop_lock(self, distribution_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(distribution_id, None)

    def _apply(self, distribution_id: str, action, *args, **kwargs) -> DistributionEvent:
        with self._lock_for(distribution_id):
            event = self.repository.get(distribution_id)
            if not allowed_transitions(event.status):
                self._drop_lock(distribution_id)
            updated = action(event, *args, **kwargs)
            saved = self.repository.save(updated, event.version)
        if not allowed_transitions(saved.status):
            self._drop_lock(distribution_id)
        return saved

    def submit(self, distribution_id: str, fund: FundContext, actor_id: str,
               now: Optional[datetime] = None) -> DistributionEvent:
        return self._apply(distribution_id, submit, fund, actor_id, cfg=self.cfg, now=now)

    def approve(self, distribution_id: str, approver_id: str, comment: Optional[str] = None,
                now: Optional[datetime] = None) -> DistributionEvent:
        return self._apply(distribution_id, approve, approver_id, comment, now=now)

    def reject(self, distribution_id: str, approver_id: str, reason: str,
               now: Optional[datetime] = None) -> DistributionEvent:
        return self._apply(distribution_id, reject, approver_id, reason, now=now)

    def return_for_revision(self, distribution_id: str, approver_id: str, comment: str,
                            now: Optional[datetime] = None) -> DistributionEvent:
        return self._apply(distribution_id, return_for_revision, approver_id, comment, now=now)

    def cancel(self, distribution_id: str, actor_id: str, reason: str,
               now: Optional[datetime] = None) -> DistributionEvent:
        return self._apply(distribution_id, cancel, actor_id, reason, now=now)

    def complete(self, distribution_id: str, confirmation: PaymentConfirmation) -> DistributionEvent:
        """Record payment, then hand the completed distribution to the statement generator."""
        completed = self._apply(distribution_id, mark_completed, confirmation)
        if self.statement_generator is not None:
            self.statement_generator.generate(completed)
        return completed

    def execute_payment(self, distribution_id: str) -> DistributionEvent:
        """Ask the payment executor to pay a processing distribution, then complete it.

        Raises:
            InvalidTransitionError: If no executor is configured or the
                distribution isn't processing
        """
        if self.payment_executor is None:
            raise InvalidTransitionError("No payment executor configured")
        event = self.repository.get(distribution_id)
        if event.status != "processing":
            raise InvalidTransitionError(
                f"Distribution '{distribution_id}' is {event.status}, not processing"
            )
        confirmation = self.payment_executor.execute(event)
        return self.complete(distribution_id, confirmation)


# =============================================================================
# LP portal projection
# =============================================================================

class LPDistributionView(DomainModel):
    """A completed distribution as one LP sees it."""

    distribution_id: str
    fund_id: str
    name: str
    event_type: Optional[str] = None
    payment_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    line: LPAllocationLine


def lp_portal_view(events: Iterable[DistributionEvent], lp_id: str) -> List[LPDistributionView]:
    """Completed distributions that paid ``lp_id``, most recent payment first."""
    views = []
    for event in events:
        if event.status != "completed":
            continue
        for line in event.allocation_lines:
            if line.lp_id == lp_id:
                views.append(LPDistributionView(
                    distribution_id=event.id,
                    fund_id=event.fund_id,
                    name=event.name,
                    event_type=event.event_type,
                    payment_date=event.payment_date,
                    completed_at=event.completed_at,
                    line=line,
                ))
    return sorted(
        views,
        key=lambda v: (v.payment_date or date.min, v.distribution_id),
        reverse=True,
    )
