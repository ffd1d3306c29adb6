"""Distribution lifecycle and sequential approval.

    draft ──submit──▶ submitted ──(all steps approved)──▶ approved ──▶ processing ──▶ completed
      ▲                   │
      │                   ├──reject──────────────▶ draft (rejection_reason recorded)
      │                   ├──return_for_revision─▶ returned_for_revision ──submit──▶ submitted
      │                   └──cancel──────────────▶ rejected (terminal)

Approval steps are acted on strictly in order: only the approver of the
lowest-order pending step of the current round may approve, reject or return.

Every action works on a copy of the distribution and returns it. When an
action fails nothing is returned, so the caller's distribution is never left
half-updated.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from .collaborators import PaymentConfirmation
from .orchestrator import apply_recompute, recompute
from .validation import step_errors, submission_amount, validate_steps
from ..errors import (
    ImmutableDistributionError,
    InvalidTransitionError,
    NotCurrentApproverError,
    SubmissionBlockedError,
)
from ..schemas import (
    ApprovalStep,
    DistributionComment,
    DistributionEvent,
    EngineCFG,
    DEFAULT_ENGINE_CFG,
    FundContext,
    RecomputeResult,
    StatusTransition,
    WORKFLOW_FIELDS,
)

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"submitted"}),
    "submitted": frozenset({"approved", "draft", "returned_for_revision", "rejected"}),
    "returned_for_revision": frozenset({"submitted"}),
    "approved": frozenset({"processing"}),
    "processing": frozenset({"completed"}),
    "rejected": frozenset(),
    "completed": frozenset(),
}


def allowed_transitions(status: str) -> FrozenSet[str]:
    return TRANSITIONS.get(status, frozenset())


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _transition(
    event: DistributionEvent,
    to_status: str,
    actor_id: str,
    at: datetime,
    note: Optional[str] = None,
) -> None:
    """Move ``event`` (already a working copy) to ``to_status`` and record it."""
    if to_status not in allowed_transitions(event.status):
        raise InvalidTransitionError(
            f"Distribution '{event.id}' cannot move from {event.status} to {to_status}"
        )
    event.status_history.append(StatusTransition(
        from_status=event.status,
        to_status=to_status,
        actor_id=actor_id,
        at=at,
        note=note,
    ))
    logger.info("Distribution %s: %s → %s by %s", event.id, event.status, to_status, actor_id)
    event.status = to_status


def _active_step(event: DistributionEvent, approver_id: str) -> ApprovalStep:
    """The working copy's active step, checked against the acting approver."""
    if event.status != "submitted":
        raise InvalidTransitionError(
            f"Distribution '{event.id}' is {event.status}, not awaiting approval"
        )
    step = event.current_step()
    if step is None:
        raise InvalidTransitionError(f"Distribution '{event.id}' has no pending approval step")
    if step.approver_id != approver_id:
        raise NotCurrentApproverError(event.id, approver_id, step.approver_id)
    return step


# =============================================================================
# Draft editing
# =============================================================================

def update_draft(event: DistributionEvent, **changes) -> DistributionEvent:
    """Copy of the draft with ``changes`` applied (validated field by field).

    Raises:
        ImmutableDistributionError: If the distribution isn't draft or returned_for_revision
        ValueError: If ``changes`` touches a workflow field, the comments or
            the allocation lines, which only recompute and the lifecycle
            actions set
    """
    if not event.is_mutable:
        raise ImmutableDistributionError(
            f"Distribution '{event.id}' is {event.status} and can no longer be edited"
        )
    protected = WORKFLOW_FIELDS | {"id", "allocation_lines", "comments"}
    blocked = protected.intersection(changes)
    if blocked:
        raise ValueError(f"Fields {sorted(blocked)} are managed by the workflow")

    updated = event.model_copy(deep=True)
    for field_name, value in changes.items():
        setattr(updated, field_name, value)
    return updated


def add_comment(
    event: DistributionEvent,
    author_id: str,
    comment: str,
    is_internal: bool = False,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Append an audit comment. Allowed in every status."""
    updated = event.model_copy(deep=True)
    updated.comments.append(DistributionComment(
        author_id=author_id,
        comment=comment,
        created_at=_now(now),
        is_internal=is_internal,
    ))
    return updated


# =============================================================================
# Submission
# =============================================================================

def submit(
    event: DistributionEvent,
    fund: FundContext,
    actor_id: str,
    result: Optional[RecomputeResult] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Submit a draft for approval.

    Validates every wizard step, freezes the latest allocation lines, snapshots
    the waterfall scenario and opens a new approval round from the approval
    rule matching the distribution's net proceeds.

    Raises:
        InvalidTransitionError: If the distribution isn't draft or returned_for_revision
        SubmissionBlockedError: If any wizard step has errors (including
            unresolved calculation warnings)
    """
    if event.status not in ("draft", "returned_for_revision"):
        raise InvalidTransitionError(
            f"Distribution '{event.id}' is {event.status}; only drafts can be submitted"
        )

    result = result or recompute(event, fund, cfg)
    errors = step_errors(validate_steps(event, fund, result, cfg))
    if errors:
        raise SubmissionBlockedError(event.id, errors)

    rule = fund.approval_rule_for(submission_amount(result))
    at = _now(now)

    updated = apply_recompute(event, result)
    if updated.approval_round > 0:
        updated.revision_number += 1
    updated.approval_round += 1
    updated.scenario = updated.scenario.snapshot()
    updated.scenario_id = updated.scenario.id
    updated.approval_rule_id = rule.id
    updated.rejection_reason = None
    updated.submitted_at = at
    for approver in sorted(rule.approvers, key=lambda a: a.order):
        updated.approval_steps.append(ApprovalStep(
            distribution_id=event.id,
            approver_id=approver.approver_id,
            approver_role=approver.role,
            order=approver.order,
            round=updated.approval_round,
        ))

    _transition(updated, "submitted", actor_id, at, note=f"Approval rule '{rule.id}'")
    return updated


# =============================================================================
# Approval actions
# =============================================================================

def approve(
    event: DistributionEvent,
    approver_id: str,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Approve the active step.

    When the final step is approved the distribution becomes ``approved`` and
    then moves straight on to ``processing``.

    Raises:
        InvalidTransitionError: If the distribution isn't awaiting approval
        NotCurrentApproverError: If ``approver_id`` isn't the active step's approver
    """
    updated = event.model_copy(deep=True)
    step = _active_step(updated, approver_id)
    at = _now(now)
    step.status = "approved"
    step.acted_at = at
    step.comment = comment
    logger.info("Distribution %s: step %d approved by %s", event.id, step.order, approver_id)

    if updated.current_step() is None:
        _transition(updated, "approved", approver_id, at, note=comment)
        updated.approved_at = at
        _transition(updated, "processing", SYSTEM_ACTOR, at)
    return updated


def reject(
    event: DistributionEvent,
    approver_id: str,
    reason: str,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Reject at the active step: the chain halts and the distribution goes back to draft.

    Later steps of the round stay pending.

    Raises:
        ValueError: If no reason is given
        InvalidTransitionError: If the distribution isn't awaiting approval
        NotCurrentApproverError: If ``approver_id`` isn't the active step's approver
    """
    if not (reason or "").strip():
        raise ValueError("A rejection reason is required")
    updated = event.model_copy(deep=True)
    step = _active_step(updated, approver_id)
    at = _now(now)
    step.status = "rejected"
    step.acted_at = at
    step.comment = reason
    updated.rejection_reason = reason
    _transition(updated, "draft", approver_id, at, note=reason)
    return updated


def return_for_revision(
    event: DistributionEvent,
    approver_id: str,
    comment: str,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Send the distribution back to the GP for changes.

    Raises:
        InvalidTransitionError: If the distribution isn't awaiting approval
        NotCurrentApproverError: If ``approver_id`` isn't the active step's approver
    """
    updated = event.model_copy(deep=True)
    step = _active_step(updated, approver_id)
    at = _now(now)
    step.status = "returned"
    step.acted_at = at
    step.comment = comment
    _transition(updated, "returned_for_revision", approver_id, at, note=comment)
    return updated


def cancel(
    event: DistributionEvent,
    actor_id: str,
    reason: str,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Cancel a pending approval chain. ``rejected`` is terminal.

    Raises:
        InvalidTransitionError: If the distribution isn't awaiting approval
    """
    updated = event.model_copy(deep=True)
    at = _now(now)
    _transition(updated, "rejected", actor_id, at, note=reason)
    updated.rejection_reason = reason
    return updated


def mark_completed(
    event: DistributionEvent,
    confirmation: PaymentConfirmation,
    now: Optional[datetime] = None,
) -> DistributionEvent:
    """Record payment execution: processing → completed.

    Lines listed in the confirmation (all lines when it lists none) are
    marked paid.

    Raises:
        InvalidTransitionError: If the distribution isn't processing or the
            confirmation is for another distribution
    """
    if confirmation.distribution_id != event.id:
        raise InvalidTransitionError(
            f"Payment confirmation is for '{confirmation.distribution_id}', not '{event.id}'"
        )
    updated = event.model_copy(deep=True)
    at = _now(now)
    _transition(updated, "completed", SYSTEM_ACTOR, at, note=confirmation.reference)

    paid = set(confirmation.paid_lp_ids)
    for line in updated.allocation_lines:
        if not paid or line.lp_id in paid:
            line.payment_status = "paid"
    updated.completed_at = confirmation.confirmed_at
    return updated
