"""Distribution workflow: recompute, wizard validation, lifecycle and approvals.

Usage:
    from distribution_domain.workflow import recompute, validate_steps, submit, approve

    result = recompute(event, fund)
    steps = validate_steps(event, fund, result)
    submitted = submit(event, fund, actor_id="gp_ops", result=result)
    approved = approve(submitted, "cfo")
"""

from .orchestrator import apply_recompute, impact_preview, recompute, run_pipeline
from .validation import (
    WIZARD_STEPS,
    StepValidation,
    can_navigate,
    reachable_steps,
    step_errors,
    validate_steps,
)
from .lifecycle import (
    TRANSITIONS,
    add_comment,
    allowed_transitions,
    approve,
    cancel,
    mark_completed,
    reject,
    return_for_revision,
    submit,
    update_draft,
)
from .collaborators import (
    CompletionForecaster,
    FundStateProvider,
    PaymentConfirmation,
    PaymentExecutor,
    StatementGenerator,
    build_fund_context,
)
from .repository import ApprovalService, DistributionRepository, LPDistributionView, lp_portal_view

__all__ = [
    "apply_recompute",
    "impact_preview",
    "recompute",
    "run_pipeline",
    "WIZARD_STEPS",
    "StepValidation",
    "can_navigate",
    "reachable_steps",
    "step_errors",
    "validate_steps",
    "TRANSITIONS",
    "add_comment",
    "allowed_transitions",
    "approve",
    "cancel",
    "mark_completed",
    "reject",
    "return_for_revision",
    "submit",
    "update_draft",
    "CompletionForecaster",
    "FundStateProvider",
    "PaymentConfirmation",
    "PaymentExecutor",
    "StatementGenerator",
    "build_fund_context",
    "ApprovalService",
    "DistributionRepository",
    "LPDistributionView",
    "lp_portal_view",
]
