"""Distribution wizard step validation.

A distribution draft is edited through nine steps in fixed order:

    event → fees → waterfall → allocations → tax → advanced → impact → preview → submit

Each step's validation is a pure function of the draft, the fund context and
the latest recompute. A step is reachable only when every earlier step is
valid; going back is always allowed and nothing is lost by doing so.
"""

from decimal import Decimal
from typing import Callable, Dict, List, Optional
from pydantic import Field

from .orchestrator import impact_preview, recompute
from ..blocks import validate_scenario
from ..blocks.allocation import check_ownership
from ..errors import DuplicateLPError, InvalidOwnershipError, InvalidTierConfigurationError
from ..schemas import (
    DistributionEvent,
    DomainModel,
    EngineCFG,
    DEFAULT_ENGINE_CFG,
    FundContext,
    RecomputeResult,
)


WIZARD_STEPS = (
    "event",
    "fees",
    "waterfall",
    "allocations",
    "tax",
    "advanced",
    "impact",
    "preview",
    "submit",
)


class StepValidation(DomainModel):
    """Validation outcome of one wizard step."""

    step: str
    errors: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _event_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    errors = []
    if not event.name:
        errors.append("Name is required.")
    if not event.event_type:
        errors.append("Event type is required.")
    if not event.event_date:
        errors.append("Event date is required.")
    if event.gross_proceeds <= 0:
        errors.append("Gross proceeds must be greater than zero.")
    return errors


def _fees_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    errors = []
    lines = event.fee_line_items
    if any(line.amount < 0 for line in lines):
        errors.append("Fees and expenses cannot be negative.")
    if any(line.amount == 0 and not line.percentage for line in lines):
        errors.append("Each fee line item needs an amount or percentage.")
    if result.totals.total_deductions > result.totals.gross_proceeds:
        errors.append("Fees and expenses exceed gross proceeds.")
    return errors


def _waterfall_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    if event.scenario is None:
        return ["Select a waterfall scenario."]
    try:
        validate_scenario(event.scenario)
    except InvalidTierConfigurationError as exc:
        return [str(exc)]
    return [w.message for w in result.warnings if w.code == "missing_fund_state"]


def _allocations_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    errors = []
    commitments = event.commitments
    if not commitments:
        errors.append("At least one allocation is required.")
        return errors

    issues = [
        c for c in commitments
        if c.committed_capital <= 0 or c.called_capital > c.committed_capital
    ]
    if issues:
        plural = "" if len(issues) == 1 else "s"
        errors.append(f"Resolve {len(issues)} allocation issue{plural} before continuing.")

    try:
        check_ownership(commitments, cfg)
    except DuplicateLPError:
        errors.append("Each LP can only be allocated once.")
    except InvalidOwnershipError:
        errors.append("Pro-rata percentages should total 100%.")
    return errors


def _tax_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    if event.tax_config.invalid_rates():
        return ["Tax withholding rates must be between 0 and 100."]
    return []


def _advanced_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    """Holdback, staged payments, side letters, elections and fractional-share
    policy are recorded on the draft but never block submission."""
    return []


def _impact_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    if fund.metrics is None:
        return ["Impact preview is required."]
    impact = impact_preview(fund.metrics, result.totals.net_proceeds)
    errors = []
    if impact.nav_after < 0:
        errors.append("Projected NAV cannot be negative.")
    if impact.dpi_after < 0:
        errors.append("Projected DPI cannot be negative.")
    if impact.tvpi_after < 0:
        errors.append("Projected TVPI cannot be negative.")
    return errors


def _preview_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    errors = []
    if not event.statement_template:
        errors.append("Select a statement template.")
    if not (event.email_subject or "").strip():
        errors.append("Email subject is required.")
    if not (event.email_body or "").strip():
        errors.append("Email body is required.")
    return errors


def _submit_step(event: DistributionEvent, fund: FundContext, result: RecomputeResult, cfg: EngineCFG) -> List[str]:
    rule = fund.approval_rule_for(submission_amount(result))
    if rule is None:
        return ["No approval rule matched this distribution total."]
    errors = []
    if not rule.approvers:
        errors.append(f"Approval rule '{rule.name or rule.id}' has no approvers configured.")
    if result.warnings:
        count = len(result.warnings)
        plural = "" if count == 1 else "s"
        errors.append(f"Resolve {count} calculation warning{plural} before submitting.")
    return errors


_VALIDATORS: Dict[str, Callable] = {
    "event": _event_step,
    "fees": _fees_step,
    "waterfall": _waterfall_step,
    "allocations": _allocations_step,
    "tax": _tax_step,
    "advanced": _advanced_step,
    "impact": _impact_step,
    "preview": _preview_step,
    "submit": _submit_step,
}


def validate_steps(
    event: DistributionEvent,
    fund: FundContext,
    result: Optional[RecomputeResult] = None,
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Dict[str, StepValidation]:
    """Validate every wizard step.

    Args:
        event: Distribution draft
        fund: Fund context (approval rules, metrics)
        result: Latest recompute; recomputed here when not given
        cfg: Engine configuration

    Returns:
        {step: StepValidation} in wizard order
    """
    if result is None:
        result = recompute(event, fund, cfg)
    return {
        step: StepValidation(step=step, errors=_VALIDATORS[step](event, fund, result, cfg))
        for step in WIZARD_STEPS
    }


def reachable_steps(validations: Dict[str, StepValidation]) -> List[str]:
    """Steps the user may open: every step up to and including the first invalid one."""
    reachable = []
    for step in WIZARD_STEPS:
        reachable.append(step)
        if not validations[step].is_valid:
            break
    return reachable


def can_navigate(validations: Dict[str, StepValidation], target: str) -> bool:
    """True if ``target`` is reachable."""
    if target not in WIZARD_STEPS:
        raise ValueError(f"Unknown wizard step '{target}'")
    return target in reachable_steps(validations)


def step_errors(validations: Dict[str, StepValidation]) -> Dict[str, List[str]]:
    """Errors of invalid steps only, keyed by step."""
    return {step: v.errors for step, v in validations.items() if not v.is_valid}


def submission_amount(result: RecomputeResult) -> Decimal:
    """Amount the approval rule bands are matched against (net proceeds)."""
    return result.totals.net_proceeds
