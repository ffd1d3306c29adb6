"""Tests for wizard step validation and navigation."""

from decimal import Decimal

import pytest

from distribution_domain.schemas import (
    ApprovalRule,
    FeeLineItem,
    FundContext,
    HoldbackEscrow,
    LPCommitment,
    TaxWithholdingConfig,
)
from distribution_domain.workflow import (
    WIZARD_STEPS,
    can_navigate,
    reachable_steps,
    step_errors,
    validate_steps,
)


class TestValidDraft:

    def test_every_step_valid(self, event, fund):
        validations = validate_steps(event, fund)

        assert list(validations) == list(WIZARD_STEPS)
        assert step_errors(validations) == {}
        assert reachable_steps(validations) == list(WIZARD_STEPS)
        assert can_navigate(validations, "submit")


class TestEventStep:

    def test_missing_name_and_zero_gross(self, event, fund):
        event.name = ""
        event.gross_proceeds = Decimal("0")
        validations = validate_steps(event, fund)

        assert validations["event"].errors == [
            "Name is required.",
            "Gross proceeds must be greater than zero.",
        ]
        assert reachable_steps(validations) == ["event"]
        assert not can_navigate(validations, "fees")
        assert can_navigate(validations, "event")

    def test_missing_date(self, event, fund):
        event.event_date = None
        assert validate_steps(event, fund)["event"].errors == ["Event date is required."]


class TestFeesStep:

    def test_negative_fee(self, event, fund):
        event.fee_line_items = [FeeLineItem(id="refund", label="Refund", amount=Decimal("-5000"))]
        assert "Fees and expenses cannot be negative." in validate_steps(event, fund)["fees"].errors

    def test_empty_fee_line(self, event, fund):
        event.fee_line_items.append(FeeLineItem(id="tbd", label="To be confirmed"))
        assert validate_steps(event, fund)["fees"].errors == [
            "Each fee line item needs an amount or percentage.",
        ]

    def test_fees_exceed_gross(self, event, fund):
        event.fee_line_items = [FeeLineItem(id="legal", label="Legal", amount=Decimal("12000000"))]
        validations = validate_steps(event, fund)

        assert validations["fees"].errors == ["Fees and expenses exceed gross proceeds."]
        assert reachable_steps(validations) == ["event", "fees"]


class TestWaterfallStep:

    def test_no_scenario(self, event, fund):
        event.scenario = None
        validations = validate_steps(event, fund)

        assert validations["waterfall"].errors == ["Select a waterfall scenario."]
        assert reachable_steps(validations)[-1] == "waterfall"

    def test_invalid_carry_split(self, event, fund):
        event.scenario.tiers[3].gp_share = Decimal("0.25")
        errors = validate_steps(event, fund)["waterfall"].errors

        assert len(errors) == 1
        assert "expected 100%" in errors[0]

    def test_missing_fund_state(self, event, fund):
        bare = FundContext(fund_id=fund.fund_id, approval_rules=fund.approval_rules, metrics=fund.metrics)
        errors = validate_steps(event, bare)["waterfall"].errors

        assert len(errors) == 1
        assert "fund-wide" in errors[0]


class TestAllocationsStep:

    def test_no_commitments(self, event, fund):
        event.commitments = []
        assert validate_steps(event, fund)["allocations"].errors == ["At least one allocation is required."]

    def test_over_called_commitment(self, event, fund):
        event.commitments[1].called_capital = Decimal("2500000")
        assert validate_steps(event, fund)["allocations"].errors == [
            "Resolve 1 allocation issue before continuing.",
        ]

    def test_ownership_not_100(self, event, fund):
        event.commitments[0].ownership_pct = Decimal("0.70")
        event.commitments[1].ownership_pct = Decimal("0.20")
        assert validate_steps(event, fund)["allocations"].errors == [
            "Pro-rata percentages should total 100%.",
        ]

    def test_duplicate_lp(self, event, fund):
        event.commitments.append(LPCommitment(lp_id="smith_family", committed_capital=Decimal("500000")))
        assert validate_steps(event, fund)["allocations"].errors == [
            "Each LP can only be allocated once.",
        ]

    def test_zero_commitment(self, event, fund):
        event.commitments.append(LPCommitment(lp_id="lapsed", committed_capital=Decimal("0")))
        assert validate_steps(event, fund)["allocations"].errors == [
            "Resolve 1 allocation issue before continuing.",
        ]


class TestLaterSteps:

    def test_invalid_tax_rate(self, event, fund):
        event.tax_config = TaxWithholdingConfig(lp_rates={"calpers": Decimal("1.2")})
        validations = validate_steps(event, fund)

        assert validations["tax"].errors == ["Tax withholding rates must be between 0 and 100."]
        assert reachable_steps(validations)[-1] == "tax"

    def test_advanced_options_never_block(self, event, fund):
        event.holdback_escrow = HoldbackEscrow(amount=Decimal("500000"), reason="Indemnity escrow", status="held")
        validations = validate_steps(event, fund)

        assert validations["advanced"].is_valid
        assert validations["submit"].is_valid

    def test_impact_requires_metrics(self, event, fund):
        no_metrics = FundContext(fund_id=fund.fund_id, approval_rules=fund.approval_rules,
                                 fund_state=fund.fund_state)
        assert validate_steps(event, no_metrics)["impact"].errors == ["Impact preview is required."]

    def test_preview_requires_email(self, event, fund):
        event.email_subject = "  "
        event.statement_template = None
        assert validate_steps(event, fund)["preview"].errors == [
            "Select a statement template.",
            "Email subject is required.",
        ]

    def test_no_matching_rule(self, event, fund):
        fund.approval_rules = [ApprovalRule(id="jumbo", min_amount=Decimal("50000000"),
                                            approvers=fund.approval_rules[0].approvers)]
        assert validate_steps(event, fund)["submit"].errors == [
            "No approval rule matched this distribution total.",
        ]

    def test_rule_without_approvers(self, event, fund):
        fund.approval_rules = [ApprovalRule(id="empty", name="Empty chain")]
        assert validate_steps(event, fund)["submit"].errors == [
            "Approval rule 'Empty chain' has no approvers configured.",
        ]

    def test_warnings_block_submit(self, event, fund):
        event.fee_line_items = [
            FeeLineItem(id="mgmt", label="Management fee", category="management_fee",
                        amount=Decimal("1500000")),
        ]
        validations = validate_steps(event, fund)

        assert validations["fees"].is_valid
        assert validations["submit"].errors == ["Resolve 1 calculation warning before submitting."]


class TestNavigation:

    def test_unknown_step(self, event, fund):
        with pytest.raises(ValueError, match="Unknown wizard step"):
            can_navigate(validate_steps(event, fund), "review")

    def test_going_back_always_allowed(self, event, fund):
        event.email_body = ""
        validations = validate_steps(event, fund)

        assert reachable_steps(validations)[-1] == "preview"
        for step in WIZARD_STEPS[:8]:
            assert can_navigate(validations, step)
        assert not can_navigate(validations, "submit")
