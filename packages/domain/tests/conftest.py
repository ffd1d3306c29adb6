"""Shared fixtures: the Fund III European scenario from the distribution playbook.

$10M exit, $200K legal fees, $8M contributed, $400K accrued hurdle,
full catch-up to 20%, 80/20 carry split, two LPs committing 75/25.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from distribution_domain.schemas import (
    ApprovalRule,
    ApproverSpec,
    CapitalAccount,
    DistributionEvent,
    FeeLineItem,
    FundContext,
    FundMetrics,
    LPCommitment,
    WaterfallScenario,
    standard_tiers,
)


@pytest.fixture
def european_scenario():
    return WaterfallScenario(
        id="fund_iii_standard",
        name="Fund III Standard",
        model="european",
        tiers=standard_tiers(),
    )


@pytest.fixture
def fund_state():
    return CapitalAccount(
        contributed_capital=Decimal("8000000"),
        preferred_accrued=Decimal("400000"),
    )


@pytest.fixture
def commitments():
    return [
        LPCommitment(lp_id="calpers", name="CalPERS", committed_capital=Decimal("6000000"),
                     called_capital=Decimal("6000000")),
        LPCommitment(lp_id="smith_family", name="Smith Family Office",
                     committed_capital=Decimal("2000000"), called_capital=Decimal("2000000")),
    ]


@pytest.fixture
def approval_rule():
    return ApprovalRule(
        id="standard_chain",
        name="Standard chain",
        approvers=[
            ApproverSpec(approver_id="cfo", role="CFO", order=1),
            ApproverSpec(approver_id="managing_partner", role="Managing Partner", order=2),
            ApproverSpec(approver_id="ic_chair", role="IC Chair", order=3),
        ],
    )


@pytest.fixture
def fund(fund_state, approval_rule):
    return FundContext(
        fund_id="fund_iii",
        approval_rules=[approval_rule],
        fund_state=fund_state,
        metrics=FundMetrics(
            nav=Decimal("50000000"),
            paid_in_capital=Decimal("40000000"),
            distributed_to_date=Decimal("10000000"),
            undrawn_commitments=Decimal("20000000"),
            recallable_share=Decimal("0.1"),
        ),
    )


@pytest.fixture
def event(european_scenario, commitments):
    return DistributionEvent(
        id="acme_exit",
        fund_id="fund_iii",
        name="Acme Corp exit",
        event_type="exit",
        event_date=date(2025, 3, 31),
        payment_date=date(2025, 4, 15),
        gross_proceeds=Decimal("10000000"),
        fee_line_items=[
            FeeLineItem(id="legal", label="Deal counsel", category="legal_fee",
                        amount=Decimal("200000")),
        ],
        scenario_id=european_scenario.id,
        scenario=european_scenario,
        commitments=commitments,
        email_subject="Acme Corp distribution",
        email_body="Please find your distribution notice attached.",
    )


@pytest.fixture
def now():
    return datetime(2025, 4, 1, 9, 30, tzinfo=timezone.utc)
