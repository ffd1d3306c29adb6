"""Tests for the fee and expense ledger."""

from decimal import Decimal

import pytest

from distribution_domain.blocks import net_proceeds, split_fees_and_expenses
from distribution_domain.blocks.fees import fee_amounts
from distribution_domain.errors import ComputationError, NegativeNetProceedsError
from distribution_domain.schemas import FeeLineItem


class TestNetProceeds:

    def test_fixed_fee(self):
        fees = [FeeLineItem(id="legal", label="Deal counsel", amount=Decimal("200000"))]
        assert net_proceeds(Decimal("10000000"), fees) == Decimal("9800000.00")

    def test_percentage_fee(self):
        fees = [FeeLineItem(id="banker", label="Sell-side advisor", category="transaction_cost",
                            percentage=Decimal("0.015"))]
        assert net_proceeds(Decimal("10000000"), fees) == Decimal("9850000.00")

    def test_fixed_amount_wins_over_percentage(self):
        line = FeeLineItem(id="audit", label="Audit", category="audit_fee",
                           amount=Decimal("25000"), percentage=Decimal("0.5"))
        assert line.resolve_amount(Decimal("10000000")) == Decimal("25000")

    def test_each_line_rounded_before_summing(self):
        fees = [
            FeeLineItem(id="a", label="A", percentage=Decimal("0.0000005")),
            FeeLineItem(id="b", label="B", percentage=Decimal("0.0000005")),
        ]
        # 10,000.00 × 0.0000005 = 0.005 → 0.01 per line
        assert [amount for _, amount in fee_amounts(Decimal("10000"), fees)] == [
            Decimal("0.01"), Decimal("0.01"),
        ]
        assert net_proceeds(Decimal("10000"), fees) == Decimal("9999.98")

    def test_no_fees(self):
        assert net_proceeds(Decimal("123.456"), []) == Decimal("123.46")

    def test_fees_exceeding_gross_raise(self):
        fees = [FeeLineItem(id="legal", label="Legal", amount=Decimal("1500"))]
        with pytest.raises(NegativeNetProceedsError, match="exceed gross proceeds") as excinfo:
            net_proceeds(Decimal("1000"), fees)
        assert isinstance(excinfo.value, ComputationError)
        assert excinfo.value.code == "negative_net_proceeds"
        assert excinfo.value.total_fees == Decimal("1500.00")


class TestFeeExpenseSplit:

    def test_management_and_admin_fees_are_fees(self):
        lines = [
            FeeLineItem(id="mgmt", label="Management fee", category="management_fee",
                        amount=Decimal("100000")),
            FeeLineItem(id="admin", label="Fund admin", category="admin_fee", amount=Decimal("5000")),
            FeeLineItem(id="legal", label="Legal", category="legal_fee", amount=Decimal("60000")),
            FeeLineItem(id="deal", label="Transaction costs", category="transaction_cost",
                        percentage=Decimal("0.01")),
        ]
        fees, expenses = split_fees_and_expenses(Decimal("10000000"), lines)
        assert fees == Decimal("105000.00")
        assert expenses == Decimal("160000.00")
        assert not lines[0].is_expense
        assert lines[2].is_expense
