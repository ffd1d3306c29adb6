"""Tests for the LP allocation calculator."""

from decimal import Decimal

import pytest

from distribution_domain.blocks import allocate, ownership_shares, run_waterfall
from distribution_domain.blocks.allocation import check_ownership, check_tax_rates, clamp_tax_rates
from distribution_domain.errors import DuplicateLPError, InvalidOwnershipError, InvalidTaxRateError
from distribution_domain.money import ratio
from distribution_domain.schemas import (
    EngineCFG,
    LPCommitment,
    TaxWithholdingConfig,
    TierResult,
)


def _carry_only(lp_amount):
    return [TierResult(tier_index=4, kind="carry_split", amount_to_lp=Decimal(lp_amount))]


class TestOwnership:

    def test_commitment_weighted(self, commitments):
        shares = ownership_shares(commitments)
        assert shares == {"calpers": Decimal("0.75"), "smith_family": Decimal("0.25")}

    def test_explicit_percentages_normalised(self):
        commitments = [
            LPCommitment(lp_id="alpha", committed_capital=Decimal("1"), ownership_pct=Decimal("0.6")),
            LPCommitment(lp_id="beta", committed_capital=Decimal("1"), ownership_pct=Decimal("0.3")),
        ]
        shares = ownership_shares(commitments)
        assert shares["alpha"] == ratio(Decimal("0.6"), Decimal("0.9"))
        assert abs(sum(shares.values()) - 1) < Decimal("1e-20")

    def test_check_ownership_off_by_more_than_epsilon(self):
        commitments = [
            LPCommitment(lp_id="alpha", committed_capital=Decimal("1"), ownership_pct=Decimal("0.6")),
            LPCommitment(lp_id="beta", committed_capital=Decimal("1"), ownership_pct=Decimal("0.3")),
        ]
        with pytest.raises(InvalidOwnershipError, match="90"):
            check_ownership(commitments)

    def test_check_ownership_within_epsilon(self):
        commitments = [
            LPCommitment(lp_id="alpha", committed_capital=Decimal("1"), ownership_pct=Decimal("0.33333")),
            LPCommitment(lp_id="beta", committed_capital=Decimal("1"), ownership_pct=Decimal("0.33333")),
            LPCommitment(lp_id="gamma", committed_capital=Decimal("1"), ownership_pct=Decimal("0.33333")),
        ]
        check_ownership(commitments)

    def test_check_ownership_mixed_explicit_and_implicit(self):
        commitments = [
            LPCommitment(lp_id="alpha", committed_capital=Decimal("1"), ownership_pct=Decimal("1")),
            LPCommitment(lp_id="beta", committed_capital=Decimal("1")),
        ]
        with pytest.raises(InvalidOwnershipError, match="missing for: beta"):
            check_ownership(commitments)

    def test_zero_commitments(self):
        commitments = [LPCommitment(lp_id="alpha", committed_capital=Decimal("0"))]
        with pytest.raises(InvalidOwnershipError, match="zero"):
            check_ownership(commitments)

    def test_duplicate_lp_ids(self):
        commitments = [
            LPCommitment(lp_id=lp_id, committed_capital=Decimal("100")) for lp_id in ("a", "a", "b")
        ]
        with pytest.raises(DuplicateLPError, match="Duplicate LP ids in commitments: a"):
            check_ownership(commitments)
        with pytest.raises(InvalidOwnershipError):
            ownership_shares(commitments)

    def test_parallel_matches_sequential(self):
        commitments = [
            LPCommitment(lp_id=f"lp_{i}", committed_capital=Decimal(1000 + i * 37)) for i in range(25)
        ]
        parallel_cfg = EngineCFG(parallel_allocation_threshold=5, max_workers=3)

        assert ownership_shares(commitments, parallel_cfg) == ownership_shares(commitments)
        assert allocate(_carry_only("1234567.89"), commitments, cfg=parallel_cfg) == \
            allocate(_carry_only("1234567.89"), commitments)


class TestAllocate:

    def test_odd_cent_goes_to_larger_lp(self, commitments):
        """75/25 of $1,040,000.01 → the larger LP gets the extra cent."""
        result = allocate(_carry_only("1040000.01"), commitments, distribution_id="acme_exit")

        assert result.line_for("calpers").gross_amount == Decimal("780000.01")
        assert result.line_for("smith_family").gross_amount == Decimal("260000.00")
        assert result.total_gross == Decimal("1040000.01")
        assert {line.distribution_id for line in result.lines} == {"acme_exit"}

    def test_tie_goes_to_larger_commitment(self):
        commitments = [
            LPCommitment(lp_id="alpha", committed_capital=Decimal("1000000"), ownership_pct=Decimal("0.5")),
            LPCommitment(lp_id="zeta", committed_capital=Decimal("3000000"), ownership_pct=Decimal("0.5")),
        ]
        result = allocate(_carry_only("0.01"), commitments)

        assert result.line_for("zeta").gross_amount == Decimal("0.01")
        assert result.line_for("alpha").gross_amount == Decimal("0")

    def test_tie_on_commitment_goes_to_lower_lp_id(self):
        commitments = [
            LPCommitment(lp_id=lp_id, committed_capital=Decimal("1000000"))
            for lp_id in ("gamma", "alpha", "beta")
        ]
        result = allocate(_carry_only("0.02"), commitments)

        assert [line.gross_amount for line in result.lines] == [
            Decimal("0"), Decimal("0.01"), Decimal("0.01"),
        ]

    def test_each_tier_sums_exactly(self, european_scenario, fund_state):
        commitments = [
            LPCommitment(lp_id="alpha", committed_capital=Decimal("3333333")),
            LPCommitment(lp_id="beta", committed_capital=Decimal("1234567")),
            LPCommitment(lp_id="gamma", committed_capital=Decimal("2718281")),
        ]
        waterfall = run_waterfall(Decimal("9876543.21"), european_scenario, fund_state=fund_state)
        result = allocate(waterfall, commitments)

        for tier in waterfall.tiers:
            allocated = sum(line.tier_amounts.get(tier.tier_index, Decimal("0")) for line in result.lines)
            assert allocated == tier.amount_to_lp
        assert result.total_gross == waterfall.total_lp

    def test_worked_example_lines(self, european_scenario, fund_state, commitments):
        waterfall = run_waterfall(Decimal("9800000"), european_scenario, fund_state=fund_state)
        result = allocate(waterfall, commitments)

        calpers = result.line_for("calpers")
        assert calpers.tier_amounts == {
            1: Decimal("6000000.00"),
            2: Decimal("300000.00"),
            4: Decimal("780000.00"),
        }
        assert calpers.gross_amount == Decimal("7080000.00")
        assert result.line_for("smith_family").gross_amount == Decimal("2360000.00")
        assert calpers.payment_status == "pending"

    def test_duplicate_lp_not_paid_twice(self):
        commitments = [
            LPCommitment(lp_id=lp_id, committed_capital=Decimal("100")) for lp_id in ("a", "a", "b")
        ]
        with pytest.raises(DuplicateLPError):
            allocate(_carry_only("300.00"), commitments)

    def test_no_commitments(self):
        with pytest.raises(InvalidOwnershipError, match="No LP commitments"):
            allocate(_carry_only("100"), [])
        assert allocate(_carry_only("0"), []).lines == []


class TestTaxWithholding:

    def test_default_and_override_rates(self, commitments):
        tax = TaxWithholdingConfig(default_rate=Decimal("0.30"), lp_rates={"smith_family": Decimal("0")})
        result = allocate(_carry_only("1040000.01"), commitments, tax)

        calpers = result.line_for("calpers")
        assert calpers.tax_rate == Decimal("0.30")
        assert calpers.tax_withheld == Decimal("234000.00")
        assert calpers.net_amount == Decimal("546000.01")

        smith = result.line_for("smith_family")
        assert smith.tax_withheld == Decimal("0")
        assert smith.net_amount == smith.gross_amount

        assert result.total_tax_withheld == Decimal("234000.00")
        assert result.total_net == result.total_gross - result.total_tax_withheld

    def test_tax_rounds_half_up(self, commitments):
        tax = TaxWithholdingConfig(default_rate=Decimal("0.5"))
        result = allocate(_carry_only("0.04"), commitments, tax)

        # calpers gross 0.03 → tax 0.015 → 0.02
        assert result.line_for("calpers").tax_withheld == Decimal("0.02")
        assert result.line_for("calpers").net_amount == Decimal("0.01")

    def test_invalid_rate(self, commitments):
        tax = TaxWithholdingConfig(lp_rates={"calpers": Decimal("1.5")})
        with pytest.raises(InvalidTaxRateError, match="calpers=150"):
            allocate(_carry_only("100"), commitments, tax)

    def test_invalid_rate_for_other_lp_ignored(self, commitments):
        tax = TaxWithholdingConfig(lp_rates={"someone_else": Decimal("-0.1")})
        check_tax_rates(tax, [c.lp_id for c in commitments])
        with pytest.raises(InvalidTaxRateError):
            check_tax_rates(tax)

    def test_clamp(self):
        tax = clamp_tax_rates(TaxWithholdingConfig(default_rate=Decimal("1.5"),
                                                   lp_rates={"alpha": Decimal("-0.2")}))
        assert tax.default_rate == Decimal("1")
        assert tax.lp_rates == {"alpha": Decimal("0")}
