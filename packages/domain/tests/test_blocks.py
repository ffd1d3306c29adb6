"""Tests for blocks architecture.

Tests cover:
- BlockContext get/set/has/get_optional operations
- Topological sort and dependency resolution
- BlockExecutor validation and execution
- Warning collection
- FeeLedgerBlock, WaterfallBlock, AllocationBlock wired together
"""

import pytest
from decimal import Decimal

from distribution_domain.blocks import (
    AllocationBlock,
    Block,
    BlockContext,
    BlockExecutor,
    FeeLedgerBlock,
    WaterfallBlock,
)
from distribution_domain.blocks.base import CircularDependencyError, record_warning, topological_sort
from distribution_domain.errors import NegativeNetProceedsError
from distribution_domain.schemas import FeeLineItem, TaxWithholdingConfig


# =============================================================================
# BlockContext Tests
# =============================================================================

def test_block_context_get_set():
    context = BlockContext()
    context.set("net_proceeds", Decimal("9800000"))
    assert context.get("net_proceeds") == Decimal("9800000")


def test_block_context_has_and_keys():
    context = BlockContext()
    assert not context.has("fee_line_items")
    context.set("fee_line_items", [])
    context.set("gross_proceeds", Decimal("1"))
    assert context.has("fee_line_items")
    assert set(context.keys()) == {"fee_line_items", "gross_proceeds"}


def test_block_context_get_missing_key():
    """Missing keys raise KeyError listing what is available."""
    context = BlockContext()
    context.set("gross_proceeds", Decimal("1"))
    with pytest.raises(KeyError, match="Key 'net_proceeds' not found"):
        context.get("net_proceeds")


def test_block_context_get_optional():
    context = BlockContext()
    assert context.get_optional("fund_state") is None
    assert context.get_optional("engine_cfg", "default") == "default"


# =============================================================================
# Topological Sort Tests
# =============================================================================

class StubBlock(Block):
    """Block that writes '<name>_output' to each declared output."""

    def __init__(self, name, inputs, outputs):
        self.name = name
        self._inputs = inputs
        self._outputs = outputs

    def inputs(self):
        return self._inputs

    def outputs(self):
        return self._outputs

    def execute(self, context):
        for output in self._outputs:
            context.set(output, f"{self.name}_output")

    def __repr__(self):
        return f"StubBlock({self.name})"


def test_topological_sort_recompute_chain():
    """fees -> waterfall -> allocation regardless of input order."""
    fees = StubBlock("fees", ["gross_proceeds"], ["net_proceeds"])
    waterfall = StubBlock("waterfall", ["net_proceeds"], ["waterfall_result"])
    allocation = StubBlock("allocation", ["waterfall_result"], ["allocation_result"])

    assert topological_sort([allocation, fees, waterfall]) == [fees, waterfall, allocation]


def test_topological_sort_keeps_caller_order_for_independent_blocks():
    ledger = StubBlock("ledger", [], ["net_proceeds"])
    tiers = StubBlock("tiers", ["net_proceeds"], ["waterfall_tiers"])
    totals = StubBlock("totals", ["net_proceeds"], ["running_totals"])

    ordered = topological_sort([totals, tiers, ledger])

    assert ordered[0] == ledger
    assert set(ordered[1:]) == {tiers, totals}


def test_topological_sort_circular_dependency():
    block_a = StubBlock("A", ["data_c"], ["data_a"])
    block_b = StubBlock("B", ["data_a"], ["data_b"])
    block_c = StubBlock("C", ["data_b"], ["data_c"])

    with pytest.raises(CircularDependencyError, match="Circular dependency detected"):
        topological_sort([block_a, block_b, block_c])


def test_topological_sort_duplicate_output():
    first = StubBlock("first", [], ["net_proceeds"])
    second = StubBlock("second", [], ["net_proceeds"])

    with pytest.raises(ValueError, match="Multiple blocks produce 'net_proceeds'"):
        topological_sort([first, second])


# =============================================================================
# BlockExecutor Tests
# =============================================================================

def test_block_executor_runs_chain():
    block_a = StubBlock("A", [], ["data_a"])
    block_b = StubBlock("B", ["data_a"], ["data_b"])

    context = BlockExecutor([block_b, block_a]).execute(BlockContext())

    assert context.get("data_a") == "A_output"
    assert context.get("data_b") == "B_output"


def test_block_executor_missing_input():
    executor = BlockExecutor([StubBlock("A", ["gross_proceeds"], ["net_proceeds"])])

    with pytest.raises(KeyError, match="requires input 'gross_proceeds'"):
        executor.execute(BlockContext())


def test_block_executor_missing_output():

    class ForgetfulBlock(Block):
        def inputs(self):
            return []

        def outputs(self):
            return ["net_proceeds"]

        def execute(self, context):
            pass

    with pytest.raises(ValueError, match="declared output 'net_proceeds' but didn't write"):
        BlockExecutor([ForgetfulBlock()]).execute(BlockContext())


def test_record_warning_uses_error_code():
    context = BlockContext()
    record_warning(context, NegativeNetProceedsError(Decimal("1"), Decimal("2")), step="fees")
    record_warning(context, RuntimeError("boom"))

    warnings = context.get("engine_warnings")
    assert [w.code for w in warnings] == ["negative_net_proceeds", "computation_error"]
    assert warnings[0].step == "fees"


# =============================================================================
# Distribution Blocks
# =============================================================================

def _context(event, fund):
    context = BlockContext()
    context.set("distribution_id", event.id)
    context.set("gross_proceeds", event.gross_proceeds)
    context.set("fee_line_items", event.fee_line_items)
    context.set("waterfall_scenario", event.scenario)
    context.set("fund_state", fund.fund_state)
    context.set("commitments", event.commitments)
    context.set("tax_config", TaxWithholdingConfig())
    return context


def test_distribution_blocks_end_to_end(event, fund):
    """The three blocks produce the worked example and its DataFrames."""
    context = _context(event, fund)
    BlockExecutor([AllocationBlock(), WaterfallBlock(), FeeLedgerBlock()]).execute(context)

    assert context.get("net_proceeds") == Decimal("9800000.00")
    assert context.get("waterfall_result").total_gp == Decimal("360000.00")
    assert context.get("allocation_result").total_gross == Decimal("9440000.00")
    assert context.get_optional("engine_warnings") is None

    ledger = context.get("fee_ledger")
    assert list(ledger["id"]) == ["legal"]
    assert ledger["share_of_gross"].iloc[0] == pytest.approx(0.02)

    tiers = context.get("waterfall_tiers")
    assert list(tiers["kind"]) == ["return_of_capital", "preferred_return", "gp_catchup", "carry_split"]
    assert tiers["cumulative"].iloc[-1] == pytest.approx(9800000.0)

    lines = context.get("lp_allocations")
    assert list(lines["lp_id"]) == ["calpers", "smith_family"]
    assert lines["gross_amount"].sum() == pytest.approx(9440000.0)
    assert "tier_4" in lines.columns


def test_fee_block_absorbs_negative_net(event, fund):
    event.fee_line_items = [FeeLineItem(id="oops", label="Oversized", amount=Decimal("12000000"))]
    context = _context(event, fund)
    BlockExecutor([FeeLedgerBlock(), WaterfallBlock(), AllocationBlock()]).execute(context)

    assert context.get("net_proceeds") == Decimal("0")
    assert [w.code for w in context.get("engine_warnings")] == ["negative_net_proceeds"]
    assert context.get("waterfall_result").total == Decimal("0")


def test_waterfall_block_without_scenario(event, fund):
    event.scenario = None
    context = _context(event, fund)
    BlockExecutor([FeeLedgerBlock(), WaterfallBlock(), AllocationBlock()]).execute(context)

    assert context.get("waterfall_result") is None
    assert context.get("allocation_result") is None
    assert context.get("waterfall_tiers").empty
    assert context.get("lp_allocations").empty
    assert [w.code for w in context.get("engine_warnings")] == ["invalid_tier_configuration"]
