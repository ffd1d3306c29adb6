"""Computation blocks for distribution waterfalls.

This package contains the computation layer that turns a distribution draft
into net proceeds, tier amounts and per-LP allocation lines, published both as
domain models and as pandas DataFrames for display.

Architecture:
    Schemas (data models) → Blocks (computation) → Results + DataFrames (output)

Key concepts:
- Blocks are reusable computation units with explicit dependencies
- Each block declares its inputs and outputs
- Dependency graph enables topological execution
- Computation errors become warnings instead of aborting the pipeline

Available blocks:
- FeeLedgerBlock: Nets gross proceeds into net proceeds
- WaterfallBlock: Splits net proceeds across waterfall tiers
- AllocationBlock: Allocates LP tier amounts to LPs and withholds tax

Usage:
    from distribution_domain.blocks import (
        BlockContext, BlockExecutor, FeeLedgerBlock, WaterfallBlock, AllocationBlock,
    )

    executor = BlockExecutor([FeeLedgerBlock(), WaterfallBlock(), AllocationBlock()])
    context = BlockContext()
    context.set("gross_proceeds", event.gross_proceeds)
    ...
    executor.execute(context)

    lines_df = context.get("lp_allocations")
"""

from .base import Block, BlockExecutor, BlockContext, CircularDependencyError, record_warning
from .fees import FeeLedgerBlock, net_proceeds, split_fees_and_expenses
from .accrual import accrue_preferred, hurdle_outstanding, year_fraction
from .waterfall import WaterfallBlock, run_waterfall, validate_scenario
from .allocation import AllocationBlock, allocate, ownership_shares
from .sensitivity import sensitivity_analysis

__all__ = [
    "Block",
    "BlockExecutor",
    "BlockContext",
    "CircularDependencyError",
    "record_warning",
    "FeeLedgerBlock",
    "net_proceeds",
    "split_fees_and_expenses",
    "accrue_preferred",
    "hurdle_outstanding",
    "year_fraction",
    "WaterfallBlock",
    "run_waterfall",
    "validate_scenario",
    "AllocationBlock",
    "allocate",
    "ownership_shares",
    "sensitivity_analysis",
]
