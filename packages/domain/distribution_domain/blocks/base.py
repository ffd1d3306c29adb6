"""Base classes for computation blocks.

The recompute pipeline is a small DAG of blocks:

    FeeLedgerBlock → WaterfallBlock → AllocationBlock

Each block declares the context keys it reads and writes, so the executor can
order them and check that every input is present before a block runs.

This module provides:
- BlockContext for passing data between blocks
- Block abstract base class
- topological_sort for execution order
- BlockExecutor for validated execution
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..schemas import EngineWarning

logger = logging.getLogger(__name__)


# =============================================================================
# Block Context
# =============================================================================

@dataclass
class BlockContext:
    """Key/value store blocks read inputs from and write outputs to.

    Example:
        context = BlockContext()
        context.set("gross_proceeds", Decimal("10000000"))
        context.set("fee_line_items", fees)

        FeeLedgerBlock().execute(context)

        net = context.get("net_proceeds")
    """

    _data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        """Get value from context.

        Raises:
            KeyError: If key not found in context
        """
        if key not in self._data:
            raise KeyError(f"Key '{key}' not found in context. Available keys: {list(self._data.keys())}")
        return self._data[key]

    def get_optional(self, key: str, default: Any = None) -> Any:
        """Get value from context, or ``default`` when absent."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> List[str]:
        return list(self._data.keys())


# =============================================================================
# Block Base Class
# =============================================================================

class Block(ABC):
    """Abstract base class for computation blocks.

    A block:
    1. Declares required inputs (keys it reads from context)
    2. Declares outputs (keys it writes to context)
    3. Implements the computation in execute()

    Optional inputs are read with ``context.get_optional`` and are not
    declared, so they don't create dependency edges.

    Subclass example:
        class NetProceedsBlock(Block):
            def inputs(self) -> List[str]:
                return ["gross_proceeds", "fee_line_items"]

            def outputs(self) -> List[str]:
                return ["net_proceeds"]

            def execute(self, context: BlockContext) -> None:
                gross = context.get("gross_proceeds")
                fees = context.get("fee_line_items")
                context.set("net_proceeds", net_proceeds(gross, fees))
    """

    @abstractmethod
    def inputs(self) -> List[str]:
        """Context keys this block reads."""
        pass

    @abstractmethod
    def outputs(self) -> List[str]:
        """Context keys this block writes."""
        pass

    @abstractmethod
    def execute(self, context: BlockContext) -> None:
        """Read inputs from context, compute, write outputs to context.

        Raises:
            KeyError: If required inputs not available in context
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(inputs={self.inputs()}, outputs={self.outputs()})"


# =============================================================================
# Dependency Resolution
# =============================================================================

class CircularDependencyError(Exception):
    """Raised when blocks have circular dependencies."""
    pass


def topological_sort(blocks: List[Block]) -> List[Block]:
    """Sort blocks so every block runs after the producers of its inputs.

    Uses Kahn's algorithm. Ties keep the caller's order, so the result is
    deterministic for a given input list.

    Raises:
        ValueError: If two blocks produce the same output key
        CircularDependencyError: If blocks have circular dependencies

    Example:
        allocation.inputs() = ["waterfall_result", ...]
        waterfall.inputs() = ["net_proceeds", ...]
        fees.outputs() = ["net_proceeds", ...]

        topological_sort([allocation, fees, waterfall])
        → [fees, waterfall, allocation]
    """
    producers: Dict[str, Block] = {}
    for block in blocks:
        for output_key in block.outputs():
            if output_key in producers:
                raise ValueError(
                    f"Multiple blocks produce '{output_key}': "
                    f"{producers[output_key]} and {block}"
                )
            producers[output_key] = block

    in_degree: Dict[Block, int] = {block: 0 for block in blocks}
    dependents: Dict[Block, List[Block]] = {block: [] for block in blocks}

    for block in blocks:
        for input_key in block.inputs():
            # Inputs without a producer must come from the initial context
            if input_key in producers:
                dependents[producers[input_key]].append(block)
                in_degree[block] += 1

    ready: List[Block] = [block for block in blocks if in_degree[block] == 0]
    ordered: List[Block] = []

    while ready:
        current = ready.pop(0)
        ordered.append(current)
        for dependent in dependents[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)

    if len(ordered) != len(blocks):
        remaining = [block for block in blocks if in_degree[block] > 0]
        raise CircularDependencyError(
            f"Circular dependency detected among blocks: {remaining}"
        )

    return ordered


# =============================================================================
# Block Executor
# =============================================================================

class BlockExecutor:
    """Executes blocks in dependency order.

    Example:
        executor = BlockExecutor([AllocationBlock(), WaterfallBlock(), FeeLedgerBlock()])
        context = BlockContext()
        context.set("gross_proceeds", event.gross_proceeds)
        ...
        executor.execute(context)

        lines_df = context.get("lp_allocations")
    """

    def __init__(self, blocks: List[Block]):
        self.blocks = blocks
        self._sorted_blocks: Optional[List[Block]] = None

    def execute(self, context: BlockContext) -> BlockContext:
        """Execute all blocks in dependency order.

        Raises:
            CircularDependencyError: If blocks have circular dependencies
            KeyError: If a required input is missing from context
            ValueError: If a block didn't write a declared output
        """
        if self._sorted_blocks is None:
            self._sorted_blocks = topological_sort(self.blocks)

        for block in self._sorted_blocks:
            self._validate_inputs(block, context)
            logger.debug("Executing %r", block)
            block.execute(context)
            self._validate_outputs(block, context)

        return context

    def _validate_inputs(self, block: Block, context: BlockContext) -> None:
        for input_key in block.inputs():
            if not context.has(input_key):
                raise KeyError(
                    f"Block {block} requires input '{input_key}' but it's not in context. "
                    f"Available keys: {context.keys()}"
                )

    def _validate_outputs(self, block: Block, context: BlockContext) -> None:
        for output_key in block.outputs():
            if not context.has(output_key):
                raise ValueError(
                    f"Block {block} declared output '{output_key}' but didn't write it to context"
                )


# =============================================================================
# Warning Collection
# =============================================================================

def record_warning(context: BlockContext, exc: Exception, step: Optional[str] = None) -> None:
    """Append a computation error to the context's ``engine_warnings`` list.

    Blocks use this instead of raising so the rest of the pipeline still runs
    and the caller gets a best-effort result.
    """
    warnings = context.get_optional("engine_warnings")
    if warnings is None:
        warnings = []
        context.set("engine_warnings", warnings)
    code = getattr(exc, "code", "computation_error")
    warnings.append(EngineWarning(code=code, message=str(exc), step=step))
