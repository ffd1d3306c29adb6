"""Engine configuration.

EngineCFG is passed explicitly into every calculator and the orchestrator.
There is no global or environment-driven configuration; callers that need a
non-default policy build their own EngineCFG.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_HALF_EVEN, ROUND_UP, ROUND_DOWN
from typing import Literal, Optional
from pydantic import Field

from .base import DomainModel, Percentage


RoundingMode = Literal["ROUND_HALF_UP", "ROUND_HALF_EVEN", "ROUND_UP", "ROUND_DOWN"]

_ROUNDING_MODES = {
    "ROUND_HALF_UP": ROUND_HALF_UP,
    "ROUND_HALF_EVEN": ROUND_HALF_EVEN,
    "ROUND_UP": ROUND_UP,
    "ROUND_DOWN": ROUND_DOWN,
}


class EngineCFG(DomainModel):
    """Configuration for the distribution engine.

    Example:
        EngineCFG(
            rounding="ROUND_HALF_EVEN",      # Banker's rounding for tier splits
            unusual_fee_ratio=Decimal("0.05"),  # Warn when fees exceed 5% of gross
            parallel_allocation_threshold=500,  # Use a thread pool above 500 LPs
        )
    """

    money_quantum: Decimal = Field(
        default=Decimal("0.01"),
        gt=0,
        description="Smallest money unit (0.01 = cents)"
    )

    rounding: RoundingMode = Field(
        default="ROUND_HALF_UP",
        description="Rounding mode for tier splits, catch-up amounts and tax withholding"
    )

    ownership_epsilon: Decimal = Field(
        default=Decimal("0.0001"),
        ge=0,
        description="Tolerance when checking that ownership percentages sum to 100%"
    )

    unusual_fee_ratio: Percentage = Field(
        default=Decimal("0.10"),
        description="Fees above this share of gross proceeds raise a warning"
    )

    parallel_allocation_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        description="LP count above which per-LP share computation runs in a thread pool. "
                    "None = always sequential."
    )

    max_workers: int = Field(
        default=4,
        ge=1,
        description="Thread pool size for parallel share computation"
    )

    @property
    def rounding_mode(self) -> str:
        """The ``decimal`` module constant for ``rounding``."""
        return _ROUNDING_MODES[self.rounding]


DEFAULT_ENGINE_CFG = EngineCFG()
