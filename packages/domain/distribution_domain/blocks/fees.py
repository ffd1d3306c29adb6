"""Fee & expense ledger.

Nets a distribution's gross proceeds into net proceeds:

    net = gross − Σ fee line amounts

A fee line contributes its fixed amount, or its percentage of gross when no
fixed amount is set. Each line is rounded to the money unit before summing so
the ledger total always equals the sum of the displayed lines.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Tuple

import pandas as pd

from .base import Block, BlockContext, record_warning
from ..errors import ComputationError, NegativeNetProceedsError
from ..money import quantize, to_money, ZERO
from ..schemas import EngineCFG, DEFAULT_ENGINE_CFG, FeeLineItem

logger = logging.getLogger(__name__)


def fee_amounts(
    gross: Decimal,
    fee_lines: Iterable[FeeLineItem],
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> List[Tuple[FeeLineItem, Decimal]]:
    """Resolve each fee line to a rounded amount."""
    gross = to_money(gross, cfg.money_quantum)
    return [
        (line, quantize(line.resolve_amount(gross), cfg.money_quantum, cfg.rounding_mode))
        for line in fee_lines
    ]


def split_fees_and_expenses(
    gross: Decimal,
    fee_lines: Iterable[FeeLineItem],
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Tuple[Decimal, Decimal]:
    """Total fees (management/admin) and total expenses (everything else)."""
    fees = ZERO
    expenses = ZERO
    for line, amount in fee_amounts(gross, fee_lines, cfg):
        if line.is_expense:
            expenses += amount
        else:
            fees += amount
    return fees, expenses


def net_proceeds(
    gross: Decimal,
    fee_lines: Iterable[FeeLineItem],
    cfg: EngineCFG = DEFAULT_ENGINE_CFG,
) -> Decimal:
    """Net proceeds after fees and expenses.

    Args:
        gross: Gross proceeds of the distribution event
        fee_lines: Fee and expense line items
        cfg: Engine configuration (money unit, rounding)

    Returns:
        gross − Σ fees, on the money unit

    Raises:
        NegativeNetProceedsError: If fees exceed gross proceeds

    Example:
        net_proceeds(Decimal("10000000"), [FeeLineItem(id="f", label="Legal",
                                                       amount=Decimal("200000"))])
        → Decimal("9800000.00")
    """
    gross = to_money(gross, cfg.money_quantum)
    total = sum((amount for _, amount in fee_amounts(gross, fee_lines, cfg)), ZERO)
    net = gross - total
    if net < 0:
        raise NegativeNetProceedsError(gross, total)
    return to_money(net, cfg.money_quantum)


class FeeLedgerBlock(Block):
    """Computes net proceeds and the fee ledger.

    Inputs (from context):
        - gross_proceeds: Decimal gross proceeds
        - fee_line_items: List[FeeLineItem]
        - engine_cfg (optional): EngineCFG

    Outputs (to context):
        - net_proceeds: Decimal net proceeds (0 when fees exceed gross)
        - fee_totals: (total_fees, total_expenses) tuple
        - fee_ledger: DataFrame with columns:
            * id: Fee line identifier
            * label: Description
            * category: Fee category
            * is_expense: True for expenses, False for fees
            * amount: Resolved amount
            * share_of_gross: Amount as a fraction of gross proceeds

    A NegativeNetProceedsError is recorded in ``engine_warnings`` and net
    proceeds fall back to zero so downstream blocks still run.
    """

    def inputs(self) -> List[str]:
        return ["gross_proceeds", "fee_line_items"]

    def outputs(self) -> List[str]:
        return ["net_proceeds", "fee_totals", "fee_ledger"]

    def execute(self, context: BlockContext) -> None:
        cfg: EngineCFG = context.get_optional("engine_cfg", DEFAULT_ENGINE_CFG)
        gross = to_money(context.get("gross_proceeds"), cfg.money_quantum)
        fee_lines: List[FeeLineItem] = context.get("fee_line_items")

        try:
            net = net_proceeds(gross, fee_lines, cfg)
        except ComputationError as exc:
            logger.warning("Fee ledger: %s", exc)
            record_warning(context, exc, step="fees")
            net = ZERO

        context.set("net_proceeds", net)
        context.set("fee_totals", split_fees_and_expenses(gross, fee_lines, cfg))
        context.set("fee_ledger", self._ledger_frame(gross, fee_lines, cfg))

    def _ledger_frame(
        self,
        gross: Decimal,
        fee_lines: List[FeeLineItem],
        cfg: EngineCFG,
    ) -> pd.DataFrame:
        rows = []
        for line, amount in fee_amounts(gross, fee_lines, cfg):
            rows.append({
                "id": line.id,
                "label": line.label,
                "category": line.category,
                "is_expense": line.is_expense,
                "amount": float(amount),
                "share_of_gross": float(amount / gross) if gross > 0 else 0.0,
            })
        if not rows:
            return pd.DataFrame(columns=[
                "id", "label", "category", "is_expense", "amount", "share_of_gross",
            ])
        return pd.DataFrame(rows)
