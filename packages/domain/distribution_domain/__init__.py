"""Distribution Domain Engine - Waterfall, allocation and approval logic.

This package provides the core of a fund's distribution back office:
- Fee and expense ledger (gross → net proceeds)
- Multi-tier carried-interest waterfall (European, American, Blended)
- LP pro-rata allocation with tax withholding
- Distribution lifecycle and sequential approval workflow

The domain layer is designed to be:
- Framework-agnostic (no web or UI dependencies)
- Deterministic (Decimal money math, explicit configuration and fund context)
- Testable (pure Python with Pydantic validation)
"""

from .schemas import *  # noqa: F403, F401

__version__ = "0.1.0"
