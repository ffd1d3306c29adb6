"""Distribution domain schemas.

This package contains all Pydantic models for the distribution domain layer:
- Base types and conventions
- Engine configuration
- Fee and expense line items
- Waterfall scenarios, tiers and capital state
- LP commitments, tax withholding and allocation lines
- Advanced options (holdbacks, staged payments, side letters, elections)
- Distribution events and approval workflow
- Fund context
- Calculation results

Usage:
    from distribution_domain.schemas import (
        DistributionEvent, FeeLineItem, WaterfallScenario,
        ReturnOfCapitalTier, PreferredReturnTier, CatchUpTier, CarrySplitTier,
        CapitalAccount, LPCommitment, FundContext, EngineCFG,
    )
"""

# Base types
from .base import (
    DomainModel,
    MoneyAmount,
    SignedAmount,
    Percentage,
    Rate,
    FundId,
    LPId,
    ApproverId,
    DistributionId,
)

# Configuration
from .config import EngineCFG, DEFAULT_ENGINE_CFG

# Fees
from .fees import FeeLineItem, FeeCategory, FEE_CATEGORIES

# Waterfall
from .waterfall import (
    WaterfallModel,
    WaterfallTier,
    ReturnOfCapitalTier,
    PreferredReturnTier,
    CatchUpTier,
    CarrySplitTier,
    BlendedConfig,
    ClawbackProvision,
    WaterfallScenario,
    CapitalCall,
    CapitalReturn,
    CapitalAccount,
    standard_tiers,
)

# Investors
from .investors import LPCommitment, TaxWithholdingConfig, LPAllocationLine

# Advanced options
from .advanced import (
    HoldbackEscrow,
    PaymentStage,
    SideLetterTerm,
    LPElection,
    FractionalSharePolicy,
)

# Fund
from .fund import ApproverSpec, ApprovalRule, FundMetrics, FundContext

# Distribution
from .distribution import (
    DistributionStatus,
    DistributionEventType,
    ApprovalStep,
    DistributionComment,
    StatusTransition,
    DistributionEvent,
    MUTABLE_STATUSES,
    WORKFLOW_FIELDS,
)

# Results
from .results import (
    TierResult,
    ClawbackSummary,
    WaterfallResult,
    AllocationResult,
    EngineWarning,
    RunningTotals,
    RecomputeResult,
    ImpactPreview,
)

__all__ = [
    # Base types
    "DomainModel",
    "MoneyAmount",
    "SignedAmount",
    "Percentage",
    "Rate",
    "FundId",
    "LPId",
    "ApproverId",
    "DistributionId",
    # Configuration
    "EngineCFG",
    "DEFAULT_ENGINE_CFG",
    # Fees
    "FeeLineItem",
    "FeeCategory",
    "FEE_CATEGORIES",
    # Waterfall
    "WaterfallModel",
    "WaterfallTier",
    "ReturnOfCapitalTier",
    "PreferredReturnTier",
    "CatchUpTier",
    "CarrySplitTier",
    "BlendedConfig",
    "ClawbackProvision",
    "WaterfallScenario",
    "CapitalCall",
    "CapitalReturn",
    "CapitalAccount",
    "standard_tiers",
    # Investors
    "LPCommitment",
    "TaxWithholdingConfig",
    "LPAllocationLine",
    # Advanced options
    "HoldbackEscrow",
    "PaymentStage",
    "SideLetterTerm",
    "LPElection",
    "FractionalSharePolicy",
    # Fund
    "ApproverSpec",
    "ApprovalRule",
    "FundMetrics",
    "FundContext",
    # Distribution
    "DistributionStatus",
    "DistributionEventType",
    "ApprovalStep",
    "DistributionComment",
    "StatusTransition",
    "DistributionEvent",
    "MUTABLE_STATUSES",
    "WORKFLOW_FIELDS",
    # Results
    "TierResult",
    "ClawbackSummary",
    "WaterfallResult",
    "AllocationResult",
    "EngineWarning",
    "RunningTotals",
    "RecomputeResult",
    "ImpactPreview",
]
