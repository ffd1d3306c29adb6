"""Base classes and type system for distribution domain models.

This module provides the foundational types, validators, and base classes
used throughout the distribution schema system.
"""

from decimal import Decimal
from typing import Annotated
from pydantic import BaseModel, Field, ConfigDict

# =============================================================================
# Base Model
# =============================================================================

class DomainModel(BaseModel):
    """Base class for all domain models.

    Provides common configuration for all Pydantic models in the domain layer:
    - Validation on assignment for runtime safety
    - Support for Decimal and date types
    - Enum value serialization
    """

    model_config = ConfigDict(
        frozen=False,  # Allow mutation for workflow state
        validate_assignment=True,  # Validate on field assignment
        use_enum_values=True,  # Use enum values in JSON
        arbitrary_types_allowed=True,  # Allow Decimal, date, etc.
    )


# =============================================================================
# Type Aliases - Numeric
# =============================================================================

MoneyAmount = Annotated[
    Decimal,
    Field(ge=0, description="Currency amount (non-negative)")
]

SignedAmount = Annotated[
    Decimal,
    Field(description="Currency amount that may be negative (e.g., a true-up)")
]

Percentage = Annotated[
    Decimal,
    Field(ge=0, le=1, description="Percentage as decimal (0.0 to 1.0)")
]

Rate = Annotated[
    Decimal,
    Field(description="Unbounded rate as decimal. Range checks happen in validation, "
                      "so a draft with an out-of-range rate can still be saved.")
]


# =============================================================================
# ID Conventions
# =============================================================================

FundId = Annotated[
    str,
    Field(
        pattern=r'^[a-z][a-z0-9_]*$',
        description="Snake_case identifier for funds (e.g., 'fund_iii')"
    )
]

LPId = Annotated[
    str,
    Field(
        pattern=r'^[a-z][a-z0-9_]*$',
        description="Snake_case identifier for limited partners (e.g., 'acme_pension')"
    )
]

ApproverId = Annotated[
    str,
    Field(
        min_length=1,
        description="Identity of an approver (user id or email)"
    )
]

DistributionId = Annotated[
    str,
    Field(
        min_length=1,
        description="Unique distribution identifier (UUID or user-defined)"
    )
]


# =============================================================================
# ID Examples and Conventions
# =============================================================================
#
# Fund IDs:
#   - "fund_iii" - Fund III
#   - "opportunity_fund_2024"
#
# LP IDs:
#   - "calpers" - Institutional LP
#   - "family_office_smith" - Family office
#
# Approver IDs:
#   - "cfo@fund.example" or "user-42"
#
# Distribution IDs:
#   - UUIDs: "550e8400-e29b-41d4-a716-446655440000"
#   - Or descriptive: "acme_exit_2025"
#
# =============================================================================
