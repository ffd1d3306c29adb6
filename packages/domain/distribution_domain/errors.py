"""Error taxonomy for the distribution engine.

Errors fall into four groups:
- Computation errors: raised by the pure calculators (fee ledger, waterfall,
  allocation). The orchestrator absorbs these into its warnings list so a draft
  can always be saved.
- Authorization errors: an actor who is not the current approver tried to act.
- Transition errors: a lifecycle action is not allowed from the current status.
- Concurrency errors: a save was attempted against a stale version.

Authorization, transition and concurrency errors are hard failures: the
requested action is aborted and no state changes.
"""


class DistributionError(Exception):
    """Base class for all distribution engine errors."""
    pass


# =============================================================================
# Computation Errors
# =============================================================================

class ComputationError(DistributionError):
    """Raised by a calculator when its inputs cannot produce a full result.

    Attributes:
        code: Stable machine-readable code used in warnings
    """

    code = "computation_error"


class NegativeNetProceedsError(ComputationError):
    """Fees and expenses exceed gross proceeds."""

    code = "negative_net_proceeds"

    def __init__(self, gross, total_fees):
        self.gross = gross
        self.total_fees = total_fees
        super().__init__(
            f"Fees and expenses ({total_fees}) exceed gross proceeds ({gross})"
        )


class InvalidTierConfigurationError(ComputationError):
    """Waterfall tiers are missing, out of order, or misconfigured."""

    code = "invalid_tier_configuration"


class MissingFundStateError(ComputationError):
    """A waterfall model was invoked without the capital state it needs."""

    code = "missing_fund_state"


class InvalidTaxRateError(ComputationError):
    """A tax withholding rate is outside 0-100%."""

    code = "invalid_tax_rate"


class InvalidOwnershipError(ComputationError):
    """LP ownership percentages are missing or don't sum to 100%."""

    code = "ownership_not_100"


class DuplicateLPError(InvalidOwnershipError):
    """The same LP id appears on more than one commitment."""

    code = "duplicate_lp"


# =============================================================================
# Workflow Errors
# =============================================================================

class NotCurrentApproverError(DistributionError):
    """Actor is not the approver of the active approval step."""

    def __init__(self, distribution_id: str, approver_id: str, current_approver_id=None):
        self.distribution_id = distribution_id
        self.approver_id = approver_id
        self.current_approver_id = current_approver_id
        super().__init__(
            f"'{approver_id}' is not the current approver for distribution "
            f"'{distribution_id}' (current: {current_approver_id})"
        )


class InvalidTransitionError(DistributionError):
    """Lifecycle action is not permitted from the current status."""
    pass


class ImmutableDistributionError(DistributionError):
    """Attempted to edit a distribution that is no longer mutable."""
    pass


class SubmissionBlockedError(InvalidTransitionError):
    """Submission refused because wizard steps have validation errors.

    Attributes:
        errors: Error messages keyed by wizard step
    """

    def __init__(self, distribution_id: str, errors):
        self.distribution_id = distribution_id
        self.errors = errors
        steps = ", ".join(errors)
        super().__init__(
            f"Distribution '{distribution_id}' cannot be submitted; invalid steps: {steps}"
        )


class StaleVersionError(DistributionError):
    """Optimistic concurrency check failed on save."""

    def __init__(self, distribution_id: str, expected_version: int, actual_version: int):
        self.distribution_id = distribution_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Distribution '{distribution_id}' is at version {actual_version}, "
            f"save expected version {expected_version}"
        )
