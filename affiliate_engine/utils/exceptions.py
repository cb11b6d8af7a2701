"""
Engine exceptions.

Duplicate operations and unmet validations are ordinary results and have
no exception type here.
"""


class EngineError(Exception):
    """Base class for commission engine errors."""
    pass


class ConfigurationError(EngineError):
    """Required engine table missing or malformed. Fatal to the call."""
    pass


class AffiliateNotFoundError(EngineError):
    """Referenced affiliate does not exist."""

    def __init__(self, affiliate_id: int | str) -> None:
        self.affiliate_id = affiliate_id
        super().__init__(f"Affiliate {affiliate_id} not found")


class InvalidTransitionError(EngineError):
    """Commission status change not allowed by the workflow."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move commission from {current} to {target}")


class RegistrationError(EngineError):
    """Affiliate registration rejected."""
    pass


class CommissionNotFoundError(EngineError):
    """Referenced commission does not exist."""

    def __init__(self, commission_id: int) -> None:
        self.commission_id = commission_id
        super().__init__(f"Commission {commission_id} not found")
