"""
Typed failures raised by the pricing core.

Lookup, dimension and margin errors abort a calculation. Configuration
problems that have a safe fallback are reported as ConfigurationWarning
records on the price breakdown instead (see schemas.py).
"""


class PricingError(Exception):
    """Base class for every error the pricing core raises."""


class CatalogLookupError(PricingError, LookupError):
    """A referenced glass type, thickness, option or template is missing or inactive."""


class InvalidDimensionError(PricingError, ValueError):
    """Width, height or quantity is not positive."""


class InvalidMarginError(PricingError, ValueError):
    """Margin outside [0, 100) or a non-positive sell price."""


class StepLockedError(Exception):
    """A workflow step was requested before its guard allows it."""

    def __init__(self, step, reason: str = ""):
        self.step = step
        self.reason = reason
        msg = f"Step '{getattr(step, 'value', step)}' is locked"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RemoteCatalogError(Exception):
    """The remote catalog API returned an error or could not be reached."""
