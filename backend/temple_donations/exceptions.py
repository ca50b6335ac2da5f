"""
Domain Exceptions — raised by services, translated to HTTP responses by routes.
"""


class GatewayConfigError(RuntimeError):
    """The payment gateway key or salt is not configured."""


class DonationValidationError(ValueError):
    """A donation intent is incomplete or out of bounds."""
