"""Exception types shared by the external-service clients."""


class PayxError(Exception):
    """Base class for recoverable service errors."""


class NotConfiguredError(PayxError):
    """A required endpoint, credential or address is missing from settings."""


class UpstreamError(PayxError):
    """An external dependency failed or answered with an error."""

    def __init__(self, dependency: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.dependency = dependency
        self.message = message
        self.status_code = status_code


class DuplicatePaymentError(UpstreamError):
    """The ledger rejected an insert because the transaction hash already exists."""
