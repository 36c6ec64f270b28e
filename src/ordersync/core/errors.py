"""Errors raised by the ingestion pipeline."""

from typing import Optional


class OrderSyncError(Exception):
    """Base class for all pipeline errors."""


class NoCredential(OrderSyncError):
    """No usable refresh token is stored for the instance."""

    def __init__(self, instance_id: str) -> None:
        super().__init__(f"No refresh_token for instance {instance_id}")
        self.instance_id = instance_id


class InvalidState(OrderSyncError):
    """The install state is unknown, already used or expired."""


class ProviderRejected(OrderSyncError):
    """The provider answered with a non-success status or an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(OrderSyncError):
    """The provider could not be reached."""


class MalformedOrder(OrderSyncError):
    """An order field could not be parsed."""


class MissingAddress(OrderSyncError):
    """An order address has neither a structured street nor a free-text line."""


class CrawlFailed(OrderSyncError):
    """A page could not be fetched within the allowed number of attempts."""

    def __init__(self, message: str, pages_succeeded: int) -> None:
        super().__init__(f"{message} (pages succeeded: {pages_succeeded})")
        self.pages_succeeded = pages_succeeded


class WriteFailed(OrderSyncError):
    """The order transaction was rolled back."""


class RunCancelled(OrderSyncError):
    """The run was cancelled or ran past its deadline."""


class RunInProgress(OrderSyncError):
    """An ingestion run is already active for the instance."""

    def __init__(self, instance_id: str) -> None:
        super().__init__(f"An ingestion run is already active for instance {instance_id}")
        self.instance_id = instance_id
