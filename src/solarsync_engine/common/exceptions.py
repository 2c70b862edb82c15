"""SolarSync-Engine exception hierarchy."""

from typing import Any


class SolarSyncError(Exception):
    """Base exception for all SolarSync errors."""

    def __init__(self, message: str = "", code: str = "SOLARSYNC_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class AuthenticationFailure(SolarSyncError):
    """Raised when a vendor login is rejected or returns no token."""

    def __init__(
        self,
        message: str = "Vendor authentication failed",
        vendor_status: int | None = None,
        vendor_message: str = "",
    ):
        self.vendor_status = vendor_status
        self.vendor_message = vendor_message
        super().__init__(message, code="AUTHENTICATION_FAILED")


class VendorApiError(SolarSyncError):
    """Raised on a non-success HTTP status or a vendor-reported error code."""

    def __init__(
        self,
        message: str = "Vendor API request failed",
        status: int | None = None,
        body: str = "",
    ):
        self.status = status
        self.body = body
        super().__init__(message, code="VENDOR_API_ERROR")


class NormalizationFailure(SolarSyncError):
    """Raised when a single vendor record cannot be mapped to the common schema."""

    def __init__(self, message: str = "Record could not be normalized", record_id: str | None = None):
        self.record_id = record_id
        super().__init__(message, code="NORMALIZATION_FAILED")


class ConfigurationError(SolarSyncError):
    """Raised when a vendor cannot be resolved to an adapter."""

    def __init__(self, message: str = "Invalid vendor configuration"):
        super().__init__(message, code="CONFIGURATION_ERROR")


class VendorNotFoundError(SolarSyncError):
    """Raised when a vendor cannot be found in the database."""

    def __init__(self, message: str = "Vendor not found"):
        super().__init__(message, code="NOT_FOUND")


class PartialFailure(SolarSyncError):
    """Raised when only one of a vendor's sync phases succeeded."""

    def __init__(self, message: str = "Vendor partially synced", result: Any = None):
        self.result = result
        super().__init__(message, code="PARTIAL_FAILURE")
