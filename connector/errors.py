"""
Error taxonomy for record uploads.

Provides typed errors with HTTP status mapping, plus helpers that turn
Google Ads SDK failures into readable, classified errors.
"""

from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass

from google.ads.googleads.errors import GoogleAdsException


class ErrorCategory(str, Enum):
    """Error category classification."""

    SOURCE_RESOLUTION = "source_resolution"
    PREREQUISITE = "prerequisite"
    BATCH_SEND = "batch_send"
    POST_PROCESSING = "post_processing"
    CONFIGURATION = "configuration"
    EXTERNAL_API = "external_api"


@dataclass
class ErrorDetail:
    """Detailed error information."""

    category: ErrorCategory
    code: str
    message: str
    http_status: int
    retryable: bool
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API response."""
        result = {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            result["details"] = self.details
        return result


class UploadError(Exception):
    """Base exception for all upload errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        code: str,
        http_status: int = 500,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_detail = ErrorDetail(
            category=category,
            code=code,
            message=message,
            http_status=http_status,
            retryable=retryable,
            details=details or {}
        )


class SourceResolutionError(UploadError):
    """The message referenced a storage object that could not be resolved."""

    def __init__(self, message: str, bucket: Optional[str] = None, name: Optional[str] = None):
        details = {k: v for k, v in (("bucket", bucket), ("file", name)) if v}
        super().__init__(
            message=message,
            category=ErrorCategory.SOURCE_RESOLUTION,
            code="SOURCE_NOT_RESOLVED",
            http_status=404,
            retryable=False,
            details=details
        )


class PrerequisiteError(UploadError):
    """A resource required before sending (list, job) could not be prepared."""

    def __init__(self, message: str, step: Optional[str] = None):
        details = {"step": step} if step else None
        super().__init__(
            message=message,
            category=ErrorCategory.PREREQUISITE,
            code="PREREQUISITE_FAILED",
            http_status=502,
            retryable=False,
            details=details
        )


class BatchSendError(UploadError):
    """Sending a single batch failed."""

    def __init__(self, message: str, batch_index: Optional[int] = None):
        details = {"batch_index": batch_index} if batch_index is not None else None
        super().__init__(
            message=message,
            category=ErrorCategory.BATCH_SEND,
            code="BATCH_SEND_FAILED",
            http_status=502,
            retryable=False,
            details=details
        )


class PostProcessingError(UploadError):
    """A step after all batches were sent (e.g. running the job) failed."""

    def __init__(self, message: str, step: Optional[str] = None):
        details = {"step": step} if step else None
        super().__init__(
            message=message,
            category=ErrorCategory.POST_PROCESSING,
            code="POST_PROCESSING_FAILED",
            http_status=502,
            retryable=False,
            details=details
        )


class ConfigurationError(UploadError):
    """Upload configuration is invalid or refers to an unknown API."""

    def __init__(self, message: str = "Invalid upload configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            code="INVALID_CONFIGURATION",
            http_status=400,
            retryable=False,
            details=details
        )


class ExternalAPIError(UploadError):
    """Error from the Google Ads API."""

    def __init__(
        self,
        message: str,
        google_ads_error_code: Optional[str] = None,
        retryable: bool = False,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if google_ads_error_code:
            error_details["google_ads_error_code"] = google_ads_error_code

        super().__init__(
            message=message,
            category=ErrorCategory.EXTERNAL_API,
            code="EXTERNAL_API_ERROR",
            http_status=502,
            retryable=retryable,
            details=error_details
        )


# Google Ads error oneof names (and gRPC status names) that are worth retrying
RETRYABLE_GOOGLE_ADS_ERRORS = frozenset({
    "quota_error",
    "internal_error",
    "RESOURCE_EXHAUSTED",
    "DEADLINE_EXCEEDED",
    "UNAVAILABLE",
    "INTERNAL",
})


def _google_ads_error_codes(exception: GoogleAdsException) -> list[str]:
    """Return the oneof names of every error in a GoogleAdsFailure."""
    codes = []
    for error in exception.failure.errors:
        error_code = type(error.error_code).pb(error.error_code)
        codes.append(error_code.WhichOneof("error_code") or "unknown")
    return codes


def describe_google_ads_exception(exception: Exception) -> str:
    """
    Flatten an exception into a single readable message.

    GoogleAdsException carries a list of failures; their messages are joined
    and suffixed with the request id so the failing call can be traced.

    Args:
        exception: Any exception raised while talking to Google Ads

    Returns:
        One-line description
    """
    if isinstance(exception, GoogleAdsException):
        messages = [error.message for error in exception.failure.errors]
        text = "; ".join(messages) or str(exception.error)
        return f"{text} (request_id={exception.request_id})"
    if isinstance(exception, UploadError):
        return exception.message
    return str(exception) or exception.__class__.__name__


def map_google_ads_exception(exception: Exception) -> UploadError:
    """
    Map a Google Ads SDK exception to our typed error.

    Args:
        exception: Google Ads SDK exception

    Returns:
        ExternalAPIError flagged retryable for quota/internal/transient failures
    """
    if isinstance(exception, UploadError):
        return exception

    if isinstance(exception, GoogleAdsException):
        codes = _google_ads_error_codes(exception)
        grpc_status = exception.error.code().name if exception.error else None
        retryable = grpc_status in RETRYABLE_GOOGLE_ADS_ERRORS or any(
            code in RETRYABLE_GOOGLE_ADS_ERRORS for code in codes
        )
        return ExternalAPIError(
            message=describe_google_ads_exception(exception),
            google_ads_error_code=codes[0] if codes else grpc_status,
            retryable=retryable,
            details={"request_id": exception.request_id},
        )

    # Plain gRPC/transport errors expose the status through ``error_code`` or ``code()``
    error_code = getattr(exception, "error_code", None)
    if error_code is None and callable(getattr(exception, "code", None)):
        status = exception.code()
        error_code = getattr(status, "name", None)

    return ExternalAPIError(
        message=describe_google_ads_exception(exception),
        google_ads_error_code=error_code,
        retryable=error_code in RETRYABLE_GOOGLE_ADS_ERRORS,
    )
