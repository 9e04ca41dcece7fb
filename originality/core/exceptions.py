"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ContentTooLargeError(ValidationError):
    """Raised when submitted content exceeds the scan size limit."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class RateLimitExceededError(APIClientError):
    """Raised when a provider answers with a rate-limit response."""
    pass


class ProviderNotConfiguredError(ConfigurationError):
    """Raised when a reference provider is missing its credentials."""
    pass


class ProviderFatalError(APIClientError):
    """Raised when a provider reports a fault the scan cannot recover from.

    Exhausted credits or a suspended account fall in this bucket: continuing
    would silently report a clean document.
    """
    pass


class DimensionMismatchError(AppError):
    """Raised when two embedding vectors have different dimensions."""
    pass


class PipelineError(AppError):
    """Base exception for scan pipeline errors."""
    pass


class NormalizationError(PipelineError):
    """Content normalization failed."""
    pass


class InvalidScanTransitionError(PipelineError):
    """Raised on a status change the scan lifecycle does not allow."""
    pass


class ScanNotProcessingError(PipelineError):
    """Raised when a match is written for a scan that is not processing."""
    pass


class ScanFailedError(PipelineError):
    """Raised when a scan ends in the failed state.

    The failed record is attached so callers can surface it instead of
    mistaking the failure for an empty result.
    """
    def __init__(self, message: str, scan=None, original_error: Exception = None):
        super().__init__(message, original_error=original_error)
        self.scan = scan


class ScanNotFoundError(AppError):
    """Raised when a scan is not found for the requesting owner."""
    pass
