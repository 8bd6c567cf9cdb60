"""
Exception hierarchy for Earshot.

Only AcquisitionError and RecognitionError are meant to reach the user.
ProviderError and NarrativeParseError are raised inside the enrichment
pipeline and absorbed there.
"""

from typing import Optional, Any


class EarshotError(Exception):
    """Base exception for all Earshot errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class AcquisitionError(EarshotError):
    """Raised when the microphone cannot be opened (missing device, permission denied)."""

    def __init__(self, message: str, device: Optional[Any] = None):
        super().__init__(message, details={"device": device} if device is not None else None)
        self.device = device


class RecognitionError(EarshotError):
    """Raised when the recognition service could not identify a clip."""


class NoMatchError(RecognitionError):
    """The service answered but reported no matching track."""


class ServiceUnavailableError(RecognitionError):
    """Network failure, non-2xx response, or a service-side error payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, details={"status_code": status_code} if status_code else None)
        self.status_code = status_code


class ConfigurationError(RecognitionError):
    """Required credentials are missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key


class ProviderError(EarshotError):
    """A single enrichment provider failed."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.original_error = original_error
        self.details = {
            "provider": provider,
            "original_error": str(original_error) if original_error else None,
        }


class NarrativeParseError(EarshotError):
    """The generative text response could not be parsed as a JSON object."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw
