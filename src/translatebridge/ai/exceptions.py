"""
AI Service Exceptions

This module contains exception classes for the AI service.
Separated to avoid circular imports between service.py and providers.py.

Hierarchy:
- TranslationError: base class, carries an error code and details
  - RequestValidationError: request rejected before any network call
  - UpstreamError: provider returned a non-success status or was unreachable
    - ProviderTimeoutError: provider did not answer within the configured timeout
  - ResponseParseError: provider answered but the required field was not found
  - RequestCancelledError: an in-flight request was superseded or aborted
"""


class TranslationError(Exception):
    """Translation service error with optional code and details."""

    default_code = "translation_error"

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code or self.default_code
        self.details = details or {}


class RequestValidationError(TranslationError):
    """A required request field is empty or missing."""

    default_code = "validation_error"


class UpstreamError(TranslationError):
    """The language-model or TTS provider failed."""

    default_code = "upstream_error"


class ProviderTimeoutError(UpstreamError):
    """The provider did not respond before the configured timeout."""

    default_code = "timeout"


class ResponseParseError(TranslationError):
    """The provider responded but the required field could not be extracted."""

    default_code = "parse_error"


class RequestCancelledError(TranslationError):
    """The operation was aborted because a newer one superseded it."""

    default_code = "cancelled"
