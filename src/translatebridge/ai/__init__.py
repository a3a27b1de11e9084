"""
AI Module

This module provides the language-model service and its error taxonomy.
"""

from translatebridge.ai.exceptions import (
    TranslationError,
    RequestValidationError,
    UpstreamError,
    ProviderTimeoutError,
    ResponseParseError,
    RequestCancelledError,
)
from translatebridge.ai.service import AIService, validate_ai_config

__all__ = [
    'TranslationError',
    'RequestValidationError',
    'UpstreamError',
    'ProviderTimeoutError',
    'ResponseParseError',
    'RequestCancelledError',
    'AIService',
    'validate_ai_config',
]
