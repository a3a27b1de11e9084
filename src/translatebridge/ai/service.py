"""
AI Service Module

This module provides the AI service the translation invokers talk to:
- AIService class for provider selection, credentials and dispatch
- Configuration validation

Per-request credentials override the server-managed keys for that one
service instance and are never written back to configuration.

For provider-specific API implementations, see ai/providers.py
"""

import threading
from typing import Any, Dict, Iterator, Optional

import httpx

from translatebridge.config import (
    API_KEY_PLACEHOLDER,
    BUILTIN_PROVIDER_DISPLAY_NAMES,
    get_provider_config,
    load_config,
)
from translatebridge.logger import get_logger
from translatebridge.ai.exceptions import RequestValidationError

logger = get_logger(__name__)


def _usable_key(value: Optional[str]) -> bool:
    return bool(value) and value != API_KEY_PLACEHOLDER


def validate_ai_config(
    provider_override: Optional[str] = None,
    credentials=None,
    config: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Validate that AI provider configuration is properly set up.

    Args:
        provider_override: Optional provider to validate instead of the default.
        credentials: Optional per-request Credentials; a key there satisfies the check.
        config: Optional already-loaded configuration.

    Raises:
        RequestValidationError: If configuration is invalid or missing, with code and details.
    """
    config = config if config is not None else load_config()
    provider = provider_override or config.get('ai_provider', 'anthropic')
    provider_display = BUILTIN_PROVIDER_DISPLAY_NAMES.get(provider, provider.replace('-', ' ').title())

    provider_config = get_provider_config(config, provider)
    if not provider_config:
        raise RequestValidationError(
            f"AI provider '{provider}' configuration not found",
            code="ai_config_missing",
            details={"provider": provider}
        )

    request_key = credentials.key_for(provider) if credentials else None
    if not _usable_key(request_key) and not _usable_key(provider_config.get('api_key')):
        raise RequestValidationError(
            f"{provider_display} API key not configured. Set it in config.json, the environment, or supply one with the request.",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "api_key"}
        )

    models = provider_config.get('models', [])
    valid_models = [m for m in models if m and isinstance(m, str)] if isinstance(models, list) else []
    if not valid_models and not provider_config.get('model'):
        raise RequestValidationError(
            f"{provider_display} model not configured",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "models"}
        )

    if provider != 'anthropic' and not provider_config.get('api_url'):
        raise RequestValidationError(
            f"{provider_display} API URL not configured",
            code="ai_config_missing",
            details={"provider": provider, "missing_field": "api_url"}
        )


class AIService:
    """AI service for the translate / verify / refine calls."""

    def __init__(
        self,
        model_override: Optional[str] = None,
        provider_override: Optional[str] = None,
        credentials=None,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config if config is not None else load_config()
        # Use provider_override if specified, otherwise use config default
        self.provider = provider_override or self.config.get('ai_provider', 'anthropic')
        self.model_override = model_override
        self.credentials = credentials
        self.transport = transport
        self.provider_config = get_provider_config(self.config, self.provider) or {}
        # Token usage tracking
        self._usage_lock = threading.Lock()
        self._last_token_usage = {'prompt_tokens': 0, 'completion_tokens': 0}
        logger.debug(
            f"Initialized AI service with provider: {self.provider}, model: {self.model}, "
            f"request credentials: {credentials is not None}"
        )

    @property
    def display_name(self) -> str:
        return BUILTIN_PROVIDER_DISPLAY_NAMES.get(self.provider, self.provider)

    @property
    def api_key(self) -> str:
        """Per-request key if supplied, otherwise the server-managed key."""
        if self.credentials:
            request_key = self.credentials.key_for(self.provider)
            if _usable_key(request_key):
                return request_key
        key = self.provider_config.get('api_key', '')
        if not _usable_key(key):
            raise RequestValidationError(
                f"{self.display_name} API key not configured",
                code="ai_config_missing",
                details={"provider": self.provider, "missing_field": "api_key"},
            )
        return key

    @property
    def model(self) -> str:
        """
        Get the model to use.

        Priority:
        1. model_override (if set)
        2. First model from 'models' array
        3. 'model' field (legacy)
        """
        if self.model_override:
            return self.model_override

        models = self.provider_config.get('models', [])
        if models and isinstance(models, list) and models[0]:
            return models[0]

        return self.provider_config.get('model', '')

    @property
    def use_tools(self) -> bool:
        """Whether calls should use the structured tool-call contract."""
        return bool(self.provider_config.get('use_tools', True))

    @property
    def timeout(self) -> Any:
        return self.provider_config.get('timeout', 45)

    def http_client(self) -> httpx.Client:
        from translatebridge.ai.providers import get_httpx_timeout
        return httpx.Client(timeout=get_httpx_timeout(self.timeout), transport=self.transport)

    def record_usage(self, prompt_tokens: int, completion_tokens: int):
        """Store the last call's token usage."""
        with self._usage_lock:
            self._last_token_usage = {
                'prompt_tokens': prompt_tokens or 0,
                'completion_tokens': completion_tokens or 0,
            }

    def get_last_token_usage(self) -> Dict[str, int]:
        """Get token usage from the last API call."""
        with self._usage_lock:
            return self._last_token_usage.copy()

    def complete(self, prompt):
        """
        Send one prompt and return the provider response.

        Uses the prompt's tool contract when it carries one; callers decide
        that by building the prompt with structured=self.use_tools.
        """
        from translatebridge.ai.providers import call_anthropic_api, call_openai_api

        if self.provider == 'anthropic':
            return call_anthropic_api(self, prompt)
        # Every other provider speaks the OpenAI-compatible format
        return call_openai_api(self, prompt)

    def stream(self, prompt, cancel_event: Optional[threading.Event] = None) -> Iterator[str]:
        """Stream text deltas for a prompt until completion or cancellation."""
        from translatebridge.ai.providers import stream_anthropic_api, stream_openai_api

        if self.provider == 'anthropic':
            return stream_anthropic_api(self, prompt, cancel_event)
        return stream_openai_api(self, prompt, cancel_event)
