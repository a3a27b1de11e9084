"""
AI Provider API Implementations

This module contains the API call implementations for each AI provider:
- Anthropic Messages API
- OpenAI-compatible chat completions (OpenAI and custom endpoints)

Each provider has a one-shot call, optionally constrained to a tool-call
contract, and a streaming call yielding text deltas. Every function takes
an AIService instance and a Prompt. Transport failures are converted to
UpstreamError / ProviderTimeoutError here so callers see one taxonomy.
"""

import json
import threading
from typing import Any, Dict, Iterator, NamedTuple, Optional

import httpx

from translatebridge.logger import get_logger
from translatebridge.ai.exceptions import (
    ProviderTimeoutError,
    RequestCancelledError,
    TranslationError,
    UpstreamError,
)

logger = get_logger(__name__)


class ProviderResponse(NamedTuple):
    """Text and, when a tool contract was used, the tool input."""
    text: str
    tool_input: Optional[Dict[str, Any]] = None


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (total timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 30.0),
            read=timeout_config.get('read', 45.0),
            pool=timeout_config.get('pool', 10.0),
        )
    else:
        timeout_value = float(timeout_config) if timeout_config else 45.0
        return httpx.Timeout(
            connect=min(10.0, timeout_value),
            write=timeout_value,
            read=timeout_value,
            pool=min(10.0, timeout_value),
        )


def handle_http_error(e: httpx.HTTPStatusError, provider: str):
    """Handle HTTP errors with detailed messages."""
    status_code = e.response.status_code
    error_text = "Unknown error"

    try:
        error_json = e.response.json()
        if isinstance(error_json, dict) and "error" in error_json:
            error_detail = error_json["error"]
            if isinstance(error_detail, dict):
                error_text = error_detail.get("message", str(error_detail))
            else:
                error_text = str(error_detail)
        elif isinstance(error_json, dict) and "detail" in error_json:
            error_text = str(error_json["detail"])
    except (ValueError, httpx.ResponseNotRead):
        try:
            error_text = e.response.text[:500]
        except httpx.ResponseNotRead:
            error_text = "No details"

    raise UpstreamError(
        f"{provider} API error ({status_code}): {error_text}",
        details={"provider": provider, "status_code": status_code},
    )


def _read_stream_error(response: httpx.Response) -> None:
    """Read a streamed error body so handle_http_error can report it."""
    if response.is_error:
        response.read()
        response.raise_for_status()


def _iter_sse_data(response: httpx.Response, cancel_event: Optional[threading.Event]) -> Iterator[str]:
    """Yield the payload of each "data:" line; raises RequestCancelledError once cancelled."""
    for line in response.iter_lines():
        if cancel_event is not None and cancel_event.is_set():
            logger.debug("Stream cancelled by consumer")
            raise RequestCancelledError("Stream cancelled", details={"reason": "consumer"})
        if not line or not line.startswith("data:"):
            continue
        yield line[len("data:"):].strip()


# Anthropic

def _anthropic_request(service, prompt, stream: bool = False):
    provider_config = service.provider_config
    headers = {
        "x-api-key": service.api_key,
        "anthropic-version": provider_config.get('api_version', '2023-06-01'),
        "content-type": "application/json",
    }
    body = {
        "model": service.model,
        "max_tokens": provider_config.get('max_tokens', 1500),
        "system": prompt.system,
        "messages": [
            {"role": "user", "content": prompt.user},
        ],
    }
    if prompt.tool and not stream:
        body["tools"] = [prompt.tool]
        body["tool_choice"] = {"type": "tool", "name": prompt.tool["name"]}
    if stream:
        body["stream"] = True
    return provider_config.get('api_url', 'https://api.anthropic.com/v1/messages'), headers, body


def call_anthropic_api(service, prompt) -> ProviderResponse:
    """Call the Anthropic Messages API, forcing the tool when the prompt carries one."""
    api_url, headers, body = _anthropic_request(service, prompt)

    logger.debug(f"Calling Anthropic API (model: {service.model}, tool: {bool(prompt.tool)})")

    try:
        with service.http_client() as client:
            response = client.post(api_url, headers=headers, json=body)
            response.raise_for_status()
            result = response.json()

        usage = result.get('usage') or {}
        service.record_usage(usage.get('input_tokens', 0), usage.get('output_tokens', 0))

        text_parts = []
        tool_input = None
        for block in result.get('content') or []:
            if block.get('type') == 'text':
                text_parts.append(block.get('text', ''))
            elif block.get('type') == 'tool_use' and tool_input is None:
                tool_input = block.get('input') or {}

        if not text_parts and tool_input is None:
            raise UpstreamError("No content in Anthropic response", details={"provider": "anthropic"})

        text = "".join(text_parts)
        logger.debug(f"Received {len(text)} chars from Anthropic (tool input: {tool_input is not None})")
        return ProviderResponse(text=text, tool_input=tool_input)

    except httpx.HTTPStatusError as e:
        handle_http_error(e, "Anthropic")
    except httpx.TimeoutException:
        raise ProviderTimeoutError("Anthropic API request timeout", details={"provider": "anthropic"})
    except TranslationError:
        raise
    except (httpx.RequestError, ValueError, KeyError, TypeError, AttributeError) as e:
        # Includes reply bodies whose shape does not match the API
        raise UpstreamError(f"Anthropic API call failed: {e}", details={"provider": "anthropic"})


def stream_anthropic_api(service, prompt, cancel_event: Optional[threading.Event] = None) -> Iterator[str]:
    """Stream text deltas from the Anthropic Messages API."""
    api_url, headers, body = _anthropic_request(service, prompt, stream=True)

    logger.debug(f"Streaming from Anthropic API (model: {service.model})")

    try:
        with service.http_client() as client:
            with client.stream("POST", api_url, headers=headers, json=body) as response:
                _read_stream_error(response)
                for data in _iter_sse_data(response, cancel_event):
                    event = json.loads(data)
                    event_type = event.get('type')
                    if event_type == 'content_block_delta':
                        delta = event.get('delta', {})
                        if delta.get('type') == 'text_delta' and delta.get('text'):
                            yield delta['text']
                    elif event_type == 'error':
                        message = event.get('error', {}).get('message', 'stream error')
                        raise UpstreamError(f"Anthropic stream error: {message}", details={"provider": "anthropic"})
                    elif event_type == 'message_stop':
                        return

    except httpx.HTTPStatusError as e:
        handle_http_error(e, "Anthropic")
    except httpx.TimeoutException:
        raise ProviderTimeoutError("Anthropic API stream timeout", details={"provider": "anthropic"})
    except TranslationError:
        raise
    except (httpx.RequestError, ValueError, KeyError, TypeError, AttributeError) as e:
        # Includes reply bodies whose shape does not match the API
        raise UpstreamError(f"Anthropic API stream failed: {e}", details={"provider": "anthropic"})


# OpenAI-compatible

def _openai_request(service, prompt, stream: bool = False):
    provider_config = service.provider_config
    headers = {
        "Authorization": f"Bearer {service.api_key}",
        "Content-Type": "application/json"
    }
    body = {
        "model": service.model,
        "max_tokens": provider_config.get('max_tokens', 1500),
        "messages": [
            {"role": "system", "content": prompt.system},
            {"role": "user", "content": prompt.user},
        ],
    }
    if prompt.tool and not stream:
        body["tools"] = [{
            "type": "function",
            "function": {
                "name": prompt.tool["name"],
                "description": prompt.tool.get("description", ""),
                "parameters": prompt.tool["input_schema"],
            },
        }]
        body["tool_choice"] = {"type": "function", "function": {"name": prompt.tool["name"]}}
    if stream:
        body["stream"] = True
    return provider_config.get('api_url', 'https://api.openai.com/v1/chat/completions'), headers, body


def call_openai_api(service, prompt) -> ProviderResponse:
    """Call an OpenAI-compatible chat completions endpoint."""
    api_url, headers, body = _openai_request(service, prompt)
    provider = service.display_name

    logger.debug(f"Calling {provider} API (model: {service.model}, tool: {bool(prompt.tool)})")

    try:
        with service.http_client() as client:
            response = client.post(api_url, headers=headers, json=body)
            response.raise_for_status()
            result = response.json()

        usage = result.get('usage') or {}
        service.record_usage(usage.get('prompt_tokens', 0), usage.get('completion_tokens', 0))

        if not result.get('choices'):
            raise UpstreamError(f"No content in {provider} response", details={"provider": service.provider})

        message = result['choices'][0].get('message') or {}
        text = message.get('content') or ''
        tool_input = None
        for call in message.get('tool_calls') or []:
            arguments = (call.get('function') or {}).get('arguments')
            if not arguments:
                continue
            try:
                parsed = json.loads(arguments) if isinstance(arguments, str) else arguments
            except json.JSONDecodeError:
                # Leave it to the normalizer's text strategies
                logger.warning(f"{provider} returned malformed tool arguments")
                text = text or arguments
                continue
            if isinstance(parsed, dict):
                tool_input = parsed
                break

        logger.debug(f"Received {len(text)} chars from {provider} (tool input: {tool_input is not None})")
        return ProviderResponse(text=text, tool_input=tool_input)

    except httpx.HTTPStatusError as e:
        handle_http_error(e, provider)
    except httpx.TimeoutException:
        raise ProviderTimeoutError(f"{provider} API request timeout", details={"provider": service.provider})
    except TranslationError:
        raise
    except (httpx.RequestError, ValueError, KeyError, TypeError, AttributeError) as e:
        # Includes reply bodies whose shape does not match the API
        raise UpstreamError(f"{provider} API call failed: {e}", details={"provider": service.provider})


def stream_openai_api(service, prompt, cancel_event: Optional[threading.Event] = None) -> Iterator[str]:
    """Stream text deltas from an OpenAI-compatible endpoint."""
    api_url, headers, body = _openai_request(service, prompt, stream=True)
    provider = service.display_name

    logger.debug(f"Streaming from {provider} API (model: {service.model})")

    try:
        with service.http_client() as client:
            with client.stream("POST", api_url, headers=headers, json=body) as response:
                _read_stream_error(response)
                for data in _iter_sse_data(response, cancel_event):
                    if data == "[DONE]":
                        return
                    event = json.loads(data)
                    for choice in event.get('choices') or []:
                        content = (choice.get('delta') or {}).get('content')
                        if content:
                            yield content

    except httpx.HTTPStatusError as e:
        handle_http_error(e, provider)
    except httpx.TimeoutException:
        raise ProviderTimeoutError(f"{provider} API stream timeout", details={"provider": service.provider})
    except TranslationError:
        raise
    except (httpx.RequestError, ValueError, KeyError, TypeError, AttributeError) as e:
        # Includes reply bodies whose shape does not match the API
        raise UpstreamError(f"{provider} API stream failed: {e}", details={"provider": service.provider})
