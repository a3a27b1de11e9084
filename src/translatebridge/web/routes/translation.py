"""Translation, safety check, refinement and audio API routes."""

from __future__ import annotations

import json
import threading
from typing import Any, Dict, Optional

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from translatebridge.ai.exceptions import (
    ProviderTimeoutError,
    RequestCancelledError,
    RequestValidationError,
    ResponseParseError,
    TranslationError,
    UpstreamError,
)
from translatebridge.ai.service import AIService, validate_ai_config
from translatebridge.audio.elevenlabs import ElevenLabsClient
from translatebridge.logger import get_logger
from translatebridge.translation.models import Credentials, RefinementRequest, TranslationRequest
from translatebridge.translation.refiner import refine
from translatebridge.translation.translator import iter_translation_events, translate
from translatebridge.translation.verifier import verify

translation_bp = Blueprint("translation", __name__)
logger = get_logger(__name__)


def status_for(error: TranslationError) -> int:
    """HTTP status for a classified failure."""
    if isinstance(error, RequestValidationError):
        return 400
    if isinstance(error, ProviderTimeoutError):
        return 504
    if isinstance(error, (UpstreamError, ResponseParseError)):
        return 502
    return 500


def error_response(error: TranslationError):
    body = {"success": False, "error": str(error), "code": error.code}
    if error.details:
        body["details"] = error.details
    return jsonify(body), status_for(error)


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _credentials(data: Dict[str, Any]) -> Optional[Credentials]:
    return Credentials.from_payload(data.get("credentials") or data.get("customKeys"))


def _ai_service(credentials: Optional[Credentials]) -> AIService:
    """Validate configuration and build a service for this request only."""
    validate_ai_config(credentials=credentials)
    return AIService(credentials=credentials, transport=current_app.config.get("HTTP_TRANSPORT"))


def _sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@translation_bp.post("/translate")
def translate_message():
    """Translate a message with cultural adaptation."""
    data = _payload()
    try:
        translation_request = TranslationRequest.from_payload(data)
        service = _ai_service(translation_request.credentials)
        result = translate(translation_request, service=service)
    except TranslationError as e:
        logger.warning(f"Translation request failed: {e}")
        return error_response(e)
    return jsonify({"success": True, "data": result.to_dict()})


@translation_bp.post("/translate-stream")
def translate_stream():
    """
    Stream a translation as Server-Sent Events.

    Validation and configuration errors are returned as a plain JSON error
    before the stream opens. Once it is open, failures arrive as a terminal
    {"type": "error"} event. Closing the connection cancels the upstream call.
    """
    data = _payload()
    try:
        translation_request = TranslationRequest.from_payload(data)
        service = _ai_service(translation_request.credentials)
    except TranslationError as e:
        logger.warning(f"Streaming translation request rejected: {e}")
        return error_response(e)

    cancel_event = threading.Event()

    def generate():
        try:
            for event in iter_translation_events(translation_request, service, cancel_event):
                # The dataclass result is for in-process consumers only
                yield _sse({key: value for key, value in event.items() if key != "result"})
        except RequestCancelledError:
            logger.debug("Streaming translation cancelled")
        except TranslationError as e:
            logger.warning(f"Streaming translation failed: {e}")
            yield _sse({"type": "error", "error": str(e), "code": e.code})
        except Exception as e:
            logger.exception(f"Streaming translation failed unexpectedly: {e}")
            yield _sse({"type": "error", "error": f"Unexpected error: {e}", "code": "internal_error"})
        finally:
            # Also reached through GeneratorExit when the client disconnects
            cancel_event.set()

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@translation_bp.post("/back-translate")
def back_translate():
    """
    Blind safety check of a translation.

    sourceText is only echoed back for side-by-side display; it is never
    passed to the verifier.
    """
    data = _payload()
    source_text = data.get("sourceText") or data.get("originalMessage") or ""
    credentials = _credentials(data)
    try:
        translated_text = data.get("translatedText") or ""
        target_language = data.get("targetLanguage") or ""
        if not str(translated_text).strip():
            raise RequestValidationError("translatedText is required", details={"field": "translatedText"})
        if not str(target_language).strip():
            raise RequestValidationError("targetLanguage is required", details={"field": "targetLanguage"})
        service = _ai_service(credentials)
        result = verify(str(translated_text), str(target_language), credentials=credentials, service=service)
    except TranslationError as e:
        logger.warning(f"Safety check request failed: {e}")
        return error_response(e)

    response_data = result.to_dict()
    response_data["sourceText"] = source_text
    return jsonify({"success": True, "data": response_data})


@translation_bp.post("/refine-translation")
def refine_translation():
    """Revise a translation from user feedback."""
    data = _payload()
    try:
        refinement_request = RefinementRequest.from_payload(data)
        service = _ai_service(refinement_request.credentials)
        result = refine(refinement_request, service=service)
    except TranslationError as e:
        logger.warning(f"Refinement request failed: {e}")
        return error_response(e)
    return jsonify({"success": True, "data": result.to_dict()})


@translation_bp.post("/generate-audio")
def generate_audio():
    """Synthesize speech for approved text."""
    data = _payload()
    try:
        client = ElevenLabsClient(
            credentials=_credentials(data),
            transport=current_app.config.get("HTTP_TRANSPORT"),
        )
        result = client.generate_audio(str(data.get("text") or ""), str(data.get("language") or ""))
    except TranslationError as e:
        logger.warning(f"Audio request failed: {e}")
        return error_response(e)
    return jsonify({"success": True, "data": result.to_dict()})
