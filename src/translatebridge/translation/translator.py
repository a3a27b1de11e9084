"""
Translation Invoker

Builds the translation prompt, calls the language model (with the
submit_translation tool contract unless the provider is configured for
plain text) and normalizes the answer into a TranslationResult.

Two streaming forms share one core:
- iter_translation_events(): a generator of start/chunk/complete events,
  used by the SSE endpoint
- stream_translation(): callback style with a cancellable StreamHandle
"""

import threading
from typing import Any, Callable, Dict, Iterator, Optional

from translatebridge.ai.exceptions import RequestCancelledError, TranslationError
from translatebridge.ai.service import AIService, validate_ai_config
from translatebridge.logger import get_logger
from translatebridge.translation.models import TranslationRequest, TranslationResult
from translatebridge.translation.normalizer import ResponseKind, normalize
from translatebridge.translation.prompts import build_translation_prompt

logger = get_logger(__name__)

Runner = Callable[[Callable[[], None]], None]


def get_service(credentials=None, service: Optional[AIService] = None) -> AIService:
    """Return the given service or build one for these request credentials."""
    if service is not None:
        return service
    validate_ai_config(credentials=credentials)
    return AIService(credentials=credentials)


def result_from_fields(fields: Dict[str, str]) -> TranslationResult:
    return TranslationResult(
        translation=fields["translation"],
        cultural_notes=fields.get("culturalNotes", ""),
        intent=fields.get("intent", ""),
        cultural_considerations=fields.get("culturalConsiderations", ""),
        strategy=fields.get("strategy", ""),
    )


def translate(request: TranslationRequest, service: Optional[AIService] = None) -> TranslationResult:
    """
    Translate a message.

    Args:
        request: Validated translation request
        service: Optional AIService (built from config and request credentials if omitted)

    Returns:
        TranslationResult with a non-empty translation

    Raises:
        RequestValidationError: Missing configuration or bad prompt template
        UpstreamError: Provider failure (ProviderTimeoutError on timeout)
        ResponseParseError: No translation could be extracted
    """
    service = get_service(request.credentials, service)
    prompt = build_translation_prompt(request, structured=service.use_tools)
    logger.debug(f"Translation system prompt:\n{prompt.system}")

    response = service.complete(prompt)
    fields = normalize(response.text, ResponseKind.TRANSLATION, structured=response.tool_input)
    result = result_from_fields(fields)

    logger.info(
        f"Translated {len(request.source_text)} chars to {request.target_language} "
        f"({len(result.translation)} chars, tokens: {service.get_last_token_usage()})"
    )
    return result


def iter_translation_events(
    request: TranslationRequest,
    service: Optional[AIService] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[Dict[str, Any]]:
    """
    Stream a translation as events.

    Yields {"type": "start"}, then {"type": "chunk", "text": ...} for each
    delta, then {"type": "complete", "fullText": ..., "data": {...}} once the
    stream ends and the text normalizes. Provider and parse failures are
    raised, not yielded; callers decide how to report them. Nothing further
    is yielded once cancel_event is set.
    """
    service = get_service(request.credentials, service)
    # Streamed output is free text, so ask for the labeled-block format
    prompt = build_translation_prompt(request, structured=False)

    yield {"type": "start"}

    chunks = []
    for chunk in service.stream(prompt, cancel_event):
        if cancel_event is not None and cancel_event.is_set():
            return
        chunks.append(chunk)
        yield {"type": "chunk", "text": chunk}

    if cancel_event is not None and cancel_event.is_set():
        return

    full_text = "".join(chunks)
    result = result_from_fields(normalize(full_text, ResponseKind.TRANSLATION))
    logger.info(f"Streamed translation to {request.target_language} complete ({len(full_text)} chars)")
    yield {"type": "complete", "fullText": full_text, "data": result.to_dict(), "result": result}


class StreamHandle:
    """Cancellation handle for a callback-style translation stream."""

    def __init__(self):
        self._cancel_event = threading.Event()
        self._done = threading.Event()
        # Re-entrant so a callback may cancel its own stream
        self._delivery_lock = threading.RLock()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self):
        """Abort the stream. No callback fires after this returns."""
        with self._delivery_lock:
            self._cancel_event.set()
        logger.debug("Translation stream cancelled")

    def deliver(self, callback: Optional[Callable], *args) -> bool:
        """Invoke a callback unless the stream was cancelled."""
        if callback is None:
            return not self.cancelled
        with self._delivery_lock:
            if self._cancel_event.is_set():
                return False
            callback(*args)
            return True

    def finish(self):
        self._done.set()


def _thread_runner(task: Callable[[], None]):
    thread = threading.Thread(target=task, name="translation-stream", daemon=True)
    thread.start()


def stream_translation(
    request: TranslationRequest,
    on_chunk: Callable[[str], None],
    on_complete: Callable[[str, TranslationResult], None],
    on_error: Optional[Callable[[TranslationError], None]] = None,
    service: Optional[AIService] = None,
    runner: Optional[Runner] = None,
) -> StreamHandle:
    """
    Start a streaming translation and return its cancel handle.

    on_chunk receives each text delta, on_complete the full text and the
    committed TranslationResult, on_error any classified failure. After
    handle.cancel() none of them fire again.
    """
    handle = StreamHandle()
    runner = runner or _thread_runner

    def work():
        try:
            for event in iter_translation_events(request, service, handle.cancel_event):
                if event["type"] == "chunk":
                    if not handle.deliver(on_chunk, event["text"]):
                        return
                elif event["type"] == "complete":
                    handle.deliver(on_complete, event["fullText"], event["result"])
        except TranslationError as e:
            if isinstance(e, RequestCancelledError) or handle.cancelled:
                return
            logger.warning(f"Translation stream failed: {e}")
            handle.deliver(on_error, e)
        except Exception as e:
            logger.exception(f"Translation stream failed unexpectedly: {e}")
            handle.deliver(on_error, TranslationError(f"Unexpected error: {e}", code="internal_error"))
        finally:
            handle.finish()

    runner(work)
    return handle
