"""
Workflow Controller

Drives a WorkflowSession through the translate -> verify -> refine -> voice
lifecycle. User actions are methods; provider calls run on a pluggable
runner (a daemon thread per call by default) and report back by
dispatching result actions through the reducer under the controller lock.

The controller sequences the automatic steps:
- a committed translation triggers the blind verification
- a manual edit or an accepted revision triggers re-verification
- a new translate request or start over cancels any live stream

Results issued for an older request or an older text version are
dropped by the reducer, so a slow call never overwrites newer state.
"""

import threading
from typing import Callable, List, Optional

from translatebridge.ai.exceptions import RequestValidationError, TranslationError
from translatebridge.ai.service import AIService
from translatebridge.audio.elevenlabs import ElevenLabsClient
from translatebridge.logger import get_logger
from translatebridge.translation.models import (
    Credentials,
    PresetContext,
    RefinementRequest,
    TranslationRequest,
    TranslationResult,
)
from translatebridge.translation.refiner import refine
from translatebridge.translation.translator import (
    Runner,
    StreamHandle,
    stream_translation,
    translate,
)
from translatebridge.translation.verifier import verify
from translatebridge.workflow.session import (
    AudioFailed,
    AudioRequested,
    AudioSucceeded,
    ErrorDismissed,
    RefinementAccepted,
    RefinementDiscarded,
    RefinementFailed,
    RefinementRequested,
    RefinementSucceeded,
    StartOver,
    TranslateRequested,
    TranslationEdited,
    TranslationFailed,
    TranslationSucceeded,
    VerificationFailed,
    VerificationStarted,
    VerificationSucceeded,
    WorkflowSession,
    WorkflowStatus,
    reduce,
)

logger = get_logger(__name__)

Listener = Callable[[WorkflowSession], None]


def _thread_runner(task: Callable[[], None]):
    thread = threading.Thread(target=task, name="workflow-call", daemon=True)
    thread.start()


class WorkflowController:
    """Owns one workflow session and the provider calls that advance it."""

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        runner: Optional[Runner] = None,
        service_factory: Optional[Callable[[Optional[Credentials]], AIService]] = None,
        audio_factory: Optional[Callable[[Optional[Credentials]], ElevenLabsClient]] = None,
        auto_verify: bool = True,
    ):
        self.credentials = credentials
        self.runner = runner or _thread_runner
        self.service_factory = service_factory
        self.audio_factory = audio_factory or (lambda creds: ElevenLabsClient(credentials=creds))
        self.auto_verify = auto_verify
        self._session = WorkflowSession()
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._stream: Optional[StreamHandle] = None

    @property
    def session(self) -> WorkflowSession:
        with self._lock:
            return self._session

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new session; returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action) -> bool:
        """
        Apply an action to the session.

        Returns:
            True if the session changed, False if the action was dropped
        """
        with self._lock:
            previous = self._session
            current = reduce(previous, action)
            if current is previous:
                return False
            self._session = current
            if previous.status != current.status:
                logger.debug(f"Workflow {previous.status.value} -> {current.status.value}")
            for listener in list(self._listeners):
                listener(current)
            return True

    def _service(self) -> Optional[AIService]:
        if self.service_factory is None:
            return None
        return self.service_factory(self.credentials)

    def _detach_stream(self) -> Optional[StreamHandle]:
        with self._lock:
            handle, self._stream = self._stream, None
        return handle

    def _cancel_stream(self):
        # Called without the controller lock: a stream callback may be waiting on it
        handle = self._detach_stream()
        if handle is not None:
            handle.cancel()

    def _begin_translation(
        self,
        source_text: str,
        target_language: str,
        prompt_override: Optional[str],
        preset_context: Optional[PresetContext],
    ):
        request = TranslationRequest(
            source_text=source_text,
            target_language=target_language,
            prompt_override=prompt_override,
            preset_context=preset_context,
            credentials=self.credentials,
        )
        self._cancel_stream()
        with self._lock:
            self.dispatch(TranslateRequested(request.source_text, request.target_language))
            return self._session.request_id, request

    def _commit_translation(self, request_id: int, result: TranslationResult):
        with self._lock:
            committed = self.dispatch(TranslationSucceeded(request_id, result))
        if committed and self.auto_verify:
            self.verify_translation()

    # Translation

    def submit(
        self,
        source_text: str,
        target_language: str,
        prompt_override: Optional[str] = None,
        preset_context: Optional[PresetContext] = None,
    ) -> int:
        """
        Start a translation, replacing whatever the session held.

        Returns:
            The request id the result will be matched against

        Raises:
            RequestValidationError: Empty source text or target language
        """
        request_id, request = self._begin_translation(source_text, target_language, prompt_override, preset_context)

        def work():
            try:
                result = translate(request, service=self._service())
            except TranslationError as e:
                logger.warning(f"Translation failed: {e}")
                self.dispatch(TranslationFailed(request_id, str(e)))
                return
            except Exception as e:
                logger.exception(f"Translation failed unexpectedly: {e}")
                self.dispatch(TranslationFailed(request_id, f"Unexpected error: {e}"))
                return
            self._commit_translation(request_id, result)

        self.runner(work)
        return request_id

    def stream_translation(
        self,
        source_text: str,
        target_language: str,
        on_chunk: Optional[Callable[[str], None]] = None,
        prompt_override: Optional[str] = None,
        preset_context: Optional[PresetContext] = None,
    ) -> StreamHandle:
        """
        Start a streaming translation.

        on_chunk receives each text delta while the session is Translating.
        The complete text is normalized and committed like submit(). The
        returned handle cancels the stream; a later request or start over
        cancels it too.
        """
        service = self._service()
        request_id, request = self._begin_translation(source_text, target_language, prompt_override, preset_context)

        def handle_error(error: TranslationError):
            self.dispatch(TranslationFailed(request_id, str(error)))

        handle = stream_translation(
            request,
            on_chunk=on_chunk or (lambda text: None),
            on_complete=lambda full_text, result: self._commit_translation(request_id, result),
            on_error=handle_error,
            service=service,
            runner=self.runner,
        )
        with self._lock:
            superseded = self._session.request_id != request_id
            if not superseded:
                self._stream = handle
        if superseded:
            handle.cancel()
        return handle

    def cancel_stream(self):
        self._cancel_stream()

    # Verification

    def verify_translation(self) -> bool:
        """
        Run the blind safety check on the current translation.

        Used automatically after a commit, and to retry a failed check.
        Returns False when there is nothing to verify or a call is in flight.
        """
        with self._lock:
            session = self._session
            started = self.dispatch(VerificationStarted(session.request_id, session.text_version))
            if not started:
                return False
            request_id = session.request_id
            text_version = session.text_version
            text = session.translation.translation
            language = session.target_language

        def work():
            try:
                result = verify(text, language, credentials=self.credentials, service=self._service())
            except TranslationError as e:
                logger.warning(f"Safety check failed: {e}")
                self.dispatch(VerificationFailed(request_id, text_version, str(e)))
                return
            except Exception as e:
                logger.exception(f"Safety check failed unexpectedly: {e}")
                self.dispatch(VerificationFailed(request_id, text_version, f"Unexpected error: {e}"))
                return
            self.dispatch(VerificationSucceeded(request_id, text_version, result))

        self.runner(work)
        return True

    def edit_translation(self, text: str) -> bool:
        """Replace the translation with manually edited text and re-verify it."""
        if not text or not text.strip():
            raise RequestValidationError("translation text is required", details={"field": "translation"})
        with self._lock:
            edited = self.dispatch(TranslationEdited(text))
        if edited and self.auto_verify:
            self.verify_translation()
        return edited

    # Refinement

    def request_refinement(self, feedback: str) -> bool:
        """
        Ask for a revised translation based on free-text feedback.

        Raises:
            RequestValidationError: Empty feedback
        """
        if not feedback or not feedback.strip():
            raise RequestValidationError("userFeedback is required", details={"field": "userFeedback"})
        with self._lock:
            if not self.dispatch(RefinementRequested(feedback)):
                return False
            session = self._session
            op_seq = session.op_seq
            request = RefinementRequest(
                source_text=session.source_text,
                current_translation=session.translation.translation,
                target_language=session.target_language,
                user_feedback=feedback,
                prior_analysis_context=session.translation.analysis_summary(),
                credentials=self.credentials,
            )

        def work():
            try:
                result = refine(request, service=self._service())
            except TranslationError as e:
                logger.warning(f"Refinement failed: {e}")
                self.dispatch(RefinementFailed(op_seq, str(e)))
                return
            except Exception as e:
                logger.exception(f"Refinement failed unexpectedly: {e}")
                self.dispatch(RefinementFailed(op_seq, f"Unexpected error: {e}"))
                return
            self.dispatch(RefinementSucceeded(op_seq, result))

        self.runner(work)
        return True

    def accept_refinement(self) -> bool:
        """Adopt the revised translation; the safety check runs again on it."""
        with self._lock:
            accepted = self.dispatch(RefinementAccepted())
        if accepted and self.auto_verify:
            self.verify_translation()
        return accepted

    def discard_refinement(self) -> bool:
        return self.dispatch(RefinementDiscarded())

    # Audio

    def approve_audio(self) -> bool:
        """Generate speech for the current translation."""
        with self._lock:
            if not self.dispatch(AudioRequested()):
                return False
            session = self._session
            op_seq = session.op_seq
            text = session.translation.translation
            language = session.target_language

        def work():
            try:
                result = self.audio_factory(self.credentials).generate_audio(text, language)
            except TranslationError as e:
                logger.warning(f"Audio generation failed: {e}")
                self.dispatch(AudioFailed(op_seq, str(e)))
                return
            except Exception as e:
                logger.exception(f"Audio generation failed unexpectedly: {e}")
                self.dispatch(AudioFailed(op_seq, f"Unexpected error: {e}"))
                return
            self.dispatch(AudioSucceeded(op_seq, result))

        self.runner(work)
        return True

    # Session

    def dismiss_error(self) -> bool:
        return self.dispatch(ErrorDismissed())

    def start_over(self):
        """Cancel any live stream and return to an empty session."""
        self._cancel_stream()
        self.dispatch(StartOver())

    @property
    def status(self) -> WorkflowStatus:
        return self.session.status
