"""
Workflow Session State Machine

A WorkflowSession is an immutable snapshot of one translate/verify/refine/
voice workflow. reduce(session, action) is the only way to move it forward:
each user event or provider result is a small action dataclass, and the
reducer returns a new session (or the same object when the action does
not apply, e.g. a stale provider result).

Staleness is tracked with three counters:
- request_id: bumped by every translate request and by start over
- text_version: bumped whenever the translation text changes
- op_seq: bumped whenever a refinement or audio call is issued

Provider results carry the counters they were issued with and are
dropped when those no longer match the live session.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional, Type

from translatebridge.logger import get_logger
from translatebridge.translation.models import (
    AudioResult,
    RefinementResult,
    TranslationResult,
    VerificationResult,
)

logger = get_logger(__name__)


class WorkflowStatus(Enum):
    IDLE = "idle"
    TRANSLATING = "translating"
    TRANSLATION_READY = "translation_ready"
    VERIFYING = "verifying"
    VERIFICATION_READY = "verification_ready"
    REFINEMENT_PENDING = "refinement_pending"
    REFINEMENT_READY = "refinement_ready"
    GENERATING_AUDIO = "generating_audio"
    AUDIO_READY = "audio_ready"
    FAILED = "failed"


class FailureKind(Enum):
    TRANSLATION = "translation"
    VERIFICATION = "verification"
    REFINEMENT = "refinement"
    AUDIO = "audio"


BUSY_STATUSES = frozenset({
    WorkflowStatus.TRANSLATING,
    WorkflowStatus.VERIFYING,
    WorkflowStatus.REFINEMENT_PENDING,
    WorkflowStatus.GENERATING_AUDIO,
})


@dataclass(frozen=True)
class WorkflowSession:
    status: WorkflowStatus = WorkflowStatus.IDLE
    source_text: str = ""
    target_language: str = ""
    translation: Optional[TranslationResult] = None
    verification: Optional[VerificationResult] = None
    refinement: Optional[RefinementResult] = None
    audio: Optional[AudioResult] = None
    error: Optional[str] = None
    failure: Optional[FailureKind] = None
    request_id: int = 0
    text_version: int = 0
    op_seq: int = 0
    # Status to come back to when a refinement is discarded or audio fails
    resume_status: Optional[WorkflowStatus] = None

    @property
    def busy(self) -> bool:
        return self.status in BUSY_STATUSES

    def ready_status(self) -> WorkflowStatus:
        """The resting status implied by the results currently held."""
        if self.verification is not None:
            return WorkflowStatus.VERIFICATION_READY
        if self.translation is not None:
            return WorkflowStatus.TRANSLATION_READY
        return WorkflowStatus.IDLE

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "sourceText": self.source_text,
            "targetLanguage": self.target_language,
            "translation": self.translation.to_dict() if self.translation else None,
            "verification": self.verification.to_dict() if self.verification else None,
            "refinement": self.refinement.to_dict() if self.refinement else None,
            "audio": self.audio.to_dict() if self.audio else None,
            "error": self.error,
            "failure": self.failure.value if self.failure else None,
        }


# Actions

@dataclass(frozen=True)
class TranslateRequested:
    source_text: str
    target_language: str


@dataclass(frozen=True)
class TranslationSucceeded:
    request_id: int
    result: TranslationResult


@dataclass(frozen=True)
class TranslationFailed:
    request_id: int
    error: str


@dataclass(frozen=True)
class VerificationStarted:
    request_id: int
    text_version: int


@dataclass(frozen=True)
class VerificationSucceeded:
    request_id: int
    text_version: int
    result: VerificationResult


@dataclass(frozen=True)
class VerificationFailed:
    request_id: int
    text_version: int
    error: str


@dataclass(frozen=True)
class TranslationEdited:
    text: str


@dataclass(frozen=True)
class RefinementRequested:
    feedback: str


@dataclass(frozen=True)
class RefinementSucceeded:
    op_seq: int
    result: RefinementResult


@dataclass(frozen=True)
class RefinementFailed:
    op_seq: int
    error: str


@dataclass(frozen=True)
class RefinementAccepted:
    pass


@dataclass(frozen=True)
class RefinementDiscarded:
    pass


@dataclass(frozen=True)
class AudioRequested:
    pass


@dataclass(frozen=True)
class AudioSucceeded:
    op_seq: int
    result: AudioResult


@dataclass(frozen=True)
class AudioFailed:
    op_seq: int
    error: str


@dataclass(frozen=True)
class ErrorDismissed:
    pass


@dataclass(frozen=True)
class StartOver:
    pass


# Handlers

def _ignore(session: WorkflowSession, action, reason: str) -> WorkflowSession:
    logger.debug(f"Ignoring {type(action).__name__} in {session.status.value}: {reason}")
    return session


def _on_translate_requested(session: WorkflowSession, action: TranslateRequested) -> WorkflowSession:
    if not action.source_text.strip() or not action.target_language.strip():
        return _ignore(session, action, "empty source text or target language")
    # A new request resets the session; counters keep growing so late results are stale
    return WorkflowSession(
        status=WorkflowStatus.TRANSLATING,
        source_text=action.source_text,
        target_language=action.target_language,
        request_id=session.request_id + 1,
        text_version=session.text_version + 1,
        op_seq=session.op_seq + 1,
    )


def _on_translation_succeeded(session: WorkflowSession, action: TranslationSucceeded) -> WorkflowSession:
    if action.request_id != session.request_id or session.status != WorkflowStatus.TRANSLATING:
        return _ignore(session, action, "stale translation result")
    return replace(
        session,
        status=WorkflowStatus.TRANSLATION_READY,
        translation=action.result,
        text_version=session.text_version + 1,
        error=None,
        failure=None,
    )


def _on_translation_failed(session: WorkflowSession, action: TranslationFailed) -> WorkflowSession:
    if action.request_id != session.request_id or session.status != WorkflowStatus.TRANSLATING:
        return _ignore(session, action, "stale translation failure")
    return replace(
        session,
        status=WorkflowStatus.FAILED,
        failure=FailureKind.TRANSLATION,
        error=action.error,
    )


def _on_verification_started(session: WorkflowSession, action: VerificationStarted) -> WorkflowSession:
    if action.request_id != session.request_id or action.text_version != session.text_version:
        return _ignore(session, action, "translation changed")
    if session.translation is None or session.busy:
        return _ignore(session, action, "nothing to verify or another call in flight")
    return replace(
        session,
        status=WorkflowStatus.VERIFYING,
        verification=None,
        error=None,
        failure=None,
    )


def _verification_is_current(session: WorkflowSession, action) -> bool:
    return (
        action.request_id == session.request_id
        and action.text_version == session.text_version
        and session.status == WorkflowStatus.VERIFYING
    )


def _on_verification_succeeded(session: WorkflowSession, action: VerificationSucceeded) -> WorkflowSession:
    if not _verification_is_current(session, action):
        return _ignore(session, action, "verification of outdated text")
    return replace(session, status=WorkflowStatus.VERIFICATION_READY, verification=action.result)


def _on_verification_failed(session: WorkflowSession, action: VerificationFailed) -> WorkflowSession:
    if not _verification_is_current(session, action):
        return _ignore(session, action, "verification of outdated text")
    # The translation stays; only the safety check failed
    return replace(
        session,
        status=WorkflowStatus.FAILED,
        failure=FailureKind.VERIFICATION,
        error=action.error,
    )


def _on_translation_edited(session: WorkflowSession, action: TranslationEdited) -> WorkflowSession:
    if session.translation is None or not action.text.strip():
        return _ignore(session, action, "no translation to edit or empty text")
    if session.status in (WorkflowStatus.TRANSLATING, WorkflowStatus.REFINEMENT_PENDING, WorkflowStatus.GENERATING_AUDIO):
        return _ignore(session, action, "another call in flight")
    # An in-flight verification becomes stale through the version bump
    return replace(
        session,
        status=WorkflowStatus.TRANSLATION_READY,
        translation=session.translation.with_translation(action.text.strip()),
        verification=None,
        refinement=None,
        audio=None,
        text_version=session.text_version + 1,
        error=None,
        failure=None,
    )


def _on_refinement_requested(session: WorkflowSession, action: RefinementRequested) -> WorkflowSession:
    if session.translation is None or session.busy or not action.feedback.strip():
        return _ignore(session, action, "no translation, call in flight or empty feedback")
    if session.status == WorkflowStatus.REFINEMENT_READY:
        return _ignore(session, action, "accept or discard the pending revision first")
    return replace(
        session,
        status=WorkflowStatus.REFINEMENT_PENDING,
        refinement=None,
        op_seq=session.op_seq + 1,
        resume_status=session.ready_status(),
        error=None,
        failure=None,
    )


def _on_refinement_succeeded(session: WorkflowSession, action: RefinementSucceeded) -> WorkflowSession:
    if action.op_seq != session.op_seq or session.status != WorkflowStatus.REFINEMENT_PENDING:
        return _ignore(session, action, "stale refinement result")
    return replace(session, status=WorkflowStatus.REFINEMENT_READY, refinement=action.result)


def _on_refinement_failed(session: WorkflowSession, action: RefinementFailed) -> WorkflowSession:
    if action.op_seq != session.op_seq or session.status != WorkflowStatus.REFINEMENT_PENDING:
        return _ignore(session, action, "stale refinement failure")
    return replace(
        session,
        status=WorkflowStatus.FAILED,
        failure=FailureKind.REFINEMENT,
        error=action.error,
        resume_status=None,
    )


def _on_refinement_accepted(session: WorkflowSession, action: RefinementAccepted) -> WorkflowSession:
    if session.status != WorkflowStatus.REFINEMENT_READY or session.refinement is None:
        return _ignore(session, action, "no revision to accept")
    return replace(
        session,
        status=WorkflowStatus.TRANSLATION_READY,
        translation=session.translation.with_translation(session.refinement.revised_translation),
        verification=None,
        refinement=None,
        audio=None,
        text_version=session.text_version + 1,
        resume_status=None,
    )


def _on_refinement_discarded(session: WorkflowSession, action: RefinementDiscarded) -> WorkflowSession:
    if session.status != WorkflowStatus.REFINEMENT_READY:
        return _ignore(session, action, "no revision to discard")
    return replace(
        session,
        status=session.resume_status or session.ready_status(),
        refinement=None,
        resume_status=None,
    )


def _on_audio_requested(session: WorkflowSession, action: AudioRequested) -> WorkflowSession:
    if session.translation is None or session.busy:
        return _ignore(session, action, "no approved translation or call in flight")
    if session.status == WorkflowStatus.REFINEMENT_READY:
        return _ignore(session, action, "accept or discard the pending revision first")
    resume = session.status
    if resume in (WorkflowStatus.FAILED, WorkflowStatus.AUDIO_READY):
        resume = session.ready_status()
    return replace(
        session,
        status=WorkflowStatus.GENERATING_AUDIO,
        audio=None,
        op_seq=session.op_seq + 1,
        resume_status=resume,
        error=None,
        failure=None,
    )


def _on_audio_succeeded(session: WorkflowSession, action: AudioSucceeded) -> WorkflowSession:
    if action.op_seq != session.op_seq or session.status != WorkflowStatus.GENERATING_AUDIO:
        return _ignore(session, action, "stale audio result")
    return replace(session, status=WorkflowStatus.AUDIO_READY, audio=action.result, resume_status=None)


def _on_audio_failed(session: WorkflowSession, action: AudioFailed) -> WorkflowSession:
    if action.op_seq != session.op_seq or session.status != WorkflowStatus.GENERATING_AUDIO:
        return _ignore(session, action, "stale audio failure")
    # Back to the ready state with the error surfaced; results are kept
    return replace(
        session,
        status=session.resume_status or session.ready_status(),
        failure=FailureKind.AUDIO,
        error=action.error,
        resume_status=None,
    )


def _on_error_dismissed(session: WorkflowSession, action: ErrorDismissed) -> WorkflowSession:
    if session.error is None and session.status != WorkflowStatus.FAILED:
        return _ignore(session, action, "no error")
    status = session.ready_status() if session.status == WorkflowStatus.FAILED else session.status
    return replace(session, status=status, error=None, failure=None)


def _on_start_over(session: WorkflowSession, action: StartOver) -> WorkflowSession:
    return WorkflowSession(
        request_id=session.request_id + 1,
        text_version=session.text_version + 1,
        op_seq=session.op_seq + 1,
    )


HANDLERS: Dict[Type, Callable] = {
    TranslateRequested: _on_translate_requested,
    TranslationSucceeded: _on_translation_succeeded,
    TranslationFailed: _on_translation_failed,
    VerificationStarted: _on_verification_started,
    VerificationSucceeded: _on_verification_succeeded,
    VerificationFailed: _on_verification_failed,
    TranslationEdited: _on_translation_edited,
    RefinementRequested: _on_refinement_requested,
    RefinementSucceeded: _on_refinement_succeeded,
    RefinementFailed: _on_refinement_failed,
    RefinementAccepted: _on_refinement_accepted,
    RefinementDiscarded: _on_refinement_discarded,
    AudioRequested: _on_audio_requested,
    AudioSucceeded: _on_audio_succeeded,
    AudioFailed: _on_audio_failed,
    ErrorDismissed: _on_error_dismissed,
    StartOver: _on_start_over,
}


def reduce(session: WorkflowSession, action) -> WorkflowSession:
    """
    Apply one action to a session.

    Returns a new session, or the given session unchanged when the action
    is stale or not allowed in the current status.
    """
    handler = HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unknown workflow action: {type(action).__name__}")
    return handler(session, action)
