"""
Translation module - translate, verify and refine

This module provides:
- translate / stream_translation: the translation invoker
- verify: the blind back-translation safety check
- refine: feedback-driven revision
- normalize: the response normalizer cascade
"""

from translatebridge.translation.models import (
    Credentials,
    PresetContext,
    TranslationRequest,
    TranslationResult,
    VerificationResult,
    RefinementRequest,
    RefinementResult,
    AudioResult,
)
from translatebridge.translation.normalizer import ResponseKind, normalize
from translatebridge.translation.translator import (
    StreamHandle,
    iter_translation_events,
    stream_translation,
    translate,
)
from translatebridge.translation.verifier import verify
from translatebridge.translation.refiner import refine
