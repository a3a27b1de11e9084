"""
Translation Data Classes

Contains the request and result dataclasses exchanged between the web
layer, the invokers and the workflow state machine. All of them are frozen:
a result is replaced wholesale, never edited in place.

Wire format is camelCase JSON; from_payload()/to_dict() convert.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any

from translatebridge.ai.exceptions import RequestValidationError


def _clean(value: Any) -> str:
    """Coerce an optional payload value to a stripped string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return value.strip()


def _require(payload: Dict[str, Any], *names: str) -> str:
    """Return the first non-empty field among names or raise a validation error."""
    for name in names:
        value = _clean(payload.get(name))
        if value:
            return value
    raise RequestValidationError(
        f"{names[0]} is required",
        details={"field": names[0]},
    )


@dataclass(frozen=True)
class Credentials:
    """Per-request provider keys ("bring your own key"). Never persisted."""
    anthropic: Optional[str] = None
    openai: Optional[str] = None
    elevenlabs: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["Credentials"]:
        if not isinstance(payload, dict):
            return None
        creds = cls(
            anthropic=_clean(payload.get("anthropic")) or None,
            openai=_clean(payload.get("openai")) or None,
            elevenlabs=_clean(payload.get("elevenlabs")) or None,
        )
        if not (creds.anthropic or creds.openai or creds.elevenlabs):
            return None
        return creds

    def key_for(self, provider: str) -> Optional[str]:
        return getattr(self, provider, None)

    def __repr__(self) -> str:
        # Keys must never end up in logs
        present = [name for name in ("anthropic", "openai", "elevenlabs") if getattr(self, name)]
        return f"Credentials(present={present})"


@dataclass(frozen=True)
class PresetContext:
    """Recipient preset fields injected into the translation instruction."""
    tone: str = ""
    cultural_context: str = ""
    custom_instructions: str = ""
    greeting: str = ""
    recipient_name: str = ""

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["PresetContext"]:
        if not isinstance(payload, dict):
            return None
        return cls(
            tone=_clean(payload.get("tone")),
            cultural_context=_clean(payload.get("culturalContext")),
            custom_instructions=_clean(payload.get("customInstructions") or payload.get("customPrompt")),
            greeting=_clean(payload.get("greeting")),
            recipient_name=_clean(payload.get("recipientName") or payload.get("name")),
        )


@dataclass(frozen=True)
class TranslationRequest:
    source_text: str
    target_language: str
    prompt_override: Optional[str] = None
    preset_context: Optional[PresetContext] = None
    credentials: Optional[Credentials] = field(default=None, repr=False)

    def __post_init__(self):
        if not self.source_text or not self.source_text.strip():
            raise RequestValidationError("sourceText is required", details={"field": "sourceText"})
        if not self.target_language or not self.target_language.strip():
            raise RequestValidationError("targetLanguage is required", details={"field": "targetLanguage"})

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TranslationRequest":
        """Build a request from a JSON body. Accepts the legacy field names too."""
        return cls(
            source_text=_require(payload, "sourceText", "message"),
            target_language=_require(payload, "targetLanguage"),
            prompt_override=_clean(payload.get("promptOverride") or payload.get("systemPrompt")) or None,
            preset_context=PresetContext.from_payload(payload.get("presetContext")),
            credentials=Credentials.from_payload(payload.get("credentials") or payload.get("customKeys")),
        )


@dataclass(frozen=True)
class TranslationResult:
    translation: str
    cultural_notes: str = ""
    intent: str = ""
    cultural_considerations: str = ""
    strategy: str = ""

    def __post_init__(self):
        if not self.translation or not self.translation.strip():
            raise ValueError("TranslationResult.translation must not be empty")

    def with_translation(self, translation: str) -> "TranslationResult":
        """Return a copy carrying a different translation text."""
        return replace(self, translation=translation)

    def analysis_summary(self) -> str:
        """Flatten the structured analysis into one string for follow-up prompts."""
        parts = []
        if self.intent:
            parts.append(f"Intent: {self.intent}")
        if self.cultural_considerations:
            parts.append(f"Cultural considerations: {self.cultural_considerations}")
        if self.strategy:
            parts.append(f"Strategy: {self.strategy}")
        if self.cultural_notes:
            parts.append(f"Cultural notes: {self.cultural_notes}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "translation": self.translation,
            "culturalNotes": self.cultural_notes,
            "intent": self.intent,
            "culturalConsiderations": self.cultural_considerations,
            "strategy": self.strategy,
        }


@dataclass(frozen=True)
class VerificationResult:
    literal_translation: str
    perceived_tone: str = ""
    cultural_nuance: str = ""
    overall_assessment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "literalTranslation": self.literal_translation,
            "perceivedTone": self.perceived_tone,
            "culturalNuance": self.cultural_nuance,
            "overallAssessment": self.overall_assessment,
        }


@dataclass(frozen=True)
class RefinementRequest:
    source_text: str
    current_translation: str
    target_language: str
    user_feedback: str
    prior_analysis_context: str = ""
    credentials: Optional[Credentials] = field(default=None, repr=False)

    def __post_init__(self):
        for attr, wire in (
            ("source_text", "sourceText"),
            ("current_translation", "currentTranslation"),
            ("target_language", "targetLanguage"),
            ("user_feedback", "userFeedback"),
        ):
            value = getattr(self, attr)
            if not value or not value.strip():
                raise RequestValidationError(f"{wire} is required", details={"field": wire})

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RefinementRequest":
        return cls(
            source_text=_require(payload, "sourceText", "originalMessage"),
            current_translation=_require(payload, "currentTranslation"),
            target_language=_require(payload, "targetLanguage"),
            user_feedback=_require(payload, "userFeedback"),
            prior_analysis_context=_clean(
                payload.get("priorAnalysisContext") or payload.get("conversationContext")
            ),
            credentials=Credentials.from_payload(payload.get("credentials") or payload.get("customKeys")),
        )


@dataclass(frozen=True)
class RefinementResult:
    revised_translation: str
    changes_explanation: str = ""
    improvement_notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "revisedTranslation": self.revised_translation,
            "changesExplanation": self.changes_explanation,
            "improvementNotes": self.improvement_notes,
        }


@dataclass(frozen=True)
class AudioResult:
    audio_url: str
    content_type: str = "audio/mpeg"
    size_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"audioUrl": self.audio_url}

