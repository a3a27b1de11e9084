"""
Prompt construction for the translate / verify / refine calls.

System instructions are templates with a fixed set of {UPPER_CASE}
substitution points. Rendering checks that every required placeholder is
present in the template and that no known placeholder is left unexpanded,
so a broken template fails before any tokens are spent.

Each builder returns a Prompt carrying the system instruction, the user
message and, in structured mode, the tool schema the model must call.
"""

import re
from typing import Any, Dict, Iterable, NamedTuple, Optional

from translatebridge.ai.exceptions import RequestValidationError
from translatebridge.config import get_prompt, load_config
from translatebridge.translation.models import RefinementRequest, TranslationRequest
from translatebridge.translation.normalizer import FIELD_SPECS, ResponseKind
import translatebridge.language_codes as lc

PLACEHOLDERS = (
    "TARGET_LANGUAGE",
    "SOURCE_LANGUAGE",
    "TONE",
    "CULTURAL_CONTEXT",
    "CUSTOM_INSTRUCTIONS",
    "GREETING",
    "RECIPIENT_NAME",
    "PATIENT_NAME",
    "OUTPUT_FORMAT",
)

_PLACEHOLDER_RE = re.compile(r'\{([A-Z][A-Z_]*)\}')

NEUTRAL_TONE = "neutral and respectful"
NEUTRAL_CULTURAL_CONTEXT = "general audience; no specific cultural context provided"
NEUTRAL_CUSTOM_INSTRUCTIONS = "none"
NEUTRAL_GREETING = "none; do not add a greeting"


class Prompt(NamedTuple):
    system: str
    user: str
    tool: Optional[Dict[str, Any]] = None


TRANSLATION_TOOL = {
    "name": "submit_translation",
    "description": "Submit the staged analysis and the final translation of the message.",
    "input_schema": {
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "description": "What the sender is trying to communicate and why.",
            },
            "culturalConsiderations": {
                "type": "string",
                "description": "Cultural norms and phrasing conventions in the target language that affect the message.",
            },
            "strategy": {
                "type": "string",
                "description": "The concrete register, wording and structure choices made.",
            },
            "translation": {
                "type": "string",
                "description": "The final translated text only, in the target language.",
            },
            "culturalNotes": {
                "type": "string",
                "description": "A short explanation of the cultural adaptations applied.",
            },
        },
        "required": ["intent", "culturalConsiderations", "strategy", "translation", "culturalNotes"],
    },
}

VERIFICATION_TOOL = {
    "name": "submit_safety_check",
    "description": "Submit the independent review of the received message.",
    "input_schema": {
        "type": "object",
        "properties": {
            "literalTranslation": {
                "type": "string",
                "description": "Literal translation of the message back into the source language.",
            },
            "perceivedTone": {
                "type": "string",
                "description": "How the message sounds to a native speaker.",
            },
            "culturalNuance": {
                "type": "string",
                "description": "Cultural nuance, double meaning or implication a native reader would notice.",
            },
            "overallAssessment": {
                "type": "string",
                "description": "How the message is likely to be received overall.",
            },
        },
        "required": ["literalTranslation", "perceivedTone", "culturalNuance", "overallAssessment"],
    },
}

REFINEMENT_TOOL = {
    "name": "submit_refinement",
    "description": "Submit the revised translation and an explanation of the changes.",
    "input_schema": {
        "type": "object",
        "properties": {
            "changesExplanation": {
                "type": "string",
                "description": "What was changed and why.",
            },
            "revisedTranslation": {
                "type": "string",
                "description": "The complete revised translation only.",
            },
            "improvementNotes": {
                "type": "string",
                "description": "How the revision better serves the reader.",
            },
        },
        "required": ["changesExplanation", "revisedTranslation", "improvementNotes"],
    },
}

TOOLS = {
    ResponseKind.TRANSLATION: TRANSLATION_TOOL,
    ResponseKind.VERIFICATION: VERIFICATION_TOOL,
    ResponseKind.REFINEMENT: REFINEMENT_TOOL,
}


def find_placeholders(template: str) -> set:
    """Return the known placeholder names used in a template."""
    return {name for name in _PLACEHOLDER_RE.findall(template) if name in PLACEHOLDERS}


def render_template(template: str, values: Dict[str, str], required: Iterable[str] = ()) -> str:
    """
    Substitute {NAME} placeholders in a prompt template.

    Unknown brace groups (e.g. "{name}" in a user-written prompt) are left
    untouched; only the fixed placeholder set is substituted.

    Args:
        template: Template text
        values: Placeholder name -> replacement text
        required: Placeholders the template must contain

    Returns:
        Rendered text

    Raises:
        RequestValidationError: If a required placeholder is missing from the
            template, or a placeholder used in it has no value
    """
    present = find_placeholders(template)
    missing = [name for name in required if name not in present]
    if missing:
        raise RequestValidationError(
            f"Prompt template is missing required placeholder(s): {', '.join('{' + m + '}' for m in missing)}",
            details={"missing_placeholders": missing},
        )

    unresolved = sorted(name for name in present if values.get(name) is None)
    if unresolved:
        raise RequestValidationError(
            f"No value for prompt placeholder(s): {', '.join('{' + u + '}' for u in unresolved)}",
            details={"unresolved_placeholders": unresolved},
        )

    def substitute(match):
        name = match.group(1)
        if name in PLACEHOLDERS:
            return values[name]
        return match.group(0)

    return _PLACEHOLDER_RE.sub(substitute, template)


def _labeled_format(kind: ResponseKind) -> str:
    """Text-mode output instruction listing one label per line."""
    lines = ["Respond using exactly these labeled sections, each label on its own line:"]
    for spec in FIELD_SPECS[kind]:
        label = spec.labels[0].replace(" ", "_")
        lines.append(f"{label}: [{spec.labels[0].lower()}]")
    return "\n".join(lines)


def output_format(kind: ResponseKind, structured: bool) -> str:
    """Instruction telling the model which structured form to answer in."""
    if structured:
        return (
            f"Respond by calling the {TOOLS[kind]['name']} tool, filling every field. "
            f"If you cannot call tools, use this format instead.\n{_labeled_format(kind)}"
        )
    return _labeled_format(kind)


def _source_language(source_language: Optional[str]) -> str:
    if source_language:
        return lc.get_language_name(source_language) or source_language
    return load_config().get("source_language") or "English"


def build_translation_prompt(request: TranslationRequest, structured: bool = True) -> Prompt:
    """Build the system instruction and user message for a translation call."""
    target_language = lc.get_language_name(request.target_language)
    preset = request.preset_context
    values = {
        "TARGET_LANGUAGE": target_language,
        "SOURCE_LANGUAGE": _source_language(None),
        "TONE": (preset.tone if preset else "") or NEUTRAL_TONE,
        "CULTURAL_CONTEXT": (preset.cultural_context if preset else "") or NEUTRAL_CULTURAL_CONTEXT,
        "CUSTOM_INSTRUCTIONS": (preset.custom_instructions if preset else "") or NEUTRAL_CUSTOM_INSTRUCTIONS,
        "GREETING": (preset.greeting if preset else "") or NEUTRAL_GREETING,
        "RECIPIENT_NAME": (preset.recipient_name if preset else "") or "the recipient",
        "OUTPUT_FORMAT": output_format(ResponseKind.TRANSLATION, structured),
    }
    values["PATIENT_NAME"] = values["RECIPIENT_NAME"]

    if request.prompt_override:
        # Caller-supplied instruction is used verbatim after substitution
        system = render_template(request.prompt_override, values)
    else:
        prompt_config = get_prompt("translation_prompt")
        system = render_template(
            prompt_config["prompt"],
            values,
            required=prompt_config.get("required_placeholders", ()),
        )

    return Prompt(
        system=system,
        user=request.source_text.strip(),
        tool=TRANSLATION_TOOL if structured else None,
    )


def build_verification_prompt(
    translated_text: str,
    target_language: str,
    structured: bool = True,
    source_language: Optional[str] = None,
) -> Prompt:
    """
    Build the blind back-translation prompt.

    Only the translated text and its language are accepted; the original
    message and its stated intent never reach this prompt.
    """
    prompt_config = get_prompt("verification_prompt")
    values = {
        "TARGET_LANGUAGE": lc.get_language_name(target_language),
        "SOURCE_LANGUAGE": _source_language(source_language),
        "OUTPUT_FORMAT": output_format(ResponseKind.VERIFICATION, structured),
    }
    system = render_template(
        prompt_config["prompt"],
        values,
        required=prompt_config.get("required_placeholders", ()),
    )
    user = f"<received_message>\n{translated_text.strip()}\n</received_message>"
    return Prompt(system=system, user=user, tool=VERIFICATION_TOOL if structured else None)


def build_refinement_prompt(request: RefinementRequest, structured: bool = True) -> Prompt:
    """Build the refinement prompt with the full conversation context."""
    prompt_config = get_prompt("refinement_prompt")
    target_language = lc.get_language_name(request.target_language)
    values = {
        "TARGET_LANGUAGE": target_language,
        "OUTPUT_FORMAT": output_format(ResponseKind.REFINEMENT, structured),
    }
    system = render_template(
        prompt_config["prompt"],
        values,
        required=prompt_config.get("required_placeholders", ()),
    )

    sections = [
        f"<original_message>\n{request.source_text.strip()}\n</original_message>",
        f"<current_translation language=\"{target_language}\">\n{request.current_translation.strip()}\n</current_translation>",
    ]
    if request.prior_analysis_context:
        sections.append(f"<prior_analysis>\n{request.prior_analysis_context.strip()}\n</prior_analysis>")
    sections.append(f"<feedback>\n{request.user_feedback.strip()}\n</feedback>")
    return Prompt(
        system=system,
        user="\n\n".join(sections),
        tool=REFINEMENT_TOOL if structured else None,
    )
