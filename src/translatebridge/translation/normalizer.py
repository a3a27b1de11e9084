"""
Response Normalizer

Extracts structured fields from language-model output with an ordered
cascade of strategies, most structured first:

1. Structured output: tool-call input (a dict) or a JSON object in the text
2. Labeled blocks: "TRANSLATION: ...", greedy up to the next known label
3. Tag-delimited blocks: "<translation>...</translation>"
4. Heuristic: the first sentence-like span, for the required field only.
   Only used when no other strategy matched anything, and never for
   refinements: a reply in a known format that lacks the required field
   is reported, not patched up from its other sections.

Every strategy is a pure function (payload, kind) -> Optional[fields]; the
first non-empty value for each field wins. Optional fields default to "".
A required field still empty after all strategies raises ResponseParseError.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from translatebridge.ai.exceptions import ResponseParseError
from translatebridge.logger import get_logger

logger = get_logger(__name__)


class ResponseKind(Enum):
    TRANSLATION = "translation"
    VERIFICATION = "verification"
    REFINEMENT = "refinement"


@dataclass(frozen=True)
class FieldSpec:
    """One extractable field: its result key, accepted labels and tag names."""
    name: str
    labels: Tuple[str, ...]
    required: bool = False

    @property
    def keys(self) -> Tuple[str, ...]:
        """Separator-free lowercase keys accepted for JSON keys and tag names."""
        keys = [_key(self.name)] + [_key(label) for label in self.labels]
        return tuple(dict.fromkeys(keys))


def _key(name: str) -> str:
    return re.sub(r"[\s_\-]", "", name).lower()


def _snake(name: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


FIELD_SPECS: Dict[ResponseKind, Tuple[FieldSpec, ...]] = {
    ResponseKind.TRANSLATION: (
        FieldSpec("intent", ("INTENT", "COMMUNICATIVE INTENT")),
        FieldSpec("culturalConsiderations", ("CULTURAL CONSIDERATIONS",)),
        FieldSpec("strategy", ("STRATEGY", "TRANSLATION STRATEGY")),
        FieldSpec("translation", ("TRANSLATION", "FINAL TRANSLATION"), required=True),
        FieldSpec("culturalNotes", ("CULTURAL NOTES", "REASONING")),
    ),
    ResponseKind.VERIFICATION: (
        FieldSpec("literalTranslation", ("LITERAL TRANSLATION", "BACK TRANSLATION", "BACKTRANSLATION"), required=True),
        FieldSpec("perceivedTone", ("PERCEIVED TONE", "TONE")),
        FieldSpec("culturalNuance", ("CULTURAL NUANCE", "CULTURAL ANALYSIS")),
        FieldSpec("overallAssessment", ("OVERALL ASSESSMENT", "ASSESSMENT")),
    ),
    ResponseKind.REFINEMENT: (
        FieldSpec("changesExplanation", ("CHANGES EXPLANATION", "EXPLANATION OF CHANGES", "CHANGES")),
        FieldSpec("revisedTranslation", ("REVISED TRANSLATION", "REFINED TRANSLATION"), required=True),
        FieldSpec("improvementNotes", ("IMPROVEMENT NOTES", "NOTES")),
    ),
}


def field_names(kind: ResponseKind) -> List[str]:
    return [spec.name for spec in FIELD_SPECS[kind]]


def required_field(kind: ResponseKind) -> FieldSpec:
    return next(spec for spec in FIELD_SPECS[kind] if spec.required)


# JSON helpers

def match_json_object(text: str) -> Optional[str]:
    """
    Extract JSON object from mixed text using bracket matching.

    Args:
        text: Text potentially containing JSON object

    Returns:
        Extracted JSON object string, or None if not found
    """
    if not text:
        return None

    stack = []
    start = -1
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue

        if char == '\\':
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == '{':
            if not stack:
                start = i
            stack.append('{')
        elif char == '}':
            if stack:
                stack.pop()
                if not stack and start >= 0:
                    return text[start:i+1]

    return None


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block, if any."""
    clean_text = text.strip()
    if clean_text.startswith('```'):
        lines = clean_text.split('\n')
        if lines[0].startswith('```'):
            lines = lines[1:]
        if lines and lines[-1].strip() == '```':
            lines = lines[:-1]
        clean_text = '\n'.join(lines).strip()
    return clean_text


def safe_parse_json_object(text: str) -> Optional[Dict]:
    """
    Safely parse JSON object from potentially malformed text.

    Tries multiple strategies:
    1. Direct parse
    2. Remove markdown code blocks and parse
    3. Extract with bracket matching and parse

    Returns:
        Parsed dict or None on failure
    """
    if not text:
        return None

    text = text.strip()

    for candidate in (text, strip_code_fence(text), match_json_object(text)):
        if not candidate:
            continue
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict):
            return result

    return None


# Strategies

def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return "\n".join(_as_text(item) for item in value if _as_text(item))
    return str(value).strip()


def extract_structured(payload: Any, kind: ResponseKind) -> Optional[Dict[str, str]]:
    """Strategy 1: read fields from tool-call input or a JSON object."""
    if isinstance(payload, dict):
        data = payload
    elif isinstance(payload, str):
        data = safe_parse_json_object(payload)
    else:
        data = None
    if not data:
        return None

    normalized = {_key(str(key)): value for key, value in data.items()}
    fields = {}
    for spec in FIELD_SPECS[kind]:
        for key in spec.keys:
            value = _as_text(normalized.get(key))
            if value:
                fields[spec.name] = value
                break
    return fields or None


def _label_pattern(label: str) -> str:
    """Regex for a label allowing space/underscore/hyphen between words."""
    return r'[ _-]?'.join(re.escape(word) for word in label.split())


def _all_labels_pattern(kind: ResponseKind) -> str:
    labels = sorted(
        (label for spec in FIELD_SPECS[kind] for label in spec.labels),
        key=len,
        reverse=True,
    )
    return '|'.join(_label_pattern(label) for label in labels)


# Optional list number / markdown emphasis around a label at line start
_LABEL_PREFIX = r'(?:^|\n)[ \t]*(?:\d+[.)][ \t]*)?[#*_ \t]*'
_LABEL_SUFFIX = r'[*_ \t]*:[*_ \t]*'


def extract_labeled_blocks(text: str, kind: ResponseKind) -> Optional[Dict[str, str]]:
    """Strategy 2: parse "LABEL: value" sections, each running to the next known label."""
    if not isinstance(text, str) or not text.strip():
        return None

    next_label = rf'(?={_LABEL_PREFIX}(?:{_all_labels_pattern(kind)}){_LABEL_SUFFIX}|\Z)'
    fields = {}
    for spec in FIELD_SPECS[kind]:
        for label in spec.labels:
            pattern = re.compile(
                rf'{_LABEL_PREFIX}{_label_pattern(label)}{_LABEL_SUFFIX}(.*?){next_label}',
                re.IGNORECASE | re.DOTALL,
            )
            match = pattern.search(text)
            if match:
                value = _strip_wrapping(match.group(1))
                if value:
                    fields[spec.name] = value
                    break
    return fields or None


_OPEN_TAG = re.compile(r'<\s*([A-Za-z][\w\- ]*?)\s*>')


def _tag_blocks(text: str) -> Dict[str, str]:
    """Collect the content of every paired tag, keyed by normalised tag name."""
    blocks = {}
    for open_match in _OPEN_TAG.finditer(text):
        name = open_match.group(1)
        close = re.compile(rf'<\s*/\s*{re.escape(name)}\s*>', re.IGNORECASE).search(text, open_match.end())
        if not close:
            continue
        value = text[open_match.end():close.start()].strip()
        key = _key(name)
        if value and key not in blocks:
            blocks[key] = value
    return blocks


def extract_tagged_blocks(text: str, kind: ResponseKind) -> Optional[Dict[str, str]]:
    """Strategy 3: parse "<tag>value</tag>" pairs; nested wrappers are fine."""
    if not isinstance(text, str) or '<' not in text:
        return None

    blocks = _tag_blocks(text)
    fields = {}
    for spec in FIELD_SPECS[kind]:
        for key in spec.keys:
            if blocks.get(key):
                fields[spec.name] = blocks[key]
                break
    return fields or None


_SENTENCE = re.compile(r'(.+?(?:[.!?؟](?=\s|$)|[。！？]))', re.DOTALL)
_HAS_LETTER = re.compile(r'[^\W\d_]')


def extract_heuristic(text: str, kind: ResponseKind) -> Optional[Dict[str, str]]:
    """Strategy 4: degrade to the first sentence-like span of plain text."""
    if not isinstance(text, str) or not text.strip():
        return None

    cleaned = strip_code_fence(text)
    cleaned = re.sub(r'<[^>]+>', ' ', cleaned)
    cleaned = re.sub(
        rf'{_LABEL_PREFIX}(?:{_all_labels_pattern(kind)}){_LABEL_SUFFIX}',
        '\n',
        cleaned,
        flags=re.IGNORECASE,
    )

    for line in cleaned.split('\n'):
        line = _strip_wrapping(line)
        if not line or not _HAS_LETTER.search(line):
            continue
        match = _SENTENCE.match(line)
        span = match.group(1).strip() if match else line
        if _HAS_LETTER.search(span):
            return {required_field(kind).name: span}

    return None


Strategy = Callable[[Any, ResponseKind], Optional[Dict[str, str]]]

STRATEGIES: List[Tuple[str, Strategy]] = [
    ("structured", extract_structured),
    ("labeled", extract_labeled_blocks),
    ("tagged", extract_tagged_blocks),
    ("heuristic", extract_heuristic),
]

# Kinds whose required field must come from an explicit section
NO_HEURISTIC_KINDS = frozenset({ResponseKind.REFINEMENT})


def _strip_wrapping(value: str) -> str:
    """Trim whitespace, markdown emphasis and matching quotes around a value."""
    value = value.strip().strip('*_').strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1].strip()
    if len(value) >= 2 and value[0] == '“' and value[-1] == '”':
        value = value[1:-1].strip()
    return value


def normalize(raw: Any, kind: ResponseKind, structured: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """
    Run the extraction cascade over a model response.

    Args:
        raw: Free text from the model (may be empty when a tool call was used)
        kind: Which field set to extract
        structured: Tool-call input, when the invocation used a tool contract

    Returns:
        Dict with every field of the kind; optional ones default to ""

    Raises:
        ResponseParseError: If the required field is empty after all strategies
    """
    fields = {name: "" for name in field_names(kind)}
    required = required_field(kind).name
    winner = None

    for strategy_name, strategy in STRATEGIES:
        if strategy_name == "heuristic" and (kind in NO_HEURISTIC_KINDS or any(fields.values())):
            break
        payloads = [raw]
        if strategy_name == "structured" and structured is not None:
            payloads = [structured, raw]
        for payload in payloads:
            extracted = strategy(payload, kind)
            if not extracted:
                continue
            for name, value in extracted.items():
                if value and not fields.get(name):
                    fields[name] = value
                    if name == required:
                        winner = strategy_name
        if strategy_name == "structured" and all(fields.values()):
            break

    if not fields[required]:
        logger.error(f"No {required} found in {kind.value} response after all strategies")
        logger.debug(f"Unparseable {kind.value} response:\n{raw!r}")
        raise ResponseParseError(
            f"Could not find {_snake(required).replace('_', ' ')} in model response",
            details={"kind": kind.value, "field": required},
        )

    if winner == "heuristic":
        logger.warning(f"{kind.value} response had no recognised format; using first sentence as {required}")
    elif winner != "structured":
        logger.debug(f"{kind.value} {required} extracted by {winner} strategy")

    return fields
