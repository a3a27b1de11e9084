"""
Language catalogue and utilities.

Target languages are accepted in several spellings: the lowercase keys used
by the web client ('mandarin', 'spanish'), ISO 639-1 codes ('zh', 'es'),
BCP 47 tags ('pt-BR') or display names ('Spanish'). get_language_name()
normalises all of them to the display name used inside prompts, and
get_voice_id() picks the text-to-speech voice for a language.
"""

from typing import Optional, Dict

# Languages offered by the web client, keyed by client value
SUPPORTED_LANGUAGES = {
    'mandarin': 'Mandarin Chinese',
    'spanish': 'Spanish',
    'arabic': 'Arabic',
    'french': 'French',
    'portuguese': 'Portuguese',
    'russian': 'Russian',
    'korean': 'Korean',
    'vietnamese': 'Vietnamese',
}

# ISO 639-1 language codes (2-letter)
# Source: https://en.wikipedia.org/wiki/List_of_ISO_639-1_codes
ISO_639_1 = {
    'am': 'Amharic',
    'ar': 'Arabic',
    'bn': 'Bengali',
    'de': 'German',
    'el': 'Greek',
    'en': 'English',
    'es': 'Spanish',
    'fa': 'Persian',
    'fr': 'French',
    'ha': 'Hausa',
    'he': 'Hebrew',
    'hi': 'Hindi',
    'ht': 'Haitian Creole',
    'id': 'Indonesian',
    'it': 'Italian',
    'ja': 'Japanese',
    'km': 'Khmer',
    'ko': 'Korean',
    'lo': 'Lao',
    'ne': 'Nepali',
    'pa': 'Punjabi',
    'pl': 'Polish',
    'ps': 'Pashto',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'so': 'Somali',
    'sw': 'Swahili',
    'ta': 'Tamil',
    'th': 'Thai',
    'tl': 'Tagalog',
    'tr': 'Turkish',
    'uk': 'Ukrainian',
    'ur': 'Urdu',
    'vi': 'Vietnamese',
    'yo': 'Yoruba',
    'zh': 'Mandarin Chinese',
}

# BCP 47 regional variants with a distinct display name
BCP_47 = {
    'zh-CN': 'Simplified Chinese',
    'zh-TW': 'Traditional Chinese',
    'zh-HK': 'Cantonese',
    'pt-BR': 'Brazilian Portuguese',
    'pt-PT': 'European Portuguese',
    'es-MX': 'Mexican Spanish',
    'es-ES': 'Castilian Spanish',
    'fr-CA': 'Canadian French',
}

# ElevenLabs voices with good pronunciation per language
VOICE_IDS = {
    'mandarin': 'XrExE9yKIg1WjnnlVkGX',
    'spanish': '21m00Tcm4TlvDq8ikWAM',
    'arabic': 'AZnzlk1XvdvUeBnXmlld',
    'french': 'ErXwobaYiN019PkySvjV',
    'portuguese': 'MF3mGyEYCl7XYWbV9V6O',
    'russian': 'VR6AewLTigWG4xSOukaG',
    'korean': 'pqHfZKP75CvOlQylNhV4',
    'vietnamese': 'IKne3meq5aSn9XLyUdCD',
}

DEFAULT_VOICE_ID = 'ErXwobaYiN019PkySvjV'


def _display_name_index() -> Dict[str, str]:
    """Map lowercase display names back to themselves."""
    index = {}
    for name in list(SUPPORTED_LANGUAGES.values()) + list(ISO_639_1.values()) + list(BCP_47.values()):
        index[name.lower()] = name
    return index


_DISPLAY_NAMES = _display_name_index()


def normalize_language_code(code: str) -> str:
    """
    Normalise a BCP 47 tag's casing (zh-cn -> zh-CN, PT_br -> pt-BR).

    Args:
        code: Language tag, possibly with wrong casing or an underscore

    Returns:
        Normalised tag
    """
    if not code:
        return code
    parts = code.strip().replace('_', '-').split('-')
    if len(parts) == 1:
        return parts[0].lower()
    return f"{parts[0].lower()}-{parts[1].upper()}"


def get_language_name(value: str) -> Optional[str]:
    """
    Resolve a client value, code or display name to a display name.

    Returns None for empty input and the stripped input itself for
    languages outside the catalogue, so free-form target languages
    still reach the prompt unchanged.
    """
    if not value or not value.strip():
        return None
    stripped = value.strip()
    lowered = stripped.lower()

    if lowered in SUPPORTED_LANGUAGES:
        return SUPPORTED_LANGUAGES[lowered]
    if lowered in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[lowered]

    normalized = normalize_language_code(stripped)
    if normalized in BCP_47:
        return BCP_47[normalized]
    base = normalized.split('-')[0]
    if base in ISO_639_1 and (len(base) == 2):
        return ISO_639_1[base]

    return stripped


def get_language_key(value: str) -> Optional[str]:
    """Return the client key ('spanish') for any spelling of a supported language."""
    name = get_language_name(value)
    if not name:
        return None
    for key, display in SUPPORTED_LANGUAGES.items():
        if display == name:
            return key
    # Regional variants share their base language's voice
    base = normalize_language_code(value.strip()).split('-')[0]
    base_name = ISO_639_1.get(base)
    for key, display in SUPPORTED_LANGUAGES.items():
        if display == base_name:
            return key
    return None


def get_voice_id(language: str, default: str = DEFAULT_VOICE_ID) -> str:
    """Pick the text-to-speech voice for a language, falling back to the default voice."""
    key = get_language_key(language)
    if key is None:
        return default
    return VOICE_IDS.get(key, default)
