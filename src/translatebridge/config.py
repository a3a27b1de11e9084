import copy
import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from translatebridge.logger import get_logger

logger = get_logger(__name__)

# Provider configuration constants
BUILTIN_PROVIDERS = ["anthropic", "openai"]

BUILTIN_PROVIDER_DISPLAY_NAMES = {
    "anthropic": "Anthropic",
    "openai": "OpenAI",
}

PROVIDER_DEFAULTS = {
    "timeout": 45,
    "max_tokens": 1500,
}

API_KEY_PLACEHOLDER = "YOUR_API_KEY_HERE"

# Environment variables that may supply server-managed keys
API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "elevenlabs": "ELEVENLABS_API_KEY",
}

# Get base directory (project root)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
CONFIG_DIR = Path(os.environ.get("TRANSLATEBRIDGE_CONFIG_DIR", BASE_DIR / "config"))
CONFIG_FILE = CONFIG_DIR / "config.json"

# Default prompts
DEFAULT_PROMPTS = {
    "translation_prompt": {
        "version": "2.0",
        "description": "System instruction for the translation invoker",
        "required_placeholders": ["TARGET_LANGUAGE"],
        "prompt": """You are an expert translator specializing in culturally-sensitive communication. You will receive a message that needs to be translated into {TARGET_LANGUAGE}.

<recipient_context>
Tone: {TONE}
Cultural context: {CULTURAL_CONTEXT}
Additional instructions: {CUSTOM_INSTRUCTIONS}
Greeting: {GREETING}
</recipient_context>

<translation_requirements>
1. Preserve the exact meaning, including any dosages, times, quantities and names
2. Adapt register and honorifics to the tone and cultural context above
3. Prefer clear, plain wording a reader with limited literacy can follow
4. Do not add information that is not present in the original message
</translation_requirements>

Work through the translation in stages before giving the final text:
1. INTENT: what the sender is trying to communicate and why
2. CULTURAL_CONSIDERATIONS: norms, taboos or phrasing conventions in {TARGET_LANGUAGE} that affect this message
3. STRATEGY: the concrete choices you will make (register, word choice, structure)
4. TRANSLATION: the final {TARGET_LANGUAGE} text only
5. CULTURAL_NOTES: a short explanation of the cultural adaptations you applied

{OUTPUT_FORMAT}"""
    },
    "verification_prompt": {
        "version": "2.0",
        "description": "System instruction for the blind back-translation safety check",
        "required_placeholders": ["TARGET_LANGUAGE", "SOURCE_LANGUAGE"],
        "prompt": """You are a native {TARGET_LANGUAGE} speaker reviewing a message you have just received. You do not know what the sender intended; judge only the text in front of you.

Review the message and report:
1. LITERAL_TRANSLATION: a literal, word-faithful translation of the message into {SOURCE_LANGUAGE}
2. PERCEIVED_TONE: how the message sounds to a native speaker (polite, curt, warm, alarming, ...)
3. CULTURAL_NUANCE: any cultural nuance, double meaning or implication a native reader would notice
4. OVERALL_ASSESSMENT: how the message is likely to be received overall

{OUTPUT_FORMAT}"""
    },
    "refinement_prompt": {
        "version": "2.0",
        "description": "System instruction for the refinement engine",
        "required_placeholders": ["TARGET_LANGUAGE"],
        "prompt": """You are an expert translator revising a {TARGET_LANGUAGE} translation based on feedback from the person who wrote the original message. Keep the original meaning intact while applying the feedback.

Respond with three sections:
1. CHANGES_EXPLANATION: what you changed and why
2. REVISED_TRANSLATION: the complete revised {TARGET_LANGUAGE} text only
3. IMPROVEMENT_NOTES: how the revision better serves the reader

{OUTPUT_FORMAT}"""
    },
}

# Default configuration templates
DEFAULT_CONFIG = {
    "ai_provider": "anthropic",
    "anthropic": {
        "api_key": API_KEY_PLACEHOLDER,
        "models": ["claude-sonnet-4-20250514"],  # Up to 5 models, first is default
        "timeout": 45,
        "max_tokens": 1500,
        "use_tools": True,
        "api_url": "https://api.anthropic.com/v1/messages",
        "api_version": "2023-06-01",
    },
    "openai": {
        "api_key": API_KEY_PLACEHOLDER,
        "models": ["gpt-4o-mini", "gpt-4o"],  # Up to 5 models, first is default
        "timeout": 45,
        "max_tokens": 1500,
        "use_tools": True,
        "api_url": "https://api.openai.com/v1/chat/completions",
    },
    "elevenlabs": {
        "api_key": API_KEY_PLACEHOLDER,
        "api_url": "https://api.elevenlabs.io/v1",
        "model": "eleven_multilingual_v2",
        "default_voice_id": "ErXwobaYiN019PkySvjV",
        "timeout": 60,
        "voice_settings": {
            "stability": 0.75,
            "similarity_boost": 0.75,
            "style": 0.25,
            "use_speaker_boost": True,
        },
    },
    "source_language": "English",
    "log_mode": "info",
}


def ensure_config_directory():
    """Ensure the config directory exists."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Config directory ensured: {CONFIG_FILE.parent}")


def create_default_config():
    """Create the default config.json file."""
    ensure_config_directory()
    with open(CONFIG_FILE, 'w', encoding='utf-8') as f:
        json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)
    logger.info(f"Created default config file: {CONFIG_FILE}")


def initialize_app():
    """
    Initialize the application.
    Creates the default configuration file on first run.
    """
    logger.info("Initializing application...")
    if not CONFIG_FILE.exists():
        try:
            create_default_config()
        except OSError as e:
            logger.warning(f"Could not create default config file: {e}. Using in-memory defaults.")
    logger.info("Application initialization complete")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_keys(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fill placeholder API keys from the environment."""
    for section, env_var in API_KEY_ENV_VARS.items():
        env_value = os.environ.get(env_var)
        section_config = config.get(section)
        if not env_value or not isinstance(section_config, dict):
            continue
        current = section_config.get('api_key')
        if not current or current == API_KEY_PLACEHOLDER:
            section_config['api_key'] = env_value
    return config


def load_config() -> Dict[str, Any]:
    """Load the configuration file merged over defaults."""
    stored: Dict[str, Any] = {}
    try:
        if CONFIG_FILE.exists():
            with open(CONFIG_FILE, 'r', encoding='utf-8') as f:
                stored = json.load(f)
            if not isinstance(stored, dict):
                logger.error("Config file does not contain a JSON object, using defaults")
                stored = {}
            else:
                logger.debug("Configuration loaded from file")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse config file: {e}")
        logger.warning("Using default configuration")
        stored = {}
    except OSError as e:
        logger.error(f"Failed to read config file: {e}")
        logger.warning("Using default configuration")
        stored = {}

    return _apply_env_keys(_deep_merge(DEFAULT_CONFIG, stored))


def save_config(config: Dict[str, Any]):
    """Save the configuration to the config file."""
    try:
        ensure_config_directory()
        with open(CONFIG_FILE, 'w', encoding='utf-8') as f:
            json.dump(config, f, indent=4, ensure_ascii=False)
        logger.info("Configuration saved")
    except OSError as e:
        logger.error(f"Failed to save config: {e}")
        raise


def load_prompts() -> Dict[str, Any]:
    """Load the prompts from default configuration.

    Note: Prompts are hardcoded in the codebase. Callers customise the
    translation instruction per request with a prompt override instead.
    """
    return copy.deepcopy(DEFAULT_PROMPTS)


def get_prompt(prompt_name: str = "translation_prompt") -> Dict[str, Any]:
    """Get a specific prompt by name."""
    prompts = load_prompts()
    return prompts.get(prompt_name, prompts["translation_prompt"])


def get_provider_config(config: Dict[str, Any], provider: str) -> Optional[Dict[str, Any]]:
    """Return the provider section with provider defaults filled in."""
    provider_config = config.get(provider)
    if not isinstance(provider_config, dict):
        return None
    merged = dict(PROVIDER_DEFAULTS)
    merged.update(provider_config)
    return merged
