"""
ElevenLabs text-to-speech client.

Synthesizes approved text into MP3 audio and returns it as a data URI the
browser can play or download directly. The voice is chosen per language
from language_codes.VOICE_IDS.
"""

import base64
from typing import Any, Dict, Optional

import httpx

from translatebridge.ai.exceptions import (
    ProviderTimeoutError,
    RequestValidationError,
    TranslationError,
    UpstreamError,
)
from translatebridge.ai.providers import get_httpx_timeout, handle_http_error
from translatebridge.config import API_KEY_PLACEHOLDER, load_config
from translatebridge.logger import get_logger
from translatebridge.translation.models import AudioResult
import translatebridge.language_codes as lc

logger = get_logger(__name__)

AUDIO_CONTENT_TYPE = "audio/mpeg"


class ElevenLabsClient:
    """Thin client over the ElevenLabs text-to-speech endpoint."""

    def __init__(
        self,
        credentials=None,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        full_config = config if config is not None else load_config()
        self.config = full_config.get('elevenlabs', {})
        self.credentials = credentials
        self.transport = transport

    @property
    def api_key(self) -> str:
        request_key = self.credentials.key_for('elevenlabs') if self.credentials else None
        if request_key:
            return request_key
        key = self.config.get('api_key', '')
        if not key or key == API_KEY_PLACEHOLDER:
            raise RequestValidationError(
                "ElevenLabs API key not configured",
                code="ai_config_missing",
                details={"provider": "elevenlabs", "missing_field": "api_key"},
            )
        return key

    def voice_for(self, language: str) -> str:
        return lc.get_voice_id(language, default=self.config.get('default_voice_id', lc.DEFAULT_VOICE_ID))

    def generate_audio(self, text: str, language: str) -> AudioResult:
        """
        Synthesize speech for text in the given language.

        Raises:
            RequestValidationError: Empty text/language or no API key
            UpstreamError: Provider failure (ProviderTimeoutError on timeout)
        """
        if not text or not text.strip():
            raise RequestValidationError("text is required", details={"field": "text"})
        if not language or not language.strip():
            raise RequestValidationError("language is required", details={"field": "language"})

        voice_id = self.voice_for(language)
        api_url = self.config.get('api_url', 'https://api.elevenlabs.io/v1').rstrip('/')
        headers = {
            "Accept": AUDIO_CONTENT_TYPE,
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }
        body = {
            "text": text.strip(),
            "model_id": self.config.get('model', 'eleven_multilingual_v2'),
            "voice_settings": self.config.get('voice_settings', {}),
        }

        logger.debug(f"Calling ElevenLabs API (voice: {voice_id}, language: {language})")

        try:
            timeout = get_httpx_timeout(self.config.get('timeout', 60))
            with httpx.Client(timeout=timeout, transport=self.transport) as client:
                response = client.post(f"{api_url}/text-to-speech/{voice_id}", headers=headers, json=body)
                response.raise_for_status()
                audio = response.content
        except httpx.HTTPStatusError as e:
            handle_http_error(e, "ElevenLabs")
        except httpx.TimeoutException:
            raise ProviderTimeoutError("ElevenLabs API request timeout", details={"provider": "elevenlabs"})
        except TranslationError:
            raise
        except httpx.RequestError as e:
            raise UpstreamError(f"ElevenLabs API call failed: {e}", details={"provider": "elevenlabs"})

        if not audio:
            raise UpstreamError("ElevenLabs returned no audio", details={"provider": "elevenlabs"})

        content_type = response.headers.get('content-type', AUDIO_CONTENT_TYPE).split(';')[0].strip()
        if not content_type.startswith('audio/'):
            content_type = AUDIO_CONTENT_TYPE
        encoded = base64.b64encode(audio).decode('ascii')
        logger.info(f"Generated {len(audio)} bytes of {language} audio")
        return AudioResult(
            audio_url=f"data:{content_type};base64,{encoded}",
            content_type=content_type,
            size_bytes=len(audio),
        )
