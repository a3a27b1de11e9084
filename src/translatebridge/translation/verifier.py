"""
Back-Translation Verifier

Blind safety check: a native-speaker persona reads only the translated
text and reports a literal back-translation, the perceived tone, cultural
nuance and an overall assessment. verify() deliberately takes no source
text or intent, so the review cannot be biased by what the sender meant.
"""

from typing import Optional

from translatebridge.ai.exceptions import RequestValidationError
from translatebridge.ai.service import AIService
from translatebridge.logger import get_logger
from translatebridge.translation.models import VerificationResult
from translatebridge.translation.normalizer import ResponseKind, normalize
from translatebridge.translation.prompts import build_verification_prompt
from translatebridge.translation.translator import get_service

logger = get_logger(__name__)


def verify(
    translated_text: str,
    target_language: str,
    credentials=None,
    service: Optional[AIService] = None,
) -> VerificationResult:
    """
    Back-translate a translation without seeing the original.

    Args:
        translated_text: The candidate translation
        target_language: Language the translation is written in
        credentials: Optional per-request provider keys
        service: Optional AIService

    Returns:
        VerificationResult with a non-empty literal translation

    Raises:
        RequestValidationError: Empty input or missing configuration
        UpstreamError: Provider failure (ProviderTimeoutError on timeout)
        ResponseParseError: No literal back-translation could be extracted
    """
    if not translated_text or not translated_text.strip():
        raise RequestValidationError("translatedText is required", details={"field": "translatedText"})
    if not target_language or not target_language.strip():
        raise RequestValidationError("targetLanguage is required", details={"field": "targetLanguage"})

    service = get_service(credentials, service)
    prompt = build_verification_prompt(translated_text, target_language, structured=service.use_tools)
    logger.debug(f"Verification system prompt:\n{prompt.system}")

    response = service.complete(prompt)
    fields = normalize(response.text, ResponseKind.VERIFICATION, structured=response.tool_input)

    logger.info(f"Safety check for {target_language} translation complete")
    return VerificationResult(
        literal_translation=fields["literalTranslation"],
        perceived_tone=fields["perceivedTone"],
        cultural_nuance=fields["culturalNuance"],
        overall_assessment=fields["overallAssessment"],
    )
