"""
Refinement Engine

Revises a translation from free-text user feedback. The prompt carries the
original message, the current translation, the prior analysis flattened to
a string and the feedback; only the revised translation is required in the
answer.
"""

from typing import Optional

from translatebridge.ai.service import AIService
from translatebridge.logger import get_logger
from translatebridge.translation.models import RefinementRequest, RefinementResult
from translatebridge.translation.normalizer import ResponseKind, normalize
from translatebridge.translation.prompts import build_refinement_prompt
from translatebridge.translation.translator import get_service

logger = get_logger(__name__)


def refine(request: RefinementRequest, service: Optional[AIService] = None) -> RefinementResult:
    """
    Ask the model for a revised translation.

    Raises:
        RequestValidationError: Missing configuration
        UpstreamError: Provider failure (ProviderTimeoutError on timeout)
        ResponseParseError: No revised translation in the response
    """
    service = get_service(request.credentials, service)
    prompt = build_refinement_prompt(request, structured=service.use_tools)
    logger.debug(f"Refinement prompt:\n{prompt.user}")

    response = service.complete(prompt)
    fields = normalize(response.text, ResponseKind.REFINEMENT, structured=response.tool_input)

    if fields["revisedTranslation"].strip() == request.current_translation.strip():
        logger.warning("Refinement returned the current translation unchanged")

    logger.info(f"Refined {request.target_language} translation")
    return RefinementResult(
        revised_translation=fields["revisedTranslation"],
        changes_explanation=fields["changesExplanation"],
        improvement_notes=fields["improvementNotes"],
    )
