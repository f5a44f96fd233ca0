"""
Classifier adapter.

Turns a free-text LLM completion into a ModerationResult. The adapter never
raises: timeouts, network errors and unparseable output all map to a fixed
low-confidence fallback that a human-review queue can pick up.
"""

import json

from pydantic import ValidationError

from theorogram.config.settings import settings
from theorogram.moderation.models import Classification, ClassifierResponse, ModerationResult
from theorogram.moderation.prompts import CLASSIFIER_PROMPT, CLASSIFIER_SYSTEM_PROMPT
from theorogram.services.llm import LLMClient
from theorogram.logger import get_logger

logger = get_logger(__name__)

FALLBACK_CONFIDENCE = 0.3
FALLBACK_REASONING = "AI moderation unavailable - flagged for potential manual review"

_decoder = json.JSONDecoder()


class ClassifierUnavailable(Exception):
    """The classifier gave no usable answer."""


def extract_json_object(raw: str) -> dict:
    """Return the first well-formed JSON object embedded in *raw*."""
    start = raw.find("{")
    while start != -1:
        try:
            obj, _ = _decoder.raw_decode(raw, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(obj, dict):
                return obj
        start = raw.find("{", start + 1)
    raise ClassifierUnavailable("no JSON object in classifier response")


def fallback_result(fail_open: bool | None = None) -> ModerationResult:
    fail_open = settings.moderation_fail_open if fail_open is None else fail_open
    return ModerationResult(
        classification=Classification.SAFE if fail_open else Classification.NSFW,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=FALLBACK_REASONING,
        is_fallback=True,
    )


class ContentClassifier:
    def __init__(self, llm_client: LLMClient | None = None, fail_open: bool | None = None):
        self.llm = llm_client or LLMClient()
        self.fail_open = settings.moderation_fail_open if fail_open is None else fail_open

    def classify(self, title: str, body: str) -> ModerationResult:
        """Classify a theory. Always returns a result."""
        prompt = CLASSIFIER_PROMPT.format(title=title, body=body)

        try:
            raw = self.llm.call(prompt, system=CLASSIFIER_SYSTEM_PROMPT)
            response = self._parse(raw)
        except Exception as e:
            logger.error("classification_failed", error=str(e), fail_open=self.fail_open)
            return fallback_result(self.fail_open)

        logger.info(
            "content_classified",
            classification=response.classification.value,
            confidence=response.confidence,
        )
        return ModerationResult(
            classification=response.classification,
            confidence=response.confidence,
            reasoning=response.reasoning,
        )

    @staticmethod
    def _parse(raw: str) -> ClassifierResponse:
        if not isinstance(raw, str):
            raise ClassifierUnavailable("classifier response is not text")

        parsed = extract_json_object(raw)
        try:
            return ClassifierResponse.model_validate(parsed)
        except ValidationError as e:
            logger.error("classifier_response_invalid", parsed=parsed, error=str(e))
            raise ClassifierUnavailable(str(e)) from e
