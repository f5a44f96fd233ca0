"""
LLM client via OpenRouter (OpenAI-compatible API).

Used as a plain text-generation capability: prompt in, free text out.
Parsing the output is the caller's job.
"""

from openai import OpenAI

from theorogram.config.settings import settings
from theorogram.logger import get_logger

logger = get_logger(__name__)


class LLMClient:
    def __init__(
        self,
        model: str | None = None,
        timeout: float | None = None,
    ):
        self.model = model or settings.llm_model
        self.client = OpenAI(
            base_url=settings.openrouter_base_url,
            api_key=settings.openrouter_api_key,
            timeout=timeout if timeout is not None else settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )

    def call(self, prompt: str, system: str | None = None) -> str:
        """Raw text response."""
        messages = self._build_messages(prompt, system)
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
        )
        content = response.choices[0].message.content
        if content is None:
            raise ValueError("LLM returned an empty completion")
        logger.debug("llm_call_done", model=self.model, chars=len(content))
        return content

    @staticmethod
    def _build_messages(prompt: str, system: str | None) -> list[dict]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages
