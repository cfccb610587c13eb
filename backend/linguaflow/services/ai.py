import asyncio
import logging

from linguaflow.core.config import get_settings
from linguaflow.core.deps import get_llm_client
from linguaflow.core.errors import ModelUnavailable
from linguaflow.prompts.lesson_generation import LESSON_GENERATION_SYSTEM_PROMPT

logger = logging.getLogger("linguaflow.ai")


class AIService:
    """The model capability: prompt in, text out.

    Raises ModelUnavailable on any client failure. Callers bound the call
    with their own timeout (see ContentSynthesizer).
    """

    def __init__(self, client=None, settings=None):
        settings = settings or get_settings()
        self.client = client if client is not None else get_llm_client(settings)
        self.model = settings.llm_model
        self.max_tokens = settings.llm_max_tokens
        self.temperature = settings.llm_temperature

    def _complete(self, prompt: str, system_prompt: str | None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        return response.choices[0].message.content or ""

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = LESSON_GENERATION_SYSTEM_PROMPT,
    ) -> str:
        try:
            # synchronous client; run off the event loop
            text = await asyncio.to_thread(self._complete, prompt, system_prompt)
        except Exception as exc:
            logger.error("Model call failed: %s", exc)
            raise ModelUnavailable(str(exc)) from exc

        if not text.strip():
            raise ModelUnavailable("model returned empty content")
        return text


def get_ai_service() -> AIService:
    return AIService()
