"""
Content Synthesizer — template + student profile -> model -> validated slots.

One prompt, one model call per request. Retries are the caller's concern.
Model failures, timeouts and parse failures all come back as a DEGRADED
result rather than an exception, so the lesson service can substitute
fallback content.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from linguaflow.core.config import get_settings
from linguaflow.core.errors import ModelError, ModelTimeout, ParseFailed
from linguaflow.models.content import VOCABULARY_TYPES
from linguaflow.models.lesson import (
    GenerationOutcome,
    GenerationRequest,
    GenerationResult,
    StructuredContent,
    Template,
)
from linguaflow.services.prompt_builder import build_lesson_prompt
from linguaflow.services.response_extractor import extract

logger = logging.getLogger("linguaflow.content_synthesizer")


class TextGenerator(Protocol):
    async def generate_text(self, prompt: str) -> str: ...


def drop_seen_words(content: StructuredContent, template: Template, seen_words: list[str]) -> list[str]:
    """Remove vocabulary entries the student has already seen, in place.

    Returns the placeholder keys of vocabulary slots left empty by the filter.
    """
    if not seen_words:
        return []
    seen = {w.strip().lower() for w in seen_words if w and w.strip()}
    emptied: list[str] = []
    for slot in template.slots:
        if slot.content_type not in VOCABULARY_TYPES or slot.placeholder_key not in content:
            continue
        items = content[slot.placeholder_key]
        kept = [it for it in items if it["word"].strip().lower() not in seen]
        if len(kept) != len(items):
            logger.info("Dropped %d already-seen word(s) from %s", len(items) - len(kept), slot.placeholder_key)
        if kept:
            content[slot.placeholder_key] = kept
        else:
            del content[slot.placeholder_key]
            emptied.append(slot.placeholder_key)
    return emptied


class ContentSynthesizer:
    def __init__(self, generator: TextGenerator, timeout_seconds: Optional[float] = None):
        self.generator = generator
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else get_settings().llm_timeout_seconds
        )

    async def _call_model(self, prompt: str) -> str:
        try:
            return await asyncio.wait_for(self.generator.generate_text(prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise ModelTimeout(self.timeout_seconds)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        template = request.template
        prompt = build_lesson_prompt(request)
        logger.info(
            "Generating %s for student=%s sub_topic=%r (%d slots, prompt %d chars)",
            template.id, request.profile.id, request.sub_topic.title, len(template.slots), len(prompt),
        )

        try:
            raw = await self._call_model(prompt)
        except ModelError as exc:
            logger.warning("Model failure for %s: %s", template.id, exc)
            return GenerationResult(outcome=GenerationOutcome.DEGRADED, error=exc)

        try:
            content = extract(raw, template)
        except ParseFailed as exc:
            logger.warning("Parse failure for %s: %s (raw %d chars)", template.id, exc, len(raw))
            partial = dict(exc.partial)
            drop_seen_words(partial, template, request.profile.seen_words)
            return GenerationResult(outcome=GenerationOutcome.DEGRADED, error=exc, partial=partial)

        emptied = drop_seen_words(content, template, request.profile.seen_words)
        if emptied:
            exc = ParseFailed("vocabulary slots contained only already-seen words", missing=emptied, partial=content)
            logger.warning("Degraded %s: %s", template.id, exc)
            return GenerationResult(outcome=GenerationOutcome.DEGRADED, error=exc, partial=content)

        return GenerationResult(outcome=GenerationOutcome.AI_GENERATED, content=content)
