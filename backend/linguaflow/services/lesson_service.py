"""
Lesson service — the caller-facing entry points.

generate_lesson_content() never fails because of the model: any model or
parse problem is answered with fallback content (quality="fallback"). Only a
missing template is fatal. Completion writes are the opposite: persistence
errors always propagate so the caller can retry.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

from linguaflow.core.config import get_settings
from linguaflow.core.errors import PersistenceError
from linguaflow.models.lesson import (
    GenerationRequest,
    LessonContentResult,
    StudentProfile,
    SubTopic,
)
from linguaflow.models.progress import CompletionRecord, CompletionSnapshot, LessonSession
from linguaflow.services import fallback_generator
from linguaflow.services.content_synthesizer import ContentSynthesizer
from linguaflow.services.logical_unit import unit_id_for_sub_topic
from linguaflow.services.progress_store import ProgressStore, get_progress_store, record_completion_with_retry
from linguaflow.services.telemetry import emit_event
from linguaflow.services.template_registry import TemplateRegistry, get_template_registry

logger = logging.getLogger("linguaflow.lesson_service")


class LessonService:
    def __init__(self, registry: TemplateRegistry, synthesizer: ContentSynthesizer, store: ProgressStore):
        self.registry = registry
        self.synthesizer = synthesizer
        self.store = store

    async def generate_lesson_content(self, profile: StudentProfile, sub_topic: SubTopic) -> LessonContentResult:
        t0 = time.time()
        match = self.registry.resolve(sub_topic.category, sub_topic.level or profile.level)
        template = match.template
        unit_id = unit_id_for_sub_topic(sub_topic)

        warnings: list[str] = []
        if not match.exact:
            warnings.append(
                f"no {sub_topic.category}/{sub_topic.level} template; used {template.id} (level {template.level})"
            )

        request = GenerationRequest(profile=profile, sub_topic=sub_topic, template=template)
        result = await self.synthesizer.generate(request)

        if result.ok:
            content = result.content
            quality = "ai_generated"
        else:
            content = fallback_generator.fill_missing(template, request, result.partial)
            quality = "fallback"
            warnings.append(f"fallback content: {result.error}")
            logger.warning("Serving fallback for %s/%s: %s", profile.id, unit_id, result.error)

        emit_event(
            "lesson_generated" if result.ok else "lesson_fallback",
            route="lesson_service.generate_lesson_content",
            student_id=profile.id,
            template_id=template.id,
            logical_unit_id=unit_id,
            quality=quality,
            error_type=type(result.error).__name__ if result.error else None,
            latency_ms=int((time.time() - t0) * 1000),
            ok=True,
        )

        return LessonContentResult(
            content=content,
            quality=quality,
            template_id=template.id,
            template_exact_match=match.exact,
            logical_unit_id=unit_id,
            warnings=warnings,
        )

    def mark_completed(self, student_id: str, logical_unit_id: str,
                       snapshot: Optional[CompletionSnapshot] = None) -> CompletionRecord:
        if not student_id or not logical_unit_id:
            raise ValueError("student_id and logical_unit_id are required")
        snapshot = snapshot or CompletionSnapshot()
        try:
            record = record_completion_with_retry(self.store, student_id, logical_unit_id, snapshot)
        except PersistenceError as exc:
            emit_event("completion_recorded", route="lesson_service.mark_completed",
                       student_id=student_id, logical_unit_id=logical_unit_id,
                       error_type=type(exc).__name__, ok=False)
            raise
        emit_event("completion_recorded", route="lesson_service.mark_completed",
                   student_id=student_id, logical_unit_id=logical_unit_id, ok=True)
        return record

    def record_session(self, session: LessonSession) -> LessonSession:
        return self.store.record_session(session)

    def get_progress(self, student_id: str) -> list[CompletionRecord]:
        return self.store.list_student(student_id)

    def is_completed(self, student_id: str, logical_unit_id: str) -> bool:
        return self.store.has_completed(student_id, logical_unit_id)


_SERVICE: Optional[LessonService] = None


def get_lesson_service() -> LessonService:
    global _SERVICE
    if _SERVICE is None:
        # lazy import: building the AI client needs provider credentials
        from linguaflow.services.ai import get_ai_service
        _SERVICE = LessonService(
            registry=get_template_registry(),
            synthesizer=ContentSynthesizer(get_ai_service(), get_settings().llm_timeout_seconds),
            store=get_progress_store(),
        )
    return _SERVICE
