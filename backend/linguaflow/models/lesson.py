from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from linguaflow.models.content import CONTENT_TYPES

# placeholder_key -> validated slot value
StructuredContent = dict[str, Any]


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    content_type: str
    placeholder_key: str
    title: str = ""
    instruction: str = ""

    @model_validator(mode="after")
    def _known_content_type(self) -> "Slot":
        if self.content_type not in CONTENT_TYPES:
            raise ValueError(f"slot {self.id!r}: unsupported content_type {self.content_type!r}")
        return self


class Template(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    level: str
    slots: tuple[Slot, ...]

    @model_validator(mode="after")
    def _unique_placeholder_keys(self) -> "Template":
        seen: set[str] = set()
        for slot in self.slots:
            if slot.placeholder_key in seen:
                raise ValueError(
                    f"template {self.id!r}: duplicate placeholder_key {slot.placeholder_key!r}"
                )
            seen.add(slot.placeholder_key)
        if not self.slots:
            raise ValueError(f"template {self.id!r} has no slots")
        return self

    @property
    def placeholder_keys(self) -> list[str]:
        return [s.placeholder_key for s in self.slots]

    @classmethod
    def from_document(cls, template_id: str, category: str, level: str, document: dict) -> "Template":
        """Build a Template from a stored ``template_json`` document.

        Only sections carrying an ``ai_placeholder`` become slots; the rest
        (headers, images) are presentational.
        """
        slots = []
        for section in document.get("sections", []):
            key = section.get("ai_placeholder")
            if not key:
                continue
            slots.append(Slot(
                id=section.get("id") or key,
                content_type=section.get("content_type", "text"),
                placeholder_key=key,
                title=section.get("title", ""),
                instruction=section.get("instruction", ""),
            ))
        return cls(
            id=template_id,
            name=document.get("name", f"{category} {level}"),
            category=category,
            level=level,
            slots=tuple(slots),
        )


class StudentProfile(BaseModel):
    id: str
    name: str = ""
    level: str
    target_language: str = "en"
    native_language: str | None = None
    goals: str | None = None
    grammar_weaknesses: str | None = None
    vocabulary_gaps: str | None = None
    seen_words: list[str] = Field(default_factory=list)
    seen_items: list[str] = Field(default_factory=list)


class SubTopic(BaseModel):
    id: str | None = None
    title: str
    category: str
    level: str
    description: str = ""
    lesson_id: str | None = None
    index: int | None = None


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    profile: StudentProfile
    sub_topic: SubTopic
    template: Template


class GenerationOutcome(str, Enum):
    AI_GENERATED = "ai_generated"
    DEGRADED = "degraded"


class GenerationResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: GenerationOutcome
    content: StructuredContent = Field(default_factory=dict)
    partial: StructuredContent = Field(default_factory=dict)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is GenerationOutcome.AI_GENERATED


class LessonContentResult(BaseModel):
    content: StructuredContent
    quality: Literal["ai_generated", "fallback"]
    template_id: str
    template_exact_match: bool = True
    logical_unit_id: str
    warnings: list[str] = Field(default_factory=list)
