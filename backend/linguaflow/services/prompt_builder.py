"""
Prompt Builder — one prompt per lesson generation request.

Two public functions:

  build_student_profile_block(profile) -> str
    Compact, token-efficient description of the learner.

  build_lesson_prompt(request) -> str
    The full user prompt: profile, lesson context, one instruction line per
    template slot, an example JSON shape keyed by the template's
    placeholder keys, and the hard "JSON only" constraints.
"""
from __future__ import annotations

import json

from linguaflow.models.lesson import GenerationRequest, StudentProfile
from linguaflow.prompts.lesson_generation import LESSON_GENERATION_PROMPT, SLOT_SHAPES

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "ru": "Russian",
    "pt": "Portuguese",
}

# Cap on avoid-list entries sent to the model; keeps prompts short
MAX_AVOID_ITEMS = 40


def language_name(code: str | None) -> str:
    if not code:
        return "English"
    return LANGUAGE_NAMES.get(code.lower(), code)


def build_student_profile_block(profile: StudentProfile) -> str:
    lines = [
        f"- Name: {profile.name or 'Student'}",
        f"- Target Language: {language_name(profile.target_language)}",
        f"- Native Language: {language_name(profile.native_language) if profile.native_language else 'Not specified'}",
        f"- Proficiency Level: {profile.level.upper()}",
        f"- Goals: {profile.goals or 'General language improvement'}",
    ]
    if profile.grammar_weaknesses:
        lines.append(f"- Grammar Weaknesses: {profile.grammar_weaknesses}")
    if profile.vocabulary_gaps:
        lines.append(f"- Vocabulary Gaps: {profile.vocabulary_gaps}")
    return "\n".join(lines)


def _avoid_instruction(profile: StudentProfile) -> str:
    parts = []
    if profile.seen_words:
        words = ", ".join(profile.seen_words[-MAX_AVOID_ITEMS:])
        parts.append(f"5. The student already knows these words; do NOT use them as vocabulary entries: {words}")
    if profile.seen_items:
        items = "; ".join(profile.seen_items[-MAX_AVOID_ITEMS:])
        parts.append(f"6. Avoid repeating material the student has already seen: {items}")
    return "\n".join(parts)


def build_lesson_prompt(request: GenerationRequest) -> str:
    profile, sub_topic, template = request.profile, request.sub_topic, request.template

    lesson_lines = [
        f"- Title: {sub_topic.title}",
        f"- Category: {sub_topic.category}",
        f"- Level: {sub_topic.level.upper()}",
    ]
    if sub_topic.description:
        lesson_lines.append(f"- Description: {sub_topic.description}")

    slot_lines = []
    example: dict[str, object] = {}
    for slot in template.slots:
        instruction, sample = SLOT_SHAPES[slot.content_type]
        label = slot.title or slot.id
        extra = f" ({slot.instruction})" if slot.instruction else ""
        slot_lines.append(f'- "{slot.placeholder_key}": {label}{extra}: {instruction}')
        example[slot.placeholder_key] = sample

    return LESSON_GENERATION_PROMPT.format(
        student_profile=build_student_profile_block(profile),
        lesson_context="\n".join(lesson_lines),
        slot_instructions="\n".join(slot_lines),
        example_json=json.dumps(example, indent=2, ensure_ascii=False),
        placeholder_keys=", ".join(template.placeholder_keys),
        level=profile.level.upper(),
        language=language_name(profile.target_language),
        avoid_instruction=_avoid_instruction(profile),
    )
