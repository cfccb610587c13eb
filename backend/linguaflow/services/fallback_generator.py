"""
Fallback Generator — deterministic, structurally valid placeholder content.

Used when the model is down, times out, or its output cannot be recovered.
Every value is built from the request (sub-topic title, level) so the lesson
stays usable and on-topic; vocabulary entries are flagged as placeholders.

synthesize() is total: it returns a complete document for any template
whose content types are known. Same inputs always give the same output.
"""
from __future__ import annotations

import hashlib
import logging
import random

from linguaflow.models.content import BLANK_MARKER, validate_slot_value
from linguaflow.models.lesson import GenerationRequest, Slot, StructuredContent, Template

logger = logging.getLogger("linguaflow.fallback_generator")

PLACEHOLDER_TAG = "[placeholder]"

VOCABULARY_BANK: list[dict] = [
    {"word": "describe", "part_of_speech": "verb", "definition": "to say what something is like"},
    {"word": "experience", "part_of_speech": "noun", "definition": "something that happens to you"},
    {"word": "prefer", "part_of_speech": "verb", "definition": "to like one thing more than another"},
    {"word": "situation", "part_of_speech": "noun", "definition": "the conditions at a particular time and place"},
    {"word": "useful", "part_of_speech": "adjective", "definition": "helping you to do something"},
    {"word": "explain", "part_of_speech": "verb", "definition": "to make something clear"},
    {"word": "opinion", "part_of_speech": "noun", "definition": "what you think about something"},
    {"word": "common", "part_of_speech": "adjective", "definition": "happening often"},
    {"word": "arrange", "part_of_speech": "verb", "definition": "to plan or organise something"},
    {"word": "challenge", "part_of_speech": "noun", "definition": "something difficult that tests your ability"},
]

VOCABULARY_COUNT = 5


def _make_seed(template: Template, request: GenerationRequest) -> int:
    """Deterministic seed from stable request attributes."""
    key = f"{template.id}|{request.sub_topic.title}|{request.sub_topic.level}"
    return int(hashlib.sha256(key.encode()).hexdigest()[:8], 16)


def _text(slot: Slot, title: str, level: str, rng: random.Random) -> str:
    heading = slot.title or slot.placeholder_key.replace("_", " ").capitalize()
    return (
        f"{heading}: in this {level} lesson on \"{title}\" we look at the key ideas, "
        f"words and phrases you need to talk about {title.lower()} with confidence."
    )


def _list(slot: Slot, title: str, level: str, rng: random.Random) -> list[str]:
    items = [
        f"Talk about your own experience with {title.lower()}.",
        f"Describe a typical situation related to {title.lower()}.",
        f"Explain what you find easy or difficult about {title.lower()}.",
        f"Share one useful phrase about {title.lower()} with your tutor.",
    ]
    start = rng.randrange(len(items))
    return items[start:] + items[:start]


def _vocabulary(slot: Slot, title: str, level: str, rng: random.Random, seen_words=()) -> list[dict]:
    seen = {w.strip().lower() for w in seen_words if w}
    candidates = [w for w in VOCABULARY_BANK if w["word"] not in seen]
    if not candidates:
        logger.info("All fallback words already seen; allowing repeats")
        candidates = list(VOCABULARY_BANK)
    start = rng.randrange(len(candidates))
    rotated = candidates[start:] + candidates[:start]
    out = []
    for entry in rotated[:VOCABULARY_COUNT]:
        out.append({
            "word": entry["word"],
            "definition": f"{entry['definition']} {PLACEHOLDER_TAG}",
            "part_of_speech": entry["part_of_speech"],
            "examples": [f"Can you use \"{entry['word']}\" in a sentence about {title.lower()}?"],
        })
    return out


def _dialogue(slot: Slot, title: str, level: str, rng: random.Random) -> list[dict]:
    return [
        {"character": "Tutor", "text": f"Today we're talking about {title.lower()}. What do you know about it?"},
        {"character": "Student", "text": f"I know a little about {title.lower()}, but I want to learn more."},
        {"character": "Tutor", "text": "Great. Can you describe a situation where you needed it?"},
        {"character": "Student", "text": "Yes, I can try to describe one."},
    ]


def _blanks_dialogue(slot: Slot, title: str, level: str, rng: random.Random) -> list[dict]:
    return [
        {"character": "Tutor", "text": f"What do you ___ about {title.lower()}?"},
        {"character": "Student", "text": "I ___ it is very useful."},
        {"character": "Tutor", "text": "Why do you think so?"},
    ]


def _matching(slot: Slot, title: str, level: str, rng: random.Random) -> list[dict]:
    return [
        {"question": "What is this lesson about?", "answer": title},
        {"question": "What level is this lesson?", "answer": level},
        {"question": f"Name one situation where {title.lower()} matters.", "answer": "Answers will vary."},
    ]


def _complete_sentence(slot: Slot, title: str, level: str, rng: random.Random) -> list[dict]:
    return [
        {"sentence": f"I would like {BLANK_MARKER} learn more about {title.lower()}.",
         "options": ["to", "for", "at"], "correct_answer": "to"},
        {"sentence": f"{title} {BLANK_MARKER} an interesting topic.",
         "options": ["is", "are", "be"], "correct_answer": "is"},
        {"sentence": f"Yesterday we {BLANK_MARKER} about {title.lower()}.",
         "options": ["talk", "talked", "talking"], "correct_answer": "talked"},
    ]


BUILDERS = {
    "text": _text,
    "list": _list,
    "full_dialogue": _dialogue,
    "fill_in_the_blanks_dialogue": _blanks_dialogue,
    "matching": _matching,
    "complete_sentence": _complete_sentence,
}


def _build_slot(slot: Slot, request: GenerationRequest, rng: random.Random):
    title = request.sub_topic.title.strip() or "this topic"
    level = (request.sub_topic.level or request.profile.level).upper()
    if slot.content_type == "vocabulary_matching":
        value = _vocabulary(slot, title, level, rng, request.profile.seen_words)
    else:
        value = BUILDERS[slot.content_type](slot, title, level, rng)
    return validate_slot_value(slot.content_type, value)


def fill_missing(template: Template, request: GenerationRequest, partial: StructuredContent) -> StructuredContent:
    """Keep the valid slots of ``partial`` and synthesize the rest."""
    rng = random.Random(_make_seed(template, request))
    out: StructuredContent = {}
    filled: list[str] = []
    for slot in template.slots:
        if slot.placeholder_key in partial:
            try:
                out[slot.placeholder_key] = validate_slot_value(slot.content_type, partial[slot.placeholder_key])
                continue
            except ValueError:
                pass
        out[slot.placeholder_key] = _build_slot(slot, request, rng)
        filled.append(slot.placeholder_key)
    if filled:
        logger.info("Fallback filled %d/%d slots for %s: %s", len(filled), len(template.slots), template.id, filled)
    return out


def synthesize(template: Template, request: GenerationRequest) -> StructuredContent:
    """Complete fallback document for ``template``; never raises for known content types."""
    return fill_missing(template, request, {})
