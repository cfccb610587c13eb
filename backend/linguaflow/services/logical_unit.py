"""
Logical unit identity — the stable id a completion record is keyed by.

One canonical derivation per content category. None of them may include a
generation timestamp or random suffix: regenerating a sub-topic must yield
the same id, otherwise its completion state detaches from the new render and
a second history row appears.
"""
import hashlib
import re

from linguaflow.models.lesson import SubTopic

# Unicode-aware: Japanese, Cyrillic and accented titles keep their letters
_SLUG_RE = re.compile(r"[\W_]+")
# Old ids carried a 13-digit millisecond timestamp: lesson123_1735123456789_subtopic_1_1
_LEGACY_TIMESTAMP_RE = re.compile(r"_\d{13}(?=_)")


def slugify(value: str) -> str:
    slug = _SLUG_RE.sub("-", (value or "").lower()).strip("-")
    if not slug:
        raise ValueError(f"cannot derive an identifier from {value!r}")
    return slug


def stable_slug(value: str) -> str:
    """slugify(), or a short digest of the normalized text when nothing slug-able is left."""
    try:
        return slugify(value)
    except ValueError:
        normalized = " ".join((value or "").split()).lower()
        return "t" + hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:12]


def lesson_unit_id(lesson_id: str, index: int | None = None, title: str | None = None) -> str:
    """``{lesson_id}_subtopic_{index}``, or the title slug when no index is known."""
    if not lesson_id:
        raise ValueError("lesson_id is required")
    if index is not None:
        return f"{lesson_id}_subtopic_{index}"
    if title is not None:
        return f"{lesson_id}_subtopic_{stable_slug(title)}"
    raise ValueError("either index or title is required")


def discussion_unit_id(topic_id: str) -> str:
    if not topic_id:
        raise ValueError("topic_id is required")
    return f"discussion_{topic_id}"


def vocabulary_unit_id(student_id: str, level: str) -> str:
    if not student_id:
        raise ValueError("student_id is required")
    return f"vocabulary_{student_id}_{stable_slug(level)}"


def unit_id_for_sub_topic(sub_topic: SubTopic) -> str:
    """Canonical id for a lesson sub-topic.

    Sub-topics attached to a lesson use the lesson derivation. Free-standing
    ones (custom topics) fall back to their own stable id, then to a slug of
    category, level and title.
    """
    if sub_topic.lesson_id:
        return lesson_unit_id(sub_topic.lesson_id, sub_topic.index, sub_topic.title)
    if sub_topic.id:
        return normalize_legacy_unit_id(sub_topic.id)
    return (
        f"custom_{stable_slug(sub_topic.category)}_{stable_slug(sub_topic.level)}_{stable_slug(sub_topic.title)}"
    )


def normalize_legacy_unit_id(unit_id: str) -> str:
    """Strip the embedded millisecond timestamp from pre-fix ids."""
    return _LEGACY_TIMESTAMP_RE.sub("", unit_id, count=1)
