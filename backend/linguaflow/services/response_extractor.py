"""
Response Extractor — turns untrusted model text into validated slot content.

Models wrap JSON in prose, markdown fences and vendor control tokens, and now
and then truncate mid-object. Recovery runs as an ordered list of strategies;
each one proposes a candidate string, and the first candidate that parses as
a JSON object *and* fills every slot with a type-valid value wins.

  1. clean       -> fences, sentinel tokens, text after the last balanced '}'
  2. direct      -> json.loads(cleaned)
  3. outer_braces-> cleaned[first '{' : last '}']
  4. balanced    -> largest brace-balanced span (string-aware scan)

Every candidate is also tried with trailing commas removed. Nothing is ever
returned with a missing or wrongly-shaped slot: that raises ParseFailed.

New model quirks go in as a new strategy; existing ones stay untouched.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Callable, Iterator, Optional

from linguaflow.core.errors import ParseFailed
from linguaflow.models.content import SlotValueError, validate_slot_value
from linguaflow.models.lesson import StructuredContent, Template

logger = logging.getLogger("linguaflow.response_extractor")

_FENCE_RE = re.compile(r"```[a-zA-Z]*[ \t]*\n?|```")
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_SENTINEL_RE = re.compile(
    r"<\|[^|>]{0,64}\|>"            # <|im_end|>, <|begin_of_text|>
    r"|<｜[^｜>]{0,64}｜>"            # <｜end▁of▁sentence｜>
    r"|</?s>"
    r"|\[/?INST\]",
)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


# ---------------------------------------------------------------------------
# Scanning helpers
# ---------------------------------------------------------------------------


def _balanced_spans(text: str) -> Iterator[tuple[int, int]]:
    """Yield (start, end) of every top-level brace-balanced {...} span.

    Braces inside JSON strings are ignored. An unterminated object yields
    nothing, which is what keeps truncated output from being accepted.
    """
    depth = 0
    start = -1
    in_string = False
    escape = False
    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            if depth > 0:
                in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield start, i + 1


def _last_balanced_end(text: str) -> Optional[int]:
    end = None
    for _, e in _balanced_spans(text):
        end = e
    return end


# ---------------------------------------------------------------------------
# Strategies: each maps cleaned text to zero or more candidates
# ---------------------------------------------------------------------------


def clean_model_output(raw: str) -> str:
    """Strip non-content artifacts from raw model output."""
    text = raw or ""
    text = _THINK_RE.sub("", text)
    text = _SENTINEL_RE.sub("", text)
    text = _FENCE_RE.sub("", text)
    text = text.strip()
    end = _last_balanced_end(text)
    if end is not None:
        text = text[:end]
    return text.strip()


def _direct(cleaned: str) -> list[str]:
    return [cleaned]


def _outer_braces(cleaned: str) -> list[str]:
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first == -1 or last <= first:
        return []
    return [cleaned[first:last + 1]]


def _largest_balanced(cleaned: str) -> list[str]:
    spans = sorted(_balanced_spans(cleaned), key=lambda s: s[1] - s[0], reverse=True)
    return [cleaned[s:e] for s, e in spans]


STRATEGIES: list[tuple[str, Callable[[str], list[str]]]] = [
    ("direct", _direct),
    ("outer_braces", _outer_braces),
    ("largest_balanced", _largest_balanced),
]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _loads_object(candidate: str) -> Optional[dict]:
    for text in (candidate, _TRAILING_COMMA_RE.sub(r"\1", candidate)):
        try:
            doc = json.loads(text)
        except ValueError:
            continue
        if isinstance(doc, dict):
            return doc
    return None


def validate_document(doc: dict, template: Template) -> tuple[StructuredContent, list[str]]:
    """Validate a parsed document slot by slot.

    Returns (valid slots, keys that are missing or have the wrong shape).
    Keys the template does not declare are dropped.
    """
    valid: StructuredContent = {}
    missing: list[str] = []
    for slot in template.slots:
        if slot.placeholder_key not in doc:
            missing.append(slot.placeholder_key)
            continue
        try:
            valid[slot.placeholder_key] = validate_slot_value(slot.content_type, doc[slot.placeholder_key])
        except SlotValueError as exc:
            logger.info("Slot %s rejected (%s): %s", slot.placeholder_key, slot.content_type, exc)
            missing.append(slot.placeholder_key)
    return valid, missing


def extract(raw_text: str, template: Template) -> StructuredContent:
    """Recover one complete, type-valid document for ``template`` from ``raw_text``."""
    if not raw_text or not raw_text.strip():
        raise ParseFailed("empty model output", missing=template.placeholder_keys)

    cleaned = clean_model_output(raw_text)
    best_valid: StructuredContent = {}
    best_missing: Optional[list[str]] = None
    tried: set[str] = set()

    for name, strategy in STRATEGIES:
        for candidate in strategy(cleaned):
            if candidate in tried:
                continue
            tried.add(candidate)
            doc = _loads_object(candidate)
            if doc is None:
                continue
            valid, missing = validate_document(doc, template)
            if not missing:
                logger.debug("Extracted %d slots via %s", len(valid), name)
                return valid
            if best_missing is None or len(missing) < len(best_missing):
                best_valid, best_missing = valid, missing

    if best_missing is None:
        raise ParseFailed("no parseable JSON object in model output", missing=template.placeholder_keys)
    raise ParseFailed("model output is missing required slots", missing=best_missing, partial=best_valid)

