"""
Value shapes for template slots, one per content_type.

validate_slot_value() is the single entry point: it returns the normalized
value or raises SlotValueError. Validation is strict about structure and
lenient about cosmetics (surrounding whitespace, camelCase keys the models
like to emit).
"""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

BLANK_MARKER = "___"


class SlotValueError(ValueError):
    pass


class _Item(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


NonEmptyStr = Annotated[str, Field(min_length=1)]


class VocabularyItem(_Item):
    word: NonEmptyStr
    definition: NonEmptyStr
    part_of_speech: NonEmptyStr
    examples: list[str] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _camel_case_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if "part_of_speech" not in data and "partOfSpeech" in data:
                data["part_of_speech"] = data.pop("partOfSpeech")
            if "examples" not in data and "example_sentences" in data:
                data["examples"] = data.pop("example_sentences")
        return data

    @field_validator("examples")
    @classmethod
    def _non_blank_examples(cls, v: list[str]) -> list[str]:
        cleaned = [e.strip() for e in v if isinstance(e, str) and e.strip()]
        if not cleaned:
            raise ValueError("examples must contain at least one sentence")
        return cleaned


class DialogueLine(_Item):
    character: NonEmptyStr
    text: NonEmptyStr


class MatchingPair(_Item):
    question: NonEmptyStr
    answer: NonEmptyStr


class SentenceChoice(_Item):
    sentence: NonEmptyStr
    options: list[str] = Field(min_length=2)
    correct_answer: NonEmptyStr

    @model_validator(mode="after")
    def _answer_is_an_option(self) -> "SentenceChoice":
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of options")
        return self


def _non_empty_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SlotValueError("expected non-empty text")
    return value.strip()


def _non_empty_list(value: Any) -> list[str]:
    if not isinstance(value, list) or not value:
        raise SlotValueError("expected a non-empty list of strings")
    out: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise SlotValueError("list items must be non-empty strings")
        out.append(item.strip())
    return out


def _records(model: type[_Item]):
    adapter = TypeAdapter(list[model])

    def validate(value: Any) -> list[dict]:
        if not isinstance(value, list) or not value:
            raise SlotValueError(f"expected a non-empty list of {model.__name__} records")
        try:
            items = adapter.validate_python(value)
        except ValidationError as exc:
            raise SlotValueError(f"invalid {model.__name__}: {exc.errors()[0]['msg']}") from exc
        return [item.model_dump() for item in items]

    return validate


_validate_dialogue = _records(DialogueLine)


def _blanks_dialogue(value: Any) -> list[dict]:
    lines = _validate_dialogue(value)
    if not any(BLANK_MARKER in line["text"] for line in lines):
        raise SlotValueError(f"dialogue needs at least one {BLANK_MARKER} blank")
    return lines


VALIDATORS = {
    "text": _non_empty_text,
    "list": _non_empty_list,
    "vocabulary_matching": _records(VocabularyItem),
    "full_dialogue": _validate_dialogue,
    "fill_in_the_blanks_dialogue": _blanks_dialogue,
    "matching": _records(MatchingPair),
    "complete_sentence": _records(SentenceChoice),
}

CONTENT_TYPES = frozenset(VALIDATORS)

VOCABULARY_TYPES = frozenset({"vocabulary_matching"})


def validate_slot_value(content_type: str, value: Any):
    """Return the normalized value for a slot of ``content_type``."""
    validator = VALIDATORS.get(content_type)
    if validator is None:
        raise SlotValueError(f"unknown content_type {content_type!r}")
    if value is None:
        raise SlotValueError("value is null")
    return validator(value)
