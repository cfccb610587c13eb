"""
Tests for the response extractor: recovery of a template-valid document from
noisy model output. Fully offline.
"""
import sys
import os
import json

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from linguaflow.core.errors import ParseFailed
from linguaflow.models.lesson import Slot, Template
from linguaflow.services.response_extractor import clean_model_output, extract, validate_document


def _template():
    return Template(
        id="t1",
        name="Mini",
        category="Travel",
        level="B1",
        slots=(
            Slot(id="intro", content_type="text", placeholder_key="introduction_overview"),
            Slot(id="vocab", content_type="vocabulary_matching", placeholder_key="vocabulary_items"),
            Slot(id="expr", content_type="list", placeholder_key="useful_expressions"),
        ),
    )


def _doc():
    return {
        "introduction_overview": "Checking in at a hotel.",
        "vocabulary_items": [
            {"word": "reservation", "definition": "a booked room", "part_of_speech": "noun",
             "examples": ["I have a reservation."]},
        ],
        "useful_expressions": ["Could I check in, please?", "Is breakfast included?"],
    }


class TestCleanModelOutput:
    def test_strips_markdown_fence(self):
        raw = "```json\n{\"a\": 1}\n```"
        assert clean_model_output(raw) == '{"a": 1}'

    def test_strips_sentinel_tokens_and_think_blocks(self):
        raw = '<think>plan the lesson {draft}</think><|im_start|>{"a": 1}<|im_end|>'
        assert clean_model_output(raw) == '{"a": 1}'

    def test_drops_trailing_prose_after_last_object(self):
        assert clean_model_output('{"a": 1}\n\nHope this helps!') == '{"a": 1}'


class TestExtract:
    def test_plain_json(self):
        content = extract(json.dumps(_doc()), _template())
        assert content["introduction_overview"] == "Checking in at a hotel."
        assert content["vocabulary_items"][0]["word"] == "reservation"

    def test_json_wrapped_in_prose_and_fences(self):
        raw = "Sure! Here is your lesson:\n```json\n" + json.dumps(_doc(), indent=2) + "\n```\nEnjoy."
        content = extract(raw, _template())
        assert set(content) == {"introduction_overview", "vocabulary_items", "useful_expressions"}

    def test_trailing_commas_are_repaired(self):
        raw = json.dumps(_doc())[:-1] + ",}"
        raw = raw.replace('"Is breakfast included?"]', '"Is breakfast included?",]')
        content = extract(raw, _template())
        assert content["useful_expressions"][-1] == "Is breakfast included?"

    def test_braces_inside_strings_do_not_confuse_scan(self):
        doc = _doc()
        doc["introduction_overview"] = "Use {curly} braces } carefully"
        raw = "{draft} " + json.dumps(doc)
        content = extract(raw, _template())
        assert content["introduction_overview"] == "Use {curly} braces } carefully"

    def test_camel_case_vocabulary_keys_are_normalized(self):
        doc = _doc()
        doc["vocabulary_items"] = [
            {"word": "lobby", "definition": "hotel entrance hall", "partOfSpeech": "noun",
             "example_sentences": ["Meet me in the lobby."]},
        ]
        content = extract(json.dumps(doc), _template())
        assert content["vocabulary_items"][0]["part_of_speech"] == "noun"
        assert content["vocabulary_items"][0]["examples"] == ["Meet me in the lobby."]

    def test_extracting_extracted_content_is_stable(self):
        doc = _doc()
        doc["vocabulary_items"] = [
            {"word": " lobby ", "definition": "hotel entrance hall", "partOfSpeech": "noun",
             "example_sentences": ["Meet me in the lobby.", "  "]},
        ]
        raw = "Here it is:\n```json\n" + json.dumps(doc) + "\n```"
        first = extract(raw, _template())
        assert extract(json.dumps(first), _template()) == first

    def test_undeclared_keys_are_dropped(self):
        doc = _doc()
        doc["bonus"] = "extra"
        assert "bonus" not in extract(json.dumps(doc), _template())

    def test_missing_slot_raises_with_partial(self):
        doc = _doc()
        del doc["useful_expressions"]
        with pytest.raises(ParseFailed) as ei:
            extract(json.dumps(doc), _template())
        assert ei.value.missing == ["useful_expressions"]
        assert "introduction_overview" in ei.value.partial

    def test_wrong_shape_counts_as_missing(self):
        doc = _doc()
        doc["useful_expressions"] = "not a list"
        with pytest.raises(ParseFailed) as ei:
            extract(json.dumps(doc), _template())
        assert "useful_expressions" in ei.value.missing

    def test_truncated_output_is_never_accepted(self):
        raw = json.dumps(_doc())[:-20]
        with pytest.raises(ParseFailed):
            extract(raw, _template())

    def test_empty_output_raises(self):
        with pytest.raises(ParseFailed) as ei:
            extract("   ", _template())
        assert ei.value.missing == _template().placeholder_keys

    def test_top_level_array_is_rejected(self):
        with pytest.raises(ParseFailed):
            extract("[1, 2, 3]", _template())


class TestValidateDocument:
    def test_reports_invalid_vocabulary(self):
        doc = _doc()
        doc["vocabulary_items"] = [{"word": "x", "definition": "", "part_of_speech": "noun", "examples": ["x"]}]
        valid, missing = validate_document(doc, _template())
        assert missing == ["vocabulary_items"]
        assert "vocabulary_items" not in valid
