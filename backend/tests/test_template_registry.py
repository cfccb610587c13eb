"""Tests for TemplateRegistry — resolution policy and template sources."""
import sys
import os
import json
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from linguaflow.core.errors import TemplateNotFound
from linguaflow.models.lesson import Slot, Template
from linguaflow.services.template_registry import (
    TemplateRegistry,
    load_bundled_templates,
    load_supabase_templates,
)


def _t(tid, category, level, keys=("intro",)):
    return Template(
        id=tid, name=tid, category=category, level=level,
        slots=tuple(Slot(id=k, content_type="text", placeholder_key=k) for k in keys),
    )


@pytest.fixture
def registry():
    return TemplateRegistry([
        _t("travel-b1", "Travel", "B1"),
        _t("travel-a2", "Travel", "A2"),
        _t("grammar-b1", "Grammar", "B1"),
        _t("conversation-b1", "Conversation", "B1"),
    ])


class TestResolve:
    def test_exact_match(self, registry):
        match = registry.resolve("Travel", "B1")
        assert match.template.id == "travel-b1"
        assert match.exact is True

    def test_match_is_case_and_whitespace_insensitive(self, registry):
        assert registry.resolve("  travel ", "b1").template.id == "travel-b1"

    def test_category_only_match_is_flagged(self, registry, caplog):
        with caplog.at_level("WARNING", logger="linguaflow.template_registry"):
            match = registry.resolve("Travel", "C1")
        assert match.exact is False
        # lowest level of the category wins
        assert match.template.id == "travel-a2"
        assert "using category match" in caplog.text

    def test_unknown_category_raises(self, registry):
        with pytest.raises(TemplateNotFound) as ei:
            registry.resolve("Astronomy", "B1")
        assert ei.value.category == "Astronomy"

    def test_slots_for(self, registry):
        slots = registry.slots_for("Grammar", "B1")
        assert [s.placeholder_key for s in slots] == ["intro"]

    def test_duplicate_keeps_first(self):
        reg = TemplateRegistry([_t("first", "Travel", "B1"), _t("second", "travel", "b1")])
        assert len(reg) == 1
        assert reg.resolve("Travel", "B1").template.id == "first"


class TestSelectForPlan:
    def test_keyword_in_title_wins(self, registry):
        t = registry.select_for_plan("B1", "Booking a hotel room", ["role play"])
        assert t.id == "travel-b1"

    def test_activities_count_when_title_is_neutral(self, registry):
        t = registry.select_for_plan("B1", "Week 3", ["verb tense drills"])
        assert t.id == "grammar-b1"

    def test_defaults_to_conversation(self, registry):
        t = registry.select_for_plan("B1", "Week 3", [])
        assert t.id == "conversation-b1"

    def test_unknown_level_raises(self, registry):
        with pytest.raises(TemplateNotFound):
            registry.select_for_plan("C2", "Anything")


class TestTemplateModel:
    def test_duplicate_placeholder_keys_rejected(self):
        with pytest.raises(ValueError):
            _t("bad", "Travel", "B1", keys=("intro", "intro"))

    def test_empty_template_rejected(self):
        with pytest.raises(ValueError):
            Template(id="empty", name="e", category="Travel", level="B1", slots=())

    def test_unknown_content_type_rejected(self):
        with pytest.raises(ValueError):
            Slot(id="x", content_type="crossword", placeholder_key="x")

    def test_templates_are_immutable(self):
        t = _t("x", "Travel", "B1")
        with pytest.raises(Exception):
            t.level = "C1"

    def test_from_document_skips_sections_without_placeholder(self):
        doc = {
            "name": "Doc",
            "sections": [
                {"id": "header", "type": "title", "title": "Lesson Title Here"},
                {"id": "intro", "content_type": "text", "ai_placeholder": "introduction_overview"},
            ],
        }
        t = Template.from_document("doc-1", "Travel", "B1", doc)
        assert t.placeholder_keys == ["introduction_overview"]


class TestSources:
    def test_bundled_templates_load(self):
        templates = load_bundled_templates()
        reg = TemplateRegistry(templates)
        travel = reg.resolve("Travel", "B1").template
        assert "vocabulary_items" in travel.placeholder_keys
        assert len(reg) == len(templates)

    def test_invalid_rows_are_skipped(self, tmp_path):
        path = tmp_path / "templates.json"
        path.write_text(json.dumps({"templates": [
            {"id": "ok", "category": "Travel", "level": "B1",
             "template_json": {"sections": [{"content_type": "text", "ai_placeholder": "intro"}]}},
            {"id": "no-slots", "category": "Travel", "level": "A2", "template_json": {"sections": []}},
            {"id": "no-category", "level": "A2", "template_json": {}},
        ]}))
        templates = load_bundled_templates(path)
        assert [t.id for t in templates] == ["ok"]

    def test_supabase_rows_with_string_json(self):
        sb = MagicMock()
        row = {
            "id": 7, "category": "Grammar", "level": "B2",
            "template_json": json.dumps({"sections": [{"content_type": "list", "ai_placeholder": "examples"}]}),
        }
        sb.table.return_value.select.return_value.eq.return_value.execute.return_value = MagicMock(data=[row])
        templates = load_supabase_templates(sb)
        sb.table.assert_called_with("lesson_templates")
        sb.table.return_value.select.return_value.eq.assert_called_with("is_active", True)
        assert templates[0].id == "7"
        assert templates[0].slots[0].content_type == "list"
