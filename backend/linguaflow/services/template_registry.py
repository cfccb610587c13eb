"""
Template Registry — resolves the lesson template for a (category, level) pair.

Templates come either from the bundled lesson_templates.json or from the
Supabase ``lesson_templates`` table (active rows). Once loaded they are
frozen; edits happen out-of-band through admin tooling and take effect on the
next registry build.

Matching policy:
  1. exact (category, level) match
  2. category-only match, logged as a warning (best-effort level)
  3. TemplateNotFound (never an empty template)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from linguaflow.core.errors import TemplateNotFound
from linguaflow.models.lesson import Slot, Template

logger = logging.getLogger("linguaflow.template_registry")

BUNDLED_TEMPLATES = Path(__file__).parent.parent / "data" / "lesson_templates.json"

DEFAULT_CATEGORY = "Conversation"

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Grammar": ["grammar", "tense", "verb", "noun", "adjective", "sentence", "structure"],
    "Conversation": ["conversation", "speaking", "dialogue", "discussion", "talk", "chat"],
    "Business English": ["business", "professional", "work", "office", "meeting", "presentation", "networking"],
    "English for Kids": ["kids", "children", "young", "fun", "game", "story", "play"],
    "Travel": ["travel", "airport", "hotel", "restaurant", "directions", "vacation"],
    "Picture Description": ["picture", "image", "describe", "visual", "photo"],
    "Vocabulary": ["vocabulary", "words", "meaning", "definition"],
    "Pronunciation": ["pronunciation", "sound", "phonics", "accent", "intonation"],
}


def _norm(value: str) -> str:
    return " ".join((value or "").split()).lower()


@dataclass(frozen=True)
class TemplateMatch:
    template: Template
    exact: bool


class TemplateRegistry:
    def __init__(self, templates: Iterable[Template]):
        self._by_key: dict[tuple[str, str], Template] = {}
        self._by_category: dict[str, list[Template]] = {}
        for t in templates:
            key = (_norm(t.category), _norm(t.level))
            if key in self._by_key:
                logger.warning(
                    "Duplicate template for %s/%s: keeping %s, ignoring %s",
                    t.category, t.level, self._by_key[key].id, t.id,
                )
                continue
            self._by_key[key] = t
            self._by_category.setdefault(_norm(t.category), []).append(t)
        for bucket in self._by_category.values():
            bucket.sort(key=lambda t: _norm(t.level))

    def __len__(self) -> int:
        return len(self._by_key)

    def resolve(self, category: str, level: str) -> TemplateMatch:
        exact = self._by_key.get((_norm(category), _norm(level)))
        if exact is not None:
            return TemplateMatch(template=exact, exact=True)

        candidates = self._by_category.get(_norm(category))
        if candidates:
            chosen = candidates[0]
            logger.warning(
                "No template for %s/%s; using category match %s (level %s)",
                category, level, chosen.id, chosen.level,
            )
            return TemplateMatch(template=chosen, exact=False)

        raise TemplateNotFound(category, level)

    def slots_for(self, category: str, level: str) -> tuple[Slot, ...]:
        return self.resolve(category, level).template.slots

    def select_for_plan(self, level: str, title: str, activities: Iterable[str] = ()) -> Template:
        """Pick the best template of ``level`` for a free-form lesson plan.

        Category keywords score 3 per hit in the title and 1 per hit in the
        activities. With no hits the level's Conversation template is used,
        then the first template of the level.
        """
        level_matches = [t for (cat, lvl), t in sorted(self._by_key.items()) if lvl == _norm(level)]
        if not level_matches:
            raise TemplateNotFound("*", level)

        title_l = (title or "").lower()
        activities_l = " ".join(activities).lower()

        best: Optional[Template] = None
        best_score = 0
        for t in level_matches:
            score = 0
            for kw in CATEGORY_KEYWORDS.get(t.category, []):
                if kw in title_l:
                    score += 3
                if kw in activities_l:
                    score += 1
            if score > best_score:
                best, best_score = t, score

        if best is not None:
            logger.info("Selected template %s (score %d)", best.id, best_score)
            return best

        for t in level_matches:
            if _norm(t.category) == _norm(DEFAULT_CATEGORY):
                logger.info("Using default %s template for level %s", DEFAULT_CATEGORY, level)
                return t

        logger.info("Using first available template for level %s: %s", level, level_matches[0].id)
        return level_matches[0]


# ---------------------------------------------------------------------------
# Template sources
# ---------------------------------------------------------------------------


def _template_from_row(row: dict) -> Template:
    document = row.get("template_json") or {}
    if isinstance(document, str):
        document = json.loads(document)
    return Template.from_document(
        template_id=str(row["id"]),
        category=row["category"],
        level=row["level"],
        document=document,
    )


def _build_all(rows: Iterable[dict], source: str) -> list[Template]:
    templates: list[Template] = []
    for row in rows:
        try:
            templates.append(_template_from_row(row))
        except (KeyError, ValueError) as exc:
            logger.warning("Skipping invalid template %r from %s: %s", row.get("id"), source, exc)
    return templates


def load_bundled_templates(path: Path = BUNDLED_TEMPLATES) -> list[Template]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return _build_all(data.get("templates", []), str(path))


def load_supabase_templates(supabase_client) -> list[Template]:
    r = (
        supabase_client.table("lesson_templates")
        .select("id,name,category,level,template_json")
        .eq("is_active", True)
        .execute()
    )
    rows = getattr(r, "data", None) or []
    return _build_all(rows, "supabase:lesson_templates")


_REGISTRY: Optional[TemplateRegistry] = None


def get_template_registry() -> TemplateRegistry:
    """Return the process-wide registry built from the bundled templates."""
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = TemplateRegistry(load_bundled_templates())
        logger.info("Template registry loaded: %d templates", len(_REGISTRY))
    return _REGISTRY
