"""HTTP tests for the lessons router. Services are swapped via dependency_overrides."""
import sys
import os
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from linguaflow.core.errors import ModelUnavailable, PersistenceConflict, PersistenceUnavailable
from linguaflow.main import app
from linguaflow.services.content_synthesizer import ContentSynthesizer
from linguaflow.services.discussion_repository import DiscussionRepository, get_discussion_repository
from linguaflow.services.lesson_service import LessonService, get_lesson_service
from linguaflow.services.progress_store import InMemoryProgressStore
from linguaflow.services.template_registry import TemplateRegistry, load_bundled_templates
from linguaflow.services.ttl_cache import TTLCache

client = TestClient(app)


class _DownModel:
    async def generate_text(self, prompt):
        raise ModelUnavailable("provider down")


@pytest.fixture
def service():
    svc = LessonService(
        TemplateRegistry(load_bundled_templates()),
        ContentSynthesizer(_DownModel(), timeout_seconds=5),
        InMemoryProgressStore(),
    )
    app.dependency_overrides[get_lesson_service] = lambda: svc
    yield svc
    app.dependency_overrides.clear()


def _payload(category="Travel"):
    return {
        "student": {"id": "s1", "name": "Ana", "level": "B1", "seen_words": ["hotel"]},
        "sub_topic": {"title": "Checking into a hotel", "category": category, "level": "B1",
                      "lesson_id": "lesson42", "index": 1},
    }


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_generate_serves_fallback_when_model_is_down(service):
    response = client.post("/api/lessons/generate", json=_payload())
    assert response.status_code == 200
    body = response.json()
    assert body["quality"] == "fallback"
    assert body["template_id"] == "travel-b1"
    assert body["logical_unit_id"] == "lesson42_subtopic_1"
    assert "vocabulary_items" in body["content"]


def test_generate_with_japanese_title_and_no_index(service):
    payload = _payload()
    payload["sub_topic"] = {"title": "日本の旅行", "category": "Travel", "level": "B1", "lesson_id": "L1"}
    response = client.post("/api/lessons/generate", json=payload)
    assert response.status_code == 200
    assert response.json()["logical_unit_id"] == "L1_subtopic_日本の旅行"


def test_generate_unknown_category_is_404(service):
    response = client.post("/api/lessons/generate", json=_payload(category="Astronomy"))
    assert response.status_code == 404
    assert response.json()["retryable"] is False


def test_complete_then_progress(service):
    for _ in range(2):
        response = client.post("/api/lessons/complete", json={
            "student_id": "s1", "logical_unit_id": "lesson42_subtopic_1", "title": "Checking into a hotel",
        })
        assert response.status_code == 200
    progress = client.get("/api/lessons/progress/s1").json()
    assert progress["count"] == 1
    assert progress["completed"][0]["logical_unit_id"] == "lesson42_subtopic_1"


def test_complete_missing_ids_is_400(service):
    response = client.post("/api/lessons/complete", json={"student_id": "", "logical_unit_id": "u1"})
    assert response.status_code == 400


@pytest.mark.parametrize("exc,status", [
    (PersistenceConflict("serialization failure"), 409),
    (PersistenceUnavailable("db down"), 503),
])
def test_persistence_errors_are_retryable(service, exc, status):
    service.store = MagicMock()
    service.store.record_completion.side_effect = exc
    response = client.post("/api/lessons/complete", json={"student_id": "s1", "logical_unit_id": "u1"})
    assert response.status_code == status
    assert response.json()["retryable"] is True


def test_record_session(service):
    response = client.post("/api/lessons/sessions", json={
        "student_id": "s1", "logical_unit_id": "lesson42_subtopic_1", "duration_minutes": 30,
    })
    assert response.status_code == 200
    assert response.json()["session"]["id"]


def test_discussion_questions_route():
    sb = MagicMock()
    sb.table.return_value.select.return_value.eq.return_value.order.return_value.execute.return_value = \
        MagicMock(data=[{"question_text": "Where did you go last summer?", "question_order": 1}])
    repo = DiscussionRepository(sb, TTLCache(60))
    app.dependency_overrides[get_discussion_repository] = lambda: repo
    try:
        response = client.get("/api/lessons/discussions/topics/t1/questions")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 200
    assert json.loads(response.text)["questions"][0]["question_order"] == 1


@pytest.mark.parametrize("method,path,route", [
    ("post", "/api/lessons/sessions", "/api/lessons/sessions"),
    ("get", "/api/lessons/discussions/s1/topics", "/api/lessons/discussions/topics"),
    ("get", "/api/lessons/discussions/topics/t1/questions", "/api/lessons/discussions/questions"),
])
def test_routes_emit_api_call_events(service, method, path, route):
    sb = MagicMock()
    sb.table.return_value.select.return_value.eq.return_value.order.return_value.execute.return_value = \
        MagicMock(data=[])
    app.dependency_overrides[get_discussion_repository] = lambda: DiscussionRepository(sb, TTLCache(60))
    body = {"student_id": "s1", "logical_unit_id": "u1"} if method == "post" else None
    with patch("linguaflow.services.telemetry.emit_event") as emit:
        response = client.request(method.upper(), path, json=body)
    assert response.status_code == 200
    assert emit.call_args.kwargs["route"] == route
    assert emit.call_args.kwargs["ok"] is True
