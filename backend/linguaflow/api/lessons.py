from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from linguaflow.models.lesson import LessonContentResult, StudentProfile, SubTopic
from linguaflow.models.progress import CompletionSnapshot, LessonSession
from linguaflow.services.discussion_repository import DiscussionRepository, get_discussion_repository
from linguaflow.services.lesson_service import LessonService, get_lesson_service
from linguaflow.services.logical_unit import discussion_unit_id
from linguaflow.services.telemetry import instrument

router = APIRouter(prefix="/api/lessons", tags=["lessons"])


class GenerateLessonRequest(BaseModel):
    student: StudentProfile
    sub_topic: SubTopic


class CompleteRequest(BaseModel):
    student_id: str
    logical_unit_id: str
    title: str = ""
    category: str | None = None
    level: str | None = None
    tutor_id: str | None = None
    lesson_session_id: str | None = None
    score: float | None = None
    notes: str | None = None


class SessionRequest(BaseModel):
    student_id: str
    logical_unit_id: str
    tutor_id: str | None = None
    lesson_id: str | None = None
    lesson_template_id: str | None = None
    sub_topic_data: dict = {}
    interactive_content: dict = {}
    duration_minutes: int | None = None
    status: str = "completed"


class SaveQuestionsRequest(BaseModel):
    questions: list[dict]


@router.post("/generate", response_model=LessonContentResult)
@instrument(route="/api/lessons/generate")
async def generate_lesson(request: GenerateLessonRequest, service: LessonService = Depends(get_lesson_service)):
    """Generate interactive content for one sub-topic.

    Always 200 with quality "ai_generated" or "fallback" unless no template
    exists for the category (404).
    """
    return await service.generate_lesson_content(request.student, request.sub_topic)


@router.post("/complete")
@instrument(route="/api/lessons/complete")
def complete_lesson(request: CompleteRequest, service: LessonService = Depends(get_lesson_service)):
    snapshot = CompletionSnapshot(
        title=request.title,
        category=request.category,
        level=request.level,
        tutor_id=request.tutor_id,
        lesson_session_id=request.lesson_session_id,
        score=request.score,
        notes=request.notes,
    )
    try:
        record = service.mark_completed(request.student_id, request.logical_unit_id, snapshot)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "record": record.to_dict()}


@router.post("/sessions")
@instrument(route="/api/lessons/sessions")
def record_session(request: SessionRequest, service: LessonService = Depends(get_lesson_service)):
    session = service.record_session(LessonSession(**request.model_dump()))
    return {"success": True, "session": session.to_dict()}


@router.get("/progress/{student_id}")
@instrument(route="/api/lessons/progress")
def get_progress(student_id: str, service: LessonService = Depends(get_lesson_service)):
    records = service.get_progress(student_id)
    return {
        "student_id": student_id,
        "completed": [r.to_dict() for r in records],
        "count": len(records),
    }


@router.get("/discussions/{student_id}/topics")
@instrument(route="/api/lessons/discussions/topics")
def list_topics(student_id: str, tutor_id: str | None = None,
                repo: DiscussionRepository = Depends(get_discussion_repository)):
    topics = repo.topics_for_student(student_id, tutor_id)
    return {
        "topics": [dict(t, logical_unit_id=discussion_unit_id(t["id"])) if t.get("id") else t for t in topics],
    }


@router.get("/discussions/topics/{topic_id}/questions")
@instrument(route="/api/lessons/discussions/questions")
def list_questions(topic_id: str, repo: DiscussionRepository = Depends(get_discussion_repository)):
    return {"topic_id": topic_id, "questions": repo.questions_for_topic(topic_id)}


@router.put("/discussions/topics/{topic_id}/questions")
@instrument(route="/api/lessons/discussions/questions.save")
def save_questions(topic_id: str, request: SaveQuestionsRequest,
                   repo: DiscussionRepository = Depends(get_discussion_repository)):
    try:
        saved = repo.save_questions(topic_id, request.questions)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "count": len(saved)}
