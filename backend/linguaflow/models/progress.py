from dataclasses import dataclass, asdict, field
from typing import Optional


@dataclass
class CompletionSnapshot:
    """What the caller knows about the unit at completion time."""
    title: str = ""
    category: Optional[str] = None
    level: Optional[str] = None
    tutor_id: Optional[str] = None
    lesson_session_id: Optional[str] = None
    score: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class CompletionRecord:
    student_id: str
    logical_unit_id: str
    title: str = ""
    category: Optional[str] = None
    level: Optional[str] = None
    tutor_id: Optional[str] = None
    lesson_session_id: Optional[str] = None
    score: Optional[float] = None
    notes: Optional[str] = None
    completed_at: float = 0.0

    @classmethod
    def from_snapshot(cls, student_id: str, logical_unit_id: str,
                      snapshot: CompletionSnapshot, completed_at: float) -> "CompletionRecord":
        return cls(
            student_id=student_id,
            logical_unit_id=logical_unit_id,
            title=snapshot.title,
            category=snapshot.category,
            level=snapshot.level,
            tutor_id=snapshot.tutor_id,
            lesson_session_id=snapshot.lesson_session_id,
            score=snapshot.score,
            notes=snapshot.notes,
            completed_at=completed_at,
        )

    def to_dict(self):
        return asdict(self)


@dataclass
class LessonSession:
    student_id: str
    logical_unit_id: str
    tutor_id: Optional[str] = None
    lesson_id: Optional[str] = None
    lesson_template_id: Optional[str] = None
    sub_topic_data: dict = field(default_factory=dict)
    interactive_content: dict = field(default_factory=dict)
    duration_minutes: Optional[int] = None
    status: str = "completed"   # completed | in_progress | cancelled
    id: Optional[str] = None
    completed_at: float = 0.0

    def to_dict(self):
        return asdict(self)
