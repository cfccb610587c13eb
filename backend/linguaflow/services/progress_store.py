"""
Progress / session store — "student X completed unit Y", at most once.

Every write is an upsert keyed by (student_id, logical_unit_id): the
Supabase backend relies on the unique constraint behind
``on_conflict="student_id,sub_topic_id"``, the in-memory backend on a lock
around the keyed dict. There is no read-then-insert path, so a double click
or a regeneration race cannot mint a second row.
"""
import logging
import os
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from postgrest.exceptions import APIError

from linguaflow.core.errors import PersistenceConflict, PersistenceUnavailable
from linguaflow.models.progress import CompletionRecord, CompletionSnapshot, LessonSession

logger = logging.getLogger("linguaflow.progress_store")

PROGRESS_TABLE = "student_progress"
SESSIONS_TABLE = "lesson_sessions"
NATURAL_KEY = "student_id,sub_topic_id"

# Postgres SQLSTATEs worth retrying: unique_violation, serialization_failure, deadlock_detected
_CONFLICT_CODES = {"23505", "40001", "40P01"}


class ProgressStore:
    def record_completion(self, student_id: str, logical_unit_id: str,
                          snapshot: CompletionSnapshot) -> CompletionRecord:
        raise NotImplementedError

    def has_completed(self, student_id: str, logical_unit_id: str) -> bool:
        return self.get(student_id, logical_unit_id) is not None

    def get(self, student_id: str, logical_unit_id: str) -> Optional[CompletionRecord]:
        raise NotImplementedError

    def completion_date(self, student_id: str, logical_unit_id: str) -> Optional[float]:
        record = self.get(student_id, logical_unit_id)
        return record.completed_at if record else None

    def list_student(self, student_id: str) -> list[CompletionRecord]:
        raise NotImplementedError

    def record_session(self, session: LessonSession) -> LessonSession:
        raise NotImplementedError

    def list_sessions(self, student_id: str, limit: int = 50, offset: int = 0) -> list[LessonSession]:
        raise NotImplementedError


class InMemoryProgressStore(ProgressStore):
    def __init__(self, clock=time.time):
        self._records: dict[tuple[str, str], CompletionRecord] = {}
        self._sessions: dict[tuple[str, str], LessonSession] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def record_completion(self, student_id, logical_unit_id, snapshot):
        key = (student_id, logical_unit_id)
        with self._lock:
            record = CompletionRecord.from_snapshot(student_id, logical_unit_id, snapshot, self._clock())
            existing = self._records.get(key)
            if existing is not None and record.lesson_session_id is None:
                record.lesson_session_id = existing.lesson_session_id
            self._records[key] = record
            return record

    def get(self, student_id, logical_unit_id):
        return self._records.get((student_id, logical_unit_id))

    def list_student(self, student_id):
        out = [r for (sid, _), r in self._records.items() if sid == student_id]
        out.sort(key=lambda r: r.completed_at, reverse=True)
        return out

    def record_session(self, session):
        key = (session.student_id, session.logical_unit_id)
        with self._lock:
            existing = self._sessions.get(key)
            session.id = existing.id if existing is not None else str(uuid.uuid4())
            session.completed_at = self._clock()
            self._sessions[key] = session
            return session

    def list_sessions(self, student_id, limit=50, offset=0):
        out = [s for (sid, _), s in self._sessions.items() if sid == student_id]
        out.sort(key=lambda s: s.completed_at, reverse=True)
        return out[offset:offset + limit]

    def __len__(self):
        return len(self._records)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _epoch(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp()


def _translate(exc: Exception, action: str):
    if isinstance(exc, APIError) and str(getattr(exc, "code", "")) in _CONFLICT_CODES:
        return PersistenceConflict(f"{action}: {exc}")
    return PersistenceUnavailable(f"{action}: {exc}")


class SupabaseProgressStore(ProgressStore):
    def __init__(self, supabase_client, clock=time.time):
        self.sb = supabase_client
        self._clock = clock

    def record_completion(self, student_id, logical_unit_id, snapshot):
        record = CompletionRecord.from_snapshot(student_id, logical_unit_id, snapshot, self._clock())
        payload = {
            "student_id": student_id,
            "sub_topic_id": logical_unit_id,
            "tutor_id": snapshot.tutor_id,
            "sub_topic_title": snapshot.title,
            "sub_topic_category": snapshot.category,
            "sub_topic_level": snapshot.level,
            "score": snapshot.score,
            "notes": snapshot.notes,
            "completion_date": _iso(record.completed_at),
        }
        if snapshot.lesson_session_id is not None:
            payload["lesson_session_id"] = snapshot.lesson_session_id
        try:
            (
                self.sb.table(PROGRESS_TABLE)
                .upsert(payload, on_conflict=NATURAL_KEY)
                .execute()
            )
        except Exception as exc:
            logger.error("[progress_store.record_completion] %s/%s: %s", student_id, logical_unit_id, exc)
            raise _translate(exc, "record_completion") from exc
        return record

    def _row_to_record(self, d: dict) -> CompletionRecord:
        return CompletionRecord(
            student_id=d["student_id"],
            logical_unit_id=d["sub_topic_id"],
            title=d.get("sub_topic_title") or "",
            category=d.get("sub_topic_category"),
            level=d.get("sub_topic_level"),
            tutor_id=d.get("tutor_id"),
            lesson_session_id=d.get("lesson_session_id"),
            score=d.get("score"),
            notes=d.get("notes"),
            completed_at=_epoch(d.get("completion_date")),
        )

    def get(self, student_id, logical_unit_id):
        try:
            r = (
                self.sb.table(PROGRESS_TABLE)
                .select("*")
                .eq("student_id", student_id)
                .eq("sub_topic_id", logical_unit_id)
                .maybe_single()
                .execute()
            )
        except Exception as exc:
            raise _translate(exc, "get") from exc
        data = getattr(r, "data", None) if r is not None else None
        if not data:
            return None
        return self._row_to_record(data)

    def list_student(self, student_id):
        try:
            r = (
                self.sb.table(PROGRESS_TABLE)
                .select("*")
                .eq("student_id", student_id)
                .order("completion_date", desc=True)
                .execute()
            )
        except Exception as exc:
            raise _translate(exc, "list_student") from exc
        rows = getattr(r, "data", None) or []
        return [self._row_to_record(d) for d in rows]

    def record_session(self, session):
        session.completed_at = self._clock()
        payload = {
            "student_id": session.student_id,
            "sub_topic_id": session.logical_unit_id,
            "tutor_id": session.tutor_id,
            "lesson_id": session.lesson_id,
            "lesson_template_id": session.lesson_template_id,
            "sub_topic_data": session.sub_topic_data,
            "interactive_content": session.interactive_content,
            "duration_minutes": session.duration_minutes,
            "status": session.status,
            "completed_at": _iso(session.completed_at),
        }
        try:
            r = (
                self.sb.table(SESSIONS_TABLE)
                .upsert(payload, on_conflict=NATURAL_KEY)
                .execute()
            )
        except Exception as exc:
            logger.error("[progress_store.record_session] %s/%s: %s",
                         session.student_id, session.logical_unit_id, exc)
            raise _translate(exc, "record_session") from exc
        rows = getattr(r, "data", None) or []
        if rows:
            session.id = rows[0].get("id")
        return session

    def list_sessions(self, student_id, limit=50, offset=0):
        try:
            r = (
                self.sb.table(SESSIONS_TABLE)
                .select("*")
                .eq("student_id", student_id)
                .order("completed_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as exc:
            raise _translate(exc, "list_sessions") from exc
        out = []
        for d in getattr(r, "data", None) or []:
            out.append(LessonSession(
                id=d.get("id"),
                student_id=d["student_id"],
                logical_unit_id=d["sub_topic_id"],
                tutor_id=d.get("tutor_id"),
                lesson_id=d.get("lesson_id"),
                lesson_template_id=d.get("lesson_template_id"),
                sub_topic_data=d.get("sub_topic_data") or {},
                interactive_content=d.get("interactive_content") or {},
                duration_minutes=d.get("duration_minutes"),
                status=d.get("status", "completed"),
                completed_at=_epoch(d.get("completed_at")),
            ))
        return out


def record_completion_with_retry(store: ProgressStore, student_id: str, logical_unit_id: str,
                                 snapshot: CompletionSnapshot, attempts: int = 3,
                                 backoff_seconds: float = 0.05) -> CompletionRecord:
    """Upsert a completion, retrying only transient conflicts."""
    for attempt in range(attempts):
        try:
            return store.record_completion(student_id, logical_unit_id, snapshot)
        except PersistenceConflict as exc:
            if attempt == attempts - 1:
                raise
            logger.warning("Completion conflict for %s/%s (attempt %d/%d): %s",
                           student_id, logical_unit_id, attempt + 1, attempts, exc)
            time.sleep(backoff_seconds * (attempt + 1))
    raise PersistenceConflict("no attempts made")


PROGRESS_STORE = InMemoryProgressStore()


def get_progress_store() -> ProgressStore:
    use_db = os.getenv("LINGUAFLOW_PROGRESS_STORE", "").lower()
    if not use_db:
        from linguaflow.core.config import get_settings
        use_db = get_settings().progress_store.lower()
    if use_db != "supabase":
        return PROGRESS_STORE

    # lazy import to avoid dependency/testing issues
    from linguaflow.core.deps import get_supabase_client
    return SupabaseProgressStore(get_supabase_client())
