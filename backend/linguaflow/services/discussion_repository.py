"""
Discussion topics and questions, read through a TTL cache.

Reads hit Supabase at most once per TTL window per key. Writes go straight
to the database and then invalidate exactly the keys they made stale:
creating a topic drops that student's topic list, storing questions drops
that topic's question list. The two namespaces never evict each other.
"""
import logging
from typing import Optional

from linguaflow.core.errors import PersistenceUnavailable
from linguaflow.services.ttl_cache import TTLCache, cache_key

logger = logging.getLogger("linguaflow.discussion_repository")

TOPICS_NS = "topics"
QUESTIONS_NS = "questions"


class DiscussionRepository:
    def __init__(self, supabase_client, cache: TTLCache):
        self.sb = supabase_client
        self.cache = cache

    # -- reads ---------------------------------------------------------------

    def _fetch_topics(self, student_id: str, tutor_id: Optional[str]) -> list[dict]:
        q = self.sb.table("discussion_topics").select("*").eq("student_id", student_id)
        if tutor_id:
            q = q.eq("tutor_id", tutor_id)
        try:
            r = q.order("created_at", desc=True).execute()
        except Exception as exc:
            logger.error("[discussion_repository.topics] student=%s: %s", student_id, exc)
            raise PersistenceUnavailable(f"discussion_topics: {exc}") from exc
        return getattr(r, "data", None) or []

    def topics_for_student(self, student_id: str, tutor_id: Optional[str] = None) -> list[dict]:
        key = cache_key(TOPICS_NS, student_id, tutor_id or "*")
        return self.cache.get_or_load(key, lambda: self._fetch_topics(student_id, tutor_id))

    def _fetch_questions(self, topic_id: str) -> list[dict]:
        try:
            r = (
                self.sb.table("discussion_questions")
                .select("*")
                .eq("topic_id", topic_id)
                .order("question_order")
                .execute()
            )
        except Exception as exc:
            logger.error("[discussion_repository.questions] topic=%s: %s", topic_id, exc)
            raise PersistenceUnavailable(f"discussion_questions: {exc}") from exc
        return getattr(r, "data", None) or []

    def questions_for_topic(self, topic_id: str) -> list[dict]:
        return self.cache.get_or_load(cache_key(QUESTIONS_NS, topic_id), lambda: self._fetch_questions(topic_id))

    # -- writes --------------------------------------------------------------

    def create_topic(self, student_id: str, tutor_id: str, title: str, level: str,
                     category: str = "Conversation", is_custom: bool = True) -> dict:
        if not title or not title.strip():
            raise ValueError("topic title is required")
        row = {
            "student_id": student_id,
            "tutor_id": tutor_id,
            "title": title.strip(),
            "level": level,
            "category": category,
            "is_custom": is_custom,
        }
        try:
            r = self.sb.table("discussion_topics").insert(row).execute()
        except Exception as exc:
            raise PersistenceUnavailable(f"create_topic: {exc}") from exc
        self.cache.invalidate(cache_key(TOPICS_NS, student_id))
        rows = getattr(r, "data", None) or [row]
        return rows[0]

    def save_questions(self, topic_id: str, questions: list[dict]) -> list[dict]:
        """Replace the stored questions of ``topic_id``.

        Each question needs non-empty ``question_text``; ``question_order``
        is assigned from list position.
        """
        if not questions:
            raise ValueError("no questions provided")
        rows = []
        for i, q in enumerate(questions, start=1):
            text = (q.get("question_text") or "").strip()
            if not text:
                raise ValueError("all questions must have text")
            rows.append({
                "topic_id": topic_id,
                "question_text": text,
                "question_order": i,
                "difficulty_level": q.get("difficulty_level", "intermediate"),
            })
        try:
            self.sb.table("discussion_questions").delete().eq("topic_id", topic_id).execute()
            r = self.sb.table("discussion_questions").insert(rows).execute()
        except Exception as exc:
            raise PersistenceUnavailable(f"save_questions: {exc}") from exc
        finally:
            # a half-applied replace must not be masked by a cached copy
            self.cache.invalidate(cache_key(QUESTIONS_NS, topic_id))
        return getattr(r, "data", None) or rows


_REPOSITORY: Optional[DiscussionRepository] = None


def get_discussion_repository() -> DiscussionRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        from linguaflow.core.config import get_settings
        from linguaflow.core.deps import get_supabase_client
        _REPOSITORY = DiscussionRepository(get_supabase_client(), TTLCache(get_settings().cache_ttl_seconds))
    return _REPOSITORY
