"""
Error taxonomy for the lesson engine.

TemplateNotFound is fatal to a generation request. Model and parse errors are
contained by the lesson service (fallback content is served instead).
Persistence errors always reach the caller: a dropped completion record is a
correctness bug, not a quality issue.
"""


class LessonEngineError(Exception):
    """Base class for all lesson engine errors."""


class TemplateNotFound(LessonEngineError):
    def __init__(self, category: str, level: str | None = None):
        self.category = category
        self.level = level
        where = f"category={category!r}"
        if level is not None:
            where += f" level={level!r}"
        super().__init__(f"No lesson template for {where}")


class ModelError(LessonEngineError):
    """The language model could not produce text."""


class ModelUnavailable(ModelError):
    pass


class ModelTimeout(ModelError):
    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Model call exceeded {timeout_seconds:.1f}s")


class ParseFailed(LessonEngineError):
    """Raw model output could not be turned into a complete, type-valid document.

    ``missing`` lists the placeholder keys that were absent or had the wrong
    shape in the best candidate; ``partial`` holds the slots that did validate.
    """

    def __init__(self, reason: str, missing: list[str] | None = None, partial: dict | None = None):
        self.reason = reason
        self.missing = list(missing or [])
        self.partial = dict(partial or {})
        msg = reason
        if self.missing:
            msg += f" (missing/invalid: {', '.join(self.missing)})"
        super().__init__(msg)


class PersistenceError(LessonEngineError):
    retryable = True


class PersistenceConflict(PersistenceError):
    """Transient write conflict; the upsert can be retried."""


class PersistenceUnavailable(PersistenceError):
    """The backing store could not be reached or rejected the write."""
