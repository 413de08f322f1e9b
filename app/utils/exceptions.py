"""
Domain errors raised by the practice services.

Routes translate these into HTTP status codes; nothing below the API layer
knows about HTTP.
"""


class PracticeError(Exception):
    """Base class for all practice-engine errors"""


class ValidationError(PracticeError):
    """Input rejected before any read or write happened"""


class ConfigInvalid(ValidationError):
    """Category percentages do not sum to 100"""

    def __init__(self, total: int):
        self.total = total
        super().__init__(f"Percentages must sum to 100, got {total}")


class NotFound(PracticeError):
    """Entity missing or not owned by the caller"""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class AlreadyCompleted(PracticeError):
    """Submission against a session that is already completed"""

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(f"Session already completed: {session_id}")


class PersistenceError(PracticeError):
    """A write failed part-way; compensation has already been attempted"""
