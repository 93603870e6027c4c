"""
Domain errors raised by the task service and the AI generation pipeline.

The set is closed: main.py maps each class to an HTTP status in a single
match statement. Messages are short and safe to show to end users; provider
details only ever go to the log.
"""


class DomainError(Exception):
    """Base class for every error the API surfaces to callers."""

    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class TaskNotFound(DomainError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class TaskAlreadyCompleted(DomainError):
    default_message = "Task is already completed"


class ValidationFailure(DomainError):
    """Caller input problem, detected before any call to the provider."""

    default_message = "Invalid input"


class InvalidCredential(ValidationFailure):
    default_message = "Missing or malformed API key"


class QuotaExceeded(DomainError):
    """Provider is rate limiting us. Callers may retry after a backoff."""

    default_message = "AI quota exceeded, please try again later"


class GenerationFailure(DomainError):
    """Anything else that went wrong while generating tasks."""

    default_message = "Failed to process AI request"
