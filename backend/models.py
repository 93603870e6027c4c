from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskCategory(str, Enum):
    WORK = "WORK"
    PERSONAL = "PERSONAL"
    HEALTH = "HEALTH"
    FINANCE = "FINANCE"
    SHOPPING = "SHOPPING"


class TaskPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class GenerationMode(str, Enum):
    ENHANCE = "ENHANCE"    # one task from free text
    SUBTASKS = "SUBTASKS"  # a title broken down into several tasks


def _check_iso_datetime(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        datetime.fromisoformat(value)
    except ValueError:
        raise ValueError("must be an ISO-8601 date or datetime")
    return value


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[TaskPriority] = None
    suggested_deadline: Optional[str] = None  # ISO format date or datetime
    is_completed: bool = False
    created_at: str  # ISO format datetime string
    updated_at: str


class TaskCreate(BaseModel):
    title: str = Field(min_length=3)
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[TaskPriority] = None
    suggested_deadline: Optional[str] = None

    @field_validator("suggested_deadline")
    @classmethod
    def deadline_is_iso(cls, value):
        return _check_iso_datetime(value)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[TaskPriority] = None
    suggested_deadline: Optional[str] = None
    is_completed: Optional[bool] = None

    @field_validator("suggested_deadline")
    @classmethod
    def deadline_is_iso(cls, value):
        return _check_iso_datetime(value)


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class PaginatedTasks(BaseModel):
    data: list[Task]
    meta: PaginationMeta


class GeneratedTask(BaseModel):
    """A task as proposed by the model. Field names follow the model's JSON."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    category: TaskCategory
    priority: TaskPriority
    suggested_deadline: Optional[str] = Field(alias="suggestedDeadline")

    @field_validator("suggested_deadline")
    @classmethod
    def deadline_is_iso(cls, value):
        return _check_iso_datetime(value)


class EnhanceRequest(BaseModel):
    text: str = Field(min_length=3)


class SubtasksRequest(BaseModel):
    title: str = Field(min_length=3)


class ErrorResponse(BaseModel):
    status_code: int
    message: str
    error: str
