from contextlib import asynccontextmanager
from typing import Literal, Optional
import logging
import uuid

from fastapi import FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai import generate
from config import ANTHROPIC_API_KEY, CORS_ORIGINS, MAX_BODY_BYTES
from database import (
    MAX_PAGE_SIZE,
    init_db,
    create_task_db,
    get_task_db,
    list_tasks_db,
    paginate,
    update_task_db,
    complete_task_db,
    delete_task_db,
)
from errors import (
    DomainError,
    GenerationFailure,
    InvalidCredential,
    QuotaExceeded,
    TaskAlreadyCompleted,
    TaskNotFound,
    ValidationFailure,
)
from models import (
    EnhanceRequest,
    GeneratedTask,
    GenerationMode,
    PaginatedTasks,
    SubtasksRequest,
    Task,
    TaskCategory,
    TaskCreate,
    TaskPriority,
    TaskUpdate,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(title="Sinky API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_status(exc: DomainError) -> tuple[int, str]:
    """HTTP status and label for each domain error."""
    match exc:
        case TaskNotFound():
            return 404, "Not Found"
        case TaskAlreadyCompleted():
            return 409, "Conflict"
        case InvalidCredential():
            return 401, "Unauthorized"
        case ValidationFailure():
            return 400, "Bad Request"
        case QuotaExceeded():
            return 429, "Too Many Requests"
        case GenerationFailure():
            return 502, "Bad Gateway"
        case _:
            return 500, "Internal Server Error"


@app.exception_handler(DomainError)
async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    status, label = error_status(exc)
    logger.warning("Domain error: %s (status %s)", exc.message, status)
    return JSONResponse(
        status_code=status,
        content={"status_code": status, "message": exc.message, "error": label},
    )


@app.middleware("http")
async def limit_body_size(request: Request, call_next):
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit():
        too_large = int(content_length) > MAX_BODY_BYTES
    else:
        # No declared length (chunked upload): read the body and measure it
        too_large = len(await request.body()) > MAX_BODY_BYTES
    if too_large:
        return JSONResponse(
            status_code=413,
            content={"status_code": 413, "message": "Request body too large", "error": "Payload Too Large"},
        )
    return await call_next(request)


@app.get("/tasks")
def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = None,
    status: Optional[Literal["COMPLETED", "PENDING"]] = None,
    priority: Optional[TaskPriority] = None,
    category: Optional[TaskCategory] = None,
    sort: Literal["newest", "oldest"] = "newest",
) -> PaginatedTasks:
    items, total = list_tasks_db(page, limit, search, status, priority, category, sort)
    return paginate(items, total, page, limit)


@app.get("/tasks/{task_id}")
def get_task(task_id: str) -> Task:
    return get_task_db(task_id)


@app.post("/tasks", status_code=201)
def create_task(task_data: TaskCreate) -> Task:
    return create_task_db(
        str(uuid.uuid4()),
        task_data.title,
        task_data.description,
        task_data.category,
        task_data.priority,
        task_data.suggested_deadline
    )


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate) -> Task:
    updates = task_data.model_dump(exclude_unset=True)
    if "title" in updates and updates["title"] is None:
        raise ValidationFailure("Title is required")
    if "is_completed" in updates and updates["is_completed"] is None:
        raise ValidationFailure("is_completed must be true or false")
    return update_task_db(task_id, **updates)


@app.patch("/tasks/{task_id}/complete")
def complete_task(task_id: str) -> Task:
    return complete_task_db(task_id)


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str) -> dict:
    delete_task_db(task_id)
    return {"status": "deleted"}


def request_credential(x_api_key: Optional[str]) -> Optional[str]:
    """The x-api-key header exactly as sent; the configured key only when it is absent."""
    return ANTHROPIC_API_KEY if x_api_key is None else x_api_key


def create_from_generated(generated: GeneratedTask) -> Task:
    """Persist a task proposed by the model."""
    return create_task_db(
        str(uuid.uuid4()),
        generated.title,
        generated.description,
        generated.category,
        generated.priority,
        generated.suggested_deadline
    )


@app.post("/ai/enhance", status_code=201)
async def enhance_task(
    body: EnhanceRequest,
    x_api_key: Optional[str] = Header(default=None),
) -> GeneratedTask:
    """Turn free text into one structured task and save it."""
    enhanced = await generate(body.text, GenerationMode.ENHANCE, request_credential(x_api_key))
    create_from_generated(enhanced)
    return enhanced


@app.post("/ai/tasks", status_code=201)
async def suggest_subtasks(
    body: SubtasksRequest,
    x_api_key: Optional[str] = Header(default=None),
) -> list[GeneratedTask]:
    """Break a title down into subtasks and save each of them, in order."""
    subtasks = await generate(body.title, GenerationMode.SUBTASKS, request_credential(x_api_key))
    for subtask in subtasks:
        create_from_generated(subtask)
    return subtasks


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
