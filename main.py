from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sqlalchemy.orm import Session

import ai_service
import tasks as task_repository
from auth import authenticate_user, get_current_user, register_user, token_for
from config import settings
from database import get_db, init_db
from errors import ValidationError, register_exception_handlers
from logging_config import RequestLoggingMiddleware, logger
from models import User as DBUser
from schemas import (
    AuthResponse,
    GenerateContentResponse,
    GenerateTasksResponse,
    MeResponse,
    MessageResponse,
    PromptRequest,
    TaskDraft,
    TaskListResponse,
    TaskResponse,
    TaskUpdate,
    UserCreate,
    UserLogin,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.APP_NAME} task manager ready")
    yield


app = FastAPI(title=f"{settings.APP_NAME} Task Manager", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.ALLOWED_HOSTS
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

router = APIRouter(prefix=settings.API_PREFIX)


def _require_prompt(body: PromptRequest) -> str:
    if not body.prompt or not body.prompt.strip():
        raise ValidationError("Prompt is required", field="prompt")
    return body.prompt


@app.get("/health")
async def health():
    return {"status": "healthy"}


# Authentication endpoints
@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: Session = Depends(get_db)):
    db_user = register_user(db, user)
    return {"token": token_for(db_user), "user": db_user}


@router.post("/auth/login", response_model=AuthResponse)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    user = authenticate_user(db, credentials.email, credentials.password)
    return {"token": token_for(user), "user": user}


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: DBUser = Depends(get_current_user)):
    return {"user": current_user}


# Task endpoints
@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"tasks": task_repository.list_tasks(db, current_user.id)}


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    draft: TaskDraft,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"task": task_repository.create_task(db, current_user.id, draft)}


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"task": task_repository.get_task(db, current_user.id, task_id)}


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    patch: TaskUpdate,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"task": task_repository.update_task(db, current_user.id, task_id, patch)}


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: int,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    task_repository.delete_task(db, current_user.id, task_id)
    return {"message": "Task deleted"}


# AI endpoints
@router.post(
    "/ai/generate-tasks",
    response_model=GenerateTasksResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_tasks(
    body: PromptRequest,
    current_user: DBUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: ai_service.GeminiClient = Depends(ai_service.get_ai_client)
):
    prompt = _require_prompt(body)
    saved = await ai_service.generate_and_save_tasks(db, current_user.id, prompt, client)
    return {"success": True, "tasks": saved}


@router.post("/ai/generate-content", response_model=GenerateContentResponse)
async def generate_content(
    body: PromptRequest,
    current_user: DBUser = Depends(get_current_user),
    client: ai_service.GeminiClient = Depends(ai_service.get_ai_client)
):
    prompt = _require_prompt(body)
    content = await ai_service.generate_content(prompt, client)
    return {"success": True, "content": content}


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
