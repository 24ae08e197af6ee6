from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Priority = Literal["low", "medium", "high"]

BOOK_CATEGORIES = [
    "Fiction",
    "Non-fiction",
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Thriller",
    "Romance",
    "Biography",
    "History",
    "Self-help",
    "Business",
    "Children",
    "Young Adult",
]


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# Users

class UserCreate(CamelModel):
    name: str = ""
    email: EmailStr
    password: str

    @field_validator('name')
    @classmethod
    def name_validator(cls, v):
        v = v.strip()
        if len(v) > 100:
            raise ValueError('Name must be at most 100 characters')
        return v

    @field_validator('password')
    @classmethod
    def password_validator(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters')
        return v


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class User(CamelModel):
    id: int
    name: str
    email: str
    created_at: datetime


class AuthResponse(CamelModel):
    token: str
    user: User


class MeResponse(CamelModel):
    user: User


# Tasks

class TaskDraft(CamelModel):
    """
    Unpersisted task submitted by a caller or produced by the model.

    ``title`` is optional here so that a missing title reaches the
    repository, which owns the rule and reports it as a validation error.
    """

    title: Optional[str] = None
    description: Optional[str] = ""
    priority: Optional[Priority] = "medium"
    due_date: Optional[datetime] = None
    estimated_time: Optional[str] = ""


class TaskUpdate(CamelModel):
    """Partial update; only fields present in the body are applied"""

    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    estimated_time: Optional[str] = None


class Task(CamelModel):
    id: int
    title: str
    description: str
    priority: Priority
    completed: bool
    due_date: Optional[datetime] = None
    estimated_time: str
    created_at: datetime
    owner: int = Field(validation_alias="owner_id")


class TaskResponse(CamelModel):
    task: Task


class TaskListResponse(CamelModel):
    tasks: List[Task]


class MessageResponse(BaseModel):
    message: str


# AI

class PromptRequest(CamelModel):
    prompt: Optional[str] = None


class GenerateTasksResponse(CamelModel):
    success: bool = True
    tasks: List[Task]


class GenerateContentResponse(CamelModel):
    success: bool = True
    content: str


# Books

def _required_text(v, field_name):
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError(f'{field_name} cannot be empty')
    return v


class BookBase(CamelModel):
    @field_validator('title', 'author', 'category', check_fields=False)
    @classmethod
    def text_validator(cls, v, info):
        return _required_text(v, info.field_name.capitalize())

    @field_validator('price', check_fields=False)
    @classmethod
    def price_validator(cls, v):
        if v is None:
            return v
        return round(v, 2)


class BookCreate(BookBase):
    title: str
    author: str
    description: str = ""
    price: float = Field(ge=0)
    category: str
    in_stock: bool = True
    cover_image: str = ""


class BookUpdate(BookBase):
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    in_stock: Optional[bool] = None
    cover_image: Optional[str] = None


class Book(CamelModel):
    id: int
    title: str
    author: str
    description: str
    price: float
    category: str
    in_stock: bool
    cover_image: str
    created_at: datetime
    updated_at: datetime


class BookDeleteResponse(CamelModel):
    message: str
    id: int
