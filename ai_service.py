"""
AI task generation.

Turns a free-text request into task drafts with a hosted generative model:

1. build one instruction prompt around the user's text
2. call the model's ``generateContent`` endpoint (single attempt, hard timeout)
3. pull the first JSON array out of the reply, which may be wrapped in prose
4. validate each element as a ``TaskDraft`` and persist the batch for the caller

Every failure along the way surfaces as ``GenerationError``.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

import tasks as task_repository
from config import settings
from errors import GenerationError, ValidationError
from logging_config import get_logger
from models import Task as DBTask
from schemas import TaskDraft

logger = get_logger("ai")

CONTENT_FAILURE_MESSAGE = "Failed to generate content"

TASK_PROMPT_TEMPLATE = """You are a productivity assistant that turns goals into actionable, well-structured tasks.
Start by judging how complex the input is and pick the number of tasks to match:
- Very simple, single-action goals (e.g. 'buy milk', 'email John'): 1-2 tasks
- Medium sized projects (e.g. 'plan weekend trip'): 3-5 tasks
- Complex projects or long-term goals (e.g. 'launch new product'): 6-10 tasks

While breaking the input down, take into account:
- Dependencies between tasks (what has to happen first)
- Natural phases or stages of the work
- How much detail each task needs
- Time frame and urgency

USER INPUT: {user_input}

Reply with ONLY a JSON array of tasks and no other text. Every task must have:
- title: clear, concise task title (max 10 words)
- description: detailed explanation, including dependencies or important considerations
- priority: "high" (urgent/critical path), "medium" (important but flexible) or "low" (can wait)
- estimatedTime: realistic time estimate (e.g. "30 min", "2 hours", "1 day")

FORMAT EXAMPLE:
[
  {{
    "title": "Task title here",
    "description": "Task description here",
    "priority": "medium",
    "estimatedTime": "1 hour"
  }},
  {{
    "title": "Another task",
    "description": "Another description",
    "priority": "high",
    "estimatedTime": "45 min"
  }}
]"""

# Only these keys of a generated element are used; anything else the model
# adds is dropped before validation
GENERATED_FIELDS = ("title", "description", "priority", "estimatedTime")

_decoder = json.JSONDecoder()


def build_task_prompt(user_input: str) -> str:
    return TASK_PROMPT_TEMPLATE.format(user_input=user_input.strip())


class GeminiClient:
    """Minimal async client for the generative-language ``generateContent`` API"""

    def __init__(
        self,
        api_key: str = settings.GEMINI_API_KEY,
        model: str = settings.GEMINI_MODEL,
        base_url: str = settings.GEMINI_BASE_URL,
        timeout: float = settings.AI_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _generation_config(self, temperature, top_p, top_k) -> Dict[str, Any]:
        return {
            "temperature": settings.AI_TEMPERATURE if temperature is None else temperature,
            "topP": settings.AI_TOP_P if top_p is None else top_p,
            "topK": settings.AI_TOP_K if top_k is None else top_k,
        }

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout), transport=self.transport
        ) as client:
            return await client.post(
                url, json=payload, headers={"x-goog-api-key": self.api_key}
            )

    async def generate_text(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        top_k: Optional[int] = None,
        bounded: bool = True,
    ) -> str:
        """
        Send one prompt and return the concatenated text of the first candidate.

        With ``bounded`` the low-randomness sampling settings are attached;
        without it the model's own defaults apply.
        """
        if not self.api_key:
            raise GenerationError("AI service is not configured")

        model_name = model or self.model
        url = f"{self.base_url}/models/{model_name}:generateContent"
        payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if bounded:
            payload["generationConfig"] = self._generation_config(temperature, top_p, top_k)

        logger.info(f"Model request: model={model_name}, prompt_len={len(prompt)}")
        try:
            response = await asyncio.wait_for(self._post(url, payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise GenerationError(f"Model request timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            raise GenerationError(f"Model request failed: {type(e).__name__}")

        if response.status_code != 200:
            logger.warning(f"Model endpoint returned {response.status_code}: {response.text[:500]}")
            raise GenerationError(f"Model endpoint returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise GenerationError("Model endpoint returned a non-JSON body")

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise GenerationError(f"Prompt was blocked by the model: {block_reason}")
            raise GenerationError("Model returned no candidates")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text.strip():
            raise GenerationError("Model returned an empty response")
        return text


def get_ai_client() -> GeminiClient:
    return GeminiClient()


def extract_task_array(text: str) -> List[Any]:
    """
    Decode the first JSON array in a model reply.

    Decoding starts at each ``[`` in turn and stops at the end of the value,
    so prose before or after the array (even prose with brackets) is ignored.
    """
    start = text.find("[")
    if start == -1:
        raise GenerationError("Failed to parse JSON response from model: no JSON array found")

    first_error = None
    while start != -1:
        try:
            items, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError as e:
            first_error = first_error or e
        else:
            if isinstance(items, list):
                return items
        start = text.find("[", start + 1)

    if first_error is None:
        raise GenerationError("Failed to parse JSON response from model: expected an array")
    raise GenerationError(f"Failed to parse JSON response from model: {first_error.msg}")


def parse_task_drafts(text: str) -> List[TaskDraft]:
    drafts = []
    for index, item in enumerate(extract_task_array(text)):
        if not isinstance(item, dict):
            raise GenerationError(f"Generated task {index + 1} is not an object")
        item = {key: item[key] for key in GENERATED_FIELDS if key in item}
        if isinstance(item.get("priority"), str):
            item["priority"] = item["priority"].strip().lower()
        try:
            drafts.append(TaskDraft.model_validate(item))
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise GenerationError(f"Generated task {index + 1} is invalid: {field}: {first['msg']}")
    return drafts


async def generate_tasks(prompt: str, client: GeminiClient) -> List[TaskDraft]:
    text = await client.generate_text(build_task_prompt(prompt))
    drafts = parse_task_drafts(text)
    logger.info(f"Model produced {len(drafts)} task drafts")
    return drafts


async def generate_and_save_tasks(
    db: Session, owner_id: int, prompt: str, client: GeminiClient
) -> List[DBTask]:
    """Generate drafts and persist them for ``owner_id`` in emission order"""
    drafts = await generate_tasks(prompt, client)
    try:
        return task_repository.create_tasks(db, owner_id, drafts)
    except ValidationError as e:
        raise GenerationError(f"Generated task rejected: {e.message}")


async def generate_content(prompt: str, client: GeminiClient) -> str:
    try:
        return await client.generate_text(
            prompt, model=settings.GEMINI_CONTENT_MODEL, bounded=False
        )
    except GenerationError as e:
        raise GenerationError(e.error, message=CONTENT_FAILURE_MESSAGE) from e
