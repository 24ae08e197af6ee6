import json

import httpx
import pytest
from httpx import AsyncClient

import ai_service
from errors import GenerationError
from models import Task

THREE_TASKS = [
    {"title": "Book flights", "description": "Compare prices", "priority": "high", "estimatedTime": "1 hour"},
    {"title": "Reserve hotel", "description": "Near the center", "priority": "medium", "estimatedTime": "30 min"},
    {"title": "Pack bags", "description": "Check the weather first", "priority": "low", "estimatedTime": "2 hours"},
]


def wrapped(items) -> str:
    return "Sure! Here is your plan:\n```json\n" + json.dumps(items) + "\n```\nGood luck."


# Prompt construction and reply parsing

def test_build_task_prompt_embeds_input():
    prompt = ai_service.build_task_prompt("  plan weekend trip  ")

    assert "USER INPUT: plan weekend trip\n" in prompt
    assert "ONLY a JSON array" in prompt
    assert '"estimatedTime": "1 hour"' in prompt


def test_extract_task_array_ignores_surrounding_prose():
    items = ai_service.extract_task_array(wrapped(THREE_TASKS))

    assert items == THREE_TASKS


@pytest.mark.parametrize("text", ["I cannot help with that.", "{\"title\": \"only an object\"}", ""])
def test_extract_task_array_without_array(text):
    with pytest.raises(GenerationError) as exc_info:
        ai_service.extract_task_array(text)

    assert "no JSON array" in exc_info.value.error


def test_extract_task_array_with_broken_json():
    with pytest.raises(GenerationError):
        ai_service.extract_task_array('[{"title": "Unclosed", ]')


def test_parse_task_drafts_normalises_priority():
    drafts = ai_service.parse_task_drafts('[{"title": "Call bank", "priority": " High "}]')

    assert drafts[0].priority == "high"
    assert drafts[0].title == "Call bank"


def test_parse_task_drafts_rejects_non_objects():
    with pytest.raises(GenerationError) as exc_info:
        ai_service.parse_task_drafts('["just a string"]')

    assert "not an object" in exc_info.value.error


def test_extract_task_array_ignores_brackets_in_trailing_prose():
    text = json.dumps(THREE_TASKS) + "\nSee [1] for the source of these estimates."

    assert ai_service.extract_task_array(text) == THREE_TASKS


def test_extract_task_array_skips_bracketed_prose_before_array():
    text = "Plan [draft]:\n" + json.dumps(THREE_TASKS[:1])

    assert ai_service.extract_task_array(text) == THREE_TASKS[:1]


def test_parse_task_drafts_drops_unrequested_keys():
    reply = '[{"title": "Call bank", "priority": "low", "dueDate": "Day 1", "completed": true}]'

    drafts = ai_service.parse_task_drafts(reply)

    assert drafts[0].title == "Call bank"
    assert drafts[0].due_date is None


# Model client

@pytest.mark.asyncio
async def test_generate_tasks_sends_bounded_sampling(ai_client, fake_model):
    fake_model.reply = json.dumps(THREE_TASKS)

    drafts = await ai_service.generate_tasks("plan weekend trip", ai_client)

    assert [d.title for d in drafts] == [t["title"] for t in THREE_TASKS]
    request = fake_model.requests[0]
    assert request.url.path == "/v1beta/models/test-model:generateContent"
    assert request.headers["x-goog-api-key"] == "test-api-key"
    config = fake_model.payloads[0]["generationConfig"]
    assert config["temperature"] <= 0.3
    assert config["topP"] < 1
    assert "plan weekend trip" in fake_model.payloads[0]["contents"][0]["parts"][0]["text"]


@pytest.mark.asyncio
async def test_client_without_api_key():
    client = ai_service.GeminiClient(api_key="")

    with pytest.raises(GenerationError) as exc_info:
        await client.generate_text("hello")

    assert "not configured" in exc_info.value.error


@pytest.mark.asyncio
async def test_client_timeout(ai_client, fake_model):
    fake_model.error = httpx.ReadTimeout("timed out")

    with pytest.raises(GenerationError) as exc_info:
        await ai_client.generate_text("hello")

    assert "timed out" in exc_info.value.error


@pytest.mark.asyncio
async def test_client_connection_error(ai_client, fake_model):
    fake_model.error = httpx.ConnectError("refused")

    with pytest.raises(GenerationError) as exc_info:
        await ai_client.generate_text("hello")

    assert exc_info.value.error == "Model request failed: ConnectError"


@pytest.mark.asyncio
async def test_client_blocked_prompt(ai_client, fake_model):
    fake_model.body = {"promptFeedback": {"blockReason": "SAFETY"}}

    with pytest.raises(GenerationError) as exc_info:
        await ai_client.generate_text("hello")

    assert "SAFETY" in exc_info.value.error


# Endpoints

@pytest.mark.asyncio
async def test_generate_tasks_persists_in_order(client: AsyncClient, auth_headers, test_user, fake_model, db_session):
    fake_model.reply = wrapped(THREE_TASKS)

    response = await client.post(
        "/api/ai/generate-tasks", json={"prompt": "plan weekend trip"}, headers=auth_headers
    )

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert [t["title"] for t in data["tasks"]] == [t["title"] for t in THREE_TASKS]
    assert [t["estimatedTime"] for t in data["tasks"]] == [t["estimatedTime"] for t in THREE_TASKS]
    assert all(t["owner"] == test_user.id for t in data["tasks"])
    assert all(t["completed"] is False for t in data["tasks"])

    listed = (await client.get("/api/tasks", headers=auth_headers)).json()["tasks"]
    assert listed == data["tasks"]
    assert db_session.query(Task).count() == len(THREE_TASKS)


@pytest.mark.asyncio
async def test_generate_tasks_ignores_extra_keys(client: AsyncClient, auth_headers, fake_model, db_session):
    items = [dict(task, dueDate="Day 1", completed=True) for task in THREE_TASKS[:2]]
    fake_model.reply = wrapped(items)

    response = await client.post(
        "/api/ai/generate-tasks", json={"prompt": "plan weekend trip"}, headers=auth_headers
    )

    assert response.status_code == 201
    tasks = response.json()["tasks"]
    assert [t["title"] for t in tasks] == [t["title"] for t in THREE_TASKS[:2]]
    assert all(t["dueDate"] is None for t in tasks)
    assert all(t["completed"] is False for t in tasks)
    assert db_session.query(Task).count() == 2


@pytest.mark.asyncio
async def test_generate_tasks_without_array(client: AsyncClient, auth_headers, fake_model, db_session):
    fake_model.reply = "Sorry, I can only chat."

    response = await client.post(
        "/api/ai/generate-tasks", json={"prompt": "plan weekend trip"}, headers=auth_headers
    )

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Failed to generate tasks"
    assert "no JSON array" in body["error"]
    assert db_session.query(Task).count() == 0


@pytest.mark.asyncio
async def test_generate_tasks_invalid_element_aborts_batch(client: AsyncClient, auth_headers, fake_model, db_session):
    items = THREE_TASKS[:2] + [{"title": "   ", "priority": "low"}]
    fake_model.reply = json.dumps(items)

    response = await client.post(
        "/api/ai/generate-tasks", json={"prompt": "plan weekend trip"}, headers=auth_headers
    )

    assert response.status_code == 500
    assert "Title is required" in response.json()["error"]
    assert db_session.query(Task).count() == 0


@pytest.mark.asyncio
async def test_generate_tasks_unknown_priority(client: AsyncClient, auth_headers, fake_model, db_session):
    fake_model.reply = json.dumps([{"title": "Do it", "priority": "critical"}])

    response = await client.post(
        "/api/ai/generate-tasks", json={"prompt": "anything"}, headers=auth_headers
    )

    assert response.status_code == 500
    assert "priority" in response.json()["error"]
    assert db_session.query(Task).count() == 0


@pytest.mark.asyncio
async def test_generate_tasks_upstream_failure(client: AsyncClient, auth_headers, fake_model, db_session):
    fake_model.status_code = 503
    fake_model.body = {"error": {"message": "internal upstream details"}}

    response = await client.post(
        "/api/ai/generate-tasks", json={"prompt": "anything"}, headers=auth_headers
    )

    assert response.status_code == 500
    body = response.json()
    assert body == {"message": "Failed to generate tasks", "error": "Model endpoint returned HTTP 503"}
    assert db_session.query(Task).count() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}])
async def test_generate_tasks_requires_prompt(client: AsyncClient, auth_headers, fake_model, body):
    response = await client.post("/api/ai/generate-tasks", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Prompt is required"
    assert fake_model.requests == []


@pytest.mark.asyncio
async def test_generate_tasks_requires_authentication(client: AsyncClient, fake_model):
    response = await client.post("/api/ai/generate-tasks", json={"prompt": "x"})

    assert response.status_code == 401
    assert fake_model.requests == []


@pytest.mark.asyncio
async def test_generate_content(client: AsyncClient, auth_headers, fake_model):
    fake_model.reply = "Here is a haiku about tasks."

    response = await client.post(
        "/api/ai/generate-content", json={"prompt": "write a haiku"}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "content": "Here is a haiku about tasks."}
    assert "generationConfig" not in fake_model.payloads[0]


@pytest.mark.asyncio
async def test_generate_content_failure(client: AsyncClient, auth_headers, fake_model):
    fake_model.status_code = 500

    response = await client.post(
        "/api/ai/generate-content", json={"prompt": "write a haiku"}, headers=auth_headers
    )

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to generate content"
