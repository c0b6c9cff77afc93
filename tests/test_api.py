"""Tests for the HTTP endpoints."""
import json

import pytest

from uicopilot import config
from uicopilot.context import build_context
from uicopilot.main import create_app

from conftest import FakeEmbeddings, ScriptedLLM


class FakeOllamaClient:
    def __init__(self, models=None, reachable=True):
        self.models = models if models is not None else [config.CHAT_MODEL, config.EMBEDDING_MODEL]
        self.reachable = reachable

    async def list_models(self):
        if not self.reachable:
            raise ConnectionError("connection refused")
        return self.models


def _context(memory_store, content_dir, embedder=None, llm=None, client=None):
    llm = llm or ScriptedLLM()
    return build_context(
        client=client or FakeOllamaClient(),
        embedder=embedder or FakeEmbeddings(),
        llm=llm,
        condense_llm=llm,
        vector_store=memory_store,
        content_dir=content_dir,
        catalog_path=None,
    )


@pytest.fixture
def context(memory_store, content_dir):
    return _context(memory_store, content_dir)


@pytest.fixture
def client(context):
    return create_app(context).test_client()


def _payloads(body: str):
    frames = body.split("\n\n")
    assert frames[-1] == ""
    payloads = []
    for frame in frames[:-1]:
        assert frame.startswith("data: ")
        data = frame[len("data: "):]
        payloads.append(data if data == "[DONE]" else json.loads(data))
    return payloads


async def test_ingest_endpoint(client, memory_store):
    response = await client.post("/api/ingest")

    assert response.status_code == 200
    body = await response.get_json()
    assert body["statusCode"] == 200
    assert body["statusMessage"] == "OK"
    assert body["documents"] == await memory_store.count()


async def test_ingest_endpoint_accepts_get(client):
    response = await client.get("/api/ingest")

    assert response.status_code == 200


async def test_ingest_failure_returns_500(memory_store, content_dir):
    context = _context(memory_store, content_dir, embedder=FakeEmbeddings(fail=True))
    client = create_app(context).test_client()

    response = await client.post("/api/ingest")

    assert response.status_code == 500
    assert (await response.get_json()) == {
        "statusCode": 500,
        "statusMessage": "Internal Server Error",
    }


async def test_ingest_resets_retriever(client, context):
    await client.post("/api/ingest")
    await context.retriever_handle.get()
    assert context.retriever_handle.initialized

    await client.post("/api/ingest")

    assert not context.retriever_handle.initialized


async def test_chat_streams_frames(client):
    await client.post("/api/ingest")

    response = await client.post(
        "/api/chat", json={"question": "What is X?", "history": ["user: hi", "bot: hello"]}
    )

    assert response.status_code == 200
    assert response.mimetype == "text/event-stream"
    assert "no-cache" in response.headers["Cache-Control"]

    payloads = _payloads(await response.get_data(as_text=True))
    assert payloads[0] == {"data": ""}
    assert [p["data"] for p in payloads[1:4]] == ["X", " is", " Y"]
    assert "sourceDocs" in payloads[4]
    assert payloads[4]["sourceDocs"][0].keys() == {"id", "pageContent", "metadata"}
    assert payloads[-1] == "[DONE]"


async def test_chat_generation_error_frame(memory_store, content_dir):
    context = _context(memory_store, content_dir, llm=ScriptedLLM(fail_after=1))
    client = create_app(context).test_client()
    await client.post("/api/ingest")

    response = await client.post("/api/chat", json={"question": "What is X?"})

    assert response.status_code == 200
    payloads = _payloads(await response.get_data(as_text=True))
    assert payloads[1] == {"data": "X"}
    assert "error" in payloads[2]
    assert payloads[3] == "[DONE]"
    assert len(payloads) == 4


@pytest.mark.parametrize("body", [{}, {"question": ""}, {"question": "   "}, {"history": []}])
async def test_chat_rejects_missing_question(client, body):
    response = await client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert (await response.get_json()) == {"error": "No question provided"}


async def test_chat_rejects_malformed_body(client):
    response = await client.post("/api/chat", json={"question": "hi", "history": "not a list"})

    assert response.status_code == 400


async def test_chat_without_index_is_unavailable(client):
    response = await client.post("/api/chat", json={"question": "What is X?"})

    assert response.status_code == 503


async def test_health_live(client):
    response = await client.get("/health/live")

    assert response.status_code == 200
    assert (await response.get_json()) == {"status": "alive"}


async def test_health_ready_after_ingest(client):
    await client.post("/api/ingest")

    response = await client.get("/health/ready")

    assert response.status_code == 200
    body = await response.get_json()
    assert body["ollama"] and body["models"] and body["index"]


async def test_health_ready_without_index(client):
    response = await client.get("/health/ready")

    assert response.status_code == 503
    assert (await response.get_json())["index"] is False


async def test_health_ready_ollama_down(memory_store, content_dir):
    context = _context(memory_store, content_dir, client=FakeOllamaClient(reachable=False))
    client = create_app(context).test_client()

    response = await client.get("/health/ready")

    assert response.status_code == 503
    assert (await response.get_json())["ollama"] is False


async def test_unknown_route(client):
    response = await client.get("/nope")

    assert response.status_code == 404
    assert (await response.get_json()) == {"error": "Not found"}
