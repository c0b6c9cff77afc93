"""Tests for the Ollama HTTP client against a mocked transport."""
import json

import httpx
import pytest

from uicopilot import llm_client
from uicopilot.llm_client import OllamaClient


@pytest.fixture
def requests_seen(monkeypatch):
    """Route the client's httpx traffic to a handler set by the test."""
    seen = []
    routes = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return routes[request.url.path](request)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(llm_client.httpx, "AsyncClient", client_factory)
    return seen, routes


def _ndjson(*chunks):
    return "\n".join(json.dumps(c) for c in chunks).encode("utf-8")


async def test_chat_stream_yields_tokens_in_order(requests_seen):
    seen, routes = requests_seen
    routes["/api/chat"] = lambda request: httpx.Response(
        200,
        content=_ndjson(
            {"message": {"content": "X"}, "done": False},
            {"message": {"content": " is"}, "done": False},
            {"message": {"content": " Y"}, "done": False},
            {"message": {"content": ""}, "done": True},
        ),
    )

    client = OllamaClient(base_url="http://ollama")
    tokens = [
        t
        async for t in client.chat_stream(
            [{"role": "user", "content": "q"}], model="m", temperature=0.4, max_tokens=2500
        )
    ]

    assert tokens == ["X", " is", " Y"]
    payload = json.loads(seen[0].content)
    assert payload["stream"] is True
    assert payload["options"] == {"temperature": 0.4, "num_predict": 2500}


async def test_chat_stream_error_line_raises(requests_seen):
    _, routes = requests_seen
    routes["/api/chat"] = lambda request: httpx.Response(
        200, content=_ndjson({"message": {"content": "a"}}, {"error": "model not found"})
    )

    client = OllamaClient(base_url="http://ollama")

    with pytest.raises(RuntimeError, match="model not found"):
        async for _ in client.chat_stream([{"role": "user", "content": "q"}], model="m"):
            pass


async def test_chat_without_options(requests_seen):
    seen, routes = requests_seen
    routes["/api/chat"] = lambda request: httpx.Response(200, json={"message": {"content": "hi"}})

    data = await OllamaClient(base_url="http://ollama").chat([{"role": "user", "content": "q"}], model="m")

    assert data["message"]["content"] == "hi"
    assert "options" not in json.loads(seen[0].content)


async def test_embed_batch_request(requests_seen):
    seen, routes = requests_seen
    routes["/api/embed"] = lambda request: httpx.Response(200, json={"embeddings": [[1.0], [2.0]]})

    data = await OllamaClient(base_url="http://ollama").embed(["a", "b"], model="e")

    assert data["embeddings"] == [[1.0], [2.0]]
    assert json.loads(seen[0].content) == {"model": "e", "input": ["a", "b"]}


async def test_list_models(requests_seen):
    _, routes = requests_seen
    routes["/api/tags"] = lambda request: httpx.Response(
        200, json={"models": [{"name": "gemma3:12b"}, {"name": "mxbai-embed-large:latest"}]}
    )

    assert await OllamaClient(base_url="http://ollama").list_models() == [
        "gemma3:12b",
        "mxbai-embed-large:latest",
    ]


async def test_http_error_propagates(requests_seen):
    _, routes = requests_seen
    routes["/api/embeddings"] = lambda request: httpx.Response(500, json={"error": "boom"})

    with pytest.raises(httpx.HTTPStatusError):
        await OllamaClient(base_url="http://ollama").embeddings("text", model="e")
