"""Tests for the Ollama-backed embedding and language model providers."""
import pytest

from uicopilot.rag.providers import OllamaChatModel, OllamaEmbeddings


class RecordingClient:
    """Stands in for OllamaClient, recording requests."""

    def __init__(self, tokens=("Hel", "lo"), embeddings=None):
        self.tokens = tokens
        self.embeddings_response = embeddings
        self.requests = []

    async def chat(self, messages, model=None, temperature=None, max_tokens=None):
        self.requests.append(("chat", messages, model, temperature, max_tokens))
        return {"message": {"content": "".join(self.tokens)}}

    async def chat_stream(self, messages, model=None, temperature=None, max_tokens=None):
        self.requests.append(("chat_stream", messages, model, temperature, max_tokens))
        for token in self.tokens:
            yield token

    async def embeddings(self, prompt, model=None):
        self.requests.append(("embeddings", prompt, model))
        return {"embedding": [0.1, 0.2]}

    async def embed(self, inputs, model=None):
        self.requests.append(("embed", inputs, model))
        if self.embeddings_response is not None:
            return {"embeddings": self.embeddings_response}
        return {"embeddings": [[float(i), 1.0] for i, _ in enumerate(inputs)]}


async def test_chat_model_streams_tokens():
    client = RecordingClient()
    model = OllamaChatModel(client=client, model="m", temperature=0.4, max_tokens=2500)

    tokens = [token async for token in model.stream("prompt")]

    assert tokens == ["Hel", "lo"]
    assert client.requests[0] == (
        "chat_stream",
        [{"role": "user", "content": "prompt"}],
        "m",
        0.4,
        2500,
    )


async def test_chat_model_complete_with_token_callback():
    seen = []
    model = OllamaChatModel(client=RecordingClient(), model="m")

    text = await model.complete("prompt", streaming=True, on_token=seen.append)

    assert text == "Hello"
    assert seen == ["Hel", "lo"]


async def test_chat_model_complete_without_streaming():
    client = RecordingClient()

    text = await OllamaChatModel(client=client, model="m").complete("prompt")

    assert text == "Hello"
    assert client.requests[0][0] == "chat"


async def test_embed_single():
    client = RecordingClient()

    assert await OllamaEmbeddings(client=client, model="e").embed("text") == [0.1, 0.2]
    assert client.requests == [("embeddings", "text", "e")]


async def test_embed_batch_preserves_order():
    embeddings = await OllamaEmbeddings(client=RecordingClient(), model="e").embed_batch(
        ["a", "b", "c"]
    )

    assert [e[0] for e in embeddings] == [0.0, 1.0, 2.0]


async def test_embed_batch_empty_makes_no_request():
    client = RecordingClient()

    assert await OllamaEmbeddings(client=client, model="e").embed_batch([]) == []
    assert client.requests == []


async def test_embed_batch_count_mismatch():
    client = RecordingClient(embeddings=[[1.0]])

    with pytest.raises(RuntimeError):
        await OllamaEmbeddings(client=client, model="e").embed_batch(["a", "b"])
