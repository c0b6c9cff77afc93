"""Ollama HTTP client: chat (plain and streamed), embeddings and model listing."""
import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from uicopilot import config

logger = structlog.get_logger()

Message = Dict[str, str]


class OllamaClient:
    """Async client for interacting with Ollama API."""

    def __init__(self, base_url: str = None, timeout: float = None):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.OLLAMA_TIMEOUT)
        """
        self.base_url = base_url or config.OLLAMA_BASE_URL
        self.timeout = timeout or config.OLLAMA_TIMEOUT

    def _log_http_error(self, e: httpx.HTTPError, **context) -> None:
        if isinstance(e, httpx.ConnectError):
            logger.error("ollama_connection_error", error=str(e), base_url=self.base_url, **context)
            return

        response = getattr(e, "response", None)
        logger.error(
            "ollama_http_error",
            error=str(e),
            status_code=response.status_code if response is not None else None,
            **context,
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict:
        """POST ``payload`` and return the decoded JSON body.

        Raises:
            httpx.HTTPError: On connection or API errors
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}{path}", json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            self._log_http_error(e, path=path, model=payload.get("model"))
            raise

    @staticmethod
    def _chat_payload(
        messages: List[Message],
        model: str,
        stream: bool,
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": model, "messages": messages, "stream": stream}

        options = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if options:
            payload["options"] = options

        return payload

    async def chat(
        self,
        messages: List[Message],
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict:
        """Send a non-streaming chat completion request to Ollama.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature
            max_tokens: Maximum number of tokens to generate

        Returns:
            Response dict with 'message' containing 'content'

        Raises:
            httpx.HTTPError: On API errors or if Ollama is unavailable
        """
        model = model or config.CHAT_MODEL
        logger.info("ollama_chat_request", model=model, message_count=len(messages), stream=False)

        data = await self._post(
            "/api/chat", self._chat_payload(messages, model, False, temperature, max_tokens)
        )

        logger.info(
            "ollama_chat_response",
            model=model,
            response_length=len(data.get("message", {}).get("content", "")),
        )
        return data

    async def chat_stream(
        self,
        messages: List[Message],
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream a chat completion from Ollama, one token string at a time.

        Ollama answers with newline-delimited JSON objects. Closing the
        generator early closes the HTTP stream.

        Raises:
            httpx.HTTPError: On API errors
            RuntimeError: If Ollama reports an error inside the stream
        """
        model = model or config.CHAT_MODEL
        payload = self._chat_payload(messages, model, True, temperature, max_tokens)
        logger.info("ollama_chat_request", model=model, message_count=len(messages), stream=True)

        token_count = 0
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream("POST", f"{self.base_url}/api/chat", json=payload) as response:
                    response.raise_for_status()

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue

                        chunk = json.loads(line)
                        if "error" in chunk:
                            raise RuntimeError(f"Ollama stream error: {chunk['error']}")

                        token = chunk.get("message", {}).get("content", "")
                        if token:
                            token_count += 1
                            yield token

                        if chunk.get("done"):
                            break

        except httpx.HTTPError as e:
            self._log_http_error(e, path="/api/chat", model=model, tokens=token_count)
            raise

        logger.info("ollama_chat_stream_completed", model=model, token_count=token_count)

    async def embeddings(self, prompt: str, model: str = None) -> Dict:
        """Embed one text.

        Returns:
            Response dict with 'embedding' list

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL
        logger.debug("ollama_embedding_request", model=model, prompt_length=len(prompt))

        data = await self._post("/api/embeddings", {"model": model, "prompt": prompt})

        logger.debug(
            "ollama_embedding_response",
            model=model,
            dimension=len(data.get("embedding", [])),
        )
        return data

    async def embed(self, inputs: List[str], model: str = None) -> Dict:
        """Embed several texts in one request.

        Returns:
            Response dict with 'embeddings' (one list per input, same order)

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL
        logger.debug("ollama_embed_batch_request", model=model, batch_size=len(inputs))

        return await self._post("/api/embed", {"model": model, "input": inputs})

    async def list_models(self) -> List[str]:
        """Names of the models installed in Ollama.

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
                return [m["name"] for m in response.json().get("models", [])]
        except httpx.HTTPError as e:
            self._log_http_error(e, path="/api/tags")
            raise


# Shared client for the default providers
ollama_client = OllamaClient()
