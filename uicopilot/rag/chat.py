"""Retrieval-augmented chat orchestration.

A request is validated, the shared retriever is obtained, the question is
answered from the top-K retrieved documents, and the answer is produced as a
sequence of StreamEvents: tokens in generation order, then the source
documents, then Done. Failures after the stream has started become a single
Error event followed by Done.
"""
import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Callable, List, Optional, Sequence

import structlog

from uicopilot import config
from uicopilot.errors import ChatError
from uicopilot.rag.documents import Document
from uicopilot.rag.prompt import (
    HistoryItem,
    build_condense_prompt,
    build_prompt,
    normalize_question,
)
from uicopilot.rag.providers import LanguageModel
from uicopilot.rag.retriever import Retriever, RetrieverHandle
from uicopilot.streaming import StreamEvent, StreamEventType

logger = structlog.get_logger()

GENERATION_FAILED = "An error occurred while generating the answer."
GENERATION_TIMED_OUT = "The answer took too long and was stopped."


@dataclass
class ChatResponse:
    """Complete answer to one question."""

    full_text: str
    source_docs: List[Document] = field(default_factory=list)


class ChatOrchestrator:
    """Answers questions from retrieved context, streaming the model output."""

    def __init__(
        self,
        retriever_handle: RetrieverHandle,
        llm: LanguageModel,
        condense_llm: Optional[LanguageModel] = None,
        top_k: int = None,
        max_context_chars: int = None,
        timeout: float = None,
        condense_question: bool = None,
        preview_path: Optional[Path] = None,
        max_question_chars: int = None,
    ):
        """Initialize the orchestrator.

        Args:
            retriever_handle: Shared, lazily built retriever
            llm: Model producing the streamed answer
            condense_llm: Model rephrasing follow-ups for retrieval (default: llm)
            top_k: Documents retrieved per question (default from config)
            max_context_chars: Bound on the context section (default from config)
            timeout: Seconds allowed for one whole answer (default from config)
            condense_question: Rephrase follow-ups before retrieval (default from config)
            preview_path: File that receives each finished answer, if set
            max_question_chars: Longest accepted question (default from config)
        """
        self.retriever_handle = retriever_handle
        self.llm = llm
        self.condense_llm = condense_llm or llm
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.max_context_chars = (
            config.MAX_CONTEXT_CHARS if max_context_chars is None else max_context_chars
        )
        self.timeout = config.REQUEST_TIMEOUT if timeout is None else timeout
        self.condense_question = (
            config.CONDENSE_QUESTION if condense_question is None else condense_question
        )
        self.preview_path = preview_path
        self.max_question_chars = (
            config.MAX_QUESTION_CHARS if max_question_chars is None else max_question_chars
        )

    async def stream(
        self, question: str, history: Sequence[HistoryItem] = ()
    ) -> AsyncIterator[StreamEvent]:
        """Validate the request and return its event stream.

        Validation and retriever construction happen here, before any event
        exists, so callers can reject the request instead of streaming.

        Raises:
            ValidationError: If the question is missing or empty
            RetrievalInitError: If the vector store is unreachable or empty
        """
        normalized = normalize_question(question, self.max_question_chars)
        retriever = await self.retriever_handle.get()

        logger.info(
            "chat_request_accepted",
            question_length=len(normalized),
            history_length=len(history),
        )

        return self._events(normalized, tuple(history), retriever)

    async def _events(
        self, question: str, history: tuple, retriever: Retriever
    ) -> AsyncIterator[StreamEvent]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        parts: List[str] = []

        try:
            error_reason = None
            documents: List[Document] = []

            try:
                retrieval_query = question
                if self.condense_question and history:
                    retrieval_query = await asyncio.wait_for(
                        self._condense(history, question), deadline - loop.time()
                    )

                results = await asyncio.wait_for(
                    retriever.retrieve(retrieval_query, top_k=self.top_k),
                    deadline - loop.time(),
                )
                documents = [result.document for result in results]

                prompt = build_prompt(
                    question, history, retriever.format_context(results, self.max_context_chars)
                ).render()

                async with aclosing(self.llm.stream(prompt)) as tokens:
                    while True:
                        try:
                            token = await asyncio.wait_for(
                                tokens.__anext__(), deadline - loop.time()
                            )
                        except StopAsyncIteration:
                            break

                        parts.append(token)
                        yield StreamEvent.token(token)

            except asyncio.TimeoutError:
                logger.error("chat_generation_timed_out", timeout=self.timeout, tokens=len(parts))
                error_reason = GENERATION_TIMED_OUT
            except Exception as e:
                logger.error(
                    "chat_generation_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    tokens=len(parts),
                )
                error_reason = GENERATION_FAILED

            if error_reason is None:
                yield StreamEvent.source_docs(documents)
            else:
                yield StreamEvent.error(error_reason)

            logger.info(
                "chat_response_sent",
                response_length=sum(len(p) for p in parts),
                sources=len(documents),
                failed=error_reason is not None,
            )

            yield StreamEvent.done()

        finally:
            self._write_preview("".join(parts))

    async def _condense(self, history: tuple, question: str) -> str:
        """Rephrase a follow-up question into a standalone retrieval query."""
        standalone = await self.condense_llm.complete(build_condense_prompt(history, question))
        standalone = " ".join(standalone.split())

        logger.debug("question_condensed", standalone_preview=standalone[:100])

        return standalone or question

    def _write_preview(self, text: str) -> None:
        if self.preview_path is None:
            return

        try:
            self.preview_path.parent.mkdir(parents=True, exist_ok=True)
            self.preview_path.write_text(text, encoding="utf-8")
        except OSError as e:
            logger.warning("preview_write_failed", path=str(self.preview_path), error=str(e))

    async def answer(
        self,
        question: str,
        history: Sequence[HistoryItem] = (),
        on_token: Optional[Callable[[str], None]] = None,
    ) -> ChatResponse:
        """Answer a question, calling ``on_token`` for each token in order.

        The tokens passed to ``on_token`` concatenate to the returned text.

        Raises:
            ValidationError: If the question is missing or empty
            RetrievalInitError: If the vector store is unreachable or empty
            ChatError: If generation fails; carries the text produced so far
        """
        events = await self.stream(question, history)
        parts: List[str] = []
        source_docs: List[Document] = []

        async with aclosing(events):
            async for event in events:
                if event.type is StreamEventType.TOKEN:
                    if on_token is not None:
                        on_token(event.text)
                    parts.append(event.text)
                elif event.type is StreamEventType.SOURCE_DOCS:
                    source_docs = list(event.documents)
                elif event.type is StreamEventType.ERROR:
                    raise ChatError(event.reason, partial_text="".join(parts))

        return ChatResponse(full_text="".join(parts), source_docs=source_docs)
