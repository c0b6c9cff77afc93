"""Main Quart application for the UI copilot."""
import logging
from contextlib import aclosing
from typing import List, Optional

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as RequestValidationError
from quart import Quart, Response, jsonify, request

from uicopilot import config
from uicopilot.context import AppContext, build_context
from uicopilot.errors import (
    IngestError,
    IngestInProgressError,
    RetrievalInitError,
    ValidationError,
)
from uicopilot.rag.watcher import ContentWatcher
from uicopilot.streaming import sse_frames

logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ChatRequest(BaseModel):
    """Body of a chat request; history entries are prior messages, oldest first."""

    question: Optional[str] = None
    history: List[str] = Field(default_factory=list)


def create_app(context: AppContext = None) -> Quart:
    """Create the web app around ``context`` (default collaborators if omitted)."""
    app = Quart(__name__)
    ctx = context or build_context()

    watcher = ContentWatcher(
        ctx.ingest_pipeline, on_ingested=lambda stats: _after_ingest(ctx, stats)
    )

    @app.before_serving
    async def start_watcher():
        if config.WATCH_CONTENT:
            watcher.start()

    @app.after_serving
    async def stop_watcher():
        watcher.stop()

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a question as a stream of server-sent events.

        Expects JSON body:
        {
            "question": "How do I make a pricing table?",
            "history": ["user: ...", "assistant: ..."]  // optional
        }

        Returns:
            400 if the question is missing or empty
            503 if the index can't be loaded
            200 text/event-stream otherwise:
                data: {"data": ""}
                data: {"data": "<token>"}        (one per token)
                data: {"sourceDocs": [...]}      (or {"error": "..."})
                data: [DONE]
        """
        data = await request.get_json(silent=True)

        try:
            body = ChatRequest.model_validate(data if isinstance(data, dict) else {})
        except RequestValidationError as e:
            logger.warning("invalid_chat_request", error=str(e))
            return jsonify({"error": "Invalid request body"}), 400

        try:
            events = await ctx.orchestrator.stream(body.question, body.history)
        except ValidationError as e:
            logger.warning("chat_request_rejected", error=e.message, field=e.field)
            return jsonify({"error": e.message}), 400
        except RetrievalInitError as e:
            logger.error("chat_retriever_unavailable", error=str(e))
            return jsonify({"error": "Knowledge base is not available"}), 503

        async def frames():
            # A client disconnect closes this generator; close the chat stream with it
            async with aclosing(sse_frames(events)) as stream:
                async for frame in stream:
                    yield frame.encode("utf-8")

        response = Response(frames(), mimetype="text/event-stream", headers=SSE_HEADERS)
        response.timeout = None
        return response

    @app.route("/api/ingest", methods=["GET", "POST"])
    async def ingest():
        """Rebuild the index from the content tree.

        Returns JSON:
        {
            "statusCode": 200,
            "statusMessage": "OK",
            "documents": 123
        }
        """
        try:
            stats = await ctx.ingest_pipeline.ingest()
        except IngestInProgressError:
            return jsonify({"statusCode": 409, "statusMessage": "Ingestion already in progress"}), 409
        except IngestError as e:
            logger.error("ingest_endpoint_error", error=str(e), stage=e.stage)
            return jsonify({"statusCode": 500, "statusMessage": "Internal Server Error"}), 500

        await _after_ingest(ctx, stats)

        return jsonify({
            "statusCode": 200,
            "statusMessage": "OK",
            "documents": stats["documents"],
        })

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - check if app can serve requests.

        Checks:
        - Ollama service is reachable
        - Required models are available
        - The index holds documents
        """
        checks = {
            "status": "healthy",
            "ollama": False,
            "models": False,
            "index": False,
        }

        try:
            # Check Ollama connectivity
            models = await ctx.client.list_models()
            checks["ollama"] = True

            # Check required models
            missing = [m for m in (config.CHAT_MODEL, config.EMBEDDING_MODEL) if m not in models]
            if missing:
                checks["status"] = "unhealthy"
                checks["error"] = f"Missing models: {', '.join(missing)}"
            else:
                checks["models"] = True

            try:
                await ctx.retriever_handle.get()
                checks["index"] = True
            except RetrievalInitError as e:
                checks["status"] = "unhealthy"
                checks.setdefault("error", str(e))

            status_code = 200 if checks["status"] == "healthy" else 503
            return jsonify(checks), status_code

        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            checks["status"] = "unhealthy"
            checks["error"] = str(e)
            return jsonify(checks), 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


async def _after_ingest(ctx: AppContext, stats: dict) -> None:
    """Make the next chat request reload the freshly written index."""
    ctx.retriever_handle.reset()
    logger.info("retriever_reset_after_ingest", documents=stats["documents"])


app = create_app()


if __name__ == "__main__":
    # For development - run under hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
