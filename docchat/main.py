"""Main Quart application for docchat."""
from quart import Quart, request, jsonify
import structlog

from docchat import config
from docchat.errors import (
    CorruptIndex,
    DocChatError,
    IndexNotFound,
    MalformedResponse,
    ServiceError,
    UnreachableService,
)
from docchat.llm_client import ollama_client
from docchat.qa import QAService
from docchat.rag.prompt import sanitize_question
from docchat.rag.store import IndexStore

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

# Initialize Quart app
app = Quart(__name__)

# Shared across requests so the query embedding cache lives for the process
qa_service = QAService()


def _error_status(error: DocChatError) -> int:
    """Map an error kind to the HTTP status returned to the client."""
    if isinstance(error, IndexNotFound):
        return 400
    if isinstance(error, UnreachableService):
        return 503
    if isinstance(error, ServiceError) and 400 <= error.status_code < 600:
        return error.status_code
    return 500


def _parse_history(raw) -> list:
    """Accept [[question, answer], ...]; anything else is treated as no history."""
    if not isinstance(raw, list):
        return []
    history = []
    for pair in raw:
        if isinstance(pair, (list, tuple)) and len(pair) == 2:
            history.append((str(pair[0]), str(pair[1])))
    return history


def _model_available(model: str, available: list) -> bool:
    """Ollama reports 'name:tag'; an untagged model means ':latest'."""
    wanted = model if ":" in model else f"{model}:latest"
    return model in available or wanted in available


@app.route("/api/chat", methods=["POST"])
async def chat():
    """Answer a question from the local index.

    Expects JSON body:
    {
        "question": "user question",
        "history": [["earlier question", "earlier answer"], ...]  // optional
    }

    Returns JSON:
    {
        "text": "answer in markdown",
        "sourceDocuments": [
            {"pageContent": "...", "metadata": {"source": "...", "chunk": 0}},
            ...
        ]
    }
    """
    data = await request.get_json(silent=True) or {}
    question = data.get("question") if isinstance(data, dict) else None

    if not question or not str(question).strip():
        return jsonify({"message": "No question in the request"}), 400

    question = sanitize_question(question)

    if len(question) > config.MAX_QUESTION_LENGTH:
        return jsonify({
            "error": f"Question too long (max {config.MAX_QUESTION_LENGTH} characters)"
        }), 400

    history = _parse_history(data.get("history"))

    logger.info(
        "chat_request_received",
        question_length=len(question),
        history_turns=len(history),
        question_preview=question[:100],
    )

    try:
        answer = await qa_service.answer(question, history)

    except IndexNotFound as e:
        logger.warning("chat_index_missing", path=str(e.path))
        return jsonify({"error": e.message}), _error_status(e)

    except (UnreachableService, ServiceError, MalformedResponse, CorruptIndex) as e:
        logger.error("chat_request_failed", error=e.message, error_type=type(e).__name__)
        return jsonify({"error": e.message}), _error_status(e)

    except Exception as e:
        logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
        return jsonify({"error": str(e) or "Something went wrong"}), 500

    logger.info(
        "chat_response_sent",
        response_length=len(answer.text),
        sources=len(answer.source_documents),
    )

    return jsonify(answer.to_dict())


@app.route("/health/ready")
async def health_ready():
    """Readiness probe - check if app can serve requests.

    Checks:
    - Ollama service is reachable
    - Chat and embedding models are available
    - The local index has been built
    """
    checks = {
        "status": "healthy",
        "ollama": False,
        "models": False,
        "index": False,
    }

    try:
        store = IndexStore()
        checks["index"] = store.exists()
        if not checks["index"]:
            checks["status"] = "unhealthy"
            checks["error"] = IndexNotFound(store.path).message

        models = await ollama_client.list_models()
        checks["ollama"] = True

        missing = [
            model
            for model in (config.CHAT_MODEL, config.EMBEDDING_MODEL)
            if not _model_available(model, models)
        ]
        if missing:
            checks["status"] = "unhealthy"
            checks.setdefault("error", f"Missing model(s): {', '.join(missing)}")
        else:
            checks["models"] = True

    except DocChatError as e:
        logger.error("health_check_failed", error=e.message)
        checks["status"] = "unhealthy"
        checks.setdefault("error", e.message)

    status_code = 200 if checks["status"] == "healthy" else 503
    return jsonify(checks), status_code


@app.route("/health/live")
async def health_live():
    """Liveness probe - check if app is running."""
    return jsonify({"status": "alive"}), 200


@app.errorhandler(404)
async def not_found(error):
    """Handle 404 errors."""
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(405)
async def method_not_allowed(error):
    """Handle 405 errors."""
    return jsonify({"error": "Method not allowed"}), 405


@app.errorhandler(500)
async def internal_error(error):
    """Handle 500 errors."""
    logger.error("internal_server_error", error=str(error))
    return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    # For development - serve with hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
