"""Main Quart application for the PDF RAG service."""
import json
import logging

import structlog
from pydantic import ValidationError
from quart import Quart, Response, jsonify, request

from app import config
from app.errors import IngestionError, InvalidInputError, UpstreamError
from app.llm_client import ollama_client
from app.rag.chat import DONE_MARKER, ChatRequest, get_chat_service
from app.rag.ingest import get_ingest_pipeline
from app.rag.store_qdrant import get_vector_store

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

PDF_CONTENT_TYPE = "application/pdf"

# Initialize Quart app
app = Quart(__name__)
app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES


def _sse(data: str) -> str:
    return f"data: {data}\n\n"


@app.before_serving
async def startup():
    """Make sure the Qdrant collection exists.

    Qdrant may come up after this service; a failure here is only logged and
    resurfaces on first use.
    """
    try:
        await get_vector_store().ensure_collection()
    except UpstreamError as e:
        logger.warning("qdrant_not_ready_at_startup", error=str(e), url=config.QDRANT_URL)


@app.after_serving
async def shutdown():
    """Release the Qdrant connection."""
    await get_vector_store().close()
    logger.info("qdrant_client_closed")


@app.route("/api/rag/status", methods=["GET"])
async def status():
    """Report models, collection and number of stored vectors.

    Returns JSON:
    {
        "chatModel": "llama3:8b",
        "embedModel": "nomic-embed-text",
        "collectionName": "rag_documents",
        "vectorsCount": 42
    }
    """
    store = get_vector_store()
    info = await store.collection_info()

    return jsonify({
        "chatModel": config.CHAT_MODEL,
        "embedModel": config.EMBEDDING_MODEL,
        "collectionName": store.collection_name,
        "vectorsCount": info["points_count"],
    })


@app.route("/api/rag/upload", methods=["POST"])
async def upload():
    """Index an uploaded PDF.

    Expects multipart/form-data with a "file" field.

    Returns JSON:
    {
        "message": "PDF indexed successfully",
        "filename": "report.pdf",
        "chunksIngested": 12
    }
    """
    files = await request.files
    file = files.get("file")

    if file is None or not file.filename:
        return jsonify({"error": "No file uploaded. Send the PDF as the 'file' field."}), 400

    if file.mimetype != PDF_CONTENT_TYPE:
        return jsonify({"error": "File must be a PDF."}), 400

    data = file.read()

    logger.info("upload_received", filename=file.filename, size_bytes=len(data))

    result = await get_ingest_pipeline().ingest(data, file.filename)

    return jsonify({
        "message": "PDF indexed successfully",
        "filename": file.filename,
        "chunksIngested": result.chunks_ingested,
    })


@app.route("/api/rag/chat", methods=["POST"])
async def chat():
    """Answer a question from the indexed documents as a server-sent event stream.

    Expects JSON body:
    {
        "question": "user question",
        "history": [{"role": "user", "content": "..."}, ...]  // optional
    }

    Streams:
        data: {"text": "..."}   (one event per increment)
        data: [DONE]
    """
    data = await request.get_json(silent=True)

    try:
        chat_request = ChatRequest.model_validate(data or {})
    except ValidationError as e:
        logger.warning("invalid_chat_request", errors=e.errors(include_url=False))
        return jsonify({"error": "Field 'question' is required and must not be empty."}), 400

    stream = get_chat_service().answer(chat_request.question, chat_request.history)

    async def event_stream():
        async for text in stream:
            if text == DONE_MARKER:
                yield _sse(text)
            else:
                yield _sse(json.dumps({"text": text}, ensure_ascii=False))

    response = Response(event_stream(), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    response.timeout = None
    return response


@app.route("/health/ready")
async def health_ready():
    """Readiness probe - check if app can serve requests.

    Checks:
    - Ollama service is reachable and required models are available
    - Qdrant collection is reachable
    """
    checks = {
        "status": "healthy",
        "ollama": False,
        "models": False,
        "qdrant": False,
    }

    try:
        models = await ollama_client.list_models()
        checks["ollama"] = True

        missing = [
            m for m in (config.CHAT_MODEL, config.EMBEDDING_MODEL)
            if m not in models and f"{m}:latest" not in models
        ]
        if missing:
            checks["status"] = "unhealthy"
            checks["error"] = f"Missing models: {', '.join(missing)}"
        else:
            checks["models"] = True

        await get_vector_store().collection_info()
        checks["qdrant"] = True

    except UpstreamError as e:
        logger.error("health_check_failed", error=str(e))
        checks["status"] = "unhealthy"
        checks["error"] = str(e)

    status_code = 200 if checks["status"] == "healthy" else 503
    return jsonify(checks), status_code


@app.route("/health/live")
async def health_live():
    """Liveness probe - check if app is running."""
    return jsonify({"status": "alive"}), 200


@app.errorhandler(InvalidInputError)
async def invalid_input(error):
    logger.warning("invalid_input", error=str(error))
    return jsonify({"error": error.message}), 400


@app.errorhandler(IngestionError)
async def ingestion_failed(error):
    logger.error("ingestion_error", error=str(error), source=error.source)
    return jsonify({"error": error.message, "filename": error.source}), 500


@app.errorhandler(UpstreamError)
async def upstream_unavailable(error):
    logger.error("upstream_error", error=str(error), provider=error.provider_name)
    return jsonify({"error": str(error)}), 502


@app.errorhandler(404)
async def not_found(error):
    """Handle 404 errors."""
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(413)
async def too_large(error):
    return jsonify({"error": f"Upload too large (max {config.MAX_UPLOAD_BYTES} bytes)"}), 413


@app.errorhandler(500)
async def internal_error(error):
    """Handle 500 errors."""
    logger.error("internal_server_error", error=str(error))
    return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    # For development - use hypercorn in production
    app.run(host="0.0.0.0", port=5000, debug=True)
