"""Quart application for the CampusBot chat API."""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from quart import Quart, current_app, jsonify, request
from quart_cors import cors
import structlog

from campusbot import config
from campusbot.errors import GenerationError, IndexNotReadyError
from campusbot.rag.pipeline import AnswerPipeline

logger = structlog.get_logger()

EMPTY_MESSAGE_ERROR = "Please provide a valid question"
NOT_READY_ERROR = "Vector store not initialized"
INTERNAL_ERROR = (
    "I encountered an error while processing your question. Please try "
    "rephrasing it or contact campus support for assistance."
)


class ChatRequest(BaseModel):
    """Body of POST /chat."""
    message: str = Field(...)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(pipeline: Optional[AnswerPipeline] = None) -> Quart:
    """Build the app around an (already loaded) answer pipeline.

    Args:
        pipeline: Pipeline used by /chat; None makes /chat answer 503
    """
    app = Quart(__name__)
    app.config["PIPELINE"] = pipeline
    origins = config.CORS_ALLOW_ORIGINS
    app = cors(app, allow_origin="*" if origins == ["*"] else origins)

    @app.route("/health", methods=["GET"])
    async def health():
        """Liveness probe."""
        return jsonify({"status": "ok", "timestamp": _timestamp()})

    @app.route("/chat", methods=["POST"])
    async def chat():
        """Answer a single question.

        Expects JSON body:
        {
            "message": "user question"
        }

        Returns JSON:
        {
            "response": "assistant answer",
            "timestamp": "ISO-8601"
        }
        """
        data = await request.get_json(silent=True)

        try:
            body = ChatRequest.model_validate(data or {})
        except ValidationError as e:
            logger.warning("invalid_chat_request", errors=e.error_count())
            return jsonify({"error": EMPTY_MESSAGE_ERROR}), 400

        message = body.message.strip()
        if not message:
            return jsonify({"error": EMPTY_MESSAGE_ERROR}), 400

        answer_pipeline: Optional[AnswerPipeline] = current_app.config["PIPELINE"]
        if answer_pipeline is None or not answer_pipeline.is_ready:
            logger.error("chat_rejected_index_not_ready")
            return jsonify({"error": NOT_READY_ERROR}), 503

        logger.info(
            "chat_request_received",
            message_length=len(message),
            message_preview=message[:100],
        )

        try:
            # Each request is stateless: no conversation state is shared
            result = await answer_pipeline.answer(message)
        except IndexNotReadyError:
            return jsonify({"error": NOT_READY_ERROR}), 503
        except GenerationError as e:
            logger.error("chat_generation_failed", error=str(e))
            return jsonify({"error": INTERNAL_ERROR, "timestamp": _timestamp()}), 500
        except Exception as e:
            logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
            return jsonify({"error": INTERNAL_ERROR, "timestamp": _timestamp()}), 500

        logger.info(
            "chat_response_sent",
            response_length=len(result.answer),
            sources=len(result.sources),
            used_fallback=result.used_fallback,
        )

        return jsonify({"response": result.answer, "timestamp": _timestamp()})

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    async def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    async def internal_error(error):
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app
