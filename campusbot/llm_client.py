"""Gemini REST client wrapper with error handling."""
import httpx
from typing import List, Dict, Optional, Any
import structlog

from campusbot import config

logger = structlog.get_logger()

TASK_RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"
TASK_RETRIEVAL_QUERY = "RETRIEVAL_QUERY"


class GeminiClient:
    """Async client for the Gemini generation and embedding endpoints."""

    def __init__(
        self,
        api_key: str = None,
        base_url: str = None,
        chat_model: str = None,
        embedding_model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Gemini client.

        Args:
            api_key: Google API key (defaults to config.GOOGLE_API_KEY)
            base_url: API base URL (defaults to config.GEMINI_BASE_URL)
            chat_model: Generation model (defaults to config.CHAT_MODEL)
            embedding_model: Embedding model (defaults to config.EMBEDDING_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.api_key = api_key if api_key is not None else config.GOOGLE_API_KEY
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.chat_model = chat_model or config.CHAT_MODEL
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.timeout = timeout or config.LLM_TIMEOUT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"x-goog-api-key": self.api_key},
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(f"{self.base_url}/{path}", json=payload)
            response.raise_for_status()
            return response.json()

    async def generate(
        self,
        prompt: str,
        model: str = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Send a single-prompt generation request.

        Args:
            prompt: Full prompt text
            model: Model to use (defaults to the client's chat model)
            temperature: Sampling temperature (defaults to config.TEMPERATURE)
            max_output_tokens: Response length cap (defaults to config.MAX_OUTPUT_TOKENS)

        Returns:
            Generated text (parts of the first candidate concatenated)

        Raises:
            httpx.HTTPError: On transport or API errors
            ValueError: If the response carries no text
        """
        model = model or self.chat_model

        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": config.TEMPERATURE if temperature is None else temperature,
                "maxOutputTokens": max_output_tokens or config.MAX_OUTPUT_TOKENS,
            },
        }

        logger.info("gemini_generate_request", model=model, prompt_length=len(prompt))

        try:
            data = await self._post(f"models/{model}:generateContent", payload)
        except httpx.HTTPError as e:
            logger.error(
                "gemini_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

        text = _extract_text(data)
        if not text:
            logger.error("gemini_empty_response", finish_reason=_finish_reason(data))
            raise ValueError("Generation response contained no text")

        logger.info("gemini_generate_response", model=model, response_length=len(text))
        return text

    async def embed_query(self, text: str, model: str = None) -> List[float]:
        """Embed a search query.

        Raises:
            httpx.HTTPError: On API errors
            ValueError: If no embedding values were returned
        """
        model = model or self.embedding_model
        payload = {
            "model": f"models/{model}",
            "content": {"parts": [{"text": text}]},
            "taskType": TASK_RETRIEVAL_QUERY,
        }

        logger.debug("gemini_embedding_request", model=model, prompt_length=len(text))

        try:
            data = await self._post(f"models/{model}:embedContent", payload)
        except httpx.HTTPError as e:
            logger.error("gemini_embedding_error", error=str(e))
            raise

        values = data.get("embedding", {}).get("values", [])
        if not values:
            raise ValueError("Empty embedding returned for query")
        return values

    async def embed_documents(self, texts: List[str], model: str = None) -> List[List[float]]:
        """Embed a batch of document texts in one request.

        Raises:
            httpx.HTTPError: On API errors
            ValueError: If the number of embeddings does not match the input
        """
        if not texts:
            return []

        model = model or self.embedding_model
        payload = {
            "requests": [
                {
                    "model": f"models/{model}",
                    "content": {"parts": [{"text": text}]},
                    "taskType": TASK_RETRIEVAL_DOCUMENT,
                }
                for text in texts
            ]
        }

        logger.debug("gemini_batch_embedding_request", model=model, batch_size=len(texts))

        try:
            data = await self._post(f"models/{model}:batchEmbedContents", payload)
        except httpx.HTTPError as e:
            logger.error("gemini_batch_embedding_error", error=str(e))
            raise

        embeddings = [item.get("values", []) for item in data.get("embeddings", [])]
        if len(embeddings) != len(texts) or not all(embeddings):
            raise ValueError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}"
            )
        return embeddings


def _extract_text(data: Dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts", [])
    return "".join(part.get("text", "") for part in parts)


def _finish_reason(data: Dict[str, Any]) -> Optional[str]:
    candidates = data.get("candidates") or []
    return candidates[0].get("finishReason") if candidates else None
