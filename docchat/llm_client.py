"""Ollama client wrapper with error handling."""
import httpx
from typing import Any, Dict, List, Optional
import structlog

from docchat import config
from docchat.errors import MalformedResponse, ServiceError, UnreachableService

logger = structlog.get_logger()


class OllamaClient:
    """Async client for the Ollama embedding and chat endpoints."""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.REQUEST_TIMEOUT)
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises:
            UnreachableService: If the connection to Ollama fails
            ServiceError: If Ollama answers with a non-success status
            MalformedResponse: If the success body is not JSON
        """
        url = f"{self.base_url}{path}"

        try:
            async with self._client(timeout) as client:
                response = await client.request(method, url, json=payload)
        except httpx.TransportError as e:
            logger.error(
                "ollama_connection_error",
                operation=operation,
                base_url=self.base_url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise UnreachableService(self.base_url, str(e) or type(e).__name__) from e

        if not response.is_success:
            error = ServiceError(operation, response.status_code, response.text)
            logger.error(
                "ollama_http_error",
                operation=operation,
                status_code=response.status_code,
                body_preview=error.body,
            )
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Ollama {operation} response was not valid JSON"
            ) from e

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send a non-streaming chat completion request to Ollama.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            The assistant message content ('' when Ollama returns none)
        """
        model = model or config.CHAT_MODEL

        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
        }

        if temperature is not None:
            payload["options"] = {"temperature": temperature}

        logger.info(
            "ollama_chat_request",
            model=model,
            message_count=len(messages),
        )

        data = await self._request("POST", "/api/chat", "chat", payload)

        message = data.get("message") if isinstance(data, dict) else None
        content = (message or {}).get("content") or ""

        logger.info(
            "ollama_chat_response",
            model=model,
            response_length=len(content),
        )

        return content

    async def embed(self, text: str, model: str = None) -> List[float]:
        """Generate an embedding vector for a piece of text.

        Accepts both response shapes Ollama has used: ``{"embeddings": [[...]]}``
        from /api/embed and the older ``{"embedding": [...]}``.

        Args:
            text: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            The embedding vector

        Raises:
            MalformedResponse: If the response contains no vector
        """
        model = model or config.EMBEDDING_MODEL

        logger.debug(
            "ollama_embed_request",
            model=model,
            input_length=len(text),
        )

        data = await self._request(
            "POST", "/api/embed", "embedding", {"model": model, "input": text}
        )

        embedding = None
        if isinstance(data, dict):
            embeddings = data.get("embeddings")
            if isinstance(embeddings, list) and embeddings and embeddings[0]:
                embedding = embeddings[0]
            elif isinstance(data.get("embedding"), list):
                embedding = data["embedding"]

        if not isinstance(embedding, list) or not embedding:
            logger.error("ollama_embed_missing_vector", model=model)
            raise MalformedResponse(
                "Ollama embedding response did not include an embedding vector"
            )

        try:
            vector = [float(value) for value in embedding]
        except (TypeError, ValueError) as e:
            logger.error("ollama_embed_invalid_vector", model=model, error=str(e))
            raise MalformedResponse(
                "Ollama embedding response contained non-numeric values"
            ) from e

        logger.debug(
            "ollama_embed_response",
            model=model,
            dimension=len(vector),
        )

        return vector

    async def list_models(self) -> List[str]:
        """List all available Ollama models.

        Returns:
            List of model names
        """
        data = await self._request("GET", "/api/tags", "list models", timeout=5.0)
        return [m["name"] for m in data.get("models", [])]


# Global client instance
ollama_client = OllamaClient()
