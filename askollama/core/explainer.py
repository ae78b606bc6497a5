"""Explanation Client component for the local language-model service."""

import logging
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass
class ExplanationResult:
    """Result of a language-model explanation."""
    source_text: str
    explanation: str


class ExplanationError(Exception):
    """Exception raised when an explanation cannot be obtained."""
    pass


class ConnectionFailed(ExplanationError):
    """The service could not be reached, usually because Ollama is not running."""
    pass


class ServiceError(ExplanationError):
    """The service answered with a non-success HTTP status."""
    
    def __init__(self, status_code: int) -> None:
        super().__init__(f"Service returned HTTP {status_code}")
        self.status_code = status_code


class ResponseDecodeFailed(ExplanationError):
    """The response body could not be read as text."""
    pass


class ExplanationClient:
    """Ask a local Ollama instance to explain screenshot text."""
    
    DEFAULT_URL: str = 'http://127.0.0.1:11434'
    ENDPOINT: str = '/v1/complete'
    DEFAULT_MODEL: str = 'llama2'
    MAX_TOKENS: int = 512
    
    PROMPT_PREAMBLE = (
        "You are an assistant. Explain the following screenshot text "
        "in a concise, user-friendly way:"
    )
    
    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize explanation client.
        
        Args:
            base_url: Root URL of the service.
            model: Model name sent with each request.
            max_tokens: Generation length cap.
            transport: Optional httpx transport, mainly for tests.
        """
        self._url = (base_url or self.DEFAULT_URL).rstrip('/') + self.ENDPOINT
        self._model = model or self.DEFAULT_MODEL
        self._max_tokens = self.MAX_TOKENS if max_tokens is None else max_tokens
        self._transport = transport
    
    @property
    def url(self) -> str:
        return self._url
    
    def build_prompt(self, text: str, user_prompt: str | None = None) -> str:
        """Combine the preamble, the OCR text and an optional user prompt."""
        prompt = f"{self.PROMPT_PREAMBLE}\n\n{text}"
        if user_prompt:
            prompt += f"\n\nAdditional context from the user:\n{user_prompt}"
        return prompt
    
    def build_payload(self, text: str, user_prompt: str | None = None) -> dict:
        return {
            'model': self._model,
            'prompt': self.build_prompt(text, user_prompt),
            'max_tokens': self._max_tokens,
        }
    
    async def explain(self, text: str, user_prompt: str | None = None) -> ExplanationResult:
        """Request an explanation for OCR text.
        
        Args:
            text: Text extracted from a screenshot.
            user_prompt: Extra instructions supplied by the user.
        
        Returns:
            ExplanationResult holding the raw response body.
        
        Raises:
            ConnectionFailed: If the service is unreachable.
            ServiceError: If the service returns a non-success status.
            ResponseDecodeFailed: If the body cannot be decoded.
        """
        payload = self.build_payload(text, user_prompt)
        
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self._url, json=payload)
        except httpx.DecodingError as e:
            raise ResponseDecodeFailed(f"Failed to read response: {e}") from e
        except httpx.TransportError as e:
            raise ConnectionFailed(f"Failed to call Ollama at {self._url}: {e}") from e
        
        if not response.is_success:
            raise ServiceError(response.status_code)
        
        try:
            explanation = response.content.decode(response.encoding or 'utf-8')
        except (UnicodeDecodeError, LookupError) as e:
            raise ResponseDecodeFailed(f"Failed to decode response: {e}") from e
        
        logger.debug(f"Received {len(explanation)} characters from {self._url}")
        return ExplanationResult(source_text=text, explanation=explanation)
