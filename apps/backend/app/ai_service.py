"""
AI Service for the text generation backend.
Talks to an OpenAI-compatible /chat/completions endpoint (OpenRouter by
default, or any compatible server such as a local Ollama /v1).

One request per call: no retries here. Callers that run on a schedule rely on
the next cycle to try again.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import Settings, OPENROUTER_DEFAULT_BASE_URL
from core.errors import ConfigurationMissingError, GenerationServiceError

logger = logging.getLogger(__name__)


class AIService:
    """Service for making text generation calls."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "",
        base_url: str = OPENROUTER_DEFAULT_BASE_URL,
        timeout: float = 120.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        # Keyless endpoints are allowed when they are not OpenRouter
        self.enabled = bool(api_key) or self.base_url != OPENROUTER_DEFAULT_BASE_URL

        if not self.enabled:
            logger.warning("[ai_service] OPENROUTER_API_KEY not configured. Enrichment disabled.")

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIService":
        return cls(
            api_key=settings.ai_api_key,
            model=settings.ai_model,
            base_url=settings.ai_base_url,
            timeout=settings.ai_timeout_seconds,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Title": "JobMatch Enrichment",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _call_chat(self, messages: List[Dict[str, str]], temperature: float = 0.0) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "stream": False,
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise GenerationServiceError(f"HTTP {e.response.status_code} from generation service") from e
        except httpx.TimeoutException as e:
            raise GenerationServiceError(f"Timeout calling generation service: {e}") from e
        except httpx.HTTPError as e:
            raise GenerationServiceError(f"Transport error calling generation service: {e}") from e
        except ValueError as e:
            # response.json() on a non-JSON body
            raise GenerationServiceError(f"Malformed response body: {e}") from e

    def generate(self, system_instruction: str, user_content: str) -> str:
        """
        Run one chat completion and return the stripped message content.

        The returned text may be empty; deciding what to do with an empty
        answer is up to the caller.

        Raises:
            ConfigurationMissingError: the service is not configured
            GenerationServiceError: transport failure, HTTP error or malformed body
        """
        if not self.enabled:
            raise ConfigurationMissingError("Text generation service is not configured")

        logger.info(f"[ai_service] Sending request (model={self.model or 'default'}) to {self.base_url}")
        data = self._call_chat([
            {"role": "system", "content": system_instruction},
            {"role": "user", "content": user_content},
        ])

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationServiceError(f"Unexpected response format: {str(data)[:200]}") from e

        if not isinstance(content, str):
            raise GenerationServiceError(f"Unexpected content type: {type(content).__name__}")

        return content.strip()
