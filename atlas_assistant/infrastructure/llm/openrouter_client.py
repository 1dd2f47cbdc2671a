from typing import Any, Dict, Optional, Sequence

import httpx
import structlog
from langchain_core.messages import BaseMessage

from atlas_assistant.domain.errors import (
    CompletionProviderError,
    CompletionTransportError,
    MalformedCompletionError,
)
from atlas_assistant.domain.models.chat_state import CompletionResult, FinishReason
from atlas_assistant.infrastructure.config.settings import Settings
from atlas_assistant.infrastructure.llm.completion_service import CompletionService, to_chat_payload

logger = structlog.get_logger(__name__)


class OpenRouterClient(CompletionService):
    """OpenRouter chat-completions client"""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        site_url: Optional[str] = None,
        site_name: Optional[str] = None,
        timeout: float = 60.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.site_url = site_url
        self.site_name = site_name
        self._client = httpx.AsyncClient(timeout=timeout, verify=verify_ssl, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> "OpenRouterClient":
        return cls(
            api_key=settings.require_api_key(),
            base_url=settings.openrouter_base_url,
            model=settings.openrouter_model,
            temperature=settings.openrouter_temperature,
            max_tokens=settings.openrouter_max_tokens,
            site_url=settings.site_url,
            site_name=settings.site_name,
            timeout=settings.openrouter_timeout,
            verify_ssl=settings.openrouter_verify_ssl,
            transport=transport
        )

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.site_url:
            headers["HTTP-Referer"] = self.site_url
        if self.site_name:
            headers["X-Title"] = self.site_name
        return headers

    def _build_payload(self, messages: Sequence[BaseMessage]) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": to_chat_payload(messages),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    async def complete(self, messages: Sequence[BaseMessage]) -> CompletionResult:
        logger.debug("Calling completion service", url=self.base_url, model=self.model, messages=len(messages))

        try:
            response = await self._client.post(
                self.base_url,
                headers=self._headers(),
                json=self._build_payload(messages)
            )
        except httpx.HTTPError as e:
            raise CompletionTransportError(f"Request to completion service failed: {e}") from e

        if response.status_code >= 400:
            raise CompletionTransportError(
                f"API request failed: {response.status_code} {response.reason_phrase} - {response.text[:500]}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedCompletionError("Completion service returned a non-JSON body") from e

        return self._parse_response(data)

    @staticmethod
    def _parse_response(data: Any) -> CompletionResult:
        if not isinstance(data, dict):
            raise MalformedCompletionError("Invalid response structure from API - body is not an object")

        error = data.get("error")
        if error:
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise CompletionProviderError(
                f"OpenRouter API Error: {message} (Code: {code if code is not None else 'N/A'})",
                code=None if code is None else str(code)
            )

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedCompletionError("Invalid response structure from API - missing choices")

        choice = choices[0]
        message = choice.get("message")
        if not isinstance(message, dict):
            raise MalformedCompletionError("Invalid response structure from API - missing message")

        return CompletionResult(
            content=message.get("content") or "",
            finish_reason=choice.get("finish_reason") or FinishReason.UNKNOWN.value,
            reasoning=message.get("reasoning") or None
        )

    async def aclose(self) -> None:
        await self._client.aclose()
