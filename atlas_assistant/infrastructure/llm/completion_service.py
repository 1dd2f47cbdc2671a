from typing import Dict, List, Sequence
from abc import ABC, abstractmethod

from langchain_core.messages import BaseMessage

from atlas_assistant.domain.models.chat_state import CompletionResult

ROLE_BY_MESSAGE_TYPE = {
    "system": "system",
    "human": "user",
    "ai": "assistant",
}


def to_chat_payload(messages: Sequence[BaseMessage]) -> List[Dict[str, str]]:
    """Convert langchain messages into chat-completions role/content dicts"""

    payload = []
    for message in messages:
        role = ROLE_BY_MESSAGE_TYPE.get(message.type, "user")
        content = message.content if isinstance(message.content, str) else str(message.content)
        payload.append({"role": role, "content": content})
    return payload


class CompletionService(ABC):
    """Remote LLM backend taking a message sequence"""

    @abstractmethod
    async def complete(self, messages: Sequence[BaseMessage]) -> CompletionResult:
        """Return the generated text and its termination reason

        Raises:
            ServiceInvocationError: on transport, provider or parsing failures
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources"""
        pass
