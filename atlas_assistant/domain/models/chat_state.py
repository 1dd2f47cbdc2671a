from typing import Dict, Any, List, Optional, Tuple, Literal
from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from enum import Enum


class FinishReason(str, Enum):
    """Termination reasons the orchestrator cares about"""
    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"
    UNKNOWN = "unknown"


class TurnType(str, Enum):
    """How a request is answered"""
    FRESH = "fresh"
    CONTINUATION = "continuation"


class ArgumentSpec(BaseModel):
    """One required or optional argument of an action"""
    model_config = ConfigDict(frozen=True)

    name: str
    type: Optional[str] = None


class Action(BaseModel):
    """Catalog entry describing a named operation"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(
        validation_alias=AliasChoices("name", "type"),
        description="Unique action identifier"
    )
    required_arguments: Tuple[ArgumentSpec, ...] = Field(
        default=(),
        validation_alias=AliasChoices("requiredArguments", "required_arguments"),
        serialization_alias="requiredArguments"
    )
    optional_arguments: Tuple[ArgumentSpec, ...] = Field(
        default=(),
        validation_alias=AliasChoices("optionalArguments", "optional_arguments"),
        serialization_alias="optionalArguments"
    )

    def to_context(self) -> Dict[str, Any]:
        """Compact representation embedded in the system prompt"""
        return {
            "name": self.name,
            "requiredArguments": [arg.model_dump(exclude_none=True) for arg in self.required_arguments],
            "optionalArguments": [arg.model_dump(exclude_none=True) for arg in self.optional_arguments],
        }


class ChatTurn(BaseModel):
    """A prior turn of the conversation"""
    role: Literal["user", "assistant"]
    content: str


class ChatQuery(BaseModel):
    """A single request to the orchestrator"""
    text: str = Field(description="User message")
    session_id: Optional[str] = Field(None, description="Continuation thread identifier")
    conversation_history: List[ChatTurn] = Field(default_factory=list)
    is_continuation: Optional[bool] = Field(
        None,
        description="Explicit continuation flag; lexical detection is used when unset"
    )


class ContinuationState(BaseModel):
    """Prompt state that produced a truncated answer"""
    model_config = ConfigDict(frozen=True)

    session_id: str
    system_prompt: str
    available_actions: Tuple[Action, ...] = Field(default_factory=tuple)
    original_query: str
    created_at: float = Field(description="Epoch seconds")


class CompletionResult(BaseModel):
    """Normalized output of the completion service"""
    content: str = ""
    finish_reason: str = FinishReason.UNKNOWN.value
    reasoning: Optional[str] = Field(None, description="Side channel some backends fill instead of content")

    @property
    def was_truncated(self) -> bool:
        return self.finish_reason == FinishReason.LENGTH.value

    @property
    def is_empty(self) -> bool:
        return not self.content or not self.content.strip()


class OrchestrationResult(BaseModel):
    """Shape returned to every caller"""
    response: str
    has_more: bool = False
    was_cut_off: bool = False
    finish_reason: str = FinishReason.STOP.value

    @classmethod
    def from_error(cls, message: str) -> "OrchestrationResult":
        return cls(
            response=message,
            has_more=False,
            was_cut_off=False,
            finish_reason=FinishReason.ERROR.value
        )
