from typing import Dict, Any, Optional, List, Union
from pydantic import BaseModel, ConfigDict, Field

from atlas_assistant.domain.models.chat_state import ChatTurn, OrchestrationResult


class ChatRequest(BaseModel):
    """Body of POST /api/chat"""
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    conversation_history: List[ChatTurn] = Field(default_factory=list, alias="conversationHistory")
    session_id: Optional[str] = Field(None, alias="sessionId")
    is_continuation: Optional[bool] = Field(None, alias="isContinuation")


class ChatResponse(BaseModel):
    """Body returned by POST /api/chat"""
    model_config = ConfigDict(populate_by_name=True)

    response: str
    has_more: bool = Field(alias="hasMore")
    was_cut_off: bool = Field(alias="wasCutOff")
    finish_reason: str = Field(alias="finishReason")

    @classmethod
    def from_result(cls, result: OrchestrationResult) -> "ChatResponse":
        return cls(
            response=result.response,
            has_more=result.has_more,
            was_cut_off=result.was_cut_off,
            finish_reason=result.finish_reason
        )


class ErrorResponse(BaseModel):
    """Client or server error body"""
    error: str


class HealthResponse(BaseModel):
    """Health check body"""
    model_config = ConfigDict(populate_by_name=True)

    status: str = "ok"
    actions_loaded: int = Field(alias="actionsLoaded")


class ActionSpecRequest(BaseModel):
    """One explicit action to build a payload for"""
    type: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[Dict[str, Any]] = None
    constants: Optional[Dict[str, Any]] = None
    description: Optional[str] = None

    def to_spec(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class GenerateActionsRequest(BaseModel):
    """Body of POST /api/actions/generate"""
    request: Optional[str] = None
    actions: Optional[List[Union[str, ActionSpecRequest]]] = Field(
        None,
        description="Explicit action names or {type, arguments, constants, description} specs"
    )

    def action_specs(self) -> List[Union[str, Dict[str, Any]]]:
        return [spec if isinstance(spec, str) else spec.to_spec() for spec in self.actions or []]


class GenerateActionsResponse(BaseModel):
    actions: List[Dict[str, Any]]
