from typing import TypedDict, List, Dict, Any, Optional, Tuple, Sequence, Callable, Literal
from langgraph.graph import StateGraph, END
from langchain_core.messages import BaseMessage, HumanMessage, AIMessage, SystemMessage
import asyncio
import time
import weakref
import structlog

from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.context.memory.continuation_store import ContinuationStore, CONTINUATION_TTL
from atlas_assistant.domain.context.prompt_builder import PromptBuilder
from atlas_assistant.domain.context.relevance_selector import RelevanceSelector
from atlas_assistant.domain.errors import (
    CompletionProviderError,
    CompletionTransportError,
    MalformedCompletionError,
)
from atlas_assistant.domain.models.chat_state import (
    Action, ChatQuery, ChatTurn, CompletionResult, ContinuationState,
    OrchestrationResult, TurnType
)
from atlas_assistant.domain.orchestration.fallback.reasoning_extractors import (
    ReasoningFallbackChain, StructuredMarkerExtractor, ActionNameExtractor, StaticHelpExtractor
)
from atlas_assistant.infrastructure.llm.completion_service import CompletionService
from atlas_assistant.infrastructure.observability.logging import MetricsCollector, chat_logger

logger = structlog.get_logger(__name__)

HISTORY_WINDOW = 10
CONTINUATION_KEYWORDS = ("continue", "more")

NETWORK_SECURITY_APOLOGY = (
    "Sorry, I encountered a network security error. This might be a temporary issue. "
    "Please try again in a moment."
)
PROVIDER_APOLOGY = "Sorry, the AI service is experiencing technical difficulties. Please try again later."
MALFORMED_APOLOGY = "Sorry, I received an unexpected response from the AI service. Please try again."
GENERIC_APOLOGY = (
    "Sorry, I encountered an error while processing your request. "
    "Please check your API key and try again."
)


def wants_continuation(text: str) -> bool:
    """Lexical continuation trigger"""
    lowered = text.lower()
    return any(keyword in lowered for keyword in CONTINUATION_KEYWORDS)


def apology_for(error: Exception) -> str:
    """User-facing message for a failed completion call"""
    if isinstance(error, CompletionTransportError) and error.is_certificate_error:
        return NETWORK_SECURITY_APOLOGY
    if isinstance(error, CompletionProviderError):
        return PROVIDER_APOLOGY
    if isinstance(error, MalformedCompletionError):
        return MALFORMED_APOLOGY
    return GENERIC_APOLOGY


class OrchestrationState(TypedDict):
    """State for the query graph"""
    query: ChatQuery
    turn_type: str
    continuation: Optional[ContinuationState]
    system_prompt: str
    available_actions: Tuple[Action, ...]
    original_query: str
    user_content: str
    messages: List[BaseMessage]
    completion: Optional[CompletionResult]
    error_message: Optional[str]
    result: Optional[OrchestrationResult]


class QueryOrchestrator:
    """Answers one chat query end to end using LangGraph"""

    def __init__(
        self,
        catalog: CatalogIndex,
        completion_service: CompletionService,
        continuation_store: ContinuationStore,
        selector: Optional[RelevanceSelector] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        core_action_names: Sequence[str] = (),
        history_window: int = HISTORY_WINDOW,
        continuation_ttl: float = CONTINUATION_TTL,
        fallback_chain: Optional[ReasoningFallbackChain] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.time
    ):
        self.catalog = catalog
        self.completion_service = completion_service
        self.continuation_store = continuation_store
        self.selector = selector or RelevanceSelector()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.core_action_names = list(core_action_names)
        self.history_window = history_window
        self.continuation_ttl = continuation_ttl
        self.metrics = metrics or MetricsCollector()
        self.clock = clock
        self.fallback_chain = fallback_chain or ReasoningFallbackChain([
            StructuredMarkerExtractor(),
            ActionNameExtractor(),
            StaticHelpExtractor([name for name in self.core_action_names if name in catalog]),
        ])
        self._session_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the query workflow graph"""

        workflow = StateGraph(OrchestrationState)

        workflow.add_node("route_turn", self.route_turn_node)
        workflow.add_node("select_context", self.select_context_node)
        workflow.add_node("resume_context", self.resume_context_node)
        workflow.add_node("assemble_messages", self.assemble_messages_node)
        workflow.add_node("invoke_completion", self.invoke_completion_node)
        workflow.add_node("handle_error", self.handle_error_node)
        workflow.add_node("finalize", self.finalize_node)

        workflow.set_entry_point("route_turn")

        workflow.add_conditional_edges(
            "route_turn",
            self.route_by_turn_type,
            {
                TurnType.FRESH.value: "select_context",
                TurnType.CONTINUATION.value: "resume_context"
            }
        )

        workflow.add_edge("select_context", "assemble_messages")
        workflow.add_edge("resume_context", "assemble_messages")
        workflow.add_edge("assemble_messages", "invoke_completion")

        workflow.add_conditional_edges(
            "invoke_completion",
            self.check_completion,
            {
                "success": "finalize",
                "error": "handle_error"
            }
        )

        workflow.add_edge("finalize", END)
        workflow.add_edge("handle_error", END)

        return workflow.compile()

    async def route_turn_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """Decide between a continuation turn and a fresh turn"""

        query = state["query"]
        intent = query.is_continuation
        if intent is None:
            intent = wants_continuation(query.text)

        continuation = None
        if intent and query.session_id:
            continuation = self.continuation_store.get(query.session_id)

        turn_type = TurnType.CONTINUATION if continuation is not None else TurnType.FRESH
        logger.info("Routing query", turn_type=turn_type.value, continuation_intent=bool(intent))

        return {"turn_type": turn_type.value, "continuation": continuation}

    async def select_context_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """Run relevance selection and build a fresh system prompt"""

        query = state["query"]
        actions = self.selector.select(query.text, self.catalog, self.core_action_names)
        system_prompt = self.prompt_builder.system_prompt(actions, len(self.catalog))

        return {
            "available_actions": actions,
            "system_prompt": system_prompt,
            "original_query": query.text,
            "user_content": query.text
        }

    async def resume_context_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """Reuse the stored prompt state of the truncated answer"""

        continuation = state["continuation"]
        self.metrics.increment_counter("chat.continuations")

        return {
            "available_actions": continuation.available_actions,
            "system_prompt": continuation.system_prompt,
            "original_query": continuation.original_query,
            "user_content": self.prompt_builder.continuation_instruction(continuation.original_query)
        }

    async def assemble_messages_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """System prompt, bounded history window, current user turn"""

        history = state["query"].conversation_history
        window = history[-self.history_window:] if self.history_window > 0 else []

        messages: List[BaseMessage] = [SystemMessage(content=state["system_prompt"])]
        messages.extend(self._to_message(turn) for turn in window)
        messages.append(HumanMessage(content=state["user_content"]))

        return {"messages": messages}

    async def invoke_completion_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """Call the completion service; failures become an apology"""

        session_id = state["query"].session_id
        started = time.perf_counter()

        try:
            completion = await self.completion_service.complete(state["messages"])
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.error("Completion service call failed", error=str(e), error_type=type(e).__name__)
            chat_logger.log_completion(
                session_id=session_id,
                finish_reason="error",
                content_length=0,
                duration_ms=duration_ms,
                success=False,
                error=str(e)
            )
            self.metrics.increment_counter("chat.errors")
            return {"completion": None, "error_message": apology_for(e)}

        duration_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_latency("completion", duration_ms)
        chat_logger.log_completion(
            session_id=session_id,
            finish_reason=completion.finish_reason,
            content_length=len(completion.content),
            duration_ms=duration_ms
        )

        return {"completion": completion, "error_message": None}

    def route_by_turn_type(self, state: OrchestrationState) -> Literal["fresh", "continuation"]:
        return state["turn_type"]

    def check_completion(self, state: OrchestrationState) -> Literal["success", "error"]:
        if state.get("error_message") or state.get("completion") is None:
            return "error"
        return "success"

    async def handle_error_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """Degrade to a textual error result"""

        message = state.get("error_message") or GENERIC_APOLOGY
        return {"result": OrchestrationResult.from_error(message)}

    async def finalize_node(self, state: OrchestrationState) -> Dict[str, Any]:
        """Salvage empty content, then record or resolve the continuation thread"""

        query = state["query"]
        completion = state["completion"]
        response = completion.content

        if completion.is_empty:
            logger.warning("Received empty content from completion service", has_reasoning=bool(completion.reasoning))
            self.metrics.increment_counter("chat.empty_completions")
            known = [action.name for action in state["available_actions"]] + self.core_action_names
            response = self.fallback_chain.salvage(completion.reasoning, known)

        has_more = False
        if completion.was_truncated and query.session_id:
            self.continuation_store.put(
                query.session_id,
                ContinuationState(
                    session_id=query.session_id,
                    system_prompt=state["system_prompt"],
                    available_actions=state["available_actions"],
                    original_query=state["original_query"],
                    created_at=self.clock()
                )
            )
            chat_logger.log_continuation_update(
                query.session_id,
                "refresh" if state["turn_type"] == TurnType.CONTINUATION.value else "create",
                {"actions": len(state["available_actions"])}
            )
            response = self.prompt_builder.mark_truncated(response)
            self.continuation_store.sweep(self.clock(), self.continuation_ttl)
            self.metrics.increment_counter("chat.truncations")
            has_more = True
        elif not completion.was_truncated and query.session_id:
            if self.continuation_store.delete(query.session_id):
                chat_logger.log_continuation_update(query.session_id, "resolve")

        return {
            "result": OrchestrationResult(
                response=response,
                has_more=has_more,
                was_cut_off=completion.was_truncated,
                finish_reason=completion.finish_reason
            )
        }

    @staticmethod
    def _to_message(turn: ChatTurn) -> BaseMessage:
        if turn.role == "assistant":
            return AIMessage(content=turn.content)
        return HumanMessage(content=turn.content)

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    async def handle(self, query: ChatQuery) -> OrchestrationResult:
        """Process one query; never raises for per-request failures"""

        self.metrics.increment_counter("chat.requests")
        started = time.perf_counter()

        with structlog.contextvars.bound_contextvars(session_id=query.session_id):
            chat_logger.log_query_event("received", query.session_id, query.text)

            if query.session_id:
                lock = self._lock_for(query.session_id)
                async with lock:
                    result = await self._run(query)
            else:
                result = await self._run(query)

            self.metrics.record_latency("chat.handle", (time.perf_counter() - started) * 1000)
            chat_logger.log_query_event(
                "answered",
                query.session_id,
                query.text,
                {"finish_reason": result.finish_reason, "has_more": result.has_more}
            )
            return result

    async def _run(self, query: ChatQuery) -> OrchestrationResult:
        initial_state: OrchestrationState = {
            "query": query,
            "turn_type": TurnType.FRESH.value,
            "continuation": None,
            "system_prompt": "",
            "available_actions": (),
            "original_query": query.text,
            "user_content": query.text,
            "messages": [],
            "completion": None,
            "error_message": None,
            "result": None
        }

        try:
            final_state = await self.workflow.ainvoke(initial_state)
        except Exception as e:
            logger.exception("Query workflow failed", error=str(e))
            self.metrics.increment_counter("chat.errors")
            return OrchestrationResult.from_error(GENERIC_APOLOGY)

        return final_state["result"] or OrchestrationResult.from_error(GENERIC_APOLOGY)
