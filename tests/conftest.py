import random
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest
from langchain_core.messages import BaseMessage

from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.context.memory.continuation_store import InMemoryContinuationStore
from atlas_assistant.domain.context.relevance_selector import RelevanceSelector
from atlas_assistant.domain.models.chat_state import CompletionResult
from atlas_assistant.domain.orchestration.core.query_orchestrator import QueryOrchestrator
from atlas_assistant.infrastructure.llm.completion_service import CompletionService

CORE_ACTIONS = ["addMessageV1", "updateContactStatusV1", "addLeadV1"]


def make_record(name: str, required: Sequence[str] = ("ContactUUID",), optional: Sequence[str] = ()) -> Dict[str, Any]:
    return {
        "type": name,
        "requiredArguments": [{"name": arg, "type": "string"} for arg in required],
        "optionalArguments": [{"name": arg, "type": "string"} for arg in optional],
    }


def build_document(filler: int = 60, refund: int = 4) -> Dict[str, Any]:
    records = [
        make_record("addMessageV1", optional=["Locale", "MacroID"]),
        make_record("updateContactStatusV1", optional=["Status"]),
        make_record("addLeadV1", required=["Email"]),
        make_record("accountLockdownV1", required=["UserUUID"], optional=["SendNotifyEmail", "SendNotifySMS"]),
        make_record("adjustFareV1", required=["TripUUID", "Amount"], optional=["Reason"]),
    ]
    records += [make_record(f"refundOrderV{i}", required=["OrderUUID"]) for i in range(1, refund + 1)]
    records += [make_record(f"fillerOperation{i:03d}V1") for i in range(filler)]
    return {"result": records}


class FakeCompletionService(CompletionService):
    """Returns queued results (or raises queued exceptions) and records every call"""

    def __init__(self, *outcomes: Union[CompletionResult, Exception]):
        self.outcomes = list(outcomes)
        self.calls: List[List[BaseMessage]] = []
        self.closed = False

    def queue(self, *outcomes: Union[CompletionResult, Exception]) -> None:
        self.outcomes.extend(outcomes)

    async def complete(self, messages: Sequence[BaseMessage]) -> CompletionResult:
        self.calls.append(list(messages))
        if not self.outcomes:
            return CompletionResult(content="default answer", finish_reason="stop")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


class SpySelector(RelevanceSelector):
    """Counts select calls"""

    def __init__(self, **kwargs):
        kwargs.setdefault("rng", random.Random(7))
        super().__init__(**kwargs)
        self.calls: List[str] = []

    def select(self, query, catalog, core_action_names):
        self.calls.append(query)
        return super().select(query, catalog, core_action_names)


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def catalog_document() -> Dict[str, Any]:
    return build_document()


@pytest.fixture
def catalog(catalog_document) -> CatalogIndex:
    return CatalogIndex.load(catalog_document)


@pytest.fixture
def completion_service() -> FakeCompletionService:
    return FakeCompletionService()


@pytest.fixture
def store() -> InMemoryContinuationStore:
    return InMemoryContinuationStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def selector() -> SpySelector:
    return SpySelector()


@pytest.fixture
def orchestrator(catalog, completion_service, store, selector, clock) -> QueryOrchestrator:
    return QueryOrchestrator(
        catalog=catalog,
        completion_service=completion_service,
        continuation_store=store,
        selector=selector,
        core_action_names=CORE_ACTIONS,
        continuation_ttl=3600,
        clock=clock
    )


def stop(content: str = "### Action: refundOrderV1\nDone.", reasoning: Optional[str] = None) -> CompletionResult:
    return CompletionResult(content=content, finish_reason="stop", reasoning=reasoning)


def truncated(content: str = "### Action: refundOrderV1\nPart one") -> CompletionResult:
    return CompletionResult(content=content, finish_reason="length")
