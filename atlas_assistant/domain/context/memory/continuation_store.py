from typing import Callable, Dict, Optional
from abc import ABC, abstractmethod
import asyncio
import time

import structlog

from atlas_assistant.domain.models.chat_state import ContinuationState

logger = structlog.get_logger(__name__)

CONTINUATION_TTL = 3600


class ContinuationStore(ABC):
    """Session-keyed store of in-flight continuation state"""

    @abstractmethod
    def put(self, session_id: str, state: ContinuationState) -> None:
        """Store state for a session, replacing any previous entry"""
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[ContinuationState]:
        """Return the state for a session, if any"""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Drop the state for a session"""
        pass

    @abstractmethod
    def sweep(self, now: float, ttl: float) -> int:
        """Remove entries created before now - ttl and return how many went"""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryContinuationStore(ContinuationStore):
    """Dict-backed store for single-process deployments"""

    def __init__(self):
        self._entries: Dict[str, ContinuationState] = {}

    def put(self, session_id: str, state: ContinuationState) -> None:
        self._entries[session_id] = state

    def get(self, session_id: str) -> Optional[ContinuationState]:
        return self._entries.get(session_id)

    def delete(self, session_id: str) -> bool:
        return self._entries.pop(session_id, None) is not None

    def sweep(self, now: float, ttl: float) -> int:
        cutoff = now - ttl
        expired = [
            session_id for session_id, state in self._entries.items()
            if state.created_at < cutoff
        ]

        for session_id in expired:
            del self._entries[session_id]

        if expired:
            logger.info("Swept expired continuations", removed=len(expired), remaining=len(self._entries))

        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


async def run_periodic_sweep(
    store: ContinuationStore,
    ttl: float = CONTINUATION_TTL,
    interval: float = 300,
    clock: Callable[[], float] = time.time
):
    """Sweep the store on a timer until cancelled"""
    while True:
        await asyncio.sleep(interval)
        try:
            store.sweep(clock(), ttl)
        except Exception as e:
            logger.error("Continuation sweep error", error=str(e))
