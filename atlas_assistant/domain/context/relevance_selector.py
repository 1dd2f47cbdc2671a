from typing import Iterable, List, Optional, Tuple
import random
import re

import structlog

from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.models.chat_state import Action

logger = structlog.get_logger(__name__)

MAX_CONTEXT_ACTIONS = 60
QUERY_MATCH_PRIORITY = 30
MIN_CONTEXT_ACTIONS = 50
MIN_TOKEN_LENGTH = 3


def tokenize(query: str) -> List[str]:
    """Lowercase word tokens longer than two characters, first occurrence order"""

    tokens: List[str] = []
    for word in re.findall(r'\w+', query.lower()):
        if len(word) >= MIN_TOKEN_LENGTH and word not in tokens:
            tokens.append(word)
    return tokens


def _dedupe(actions: Iterable[Action]) -> List[Action]:
    seen = set()
    unique = []
    for action in actions:
        if action.name not in seen:
            seen.add(action.name)
            unique.append(action)
    return unique


class RelevanceSelector:
    """Picks the bounded subset of catalog actions placed in the model context"""

    def __init__(
        self,
        max_actions: int = MAX_CONTEXT_ACTIONS,
        query_match_priority: int = QUERY_MATCH_PRIORITY,
        min_actions: int = MIN_CONTEXT_ACTIONS,
        rng: Optional[random.Random] = None
    ):
        self.max_actions = max_actions
        self.query_match_priority = query_match_priority
        self.min_actions = min(min_actions, max_actions)
        self.rng = rng or random.Random()

    def select(
        self,
        query: str,
        catalog: CatalogIndex,
        core_action_names: Iterable[str]
    ) -> Tuple[Action, ...]:
        """Select query matches, core actions and random fill for one query"""

        tokens = tokenize(query or "")
        query_matches = self.match_query(tokens, catalog)
        core_actions = self.resolve_core_actions(core_action_names, catalog)

        selected = _dedupe(core_actions + query_matches)

        # Query matches are trimmed to their priority share before core actions go
        if len(selected) > self.max_actions:
            selected = _dedupe(query_matches[:self.query_match_priority] + core_actions)
            selected = selected[:self.max_actions]

        fill_count = 0
        if len(selected) < self.min_actions:
            chosen = {action.name for action in selected}
            remaining = [action for action in catalog if action.name not in chosen]
            fill_count = min(self.min_actions - len(selected), len(remaining))
            selected.extend(self.rng.sample(remaining, fill_count))

        logger.debug(
            "Selected context actions",
            tokens=tokens,
            query_matches=len(query_matches),
            core_actions=len(core_actions),
            random_fill=fill_count,
            total=len(selected)
        )

        return tuple(selected)

    @staticmethod
    def match_query(tokens: List[str], catalog: CatalogIndex) -> List[Action]:
        """Actions whose name contains at least one token, in catalog order"""

        if not tokens:
            return []

        return [
            action for action in catalog
            if any(token in action.name.lower() for token in tokens)
        ]

    @staticmethod
    def resolve_core_actions(names: Iterable[str], catalog: CatalogIndex) -> List[Action]:
        """Configured core names present in the catalog; unknown names are skipped"""

        resolved = []
        for name in names:
            action = catalog.find_by_name(name)
            if action is not None:
                resolved.append(action)
        return _dedupe(resolved)
