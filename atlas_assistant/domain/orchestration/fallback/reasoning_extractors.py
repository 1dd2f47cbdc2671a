"""
Salvage path for completions that come back with empty content.

Some backends (deepseek-r1 through OpenRouter among them) put the answer in a
``reasoning`` side channel and leave ``content`` empty. The extractors below
are tried in order and the first one that produces text wins.
"""

from typing import List, Optional, Sequence
from abc import ABC, abstractmethod
import re

import structlog

logger = structlog.get_logger(__name__)

EMPTY_RESPONSE_MESSAGE = (
    "I apologize, but I received an empty response from the AI service. "
    "Please try rephrasing your question or try again."
)


class ReasoningExtractor(ABC):
    """Turns reasoning text into a user-facing answer, or declines"""

    name: str = "base"

    @abstractmethod
    def extract(self, reasoning: str, known_actions: Sequence[str]) -> Optional[str]:
        """Return a response or None to let the next extractor try"""
        pass


class StructuredMarkerExtractor(ReasoningExtractor):
    """Reasoning that already contains a JSON block or an Action heading is usable as-is"""

    name = "structured_marker"
    markers = ("```json", "Action:")

    def extract(self, reasoning: str, known_actions: Sequence[str]) -> Optional[str]:
        if any(marker in reasoning for marker in self.markers):
            return reasoning
        return None


class ActionNameExtractor(ReasoningExtractor):
    """Suggests the first known action the reasoning mentions"""

    name = "action_name"

    def extract(self, reasoning: str, known_actions: Sequence[str]) -> Optional[str]:
        action = self.find_action(reasoning, known_actions)
        if action is None:
            return None

        return (
            f"Based on your query, you should use the **{action}** action. "
            "This action helps with the functionality you're looking for. "
            "Check the action catalog for its exact required and optional arguments.\n\n"
            "### Example Usage:\n"
            "```json\n"
            "{\n"
            f"  \"type\": \"{action}\",\n"
            "  \"arguments\": {}\n"
            "}\n"
            "```\n\n"
            "For specific argument details, ask about this action directly."
        )

    @staticmethod
    def find_action(reasoning: str, known_actions: Sequence[str]) -> Optional[str]:
        """Known action name with the earliest mention in the text"""

        names = sorted({name for name in known_actions if name}, key=len, reverse=True)
        if not names:
            return None

        pattern = re.compile(
            r"(?<![A-Za-z0-9_])(" + "|".join(re.escape(name) for name in names) + r")(?![A-Za-z0-9_])",
            re.IGNORECASE
        )
        match = pattern.search(reasoning)
        if match is None:
            return None

        found = match.group(1).lower()
        for name in names:
            if name.lower() == found:
                return name
        return None


class StaticHelpExtractor(ReasoningExtractor):
    """Always answers with a general help message"""

    name = "static_help"

    def __init__(self, highlighted_actions: Sequence[str] = ()):
        self.highlighted_actions = list(highlighted_actions)

    def extract(self, reasoning: str, known_actions: Sequence[str]) -> Optional[str]:
        suggestions = self.highlighted_actions or list(known_actions)[:4]

        lines = [
            "I understand you're looking for help with API actions. "
            "Here are some common ones you might find useful:",
            ""
        ]
        lines.extend(f"- **{name}**" for name in suggestions)
        lines.append("")
        lines.append(
            "Please specify which action you'd like to know more about, "
            "or describe what you're trying to accomplish."
        )
        return "\n".join(lines)


class ReasoningFallbackChain:
    """Ordered chain of extractors"""

    def __init__(self, extractors: Optional[List[ReasoningExtractor]] = None):
        self.extractors = extractors if extractors is not None else [
            StructuredMarkerExtractor(),
            ActionNameExtractor(),
            StaticHelpExtractor(),
        ]

    def salvage(self, reasoning: Optional[str], known_actions: Sequence[str]) -> str:
        """Best-effort response for an empty completion"""

        if not reasoning or not reasoning.strip():
            return EMPTY_RESPONSE_MESSAGE

        for extractor in self.extractors:
            result = extractor.extract(reasoning, known_actions)
            if result:
                logger.info("Recovered response from reasoning", extractor=extractor.name)
                return result

        return EMPTY_RESPONSE_MESSAGE
