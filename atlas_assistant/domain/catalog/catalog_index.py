from typing import Dict, List, Any, Iterator, Optional, Tuple, Union
from pathlib import Path
import json

import structlog
from pydantic import ValidationError

from atlas_assistant.domain.errors import CatalogLoadError
from atlas_assistant.domain.models.chat_state import Action

logger = structlog.get_logger(__name__)

CatalogSource = Union[str, Path, Dict[str, Any]]


class CatalogIndex:
    """Read-only view over the action catalog"""

    def __init__(self, actions: List[Action]):
        self._actions: Tuple[Action, ...] = tuple(actions)
        self._by_name: Dict[str, Action] = {}

        for action in self._actions:
            if action.name in self._by_name:
                raise CatalogLoadError(f"Duplicate action name in catalog: {action.name}")
            self._by_name[action.name] = action

    @classmethod
    def load(cls, source: CatalogSource) -> "CatalogIndex":
        """Build the index from a catalog file path or an already parsed document"""

        if isinstance(source, (str, Path)):
            document = cls._read_document(Path(source))
        else:
            document = source

        if not isinstance(document, dict) or not isinstance(document.get("result"), list):
            raise CatalogLoadError("Catalog source must be an object with a 'result' array")

        actions = []
        for position, record in enumerate(document["result"]):
            try:
                actions.append(Action.model_validate(record))
            except ValidationError as e:
                raise CatalogLoadError(f"Malformed action record at index {position}: {e}") from e

        index = cls(actions)
        logger.info("Catalog loaded", actions=len(index))
        return index

    @staticmethod
    def _read_document(path: Path) -> Any:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogLoadError(f"Cannot read catalog {path}: {e}") from e

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CatalogLoadError(f"Catalog {path} is not valid JSON: {e}") from e

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self._actions

    def names(self) -> List[str]:
        return [action.name for action in self._actions]

    def find_by_name(self, name: str) -> Optional[Action]:
        """Exact-name lookup"""

        return self._by_name.get(name)

    def search(self, token: str) -> Iterator[Action]:
        """Lazily yield actions whose name contains token, case-insensitively"""

        token_lower = token.lower()
        for action in self._actions:
            if token_lower in action.name.lower():
                yield action

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[Action]:
        return iter(self._actions)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
