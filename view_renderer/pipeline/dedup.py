"""
Per-batch deduplication of affected keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Hashable, Iterator, Optional, TypeVar

K = TypeVar("K", bound=Hashable)


class Action(str, Enum):
    """What to do with an affected key."""
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class DedupEntry(Generic[K]):
    """Action chosen for a key, with the latest item snapshot seen for it."""
    key: K
    action: Action
    snapshot: Optional[Dict[str, Any]] = None


class DedupSet(Generic[K]):
    """
    Maps each affected key to one action.

    A later mark for the same key replaces the earlier one, so every key is
    acted on exactly once per batch. Iteration follows first-seen order.
    """

    def __init__(self) -> None:
        self._entries: Dict[K, DedupEntry[K]] = {}

    def mark(self, key: K, action: Action = Action.UPDATE, snapshot: Optional[Dict[str, Any]] = None) -> None:
        self._entries[key] = DedupEntry(key=key, action=action, snapshot=snapshot)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[DedupEntry[K]]:
        return iter(list(self._entries.values()))

    def action_for(self, key: K) -> Optional[Action]:
        entry = self._entries.get(key)
        return entry.action if entry else None

    def keys(self) -> list:
        return list(self._entries)
