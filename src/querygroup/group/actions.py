"""Registry of extra "add query" actions contributed from outside the core."""
from __future__ import annotations

import dataclasses
from typing import Any, Awaitable, Callable, List, Optional

from querygroup.backends.models import BackendDescriptor
from querygroup.models import QueryGroupOptions


@dataclasses.dataclass(frozen=True)
class GroupActionContext:
    """Callbacks handed to an extra action."""
    on_add_query: Callable[..., Optional[QueryGroupOptions]]
    on_change_data_source: Callable[[BackendDescriptor], Awaitable[Optional[QueryGroupOptions]]]


GroupAction = Callable[[GroupActionContext], Any]


class GroupActionRegistry:
    def __init__(self) -> None:
        self._actions: List[GroupAction] = []

    def register(self, action: GroupAction) -> GroupAction:
        """Adds an action. Returns it unchanged so this can be used as a decorator."""
        self._actions.append(action)
        return action

    def unregister(self, action: GroupAction) -> None:
        if action in self._actions:
            self._actions.remove(action)

    def get_all(self) -> List[GroupAction]:
        return list(self._actions)

    def clear(self) -> None:
        self._actions.clear()


# Global instance
group_actions = GroupActionRegistry()
