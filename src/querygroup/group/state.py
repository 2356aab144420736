from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Callable, Optional

from querygroup.backends.models import BackendDescriptor
from querygroup.backends.protocols import Backend
from querygroup.common.logger import get_logger
from querygroup.models import QueryGroupOptions

logger = get_logger(__name__)

OptionsChangeCallback = Callable[[QueryGroupOptions], None]

_UNSET: Any = object()


class GroupPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SWITCHING = "switching"
    LINKING = "linking"
    FAILED = "failed"
    RELEASED = "released"


@dataclasses.dataclass
class GroupState:
    """
    Everything a query group knows at one point in time.

    Attributes:
        options: Mirror of the parent-owned configuration.
        phase: Lifecycle phase.
        backend: Live instance of the active backend.
        settings: Descriptor of the active backend.
        default_backend: Organization default backend, bound to new queries when the active one is mixed.
    """
    options: QueryGroupOptions
    phase: GroupPhase = GroupPhase.UNINITIALIZED
    backend: Optional[Backend] = None
    settings: Optional[BackendDescriptor] = None
    default_backend: Optional[Backend] = None


class GroupStateContainer:
    """
    Single authoritative store for a query group.

    Every change goes through ``commit``, which pushes the complete options
    to the parent and updates the mirror with the same value in one step.
    Operations that may be overtaken by newer ones take a ticket; a commit
    carrying a ticket older than the last committed one is discarded.
    """

    def __init__(self, options: QueryGroupOptions, on_options_change: OptionsChangeCallback):
        self.initial_options = options.model_copy(deep=True)
        self._state = GroupState(options=options.model_copy(deep=True))
        self._on_options_change = on_options_change
        self._last_ticket = 0
        self._committed_ticket = 0
        self.revision = 0

    @property
    def state(self) -> GroupState:
        return self._state

    @property
    def options(self) -> QueryGroupOptions:
        return self._state.options

    @property
    def phase(self) -> GroupPhase:
        return self._state.phase

    @property
    def is_released(self) -> bool:
        return self._state.phase == GroupPhase.RELEASED

    def set_phase(self, phase: GroupPhase) -> None:
        if self.is_released:
            return
        self._state.phase = phase

    def issue_ticket(self) -> int:
        self._last_ticket += 1
        return self._last_ticket

    def is_stale(self, ticket: Optional[int]) -> bool:
        return ticket is not None and ticket < self._committed_ticket

    def commit(
        self,
        *,
        ticket: Optional[int] = None,
        push: bool = True,
        backend: Optional[Backend] = _UNSET,
        settings: Optional[BackendDescriptor] = _UNSET,
        default_backend: Optional[Backend] = _UNSET,
        **changes: Any,
    ) -> Optional[QueryGroupOptions]:
        """
        Applies ``changes`` to the options as one transition.

        Args:
            ticket: Ticket of the operation producing the changes, if it can be overtaken.
            push: Whether the parent is notified. Only gap-filling commits skip it.
            backend, settings, default_backend: Resolved backend state to store with the options.
            **changes: QueryGroupOptions fields to replace.

        Returns:
            A copy of the committed options, or None if the commit was discarded.
        """
        if not self._accepts(ticket):
            return None

        options = self._state.options.model_copy(update=changes).model_copy(deep=True)
        return self._apply(options, ticket, push, backend, settings, default_backend, sorted(changes))

    def replace(self, options: QueryGroupOptions) -> Optional[QueryGroupOptions]:
        """Commits a complete options object handed over by an editor."""
        if not self._accepts(None):
            return None
        return self._apply(options.model_copy(deep=True), None, True, _UNSET, _UNSET, _UNSET, ["all"])

    def _accepts(self, ticket: Optional[int]) -> bool:
        if self.is_released:
            logger.debug("Discarding commit on a released query group")
            return False
        if self.is_stale(ticket):
            logger.info(
                f"Discarding stale commit (ticket {ticket}, last committed {self._committed_ticket})"
            )
            return False
        return True

    def _apply(self, options, ticket, push, backend, settings, default_backend, changed) -> QueryGroupOptions:
        if push:
            self._on_options_change(options.model_copy(deep=True))

        self._state.options = options
        if backend is not _UNSET:
            self._state.backend = backend
        if settings is not _UNSET:
            self._state.settings = settings
        if default_backend is not _UNSET:
            self._state.default_backend = default_backend
        if ticket is not None:
            self._committed_ticket = ticket
        self.revision += 1
        logger.debug(f"Committed revision {self.revision} ({', '.join(changed) or 'state only'})")
        return options.model_copy(deep=True)

    def fill_resolved(
        self,
        *,
        backend: Optional[Backend] = None,
        settings: Optional[BackendDescriptor] = None,
        default_backend: Optional[Backend] = None,
    ) -> bool:
        """
        Stores resolved backends in the fields no operation has set yet.

        Tickets are ignored and nothing is pushed; options are left alone.
        Returns False if the group was released.
        """
        if self.is_released:
            return False
        for name, value in (("backend", backend), ("settings", settings), ("default_backend", default_backend)):
            if value is not None and getattr(self._state, name) is None:
                setattr(self._state, name, value)
        return True

    def release(self) -> None:
        self._state.phase = GroupPhase.RELEASED
