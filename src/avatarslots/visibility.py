"""
Visibility State Machine

Tracks which character is shown on screen. At most one slot is visible at a
time: showing a slot hides every other one first. The state is in memory
only and starts with every slot hidden and the primary slot active.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from avatarslots.constants import (
    EVENT_ACTIVE_SLOT_CHANGED,
    EVENT_VISIBILITY_CHANGED,
    PRIMARY_SLOT_ID,
    SLOT_IDS,
)
from avatarslots.events import EventBus
from avatarslots.exceptions import NoEnabledSlotsError
from avatarslots.log_utils import logger
from avatarslots.paths import require_slot_id
from avatarslots.provisioning import ProvisioningOrchestrator


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one cycle() call."""

    slot_id: str
    previous_slot_id: str


class VisibilityStateMachine:
    """
    Show/hide/cycle transitions over the fixed slot set.

    `show`, `hide`, `focus` and `toggle` are synchronous and guarded by a
    threading lock. `cycle` provisions its target before showing it and is
    serialized, so a second call waits for the first to finish.
    """

    def __init__(
        self, orchestrator: ProvisioningOrchestrator, events: Optional[EventBus] = None
    ) -> None:
        self.orchestrator = orchestrator
        self.events = events or orchestrator.events
        self._lock = threading.Lock()
        self._cycle_lock: Optional[asyncio.Lock] = None
        self._visible: Set[str] = set()
        self._active: str = PRIMARY_SLOT_ID

    def _emit_all(self, pending: List[Tuple[str, Dict[str, Any]]]) -> None:
        for event, payload in pending:
            self.events.emit(event, payload)

    @property
    def active_slot_id(self) -> str:
        with self._lock:
            return self._active

    def is_visible(self, slot_id: str) -> bool:
        require_slot_id(slot_id)
        with self._lock:
            return slot_id in self._visible

    def visible_slots(self) -> List[str]:
        """Visible slot identifiers in fixed order (zero or one entries)."""
        with self._lock:
            return [s for s in SLOT_IDS if s in self._visible]

    def show(self, slot_id: str) -> None:
        """Hide every other visible slot, then show `slot_id` and make it active."""
        require_slot_id(slot_id)
        pending: List[Tuple[str, Dict[str, Any]]] = []
        with self._lock:
            for other in [s for s in SLOT_IDS if s in self._visible and s != slot_id]:
                self._visible.discard(other)
                pending.append(
                    (EVENT_VISIBILITY_CHANGED, {"slot_id": other, "visible": False})
                )
            if slot_id not in self._visible:
                self._visible.add(slot_id)
                pending.append(
                    (EVENT_VISIBILITY_CHANGED, {"slot_id": slot_id, "visible": True})
                )
            if self._active != slot_id:
                self._active = slot_id
                pending.append((EVENT_ACTIVE_SLOT_CHANGED, {"slot_id": slot_id}))

        logger.debug(f"Showing {slot_id}")
        self._emit_all(pending)

    def hide(self, slot_id: str) -> None:
        """Hide `slot_id`. The active slot is left unchanged."""
        require_slot_id(slot_id)
        with self._lock:
            was_visible = slot_id in self._visible
            self._visible.discard(slot_id)

        if was_visible:
            logger.debug(f"Hiding {slot_id}")
            self.events.emit(
                EVENT_VISIBILITY_CHANGED, {"slot_id": slot_id, "visible": False}
            )

    def focus(self, slot_id: str) -> None:
        """Make `slot_id` the cycle anchor without changing visibility."""
        require_slot_id(slot_id)
        with self._lock:
            changed = self._active != slot_id
            self._active = slot_id

        if changed:
            self.events.emit(EVENT_ACTIVE_SLOT_CHANGED, {"slot_id": slot_id})

    def toggle(self, slot_id: str) -> bool:
        """
        Show `slot_id` if hidden, hide it if visible.

        Returns:
            bool: Whether the slot is visible afterwards.
        """
        if self.is_visible(slot_id):
            self.hide(slot_id)
            return False
        self.show(slot_id)
        return True

    def _next_target(self, enabled: List[str]) -> Tuple[str, str]:
        with self._lock:
            previous = self._active
        index = enabled.index(previous) if previous in enabled else 0
        return enabled[(index + 1) % len(enabled)], previous

    async def cycle(self) -> CycleResult:
        """
        Advance to the next enabled slot, provisioning it if needed, and show it.

        With a single enabled slot that slot is re-shown.

        Raises:
            NoEnabledSlotsError: If no slot is enabled.
            Any error raised by `ProvisioningOrchestrator.ensure_ready`; the
            visibility state is unchanged in that case.
        """
        if self._cycle_lock is None:
            self._cycle_lock = asyncio.Lock()

        async with self._cycle_lock:
            slots = await asyncio.to_thread(self.orchestrator.get_slots)
            enabled = [s.slot_id for s in slots if s.enabled]
            if not enabled:
                raise NoEnabledSlotsError()

            target, previous = self._next_target(enabled)
            logger.info(f"Cycling from {previous} to {target}")
            await self.orchestrator.ensure_ready(target)
            self.show(target)
            return CycleResult(slot_id=target, previous_slot_id=previous)
