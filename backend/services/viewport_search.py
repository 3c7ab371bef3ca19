"""
State machine behind the "search this area" map control.

    hidden --mark_ready--> idle --begin_search--> searching
    searching --finish_search(ok)--> hidden (idle if the viewport moved meanwhile)
    searching --finish_search(failed)--> idle
    hidden/idle --viewport_moved--> idle

Only one viewport search may be in flight; triggers that arrive while a
search is running (or while the control is hidden) are ignored.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from domain.models import BoundingBox, SearchAffordanceState

logger = logging.getLogger(__name__)


class ViewportSearchController:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = SearchAffordanceState.HIDDEN
        self._viewport: Optional[BoundingBox] = None
        self._moved_while_searching = False

    @property
    def state(self) -> SearchAffordanceState:
        return self._state

    @property
    def viewport(self) -> Optional[BoundingBox]:
        return self._viewport

    @property
    def is_enabled(self) -> bool:
        return self._state == SearchAffordanceState.IDLE

    def _move(self, new_state: SearchAffordanceState, trigger: str) -> None:
        if new_state != self._state:
            logger.debug("Search affordance %s -> %s (%s)", self._state.value, new_state.value, trigger)
        self._state = new_state

    def mark_ready(self) -> None:
        """Map initialized or a search completed: show the control."""
        with self._lock:
            if self._state == SearchAffordanceState.HIDDEN:
                self._move(SearchAffordanceState.IDLE, "ready")

    def viewport_moved(self, viewport: BoundingBox) -> None:
        with self._lock:
            self._viewport = viewport
            if self._state == SearchAffordanceState.SEARCHING:
                self._moved_while_searching = True
            else:
                self._move(SearchAffordanceState.IDLE, "viewport moved")

    def begin_search(self) -> Optional[BoundingBox]:
        """
        Claim the control for a viewport search.

        Returns the viewport to search, or None when the trigger is ignored.
        """
        with self._lock:
            if self._state != SearchAffordanceState.IDLE or self._viewport is None:
                logger.info("Ignoring search-this-area trigger in state %s", self._state.value)
                return None
            self._moved_while_searching = False
            self._move(SearchAffordanceState.SEARCHING, "search started")
            return self._viewport

    def finish_search(self, success: bool) -> None:
        with self._lock:
            if self._state != SearchAffordanceState.SEARCHING:
                return
            if success and self._moved_while_searching:
                self._move(SearchAffordanceState.IDLE, "search succeeded, viewport moved")
            elif success:
                self._move(SearchAffordanceState.HIDDEN, "search succeeded")
            else:
                self._move(SearchAffordanceState.IDLE, "search failed")
