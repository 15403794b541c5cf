"""
Connection Session - drag-to-connect edge creation.

States:
- Idle: no draft.
- Drafting(source_id, pointer): the user pressed a card's connection handle
  and is dragging a preview line.

Pointer moves only update the draft; the graph is touched once, on release
over a different card. The draft is UI-only state and never enters history.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple
import logging

from stepflow.models import Position

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    DRAFTING = "drafting"


@dataclass(frozen=True)
class ConnectionDraft:
    """Source card and live pointer coordinate of an in-progress connection."""
    source_id: str
    pointer: Position


class ConnectionSession:
    """
    State machine for interactive edge creation.

    `connect(source_id, target_id)` is called on a successful release and
    should return True when it actually added the edge.

    A begin_drag while already drafting cancels the previous draft and starts
    a new one.
    """

    def __init__(self, connect: Callable[[str, str], bool]):
        self._connect = connect
        self._draft: Optional[ConnectionDraft] = None
        self._on_change: Optional[Callable[[Optional[ConnectionDraft]], None]] = None

    @property
    def state(self) -> SessionState:
        return SessionState.DRAFTING if self._draft else SessionState.IDLE

    @property
    def is_drafting(self) -> bool:
        return self._draft is not None

    @property
    def draft(self) -> Optional[ConnectionDraft]:
        return self._draft

    def set_on_change(self, callback: Callable[[Optional[ConnectionDraft]], None]):
        self._on_change = callback

    def begin_drag(self, node_id: str, pointer: Position) -> ConnectionDraft:
        if self._draft is not None:
            logger.debug(f"Replacing connection draft from {self._draft.source_id}")
        self._draft = ConnectionDraft(node_id, pointer)
        self._notify_change()
        return self._draft

    def move_pointer(self, pointer: Position) -> Optional[ConnectionDraft]:
        if self._draft is None:
            return None
        self._draft = ConnectionDraft(self._draft.source_id, pointer)
        self._notify_change()
        return self._draft

    def release(self, target_id: str) -> Optional[Tuple[str, str]]:
        """
        Finish the gesture over `target_id`.
        Returns the (source, target) edge if one was added, else None.
        """
        if self._draft is None:
            return None
        source_id = self._draft.source_id
        self._draft = None

        edge = None
        if target_id != source_id and self._connect(source_id, target_id):
            edge = (source_id, target_id)
        self._notify_change()
        return edge

    def cancel(self) -> None:
        """Drop the draft without touching the graph (release over empty canvas)."""
        if self._draft is None:
            return
        self._draft = None
        self._notify_change()

    def _notify_change(self):
        if self._on_change:
            self._on_change(self._draft)
