"""
Undo/redo history for the task editor.

Two linear stacks of full snapshots: `undo_stack` holds past states with the
most recent last, `redo_stack` holds future states with the most recent
first. Callers commit the pre-mutation state before every mutating command,
so each discrete user action is one undo step.
"""

from typing import Generic, List, Optional, TypeVar
import logging

logger = logging.getLogger(__name__)

S = TypeVar("S")


class HistoryManager(Generic[S]):

    def __init__(self, max_depth: Optional[int] = None):
        self.max_depth = max_depth
        self.undo_stack: List[S] = []
        self.redo_stack: List[S] = []

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def commit(self, prior_state: S) -> None:
        """Record the state as it was before a mutation. Clears redo."""
        self.undo_stack.append(prior_state)
        if self.max_depth is not None and len(self.undo_stack) > self.max_depth:
            del self.undo_stack[: len(self.undo_stack) - self.max_depth]
        self.redo_stack.clear()

    def undo(self, current_state: S) -> Optional[S]:
        """
        Step back. Returns the state to restore, or None if there is nothing
        to undo (current_state is then left untouched).
        """
        if not self.undo_stack:
            return None
        previous = self.undo_stack.pop()
        self.redo_stack.insert(0, current_state)
        logger.debug(f"Undo ({len(self.undo_stack)} left, {len(self.redo_stack)} redoable)")
        return previous

    def redo(self, current_state: S) -> Optional[S]:
        if not self.redo_stack:
            return None
        following = self.redo_stack.pop(0)
        self.undo_stack.append(current_state)
        logger.debug(f"Redo ({len(self.redo_stack)} left)")
        return following

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()
