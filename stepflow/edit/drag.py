"""
Drag Positioner - turns pointer movement into a clamped card position.

The offset between the pointer and the card's top-left corner is captured
when the drag starts, so the card does not jump under the cursor. On drop
the position is clamped to the content area as measured at that moment.
"""

from typing import Optional, Tuple

from stepflow.models import Position


def canvas_point(client: Tuple[float, float],
                 canvas_origin: Tuple[float, float],
                 scroll: Tuple[float, float] = (0.0, 0.0)) -> Position:
    """Convert a viewport pointer into content-area coordinates."""
    return Position(
        client[0] - canvas_origin[0] + scroll[0],
        client[1] - canvas_origin[1] + scroll[1],
    )


def clamp(value: float, upper: float) -> float:
    """Clamp into [0, upper]; a negative upper bound pins to 0."""
    return max(0.0, min(value, upper))


class DragPositioner:

    def __init__(self):
        self._node_id: Optional[str] = None
        self._offset = Position()

    @property
    def active(self) -> bool:
        return self._node_id is not None

    @property
    def node_id(self) -> Optional[str]:
        return self._node_id

    @property
    def offset(self) -> Position:
        return self._offset

    def start(self, node_id: str, pointer: Position, node_origin: Position) -> None:
        self._node_id = node_id
        self._offset = Position(pointer.x - node_origin.x, pointer.y - node_origin.y)

    def position_for(self, pointer: Position,
                     node_size: Tuple[float, float],
                     container_size: Tuple[float, float]) -> Position:
        """Clamped position for the dragged card at `pointer`, without ending the drag."""
        return Position(
            clamp(pointer.x - self._offset.x, container_size[0] - node_size[0]),
            clamp(pointer.y - self._offset.y, container_size[1] - node_size[1]),
        )

    def drop(self, pointer: Position,
             node_size: Tuple[float, float],
             container_size: Tuple[float, float]) -> Optional[Tuple[str, Position]]:
        """
        End the drag. Returns (node_id, position) or None if nothing was being dragged.
        `container_size` must be the current measured content-area size.
        """
        if self._node_id is None:
            return None
        result = (self._node_id, self.position_for(pointer, node_size, container_size))
        self.cancel()
        return result

    def cancel(self) -> None:
        self._node_id = None
        self._offset = Position()
