"""
Sub-step graph storage for StepFlow.

GraphStore wraps the ordered list of sub-steps owned by a task and keeps the
"leads to" edges consistent: every target id names an existing sub-step and
no sub-step points at itself. Integrity violations are rejected as no-ops
(they can come from UI races such as a node being deleted mid-drag) and are
only logged.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple
import logging

from stepflow.models import Position, SubStep, SubStepStatus, default_position, generate_id

logger = logging.getLogger(__name__)

# Fields callers may merge through update_node
UPDATABLE_FIELDS = (
    "text", "status", "position", "notes", "responsible", "due_date",
    "action_items", "attachments",
)


def make_node(label: str, index: int = 0, prefix: str = "sub_new", **fields: Any) -> SubStep:
    """
    Create a sub-step with a fresh id.
    Position defaults to the grid slot for `index` if not given.
    """
    position = fields.pop("position", None) or default_position(index)
    return SubStep(id=generate_id(prefix), text=label, position=position, **fields)


class GraphStore:
    """
    Owns the sub-steps of one task and their outgoing-edge lists.

    The store operates on the list it is given, so mutations are visible on
    the owning task. To follow an undo/redo, build a new store over the
    restored task's list.
    """

    def __init__(self, nodes: Optional[List[SubStep]] = None):
        self._nodes: List[SubStep] = nodes if nodes is not None else []

    # --- Queries ---

    @property
    def nodes(self) -> List[SubStep]:
        return self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[SubStep]:
        return iter(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return self.get(node_id) is not None  # type: ignore[arg-type]

    def get(self, node_id: str) -> Optional[SubStep]:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get(node_id) is not None

    def ids(self) -> List[str]:
        return [n.id for n in self._nodes]

    def has_edge(self, source_id: str, target_id: str) -> bool:
        source = self.get(source_id)
        return source is not None and target_id in source.next_ids

    def can_add_edge(self, source_id: str, target_id: str) -> bool:
        """True if add_edge(source_id, target_id) would change the graph."""
        if source_id == target_id:
            return False
        if not self.has_node(source_id) or not self.has_node(target_id):
            return False
        return not self.has_edge(source_id, target_id)

    def edges(self) -> List[Tuple[str, str]]:
        """All (source, target) pairs in node order, then target order."""
        return [(n.id, t) for n in self._nodes for t in n.next_ids]

    # --- Mutations ---

    def add_node(self, label: str, position: Optional[Position] = None, **fields: Any) -> SubStep:
        node = make_node(label, index=len(self._nodes), position=position, **fields)
        self._nodes.append(node)
        logger.debug(f"Added sub-step {node.id}")
        return node

    def insert_nodes(self, nodes: List[SubStep]) -> None:
        """Append prepared sub-steps, skipping any whose id is already taken."""
        taken = set(self.ids())
        for node in nodes:
            if node.id in taken:
                logger.debug(f"Skipped duplicate sub-step id {node.id}")
                continue
            taken.add(node.id)
            self._nodes.append(node)

    def remove_node(self, node_id: str) -> bool:
        """
        Remove a sub-step and every edge pointing at it.

        The surviving list is rebuilt first and swapped in with a single slice
        assignment, so the node and its inbound references disappear together.
        """
        if not self.has_node(node_id):
            logger.debug(f"remove_node: unknown id {node_id}")
            return False

        survivors = []
        for node in self._nodes:
            if node.id == node_id:
                continue
            if node_id in node.next_ids:
                node.next_ids = [t for t in node.next_ids if t != node_id]
            survivors.append(node)
        self._nodes[:] = survivors
        return True

    def update_node(self, node_id: str, **fields: Any) -> bool:
        """
        Merge fields into a sub-step. Returns False if the id is unknown.
        Raises TypeError for field names that cannot be updated.
        """
        unknown = [k for k in fields if k not in UPDATABLE_FIELDS]
        if unknown:
            raise TypeError(f"Cannot update sub-step field(s): {', '.join(sorted(unknown))}")

        node = self.get(node_id)
        if node is None:
            logger.debug(f"update_node: unknown id {node_id}")
            return False

        if "status" in fields:
            fields["status"] = SubStepStatus.parse(fields["status"])
        for key, value in fields.items():
            setattr(node, key, value)
        return True

    def add_edge(self, source_id: str, target_id: str) -> bool:
        if not self.can_add_edge(source_id, target_id):
            logger.debug(f"add_edge rejected: {source_id} -> {target_id}")
            return False
        self.get(source_id).next_ids.append(target_id)
        return True

    def remove_edge(self, source_id: str, target_id: str) -> bool:
        if not self.has_edge(source_id, target_id):
            return False
        source = self.get(source_id)
        source.next_ids = [t for t in source.next_ids if t != target_id]
        return True

    def prune(self) -> int:
        """
        Enforce the edge invariant on externally supplied data.
        Collapses duplicate targets and drops self-loops and dangling targets.
        Returns the number of targets removed.
        """
        known = set(self.ids())
        removed = 0
        for node in self._nodes:
            kept = [t for t in dict.fromkeys(node.next_ids) if t in known and t != node.id]
            removed += len(node.next_ids) - len(kept)
            node.next_ids = kept
        if removed:
            logger.info(f"Pruned {removed} invalid edge target(s)")
        return removed

    def positions(self) -> Dict[str, Position]:
        return {n.id: n.position for n in self._nodes}
