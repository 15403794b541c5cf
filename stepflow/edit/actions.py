"""
Edit Actions Module - the command layer of the task editor.

TaskEditor owns the task being edited and is the only place that mutates it.
Every mutating command follows the same steps:
  1. validate; integrity violations return without touching history
  2. commit a deep copy of the current task to the HistoryManager
  3. apply the change through GraphStore (or directly on task fields)

The connection draft, drag offset and selection are ephemeral UI state held
beside the task and never snapshotted.
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from stepflow.config import LayoutSettings
from stepflow.edit.connection import ConnectionSession
from stepflow.edit.constants import (
    DEFAULT_CANVAS_HEIGHT,
    DEFAULT_CANVAS_WIDTH,
    NEW_ACTION_ITEM_LABEL,
    NEW_SUB_STEP_LABEL,
)
from stepflow.edit.drag import DragPositioner
from stepflow.graph import UPDATABLE_FIELDS, GraphStore, make_node
from stepflow.history import HistoryManager
from stepflow.layout import LayoutEngine, LayoutResult
from stepflow.models import (
    ActionItem,
    Attachment,
    Position,
    SubStep,
    SubStepStatus,
    Task,
    TaskStatus,
    generate_id,
    task_to_dict,
)
from stepflow.proposals import (
    PlanGenerationService,
    Proposal,
    parse_action_item_proposals,
    parse_proposals,
)

logger = logging.getLogger(__name__)

TASK_FIELDS = ("title", "description", "status")
DETAIL_FIELDS = ("resources", "responsible", "due_date", "notes", "resource_matrix")
ACTION_ITEM_FIELDS = ("text", "completed", "report")


def derive_status(items: List[ActionItem]) -> SubStepStatus:
    """Sub-step status implied by its action items."""
    if items and all(i.completed for i in items):
        return SubStepStatus.COMPLETED
    if any(i.completed for i in items):
        return SubStepStatus.IN_PROGRESS
    return SubStepStatus.NOT_STARTED


def _check_fields(fields: Dict[str, Any], allowed: Iterable[str], what: str) -> None:
    unknown = [k for k in fields if k not in allowed]
    if unknown:
        raise TypeError(f"Cannot update {what} field(s): {', '.join(sorted(unknown))}")


class TaskEditor:
    """
    Editing session for a single task.

    The task passed in is copied; read the live state from `task` and take
    a detached copy with `save()`.
    """

    def __init__(self, task: Task, settings: LayoutSettings = None, history_depth: Optional[int] = None):
        self.settings = settings or LayoutSettings()
        self.layout_engine = LayoutEngine(self.settings)
        self.history: HistoryManager[Task] = HistoryManager(max_depth=history_depth)
        self.connection = ConnectionSession(self.add_edge)
        self.drag = DragPositioner()
        self.content_size: Tuple[float, float] = (DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT)
        self.selected_id: Optional[str] = None
        self.reset(task)

    # --- Session state ---

    @property
    def task(self) -> Task:
        return self._task

    @property
    def store(self) -> GraphStore:
        return self._store

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def is_dirty(self) -> bool:
        """True if the task differs from the last loaded or saved version."""
        return task_to_dict(self._task) != self._baseline

    @property
    def selected(self) -> Optional[SubStep]:
        return self._store.get(self.selected_id) if self.selected_id else None

    def reset(self, task: Task) -> None:
        """Start editing `task` from scratch: no history, no drafts."""
        self._task = copy.deepcopy(task)
        self._store = GraphStore(self._task.extended.sub_steps)
        self._store.prune()
        self._baseline = task_to_dict(self._task)
        self.history.clear()
        self.connection.cancel()
        self.drag.cancel()
        self.selected_id = None

    def save(self) -> Task:
        """Return a detached copy of the task and mark the session clean."""
        self._baseline = task_to_dict(self._task)
        return copy.deepcopy(self._task)

    def export(self) -> Dict[str, Any]:
        """Current task as plain data for external collaborators."""
        return task_to_dict(self._task)

    def set_content_size(self, width: float, height: float) -> None:
        """Record the extent the cards need, as measured by the UI."""
        self.content_size = (float(width), float(height))

    @property
    def canvas_size(self) -> Tuple[float, float]:
        """Rendered canvas size: the content extent, never smaller than the default viewport."""
        width, height = self.content_size
        return (max(width, DEFAULT_CANVAS_WIDTH), max(height, DEFAULT_CANVAS_HEIGHT))

    def select(self, node_id: Optional[str]) -> None:
        self.selected_id = node_id if node_id and self._store.has_node(node_id) else None

    def _commit(self) -> None:
        self.history.commit(copy.deepcopy(self._task))

    def _restore(self, state: Task) -> None:
        self._task = state
        self._store = GraphStore(state.extended.sub_steps)
        self._drop_stale_ui_state()

    def _drop_stale_ui_state(self) -> None:
        if self.selected_id and not self._store.has_node(self.selected_id):
            self.selected_id = None
        draft = self.connection.draft
        if draft and not self._store.has_node(draft.source_id):
            self.connection.cancel()

    # --- Undo / Redo ---

    def undo(self) -> bool:
        previous = self.history.undo(self._task)
        if previous is None:
            return False
        self._restore(previous)
        return True

    def redo(self) -> bool:
        following = self.history.redo(self._task)
        if following is None:
            return False
        self._restore(following)
        return True

    # --- Graph commands ---

    def add_sub_step(self, label: str = NEW_SUB_STEP_LABEL) -> SubStep:
        self._commit()
        node = self._store.add_node(label)
        self.selected_id = node.id
        return node

    def remove_sub_step(self, node_id: str) -> bool:
        if not self._store.has_node(node_id):
            logger.debug(f"remove_sub_step: unknown id {node_id}")
            return False
        self._commit()
        self._store.remove_node(node_id)
        self._drop_stale_ui_state()
        return True

    def update_sub_step(self, node_id: str, **fields: Any) -> bool:
        _check_fields(fields, UPDATABLE_FIELDS, "sub-step")
        node = self._store.get(node_id)
        if node is None:
            logger.debug(f"update_sub_step: unknown id {node_id}")
            return False
        if all(getattr(node, k) == v for k, v in fields.items()):
            return False
        self._commit()
        return self._store.update_node(node_id, **fields)

    def move_sub_step(self, node_id: str, position: Position) -> bool:
        return self.update_sub_step(node_id, position=position)

    def add_edge(self, source_id: str, target_id: str) -> bool:
        if not self._store.can_add_edge(source_id, target_id):
            logger.debug(f"add_edge: rejected {source_id} -> {target_id}")
            return False
        self._commit()
        return self._store.add_edge(source_id, target_id)

    def remove_edge(self, source_id: str, target_id: str) -> bool:
        if not self._store.has_edge(source_id, target_id):
            return False
        self._commit()
        return self._store.remove_edge(source_id, target_id)

    def auto_layout(self, available_width: float) -> Optional[LayoutResult]:
        """
        Re-position every sub-step with the layered layout. One undo step.
        Returns None (and does nothing) when there are no sub-steps.
        """
        if not len(self._store):
            return None
        result = self.layout_engine.layout(self._store.nodes, available_width)
        self._commit()
        for node_id, position in result.positions.items():
            self._store.update_node(node_id, position=position)
        self.content_size = result.content_size
        return result

    # --- Pointer gestures ---

    def begin_drag(self, node_id: str, pointer: Position) -> bool:
        node = self._store.get(node_id)
        if node is None:
            return False
        self.drag.start(node_id, pointer, node.position)
        return True

    def drop_dragged(self, pointer: Position,
                     node_size: Tuple[float, float] = None,
                     container_size: Tuple[float, float] = None) -> Optional[Position]:
        """
        Finish a card drag. The clamp uses `container_size` if the UI passes
        a fresh measurement, otherwise the size the canvas is rendered at.
        """
        if node_size is None:
            node_size = (self.settings.card_width, self.settings.card_height)
        dropped = self.drag.drop(pointer, node_size, container_size or self.canvas_size)
        if dropped is None:
            return None
        node_id, position = dropped
        if not self._store.has_node(node_id):
            logger.debug(f"Dropped sub-step {node_id} no longer exists")
            return None
        self.move_sub_step(node_id, position)
        return position

    def begin_connection(self, node_id: str, pointer: Position) -> bool:
        if not self._store.has_node(node_id):
            return False
        self.connection.begin_drag(node_id, pointer)
        return True

    def move_connection(self, pointer: Position) -> None:
        self.connection.move_pointer(pointer)

    def finish_connection(self, target_id: Optional[str]) -> Optional[Tuple[str, str]]:
        """Release the connection gesture; a None target cancels it."""
        if target_id is None:
            self.connection.cancel()
            return None
        return self.connection.release(target_id)

    def cancel_connection(self) -> None:
        self.connection.cancel()

    # --- Task fields ---

    def update_task(self, **fields: Any) -> bool:
        _check_fields(fields, TASK_FIELDS, "task")
        if "status" in fields:
            fields["status"] = TaskStatus.parse(fields["status"])
        if all(getattr(self._task, k) == v for k, v in fields.items()):
            return False
        self._commit()
        for key, value in fields.items():
            setattr(self._task, key, value)
        return True

    def update_details(self, **fields: Any) -> bool:
        _check_fields(fields, DETAIL_FIELDS, "task detail")
        ext = self._task.extended
        if all(getattr(ext, k) == v for k, v in fields.items()):
            return False
        self._commit()
        for key, value in fields.items():
            setattr(ext, key, value)
        return True

    def set_report_deck(self, deck: Any) -> None:
        self._commit()
        self._task.extended.report_deck = deck

    # --- Action items ---

    def _find_action_item(self, sub_step_id: str, item_id: str) -> Tuple[Optional[SubStep], Optional[ActionItem]]:
        node = self._store.get(sub_step_id)
        if node is None:
            return None, None
        for item in node.action_items:
            if item.id == item_id:
                return node, item
        return node, None

    def add_action_item(self, sub_step_id: str, text: str = NEW_ACTION_ITEM_LABEL) -> Optional[ActionItem]:
        node = self._store.get(sub_step_id)
        if node is None:
            return None
        self._commit()
        item = ActionItem(id=generate_id("action"), text=text)
        self._store.get(sub_step_id).action_items.append(item)
        return item

    def update_action_item(self, sub_step_id: str, item_id: str, **fields: Any) -> bool:
        _check_fields(fields, ACTION_ITEM_FIELDS, "action item")
        _, item = self._find_action_item(sub_step_id, item_id)
        if item is None:
            return False
        if all(getattr(item, k) == v for k, v in fields.items()):
            return False
        self._commit()
        _, item = self._find_action_item(sub_step_id, item_id)
        for key, value in fields.items():
            setattr(item, key, value)
        return True

    def toggle_action_item(self, sub_step_id: str, item_id: str) -> bool:
        """Flip an action item and re-derive the sub-step status from its items."""
        _, item = self._find_action_item(sub_step_id, item_id)
        if item is None:
            return False
        self._commit()
        node, item = self._find_action_item(sub_step_id, item_id)
        item.completed = not item.completed
        node.status = derive_status(node.action_items)
        return True

    def remove_action_item(self, sub_step_id: str, item_id: str) -> bool:
        _, item = self._find_action_item(sub_step_id, item_id)
        if item is None:
            return False
        self._commit()
        node = self._store.get(sub_step_id)
        node.action_items = [i for i in node.action_items if i.id != item_id]
        return True

    # --- Attachments ---

    def _attachment_owner(self, sub_step_id: Optional[str]):
        if sub_step_id is None:
            return self._task.extended
        return self._store.get(sub_step_id)

    def add_attachment(self, name: str, type: str = "", data_url: str = "",
                       sub_step_id: Optional[str] = None) -> Optional[Attachment]:
        """Attach a file record to the task, or to a sub-step if `sub_step_id` is given."""
        if self._attachment_owner(sub_step_id) is None:
            return None
        self._commit()
        attachment = Attachment(id=generate_id("attach"), name=name, type=type, data_url=data_url)
        self._attachment_owner(sub_step_id).attachments.append(attachment)
        return attachment

    def remove_attachment(self, attachment_id: str, sub_step_id: Optional[str] = None) -> bool:
        owner = self._attachment_owner(sub_step_id)
        if owner is None or not any(a.id == attachment_id for a in owner.attachments):
            return False
        self._commit()
        owner = self._attachment_owner(sub_step_id)
        owner.attachments = [a for a in owner.attachments if a.id != attachment_id]
        return True

    # --- Plan generation ---

    def request_proposals(self, service: PlanGenerationService) -> List[Proposal]:
        """
        Ask the plan generation service for sub-step proposals.
        Nothing is applied; pass the result to accept_proposals.
        Raises ProposalError on a malformed reply.
        """
        raw = service.generate_step_proposals(self.export())
        proposals = parse_proposals(raw)
        logger.info(f"Received {len(proposals)} proposal(s) for task {self._task.id}")
        return proposals

    def accept_proposals(self, proposals: Iterable[Any], action_items: Iterable[Any] = ()) -> List[SubStep]:
        """
        Create one sub-step per accepted proposal and append proposed action
        items to existing sub-steps, as a single undo step.
        """
        proposals = list(proposals)
        if proposals:
            proposals = parse_proposals(proposals)
        items = [i for i in parse_action_item_proposals(action_items)
                 if self._store.has_node(i.target_sub_step_id)]
        if not proposals and not items:
            return []

        self._commit()
        start = len(self._store)
        created = [
            make_node(p.title, index=start + i, prefix="sub_ai", notes=p.description)
            for i, p in enumerate(proposals)
        ]
        for item in items:
            self._store.get(item.target_sub_step_id).action_items.append(
                ActionItem(id=generate_id("action_ai"), text=item.title)
            )
        self._store.insert_nodes(created)
        logger.info(f"Accepted {len(created)} proposal(s) and {len(items)} action item(s)")
        return created
