"""
Task and sub-step data model for StepFlow.

A task owns an ordered list of sub-steps. Each sub-step is a node on the
workflow canvas; its `next_ids` list encodes the "leads to" edges.

Plain-data format (as exchanged with the plan generation service):
{
  "id": "task_1",
  "title": "Launch pilot",
  "description": "...",
  "status": "In Progress",
  "extendedDetails": {
    "subSteps": [
      {
        "id": "sub_new_4f1c...",
        "text": "Draft checklist",
        "status": "Not Started",
        "position": {"x": 10, "y": 10},
        "nextSubStepIds": ["sub_new_9ab2..."],
        "actionItems": [{"id": "...", "text": "...", "completed": false}],
        "attachments": []
      }
    ],
    "resources": "", "responsible": "", "dueDate": "", "notes": "",
    "attachments": [], "resourceMatrix": null, "reportDeck": null
  }
}
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Default grid used when placing new cards before any auto layout
GRID_COLUMNS = 4
GRID_ORIGIN = 10.0
GRID_STEP_X = 210.0
GRID_STEP_Y = 90.0


class SubStepStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, value: Any) -> "SubStepStatus":
        """Coerce a raw status value; unknown values fall back to NOT_STARTED."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name):
                return member
        if value:
            logger.debug(f"Unknown status {value!r}, using {cls.NOT_STARTED.value!r}")
        return cls.NOT_STARTED


# Tasks share the same three-state lifecycle as their sub-steps
TaskStatus = SubStepStatus


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Position":
        if not data:
            return cls()
        return cls(float(data.get("x", 0) or 0), float(data.get("y", 0) or 0))


@dataclass
class ActionItem:
    id: str
    text: str
    completed: bool = False
    report: Optional[Dict[str, Any]] = None


@dataclass
class Attachment:
    id: str
    name: str
    type: str = ""
    data_url: str = ""


@dataclass
class SubStep:
    """A node on the workflow canvas."""
    id: str
    text: str = ""
    status: SubStepStatus = SubStepStatus.NOT_STARTED
    position: Position = field(default_factory=Position)
    next_ids: List[str] = field(default_factory=list)
    notes: str = ""
    responsible: str = ""
    due_date: str = ""
    action_items: List[ActionItem] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)


@dataclass
class ExtendedDetails:
    sub_steps: List[SubStep] = field(default_factory=list)
    resources: str = ""
    responsible: str = ""
    due_date: str = ""
    notes: str = ""
    attachments: List[Attachment] = field(default_factory=list)
    resource_matrix: Optional[Any] = None
    report_deck: Optional[Any] = None


@dataclass
class Task:
    id: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.NOT_STARTED
    extended: ExtendedDetails = field(default_factory=ExtendedDetails)


def generate_id(prefix: str) -> str:
    """Return a fresh unique id such as 'sub_new_4f1c9e...'."""
    return f"{prefix}_{uuid.uuid4().hex}"


def default_position(index: int) -> Position:
    """Grid slot for the index-th card: four per row, top-left first."""
    return Position(
        x=GRID_ORIGIN + (index % GRID_COLUMNS) * GRID_STEP_X,
        y=(index // GRID_COLUMNS) * GRID_STEP_Y + GRID_ORIGIN,
    )


# --- Plain data conversion ---

def _attachment_to_dict(att: Attachment) -> Dict[str, Any]:
    return {"id": att.id, "name": att.name, "type": att.type, "dataUrl": att.data_url}


def _attachment_from_dict(data: Dict[str, Any]) -> Attachment:
    return Attachment(
        id=data.get("id") or generate_id("attach"),
        name=data.get("name", ""),
        type=data.get("type", ""),
        data_url=data.get("dataUrl", ""),
    )


def _action_item_to_dict(item: ActionItem) -> Dict[str, Any]:
    out = {"id": item.id, "text": item.text, "completed": item.completed}
    if item.report is not None:
        out["report"] = item.report
    return out


def _action_item_from_dict(data: Dict[str, Any]) -> ActionItem:
    return ActionItem(
        id=data.get("id") or generate_id("action"),
        text=data.get("text", ""),
        completed=bool(data.get("completed", False)),
        report=data.get("report"),
    )


def sub_step_to_dict(ss: SubStep) -> Dict[str, Any]:
    return {
        "id": ss.id,
        "text": ss.text,
        "status": ss.status.value,
        "position": ss.position.to_dict(),
        "nextSubStepIds": list(ss.next_ids),
        "notes": ss.notes,
        "responsible": ss.responsible,
        "dueDate": ss.due_date,
        "actionItems": [_action_item_to_dict(i) for i in ss.action_items],
        "attachments": [_attachment_to_dict(a) for a in ss.attachments],
    }


def sub_step_from_dict(data: Dict[str, Any]) -> SubStep:
    # Duplicate targets collapse; order of first appearance is kept
    next_ids = list(dict.fromkeys(data.get("nextSubStepIds") or []))
    return SubStep(
        id=data["id"],
        text=data.get("text", ""),
        status=SubStepStatus.parse(data.get("status")),
        position=Position.from_dict(data.get("position")),
        next_ids=next_ids,
        notes=data.get("notes") or "",
        responsible=data.get("responsible") or "",
        due_date=data.get("dueDate") or "",
        action_items=[_action_item_from_dict(i) for i in data.get("actionItems") or []],
        attachments=[_attachment_from_dict(a) for a in data.get("attachments") or []],
    )


def task_to_dict(task: Task) -> Dict[str, Any]:
    """Serialize a task into the plain structure shared with collaborators."""
    ext = task.extended
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "extendedDetails": {
            "subSteps": [sub_step_to_dict(ss) for ss in ext.sub_steps],
            "resources": ext.resources,
            "responsible": ext.responsible,
            "dueDate": ext.due_date,
            "notes": ext.notes,
            "attachments": [_attachment_to_dict(a) for a in ext.attachments],
            "resourceMatrix": ext.resource_matrix,
            "reportDeck": ext.report_deck,
        },
    }


def task_from_dict(data: Dict[str, Any]) -> Task:
    """
    Build a Task from plain data.

    Sub-step ids are kept as given; a repeated id keeps its first sub-step.
    The graph is normalised on the way in: self-loops and targets that do not
    name an existing sub-step are pruned.
    """
    ext_data = data.get("extendedDetails") or {}
    sub_steps = []
    known = set()
    for raw in ext_data.get("subSteps") or []:
        if not raw or not raw.get("id"):
            continue
        if raw["id"] in known:
            logger.info(f"Dropped duplicate sub-step id {raw['id']}")
            continue
        known.add(raw["id"])
        sub_steps.append(sub_step_from_dict(raw))

    for ss in sub_steps:
        kept = [t for t in ss.next_ids if t in known and t != ss.id]
        if len(kept) != len(ss.next_ids):
            logger.debug(f"Pruned {len(ss.next_ids) - len(kept)} invalid target(s) from {ss.id}")
            ss.next_ids = kept

    return Task(
        id=data.get("id") or generate_id("task"),
        title=data.get("title", ""),
        description=data.get("description", ""),
        status=TaskStatus.parse(data.get("status")),
        extended=ExtendedDetails(
            sub_steps=sub_steps,
            resources=ext_data.get("resources") or "",
            responsible=ext_data.get("responsible") or "",
            due_date=ext_data.get("dueDate") or "",
            notes=ext_data.get("notes") or "",
            attachments=[_attachment_from_dict(a) for a in ext_data.get("attachments") or []],
            resource_matrix=ext_data.get("resourceMatrix"),
            report_deck=ext_data.get("reportDeck"),
        ),
    )
