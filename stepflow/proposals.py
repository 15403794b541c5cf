"""
Plan generation service interface.

The editor never talks to a generative model itself. A service conforming to
PlanGenerationService receives the current task as plain data and replies
with plain proposals:

    [{"title": "Collect requirements", "description": "Interview users..."}, ...]

parse_proposals validates that reply before the editor turns it into
sub-steps.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, runtime_checkable


class ProposalError(ValueError):
    """The service returned something that is not a usable proposal list."""


@dataclass(frozen=True)
class Proposal:
    title: str
    description: str


@dataclass(frozen=True)
class ActionItemProposal:
    """An action item to append to an existing sub-step."""
    target_sub_step_id: str
    title: str


@runtime_checkable
class PlanGenerationService(Protocol):
    """
    Protocol for the external service that proposes sub-steps.
    """

    def generate_step_proposals(self, task_data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Propose next steps for a task.

        Args:
            task_data: The task in plain-data form (see models.task_to_dict)

        Returns:
            List of {"title": str, "description": str} dicts
        """
        ...


def parse_proposals(raw: Any) -> List[Proposal]:
    """
    Validate a service reply and convert it to Proposal objects.
    Raises ProposalError if the reply is not a non-empty list of items that
    all carry a title and a description.
    """
    if not isinstance(raw, list):
        raise ProposalError("Unexpected format for step proposals: expected a list")
    if not raw:
        raise ProposalError("No proposals were generated")

    proposals = []
    for i, item in enumerate(raw):
        if isinstance(item, Proposal):
            proposals.append(item)
            continue
        if not isinstance(item, dict):
            raise ProposalError(f"Proposal #{i} is not an object")
        title = str(item.get("title") or "").strip()
        description = str(item.get("description") or "").strip()
        if not title or not description:
            raise ProposalError(f"Proposal #{i} is missing a title or description")
        proposals.append(Proposal(title, description))
    return proposals


def parse_action_item_proposals(raw: Any) -> List[ActionItemProposal]:
    """Validate proposed action items; entries without a target or title are skipped."""
    items = []
    for entry in raw or []:
        if isinstance(entry, ActionItemProposal):
            items.append(entry)
        elif isinstance(entry, dict) and entry.get("targetSubStepId") and entry.get("title"):
            items.append(ActionItemProposal(entry["targetSubStepId"], str(entry["title"])))
    return items
