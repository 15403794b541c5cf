"""
Tests for TaskEditor: commands, history integration and UI-only state.
"""

import pytest

from stepflow.edit import TaskEditor, derive_status
from stepflow.models import ActionItem, Position, SubStep, SubStepStatus, Task, TaskStatus, task_to_dict
from stepflow.proposals import ProposalError


def make_task():
    task = Task(id="task_1", title="Launch", description="Pilot launch")
    task.extended.sub_steps = [
        SubStep(id="a", text="Scope", position=Position(10, 10), next_ids=["b"]),
        SubStep(id="b", text="Recruit", position=Position(220, 10), next_ids=["c"]),
        SubStep(id="c", text="Run", position=Position(430, 10)),
    ]
    return task


@pytest.fixture
def editor():
    return TaskEditor(make_task())


class FakeService:
    def __init__(self, reply):
        self.reply = reply
        self.received = None

    def generate_step_proposals(self, task_data):
        self.received = task_data
        return self.reply


class TestGraphCommands:

    def test_editor_works_on_a_copy(self):
        """Edits never touch the task passed to the editor."""
        task = make_task()
        editor = TaskEditor(task)
        editor.remove_sub_step("c")
        assert [s.id for s in task.extended.sub_steps] == ["a", "b", "c"]

    def test_add_sub_step_selects_it(self, editor):
        """A new sub-step is selected and recorded in history."""
        node = editor.add_sub_step("Review")
        assert editor.selected_id == node.id
        assert editor.store.get(node.id).text == "Review"
        assert editor.can_undo

    def test_remove_then_undo_restores_edges(self, editor):
        """Undoing a removal brings back the node and its edges."""
        before = task_to_dict(editor.task)
        assert editor.remove_sub_step("b")
        assert editor.store.edges() == []

        assert editor.undo()
        assert task_to_dict(editor.task) == before
        assert editor.store.edges() == [("a", "b"), ("b", "c")]

    def test_redo_reapplies(self, editor):
        """Redo reapplies an undone command."""
        editor.remove_sub_step("b")
        after = task_to_dict(editor.task)
        editor.undo()
        assert editor.redo()
        assert task_to_dict(editor.task) == after

    def test_store_follows_restored_snapshot(self, editor):
        """After undo the store operates on the restored task."""
        editor.add_edge("a", "c")
        editor.undo()
        # Mutations after undo must land on the live task
        editor.add_edge("c", "a")
        assert ("c", "a") in [(s.id, t) for s in editor.task.extended.sub_steps for t in s.next_ids]

    def test_integrity_noops_leave_no_history(self, editor):
        """Rejected graph commands leave no undo entry."""
        assert not editor.add_edge("a", "a")
        assert not editor.add_edge("a", "ghost")
        assert not editor.add_edge("a", "b")
        assert not editor.remove_edge("c", "a")
        assert not editor.remove_sub_step("ghost")
        assert not editor.update_sub_step("ghost", text="x")
        assert not editor.can_undo

    def test_each_command_is_one_undo_step(self, editor):
        """Each command adds exactly one undo entry."""
        editor.add_edge("a", "c")
        editor.update_sub_step("a", text="Scope v2")
        editor.remove_edge("b", "c")
        assert len(editor.history.undo_stack) == 3

    def test_new_command_after_undo_clears_redo(self, editor):
        """A new command after undo discards the redo stack."""
        editor.add_edge("a", "c")
        editor.undo()
        assert editor.can_redo
        editor.update_sub_step("c", text="Run pilot")
        assert not editor.can_redo

    def test_unchanged_update_is_not_recorded(self, editor):
        """Updates that change nothing leave no undo entry."""
        assert not editor.update_sub_step("a", text="Scope")
        assert not editor.can_undo

    def test_unknown_field_raises_before_commit(self, editor):
        """Unknown fields raise before history is touched."""
        with pytest.raises(TypeError):
            editor.update_sub_step("a", colour="red")
        assert not editor.can_undo

    def test_undo_on_empty_history(self, editor):
        """Undo and redo report False on empty stacks."""
        assert editor.undo() is False
        assert editor.redo() is False

    def test_selection_cleared_when_node_removed(self, editor):
        """Removing the selected node clears the selection."""
        editor.select("b")
        editor.remove_sub_step("b")
        assert editor.selected_id is None

    def test_selection_cleared_when_undo_removes_node(self, editor):
        """Undoing the creation of the selected node clears the selection."""
        node = editor.add_sub_step()
        assert editor.selected_id == node.id
        editor.undo()
        assert editor.selected_id is None


class TestAutoLayout:

    def test_auto_layout_is_single_undo_step(self, editor):
        """Auto layout moves every card in one undo step."""
        before = task_to_dict(editor.task)
        result = editor.auto_layout(800)

        assert result.layers == [["a"], ["b"], ["c"]]
        assert editor.store.get("b").position == Position(262, 10)
        assert len(editor.history.undo_stack) == 1

        editor.undo()
        assert task_to_dict(editor.task) == before

    def test_auto_layout_updates_content_size(self, editor):
        """Auto layout records the padded extent as content size."""
        result = editor.auto_layout(800)
        assert editor.content_size == result.content_size == (726, 106)

    def test_auto_layout_on_empty_task_is_noop(self):
        """Auto layout on an empty task does nothing."""
        editor = TaskEditor(Task(id="empty"))
        assert editor.auto_layout(800) is None
        assert not editor.can_undo

    def test_layout_state_never_includes_drafts(self, editor):
        """Snapshots hold the task only, never the connection draft."""
        editor.begin_connection("a", Position(5, 5))
        editor.auto_layout(800)
        snapshot = editor.history.undo_stack[-1]
        assert not hasattr(snapshot, "connection")
        assert editor.connection.is_drafting


class TestGestures:

    def test_connection_gesture_adds_edge_with_history(self, editor):
        """A finished connection gesture is one undoable edge."""
        assert editor.begin_connection("a", Position(200, 48))
        editor.move_connection(Position(260, 50))
        editor.move_connection(Position(430, 40))
        assert editor.finish_connection("c") == ("a", "c")

        assert editor.store.has_edge("a", "c")
        assert len(editor.history.undo_stack) == 1
        editor.undo()
        assert not editor.store.has_edge("a", "c")

    def test_pointer_moves_do_not_touch_history(self, editor):
        """Pointer moves during a connection never commit."""
        editor.begin_connection("a", Position(0, 0))
        for i in range(10):
            editor.move_connection(Position(i, i))
        assert not editor.can_undo

    def test_release_on_source_or_nowhere(self, editor):
        """Releasing on the source or on empty canvas cancels."""
        editor.begin_connection("a", Position(0, 0))
        assert editor.finish_connection("a") is None
        editor.begin_connection("a", Position(0, 0))
        assert editor.finish_connection(None) is None
        assert not editor.connection.is_drafting
        assert not editor.can_undo

    def test_connection_from_missing_node_is_ignored(self, editor):
        """A connection cannot start from an unknown node."""
        assert editor.begin_connection("ghost", Position(0, 0)) is False
        assert not editor.connection.is_drafting

    def test_draft_cancelled_when_source_removed(self, editor):
        """Removing the draft source cancels the draft."""
        editor.begin_connection("c", Position(0, 0))
        editor.remove_sub_step("c")
        assert not editor.connection.is_drafting

    def test_drag_and_drop_moves_card(self, editor):
        """Dragging a card moves it by the pointer delta."""
        editor.set_content_size(1000, 800)
        assert editor.begin_drag("a", Position(30, 20))
        pos = editor.drop_dragged(Position(330, 220))
        assert pos == Position(310, 210)
        assert editor.store.get("a").position == Position(310, 210)
        assert len(editor.history.undo_stack) == 1

    def test_drop_clamps_to_rendered_canvas_after_layout(self):
        """After layout the drop clamps to the rendered canvas, not the layout extent."""
        task = Task(id="t")
        task.extended.sub_steps = [SubStep(id="only")]
        editor = TaskEditor(task)
        editor.auto_layout(900)
        assert editor.content_size == (222, 106)
        # The canvas never renders smaller than the default viewport
        assert editor.canvas_size == (900, 500)

        editor.begin_drag("only", Position(20, 20))
        assert editor.drop_dragged(Position(600, 300)) == Position(590, 290)

        editor.begin_drag("only", Position(600, 300))
        assert editor.drop_dragged(Position(2000, 2000)) == Position(900 - 192, 500 - 76)

    def test_drop_clamps_to_grown_canvas(self, editor):
        """A canvas larger than the viewport widens the clamp region."""
        editor.set_content_size(1500, 900)
        assert editor.canvas_size == (1500, 900)
        editor.begin_drag("a", Position(10, 10))
        assert editor.drop_dragged(Position(1600, 1000)) == Position(1500 - 192, 900 - 76)

    def test_drop_uses_fresh_measurement_when_given(self, editor):
        """A container size passed at drop overrides the stored one."""
        editor.set_content_size(300, 200)
        editor.begin_drag("a", Position(10, 10))
        pos = editor.drop_dragged(Position(900, 500), container_size=(1500, 900))
        assert pos == Position(900, 500)

    def test_drop_after_node_deleted_is_noop(self, editor):
        """Dropping a card deleted mid-drag does nothing."""
        editor.begin_drag("c", Position(430, 10))
        editor.remove_sub_step("c")
        depth = len(editor.history.undo_stack)
        assert editor.drop_dragged(Position(100, 100)) is None
        assert len(editor.history.undo_stack) == depth


class TestTaskDetails:

    def test_update_task_fields(self, editor):
        """Task title and status can be updated."""
        assert editor.update_task(title="Launch v2", status="In Progress")
        assert editor.task.title == "Launch v2"
        assert editor.task.status is TaskStatus.IN_PROGRESS

    def test_update_details(self, editor):
        """Detail fields update and unknown ones raise."""
        assert editor.update_details(resources="2 testers", due_date="2026-12-01")
        assert editor.task.extended.resources == "2 testers"
        with pytest.raises(TypeError):
            editor.update_details(sub_steps=[])

    def test_dirty_tracking(self, editor):
        """The editor is dirty only while it differs from the last save."""
        assert not editor.is_dirty
        editor.update_sub_step("a", notes="note")
        assert editor.is_dirty
        editor.undo()
        assert not editor.is_dirty
        editor.update_sub_step("a", notes="note")
        saved = editor.save()
        assert not editor.is_dirty
        assert saved is not editor.task
        assert saved.extended.sub_steps[0].notes == "note"

    def test_reset_clears_history_and_gestures(self, editor):
        """Reset starts a fresh session."""
        editor.add_edge("a", "c")
        editor.begin_connection("a", Position(0, 0))
        editor.reset(make_task())
        assert not editor.can_undo
        assert not editor.connection.is_drafting
        assert not editor.store.has_edge("a", "c")

    def test_report_deck_is_undoable(self, editor):
        """Setting the report deck is an undoable command."""
        editor.set_report_deck({"slides": []})
        assert editor.task.extended.report_deck == {"slides": []}
        editor.undo()
        assert editor.task.extended.report_deck is None


class TestActionItems:

    def test_toggle_derives_status(self, editor):
        """Toggling action items re-derives the sub-step status."""
        first = editor.add_action_item("a", "Write brief")
        second = editor.add_action_item("a", "Book room")

        editor.toggle_action_item("a", first.id)
        assert editor.store.get("a").status is SubStepStatus.IN_PROGRESS

        editor.toggle_action_item("a", second.id)
        assert editor.store.get("a").status is SubStepStatus.COMPLETED

        editor.toggle_action_item("a", first.id)
        editor.toggle_action_item("a", second.id)
        assert editor.store.get("a").status is SubStepStatus.NOT_STARTED

    def test_update_and_remove(self, editor):
        """Action items can be renamed and removed."""
        item = editor.add_action_item("b")
        assert editor.update_action_item("b", item.id, text="Email list")
        assert editor.store.get("b").action_items[0].text == "Email list"
        assert editor.remove_action_item("b", item.id)
        assert editor.store.get("b").action_items == []

    def test_unchanged_update_is_not_recorded(self, editor):
        """Updates that change nothing leave no undo entry."""
        item = editor.add_action_item("a", "Write brief")
        depth = len(editor.history.undo_stack)

        assert not editor.update_action_item("a", item.id, text="Write brief")
        assert not editor.update_action_item("a", item.id, text="Write brief", completed=False)
        assert len(editor.history.undo_stack) == depth

        assert editor.update_action_item("a", item.id, completed=True)
        assert len(editor.history.undo_stack) == depth + 1

    def test_missing_targets(self, editor):
        """Commands on unknown sub-steps or items are ignored."""
        assert editor.add_action_item("ghost") is None
        assert not editor.toggle_action_item("a", "nope")
        assert not editor.remove_action_item("a", "nope")
        assert not editor.can_undo

    def test_derive_status(self):
        """Status follows how many action items are complete."""
        assert derive_status([]) is SubStepStatus.NOT_STARTED
        assert derive_status([ActionItem("1", "x", True)]) is SubStepStatus.COMPLETED
        assert derive_status([ActionItem("1", "x", True), ActionItem("2", "y")]) is SubStepStatus.IN_PROGRESS


class TestAttachments:

    def test_task_and_sub_step_attachments(self, editor):
        """Attachments can be added to the task or a sub-step and removed."""
        task_att = editor.add_attachment("plan.pdf", "application/pdf", "data:...")
        step_att = editor.add_attachment("photo.png", "image/png", "data:...", sub_step_id="b")

        assert editor.task.extended.attachments[0].id == task_att.id
        assert editor.store.get("b").attachments[0].id == step_att.id

        assert editor.remove_attachment(step_att.id, sub_step_id="b")
        assert editor.store.get("b").attachments == []
        assert not editor.remove_attachment(step_att.id, sub_step_id="b")

    def test_attachment_on_missing_sub_step(self, editor):
        """Attaching to an unknown sub-step is ignored."""
        assert editor.add_attachment("x", sub_step_id="ghost") is None


class TestProposals:

    def test_accept_proposals_is_one_step(self, editor):
        """Accepting proposals adds sub-steps and action items in one undo step."""
        created = editor.accept_proposals(
            [{"title": "Budget", "description": "Estimate costs"},
             {"title": "Sign-off", "description": "Get approval"}],
            action_items=[{"targetSubStepId": "a", "title": "List stakeholders"},
                          {"targetSubStepId": "ghost", "title": "dropped"}],
        )

        assert [n.text for n in created] == ["Budget", "Sign-off"]
        assert all(n.id.startswith("sub_ai_") for n in created)
        assert created[0].notes == "Estimate costs"
        # Grid continues after the three existing cards
        assert created[0].position == Position(640, 10)
        assert created[1].position == Position(10, 100)
        assert [i.text for i in editor.store.get("a").action_items] == ["List stakeholders"]
        assert len(editor.history.undo_stack) == 1

        editor.undo()
        assert len(editor.store) == 3
        assert editor.store.get("a").action_items == []

    def test_accept_nothing(self, editor):
        """Accepting nothing leaves no undo entry."""
        assert editor.accept_proposals([]) == []
        assert not editor.can_undo

    def test_request_proposals_passes_plain_data(self, editor):
        """The service receives plain task data and nothing is applied."""
        service = FakeService([{"title": "T", "description": "D"}])
        proposals = editor.request_proposals(service)
        assert [p.title for p in proposals] == ["T"]
        assert service.received["id"] == "task_1"
        assert service.received["extendedDetails"]["subSteps"][0]["nextSubStepIds"] == ["b"]
        # Nothing applied until accepted
        assert len(editor.store) == 3

    def test_request_proposals_rejects_bad_reply(self, editor):
        """A malformed service reply raises ProposalError."""
        with pytest.raises(ProposalError):
            editor.request_proposals(FakeService([{"title": "no description"}]))
