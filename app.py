"""
Main NiceGUI application for StepFlow.

Renders the sub-step canvas of one task with ui.echart and wires the
toolbar (add, remove, auto layout, undo/redo, save) and pointer events to a
TaskEditor.

The task is read from the JSON file named by STEPFLOW_TASK (plain task
data, see stepflow.models.task_to_dict). Without one, a small demo task
is used.
"""

import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from nicegui import ui

load_dotenv()

from stepflow.config import get_layout_settings
from stepflow.edit.actions import TaskEditor
from stepflow.edit.constants import DEFAULT_CANVAS_HEIGHT, DEFAULT_CANVAS_WIDTH
from stepflow.edit.handlers import setup_edit_handlers
from stepflow.graph_viz import CanvasVisualizer
from stepflow.models import SubStepStatus, Task, task_from_dict, task_to_dict

logging.basicConfig(
    level=os.environ.get("STEPFLOW_LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def load_task(path: Path) -> Task:
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            return task_from_dict(json.load(f))
    logger.info(f"No task file at {path}; starting with a demo task")
    return demo_task()


def demo_task() -> Task:
    """Seed a small task so the canvas is not empty."""
    editor = TaskEditor(Task(id="task_demo", title="Launch pilot", description="Run a two-week pilot"))
    plan = editor.add_sub_step("Define scope")
    recruit = editor.add_sub_step("Recruit participants")
    brief = editor.add_sub_step("Prepare briefing")
    run = editor.add_sub_step("Run pilot")
    editor.add_edge(plan.id, recruit.id)
    editor.add_edge(plan.id, brief.id)
    editor.add_edge(recruit.id, run.id)
    editor.add_edge(brief.id, run.id)
    return editor.save()


task_path = Path(os.environ.get("STEPFLOW_TASK", "task.json"))
settings = get_layout_settings()


@ui.page('/')
def index():
    editor = TaskEditor(load_task(task_path), settings=settings)
    visualizer = CanvasVisualizer(settings)
    state = {'chart': None, 'details': None, 'rendered_size': editor.canvas_size}

    def get_current_options():
        return visualizer.generate_echarts(editor.task, editor.connection.draft, editor.selected_id,
                                           canvas_size=editor.canvas_size)

    def refresh_chart_ui():
        chart = state['chart']
        if chart is None:
            return
        chart.options.clear()
        chart.options.update(get_current_options())
        # Axes in the option span the same size, so chart pixels equal content coordinates
        width, height = state['rendered_size'] = editor.canvas_size
        chart.style(f'width: {width}px; height: {height}px;')
        chart.update()
        undo_button.set_enabled(editor.can_undo)
        redo_button.set_enabled(editor.can_redo)

    def refresh_details():
        container = state['details']
        if container is None:
            return
        container.clear()
        node = editor.selected
        with container:
            if node is None:
                ui.label('Select a step to edit it').classes('text-sm text-slate-400')
                return
            ui.input('Text', value=node.text,
                     on_change=lambda e: editor.update_sub_step(node.id, text=e.value) and refresh_chart_ui())
            ui.select([s.value for s in SubStepStatus], value=node.status.value, label='Status',
                      on_change=lambda e: editor.update_sub_step(node.id, status=e.value) and refresh_chart_ui())
            ui.textarea('Notes', value=node.notes,
                        on_change=lambda e: editor.update_sub_step(node.id, notes=e.value))
            for item in node.action_items:
                with ui.row().classes('items-center no-wrap gap-1'):
                    ui.checkbox(value=item.completed,
                                on_change=lambda e, i=item.id: toggle_item(node.id, i))
                    ui.input(value=item.text,
                             on_change=lambda e, i=item.id: editor.update_action_item(node.id, i, text=e.value))
                    ui.button(icon='delete', on_click=lambda e, i=item.id: remove_item(node.id, i)).props('flat dense round')
            ui.button('Add action item', on_click=lambda: (editor.add_action_item(node.id), refresh_details()))

    def toggle_item(node_id, item_id):
        editor.toggle_action_item(node_id, item_id)
        refresh_chart_ui()

    def remove_item(node_id, item_id):
        if editor.remove_action_item(node_id, item_id):
            refresh_details()

    def add_step():
        editor.add_sub_step()
        refresh_chart_ui()
        refresh_details()

    def remove_selected():
        if editor.selected_id and editor.remove_sub_step(editor.selected_id):
            refresh_chart_ui()
            refresh_details()

    def auto_layout():
        # Wrap against the visible viewport, not the grown canvas
        width = DEFAULT_CANVAS_WIDTH
        if editor.auto_layout(width):
            refresh_chart_ui()

    def history_step(step):
        if step():
            refresh_chart_ui()
            refresh_details()

    def save():
        task = editor.save()
        with open(task_path, "w", encoding="utf-8") as f:
            json.dump(task_to_dict(task), f, indent=2, ensure_ascii=False)
        ui.notify('Saved', type='positive', position='bottom', timeout=1000)

    handlers = setup_edit_handlers(editor, visualizer, refresh_chart_ui, refresh_details,
                                   measure_canvas=lambda: state['rendered_size'])
    ui.keyboard(on_key=handlers['handle_keyboard'])

    with ui.row().classes('w-full items-center gap-2'):
        ui.label(editor.task.title or 'Untitled task').classes('text-lg font-bold')
        ui.button('Add step', on_click=add_step).props('dense')
        ui.button('Remove step', on_click=remove_selected).props('dense color=negative')
        ui.button('Auto layout', on_click=auto_layout).props('dense')
        undo_button = ui.button('Undo', on_click=lambda: history_step(editor.undo)).props('dense flat')
        redo_button = ui.button('Redo', on_click=lambda: history_step(editor.redo)).props('dense flat')
        ui.button('Save', on_click=save).props('dense color=primary')

    with ui.row().classes('w-full no-wrap gap-4'):
        with ui.element('div').classes('overflow-auto border rounded') as canvas:
            canvas.style(f'width: {DEFAULT_CANVAS_WIDTH}px; height: {DEFAULT_CANVAS_HEIGHT}px;')
            state['chart'] = ui.echart(get_current_options())
            state['chart'].on('mousedown', handlers['handle_mouse_down'], ['offsetX', 'offsetY'])
            state['chart'].on('mousemove', handlers['handle_mouse_move'], ['offsetX', 'offsetY'], throttle=0.05)
            state['chart'].on('mouseup', handlers['handle_mouse_up'], ['offsetX', 'offsetY'])
            state['chart'].on_point_click(handlers['handle_chart_click'])
        state['details'] = ui.column().classes('w-80 gap-2')

    refresh_chart_ui()
    refresh_details()


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='StepFlow',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
    )
