"""
Edit Handlers - Event handlers for the sub-step canvas in app.py

Translates raw pointer and keyboard events from the NiceGUI page into
TaskEditor commands, keeping the page module focused on layout.

Pointer gestures on the canvas:
- press on a card's handle, move, release over another card: connect
- press on a card body, release elsewhere: move the card
- click on a connector: remove that connection
- Ctrl+Z / Ctrl+Shift+Z / Ctrl+Y: undo / redo; Escape cancels a gesture
"""

from typing import Any, Callable, Dict, Optional, Tuple

from nicegui import ui

from stepflow.edit.actions import TaskEditor
from stepflow.edit.drag import canvas_point
from stepflow.graph_viz import CanvasVisualizer
from stepflow.models import Position


def pointer_from_event(event: Any) -> Optional[Position]:
    """Extract a content-area point from a chart DOM event payload."""
    raw = event.args if hasattr(event, 'args') else event

    if isinstance(raw, (list, tuple)) and len(raw) >= 2:
        x, y = raw[0], raw[1]
    elif isinstance(raw, dict):
        x = raw.get('offsetX', raw.get('x'))
        y = raw.get('offsetY', raw.get('y'))
        if x is None or y is None:
            return None
    else:
        return None
    return canvas_point((float(x), float(y)), (0.0, 0.0))


def edge_from_click(event: Any) -> Optional[Tuple[str, str]]:
    """
    (source, target) of a clicked connector, or None if the click was not on
    an edge. Accepts NiceGUI point-click arguments or a raw ECharts payload.
    """
    if hasattr(event, 'data_type'):
        data_type, data = event.data_type, event.data
    else:
        raw = event.args if hasattr(event, 'args') else event
        if not isinstance(raw, dict):
            return None
        data_type, data = raw.get('dataType'), raw.get('data')

    if data_type != 'edge' or not isinstance(data, dict):
        return None
    source, target = data.get('source'), data.get('target')
    if not source or not target:
        return None
    return source, target


def setup_edit_handlers(
    editor: TaskEditor,
    visualizer: CanvasVisualizer,
    refresh_chart_ui: Callable,
    refresh_details: Callable = None,
    measure_canvas: Callable[[], Tuple[float, float]] = None,
) -> Dict[str, Callable]:
    """
    Set up all canvas event handlers.

    Args:
        editor: TaskEditor for the task on screen
        visualizer: CanvasVisualizer used for hit testing
        refresh_chart_ui: Function to rebuild the chart options
        refresh_details: Function to redraw the selected sub-step panel
        measure_canvas: Function returning the rendered canvas size at drop time;
            defaults to the size the editor asks the page to render

    Returns:
        Dict with handler functions for binding to UI events
    """

    def refresh_all():
        refresh_chart_ui()
        if refresh_details:
            refresh_details()

    editor.connection.set_on_change(lambda draft: refresh_chart_ui())

    def handle_mouse_down(event):
        pointer = pointer_from_event(event)
        if pointer is None:
            return

        handle_id = visualizer.handle_at(editor.task, pointer)
        if handle_id:
            editor.begin_connection(handle_id, pointer)
            return

        node_id = visualizer.node_at(editor.task, pointer)
        editor.select(node_id)
        if node_id:
            editor.begin_drag(node_id, pointer)
        refresh_all()

    def handle_mouse_move(event):
        # Only the connection preview follows the pointer; cards move on drop
        if not editor.connection.is_drafting:
            return
        pointer = pointer_from_event(event)
        if pointer is not None:
            editor.move_connection(pointer)

    def handle_mouse_up(event):
        pointer = pointer_from_event(event)

        if editor.connection.is_drafting:
            target_id = visualizer.node_at(editor.task, pointer) if pointer else None
            if editor.finish_connection(target_id):
                ui.notify('Steps connected', type='positive', position='bottom', timeout=800)
                refresh_all()
            return

        if editor.drag.active:
            if pointer is None:
                editor.drag.cancel()
                return
            container = measure_canvas() if measure_canvas else editor.canvas_size
            if editor.drop_dragged(pointer, container_size=container) is not None:
                refresh_all()

    def handle_chart_click(event):
        edge = edge_from_click(event)
        if edge and editor.remove_edge(*edge):
            ui.notify('Connection removed', position='bottom', timeout=800)
            refresh_all()

    def handle_keyboard(e):
        if not e.action.keydown:
            return
        if e.key.escape:
            editor.cancel_connection()
            editor.drag.cancel()
            return
        if not e.modifiers.ctrl:
            return
        if e.key == 'z' and not e.modifiers.shift:
            changed = editor.undo()
        elif e.key == 'y' or (e.key == 'z' and e.modifiers.shift):
            changed = editor.redo()
        else:
            return
        if changed:
            refresh_all()

    return {
        'handle_keyboard': handle_keyboard,
        'handle_mouse_move': handle_mouse_move,
        'handle_mouse_down': handle_mouse_down,
        'handle_mouse_up': handle_mouse_up,
        'handle_chart_click': handle_chart_click,
    }
