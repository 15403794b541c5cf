"""
Canvas editing system for StepFlow.

This package provides the interactive editing layer:
- TaskEditor: command layer; every mutation goes through history
- ConnectionSession: drag-to-connect state machine
- DragPositioner: pointer-to-position conversion with clamping
- handlers: NiceGUI event handlers for app.py integration (import directly)

Usage:
    from stepflow.edit import TaskEditor, ConnectionSession, DragPositioner
    from stepflow.edit.handlers import setup_edit_handlers
"""

from stepflow.edit.constants import (
    HANDLE_SIZE,
    PREVIEW_LINE_DASH,
    DEFAULT_CANVAS_WIDTH,
    DEFAULT_CANVAS_HEIGHT,
)
from stepflow.edit.connection import ConnectionDraft, ConnectionSession, SessionState
from stepflow.edit.drag import DragPositioner, canvas_point
from stepflow.edit.actions import TaskEditor, derive_status

__all__ = [
    'TaskEditor',
    'ConnectionSession',
    'ConnectionDraft',
    'SessionState',
    'DragPositioner',
    'canvas_point',
    'derive_status',
    'HANDLE_SIZE',
    'PREVIEW_LINE_DASH',
    'DEFAULT_CANVAS_WIDTH',
    'DEFAULT_CANVAS_HEIGHT',
]
