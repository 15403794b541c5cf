"""
Shared constants for the canvas editing system.

These values are used by both the Python editor and the ECharts option
built in graph_viz. Keep them in sync!
"""

# Diameter in pixels of the connection handle on a card's right edge
HANDLE_SIZE = 12

# Dash pattern for the live connection preview line
PREVIEW_LINE_DASH = [8, 4]

# Initial content-area size before any layout has measured it
DEFAULT_CANVAS_WIDTH = 900.0
DEFAULT_CANVAS_HEIGHT = 500.0

# Label used for sub-steps created with the "add" button
NEW_SUB_STEP_LABEL = "New step"
NEW_ACTION_ITEM_LABEL = "New action"
