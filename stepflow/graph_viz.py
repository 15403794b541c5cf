"""
Canvas visualizer that produces an ECharts-compatible configuration for the
sub-step canvas.

Unlike a force layout, every card is pinned at its stored position: the
graph series uses a pixel-for-pixel cartesian grid, so what the user sees is
exactly what auto layout or a drag wrote into the task, and pointer offsets
on the chart can be hit-tested against stored positions directly. NetworkX
holds the graph while the option is built; the output is a plain dict for
NiceGUI's ui.echart.

While a connection is being drawn, a hidden pointer node and a dashed link
from the source card's handle show the preview.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import networkx as nx

from stepflow.config import LayoutSettings
from stepflow.edit.connection import ConnectionDraft
from stepflow.edit.constants import (
    DEFAULT_CANVAS_HEIGHT,
    DEFAULT_CANVAS_WIDTH,
    HANDLE_SIZE,
    PREVIEW_LINE_DASH,
)
from stepflow.models import Position, SubStepStatus, Task

DRAFT_NODE_ID = "__connection_draft__"

STATUS_COLORS = {
    SubStepStatus.NOT_STARTED: "#cbd5e1",  # slate-300
    SubStepStatus.IN_PROGRESS: "#3b82f6",  # blue-500
    SubStepStatus.COMPLETED: "#22c55e",    # green-500
}


class CanvasVisualizer:
    """
    Build an ECharts option (dict) for the sub-step canvas of a task.

    The returned dict follows an ECharts option pattern with a single 'graph' series:
      {
        "series": [
          {
            "type": "graph",
            "coordinateSystem": "cartesian2d",
            "data": [...],   # one rect per sub-step, value = card centre
            "links": [...],  # one arrow per edge
          }
        ]
      }
    """

    def __init__(self, settings: LayoutSettings = None):
        self.settings = settings or LayoutSettings()
        self.G = nx.DiGraph()

    @staticmethod
    def color_for_status(status: SubStepStatus) -> str:
        return STATUS_COLORS.get(status, STATUS_COLORS[SubStepStatus.NOT_STARTED])

    def connector_points(self, task: Task) -> List[Dict[str, Any]]:
        """
        Anchor geometry for every edge: from the source card's right-middle
        to the target card's left-middle.
        """
        w, h = self.settings.card_width, self.settings.card_height
        by_id = {ss.id: ss for ss in task.extended.sub_steps}
        connectors = []
        for source in task.extended.sub_steps:
            for target_id in source.next_ids:
                target = by_id.get(target_id)
                if target is None:
                    continue
                connectors.append({
                    "id": f"subconn-{source.id}-{target_id}",
                    "source": source.id,
                    "target": target_id,
                    "from": (source.position.x + w, source.position.y + h / 2),
                    "to": (target.position.x, target.position.y + h / 2),
                })
        return connectors

    def handle_point(self, task: Task, node_id: str) -> Optional[Tuple[float, float]]:
        """Centre of a card's connection handle, or None if the card is gone."""
        for ss in task.extended.sub_steps:
            if ss.id == node_id:
                return (ss.position.x + self.settings.card_width,
                        ss.position.y + self.settings.card_height / 2)
        return None

    def node_at(self, task: Task, point: Position) -> Optional[str]:
        """Id of the top-most card containing `point` (later cards are drawn on top)."""
        w, h = self.settings.card_width, self.settings.card_height
        for ss in reversed(task.extended.sub_steps):
            if ss.position.x <= point.x <= ss.position.x + w and ss.position.y <= point.y <= ss.position.y + h:
                return ss.id
        return None

    def handle_at(self, task: Task, point: Position) -> Optional[str]:
        """Id of the card whose connection handle is under `point`."""
        for ss in reversed(task.extended.sub_steps):
            hx, hy = self.handle_point(task, ss.id)
            if math.hypot(point.x - hx, point.y - hy) <= HANDLE_SIZE:
                return ss.id
        return None

    def generate_echarts(self, task: Task, draft: Optional[ConnectionDraft] = None,
                         selected_id: Optional[str] = None,
                         canvas_size: Optional[Tuple[float, float]] = None) -> Dict[str, Any]:
        """
        Given a task (and optionally an active connection draft), construct the ECharts option dict.

        The series sits on a cartesian grid whose hidden axes span exactly
        `canvas_size`, y pointing down, so one data unit is one pixel and a
        DOM offsetX/offsetY on the chart is a content-area coordinate. The
        chart element must be rendered at `canvas_size`.
        """
        w, h = self.settings.card_width, self.settings.card_height
        canvas_w, canvas_h = canvas_size or (DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT)

        self.G = nx.DiGraph()
        for ss in task.extended.sub_steps:
            self.G.add_node(ss.id, label=ss.text, status=ss.status, position=ss.position)
        for source, target in ((ss.id, t) for ss in task.extended.sub_steps for t in ss.next_ids):
            if source in self.G.nodes and target in self.G.nodes:
                self.G.add_edge(source, target)

        data = []
        for n, attrs in self.G.nodes(data=True):
            pos = attrs["position"]
            status = attrs["status"]
            data.append({
                "id": n,
                "name": attrs.get("label") or n,
                # ECharts centres symbols on their value; cards are stored by top-left corner
                "value": [pos.x + w / 2, pos.y + h / 2],
                "symbol": "rect",
                "symbolSize": [w, h],
                "itemStyle": {
                    "color": "#ffffff",
                    "borderColor": "#3b82f6" if n == selected_id else self.color_for_status(status),
                    "borderWidth": 3 if n == selected_id else 2,
                },
                "label": {
                    "show": True,
                    "formatter": attrs.get("label") or "Click to edit",
                    "color": "#64748b" if status == SubStepStatus.COMPLETED else "#1e293b",
                },
                "status": status.value,
            })

        links = [
            {
                "source": src,
                "target": tgt,
                "lineStyle": {"color": "#94a3b8", "width": 2, "opacity": 0.9},
            }
            for src, tgt in self.G.edges()
        ]

        if draft is not None and draft.source_id in self.G.nodes:
            data.append({
                "id": DRAFT_NODE_ID,
                "name": "",
                "value": [draft.pointer.x, draft.pointer.y],
                "symbolSize": HANDLE_SIZE,
                "itemStyle": {"color": "#3b82f6", "opacity": 0.6},
                "label": {"show": False},
            })
            links.append({
                "source": draft.source_id,
                "target": DRAFT_NODE_ID,
                "lineStyle": {"color": "#3b82f6", "width": 2, "type": PREVIEW_LINE_DASH},
            })

        option = {
            "animation": False,
            "grid": {"left": 0, "top": 0, "right": 0, "bottom": 0, "containLabel": False},
            "xAxis": {"type": "value", "min": 0, "max": canvas_w, "show": False},
            "yAxis": {"type": "value", "min": 0, "max": canvas_h, "inverse": True, "show": False},
            "series": [
                {
                    "type": "graph",
                    "coordinateSystem": "cartesian2d",
                    "roam": False,
                    "edgeSymbol": ["none", "arrow"],
                    "edgeSymbolSize": 8,
                    "data": data,
                    "links": links,
                    "emphasis": {"focus": "adjacency"},
                }
            ]
        }
        return option
