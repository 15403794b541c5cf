"""
Layered auto layout for the sub-step canvas.

Layers come from Kahn's algorithm: sub-steps with no incoming edge form the
first layer, and each following layer holds the sub-steps whose last
predecessor was peeled in the previous one. Layers become columns laid out
left to right; a column that would cross the available width wraps onto a
new row below.

If peeling stalls (the graph has a cycle) every unpeeled sub-step goes into
one trailing layer in original order.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence
import logging

import networkx as nx

from stepflow.config import LayoutSettings
from stepflow.models import Position, SubStep

logger = logging.getLogger(__name__)


@dataclass
class LayoutResult:
    """Positions for every laid-out sub-step plus the bounding box they span."""
    positions: Dict[str, Position] = field(default_factory=dict)
    layers: List[List[str]] = field(default_factory=list)
    width: float = 0.0
    height: float = 0.0
    padding: float = 0.0

    @property
    def content_size(self) -> tuple:
        """Size the scrollable content area needs to hold every card."""
        if not self.positions:
            return (0.0, 0.0)
        return (self.width + self.padding, self.height + self.padding)

    def __bool__(self) -> bool:
        return bool(self.positions)


class LayoutEngine:
    """Deterministic layered, column-wrapped layout."""

    def __init__(self, settings: LayoutSettings = None):
        self.settings = settings or LayoutSettings()

    @staticmethod
    def build_graph(nodes: Sequence[SubStep]) -> nx.DiGraph:
        """DiGraph over the given sub-steps, keeping only edges between them."""
        G = nx.DiGraph()
        for node in nodes:
            G.add_node(node.id)
        for node in nodes:
            for target in node.next_ids:
                if target in G and target != node.id:
                    G.add_edge(node.id, target)
        return G

    def layers(self, nodes: Sequence[SubStep]) -> List[List[str]]:
        G = self.build_graph(nodes)
        order = {node.id: i for i, node in enumerate(nodes)}

        in_degree = {n: d for n, d in G.in_degree()}
        frontier = [n.id for n in nodes if in_degree[n.id] == 0]
        layers: List[List[str]] = []
        peeled = set()

        while frontier:
            layers.append(frontier)
            peeled.update(frontier)
            released = []
            for u in frontier:
                for v in G.successors(u):
                    in_degree[v] -= 1
                    if in_degree[v] == 0:
                        released.append(v)
            # Keep insertion order inside each layer
            frontier = sorted(released, key=order.__getitem__)

        if len(peeled) < len(nodes):
            remaining = [n.id for n in nodes if n.id not in peeled]
            logger.info(f"Cycle detected; placing {len(remaining)} sub-step(s) in a trailing layer")
            layers.append(remaining)

        return layers

    def layout(self, nodes: Sequence[SubStep], available_width: float) -> LayoutResult:
        """
        Compute positions for all nodes given the content-area width.
        Returns an empty LayoutResult when there is nothing to lay out.
        """
        s = self.settings
        result = LayoutResult(padding=s.padding)
        if not nodes:
            return result

        result.layers = self.layers(nodes)

        row_pitch = s.card_height + s.v_spacing
        column_width = s.card_width + s.h_spacing
        x = s.margin
        y = s.margin
        row_max_height = 0.0

        for layer in result.layers:
            column_height = len(layer) * row_pitch - s.v_spacing
            # The first column of a row is always placed, even if it overflows
            if x > s.margin and x + column_width > available_width:
                x = s.margin
                y += row_max_height + s.v_spacing * 2
                row_max_height = 0.0

            for i, node_id in enumerate(layer):
                result.positions[node_id] = Position(x, y + i * row_pitch)

            x += column_width
            row_max_height = max(row_max_height, column_height)

        result.width = max(p.x + s.card_width for p in result.positions.values())
        result.height = max(p.y + s.card_height for p in result.positions.values())
        logger.info(
            f"Laid out {len(result.positions)} sub-step(s) in {len(result.layers)} layer(s), "
            f"bounds {result.width:.0f}x{result.height:.0f}"
        )
        return result
