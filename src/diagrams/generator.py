"""Deterministic Mermaid generation from a structured graph spec.

This path never guesses: ids are reduced to bare tokens, labels are quoted,
and shapes and arrows come from fixed tables. The sanitizer heuristics are
not involved.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from repochat.diagrams.models import (
    EdgeType,
    GraphEdge,
    GraphNode,
    GraphSpec,
    NodeShape,
)
from repochat.errors import GraphSpecError

_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")
_LABEL_BREAKERS_RE = re.compile(r"[\"\n\r]")

SHAPE_WRAPPERS: dict[NodeShape, tuple[str, str]] = {
    NodeShape.RECT: ("[", "]"),
    NodeShape.ROUNDED: ("(", ")"),
    NodeShape.CIRCLE: ("((", "))"),
    NodeShape.DIAMOND: ("{", "}"),
    NodeShape.DATABASE: ("[(", ")]"),
    NodeShape.CLOUD: ("((", "))"),
    NodeShape.HEXAGON: ("{{", "}}"),
}

EDGE_TOKENS: dict[EdgeType, str] = {
    EdgeType.ARROW: "-->",
    EdgeType.DOTTED: "-.->",
    EdgeType.THICK: "==>",
    EdgeType.LINE: "---",
}


def clean_node_id(node_id: str) -> str:
    """Mermaid ids must be bare tokens: anything non-alphanumeric becomes ``_``."""
    return _NON_ALNUM_RE.sub("_", node_id)


def clean_graph_label(text: str) -> str:
    if not text:
        return ""
    return _LABEL_BREAKERS_RE.sub(" ", text).strip()


def render_node(node: GraphNode) -> str:
    """Render ``id<open>"label"<close>``; the label defaults to the id."""
    safe_id = clean_node_id(node.id)
    label = clean_graph_label(node.label or safe_id)
    opening, closing = SHAPE_WRAPPERS.get(node.shape, SHAPE_WRAPPERS[NodeShape.RECT])
    return f'{safe_id}{opening}"{label}"{closing}'


def render_edge(edge: GraphEdge) -> str:
    """Render ``from <arrow>|"label"| to``, omitting an empty label."""
    arrow = EDGE_TOKENS.get(edge.type, EDGE_TOKENS[EdgeType.ARROW])
    label = clean_graph_label(edge.label)
    if label:
        arrow = f'{arrow}|"{label}"|'
    return f"{clean_node_id(edge.source)} {arrow} {clean_node_id(edge.target)}"


def load_graph_spec(data: Any) -> GraphSpec:
    """Validate already-decoded data as a ``GraphSpec``.

    Raises:
        GraphSpecError: If the data is not an object or a node/edge is
            missing its ids.
    """
    if isinstance(data, GraphSpec):
        return data
    if not isinstance(data, Mapping):
        raise GraphSpecError(
            f"Graph spec must be a JSON object, got {type(data).__name__}"
        )
    try:
        return GraphSpec.model_validate(dict(data))
    except ValidationError as exc:
        raise GraphSpecError(f"Invalid graph spec: {exc.error_count()} error(s)") from exc


def parse_graph_spec(raw: str | bytes) -> GraphSpec:
    """Decode a JSON graph spec.

    Raises:
        GraphSpecError: If the document is not valid JSON or not a spec.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise GraphSpecError(f"Malformed graph spec JSON: {exc.msg}") from exc
    return load_graph_spec(data)


def generate_from_graph_spec(spec: GraphSpec | Mapping[str, Any]) -> str:
    """Generate Mermaid flowchart code from a graph spec.

    The same spec always produces byte-identical output.

    Args:
        spec: A ``GraphSpec`` or a mapping shaped like one (as decoded
            from JSON).

    Returns:
        ``graph <direction>`` followed by one indented line per node, then
        one per edge.
    """
    graph = load_graph_spec(spec)
    lines = [f"graph {graph.direction.value}"]
    lines.extend(f"  {render_node(node)}" for node in graph.nodes)
    lines.extend(f"  {render_edge(edge)}" for edge in graph.edges)
    return "\n".join(lines)
