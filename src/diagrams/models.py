"""Structured diagram input: the JSON alternative to freeform Mermaid."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Direction(StrEnum):
    """Flowchart layout directions."""

    TB = "TB"
    TD = "TD"
    BT = "BT"
    RL = "RL"
    LR = "LR"


DEFAULT_DIRECTION = Direction.TD


class NodeShape(StrEnum):
    """Node shapes a graph spec may request."""

    RECT = "rect"
    ROUNDED = "rounded"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    DATABASE = "database"
    CLOUD = "cloud"
    HEXAGON = "hexagon"


class EdgeType(StrEnum):
    """Edge styles a graph spec may request."""

    ARROW = "arrow"
    DOTTED = "dotted"
    THICK = "thick"
    LINE = "line"


def _coerce_enum(enum_cls: type[StrEnum], value: Any, default: StrEnum) -> StrEnum:
    """Map ``value`` onto ``enum_cls``, falling back to ``default``."""
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class GraphNode(BaseModel):
    """A node declaration: bare id, display label and shape."""

    id: str
    label: str = ""
    shape: NodeShape = NodeShape.RECT

    @model_validator(mode="before")
    @classmethod
    def normalize_fields(cls, data: Any) -> Any:
        """Accept numeric ids, null labels and unknown shapes."""
        if isinstance(data, dict):
            data = dict(data)
            if "id" in data and data["id"] is not None:
                data["id"] = str(data["id"])
            data["label"] = _coerce_text(data.get("label"))
            data["shape"] = _coerce_enum(NodeShape, data.get("shape"), NodeShape.RECT)
        return data


class GraphEdge(BaseModel):
    """A directed edge between two node ids.

    The JSON keys are ``from`` and ``to``; they are exposed as ``source`` and
    ``target`` here.
    """

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    label: str = ""
    type: EdgeType = EdgeType.ARROW

    @model_validator(mode="before")
    @classmethod
    def normalize_fields(cls, data: Any) -> Any:
        """Accept numeric endpoints, null labels and unknown edge types."""
        if isinstance(data, dict):
            data = dict(data)
            for key in ("from", "to", "source", "target"):
                if data.get(key) is not None:
                    data[key] = str(data[key])
            data["label"] = _coerce_text(data.get("label"))
            data["type"] = _coerce_enum(EdgeType, data.get("type"), EdgeType.ARROW)
        return data


class GraphSpec(BaseModel):
    """A whole diagram described as nodes and edges.

    Validation is deliberately loose: an unknown direction falls back to
    ``TD`` and missing node or edge lists are treated as empty. Only a
    node without an id or an edge without endpoints is rejected.
    """

    title: str | None = None
    direction: Direction = DEFAULT_DIRECTION
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["direction"] = _coerce_enum(
                Direction, data.get("direction"), DEFAULT_DIRECTION
            )
            data["nodes"] = data.get("nodes") or []
            data["edges"] = data.get("edges") or []
        return data
