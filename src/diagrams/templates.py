"""Fallback diagrams used when a generated diagram cannot be salvaged."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from repochat.diagrams.generator import clean_node_id
from repochat.diagrams.sanitizer import sanitize_label

DEFAULT_FLOW = ("Start", "Process", "End")

_NON_WORD_RE = re.compile(r"[^a-zA-Z0-9 ]")


class Component(BaseModel):
    """A named component and the components it depends on."""

    name: str
    deps: list[str] = Field(default_factory=list)


def _clean_layer(text: str) -> str:
    return _NON_WORD_RE.sub(" ", re.sub(r"[\"'`<>]", "", text)).strip()


def basic_flow(components: list[str]) -> str:
    """A top-down chain ``N0 --> N1 --> ...`` of the given step names."""
    steps = [label for label in (sanitize_label(c) for c in components) if label]
    if not steps:
        steps = list(DEFAULT_FLOW)

    lines = ["graph TD"]
    lines.extend(f'  N{i}["{label}"]' for i, label in enumerate(steps))
    lines.extend(f"  N{i} --> N{i + 1}" for i in range(len(steps) - 1))
    return "\n".join(lines)


def layered_architecture(layers: list[str]) -> str:
    """Frontend, backend and data subgraphs stacked top to bottom."""
    names = [*layers, "", "", ""]
    ui = _clean_layer(names[0] or "User Interface")
    api = _clean_layer(names[1] or "API Layer")
    db = _clean_layer(names[2] or "Database")
    return "\n".join(
        [
            "graph TB",
            "  subgraph Frontend",
            f'    UI["{ui}"]',
            "  end",
            "  subgraph Backend",
            f'    API["{api}"]',
            "  end",
            "  subgraph Data",
            f'    DB["{db}"]',
            "  end",
            "  UI --> API",
            "  API --> DB",
        ]
    )


def component_diagram(components: list[Component]) -> str:
    """Left-to-right dependency graph between named components."""
    lines = ["graph LR"]
    lines.extend(
        f'  {clean_node_id(c.name)}["{sanitize_label(c.name)}"]' for c in components
    )
    lines.extend(
        f"  {clean_node_id(c.name)} --> {clean_node_id(dep)}"
        for c in components
        for dep in c.deps
    )
    return "\n".join(lines)


def service_architecture() -> str:
    """A generic client / load balancer / app servers / cache / database layout."""
    return "\n".join(
        [
            "graph TB",
            '  Client["Client Browser"]',
            '  LB["Load Balancer"]',
            '  App1["App Server 1"]',
            '  App2["App Server 2"]',
            '  Cache["Redis Cache"]',
            '  DB["Database"]',
            "  Client --> LB",
            "  LB --> App1",
            "  LB --> App2",
            "  App1 --> Cache",
            "  App2 --> Cache",
            "  App1 --> DB",
            "  App2 --> DB",
        ]
    )


def get_fallback_template(context: str | None = None) -> str:
    """Pick a fallback diagram from keywords in ``context``.

    Layer/tier talk gets the layered architecture, services get the service
    layout, components/dependencies get a dependency graph; anything else
    gets a three-step flow.
    """
    if not context:
        return basic_flow(list(DEFAULT_FLOW))

    lower = context.lower()
    if "layer" in lower or "tier" in lower:
        return layered_architecture(["Frontend", "Backend", "Database"])
    if "service" in lower or "microservice" in lower:
        return service_architecture()
    if "component" in lower or "dependency" in lower:
        return component_diagram(
            [
                Component(name="Component A", deps=["Component B"]),
                Component(name="Component B", deps=["Component C"]),
                Component(name="Component C"),
            ]
        )
    return basic_flow(list(DEFAULT_FLOW))
