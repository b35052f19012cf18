"""Mermaid diagram sanitization, generation and validation.

LLM answers carry diagrams either as loose Mermaid text or as a JSON graph
spec. Loose text goes through ``sanitize_mermaid_code``; a spec goes through
``generate_from_graph_spec``. Both results can be checked with
``validate_mermaid_syntax`` before rendering.
"""

from repochat.diagrams.generator import (
    generate_from_graph_spec,
    load_graph_spec,
    parse_graph_spec,
)
from repochat.diagrams.models import (
    Direction,
    EdgeType,
    GraphEdge,
    GraphNode,
    GraphSpec,
    NodeShape,
)
from repochat.diagrams.sanitizer import sanitize_label, sanitize_mermaid_code
from repochat.diagrams.templates import get_fallback_template
from repochat.diagrams.validation import (
    ValidationResult,
    extract_diagram_type,
    validate_mermaid_syntax,
)

__all__ = [
    "Direction",
    "EdgeType",
    "GraphEdge",
    "GraphNode",
    "GraphSpec",
    "NodeShape",
    "ValidationResult",
    "extract_diagram_type",
    "generate_from_graph_spec",
    "get_fallback_template",
    "load_graph_spec",
    "parse_graph_spec",
    "sanitize_label",
    "sanitize_mermaid_code",
    "validate_mermaid_syntax",
]
