"""Repair and render helpers for LLM chat answers about code repositories.

Fixes fenced code blocks that an LLM nested or closed too early, and turns
diagram blocks (loose Mermaid or a JSON graph spec) into Mermaid the
renderer accepts.
"""

from repochat.diagrams import (
    GraphSpec,
    ValidationResult,
    extract_diagram_type,
    generate_from_graph_spec,
    parse_graph_spec,
    sanitize_label,
    sanitize_mermaid_code,
    validate_mermaid_syntax,
)
from repochat.errors import GraphSpecError, RepochatError
from repochat.markdown import CodeBlock, iter_code_blocks, repair_markdown
from repochat.pipeline import (
    DiagramResult,
    MessageResult,
    prepare_diagram,
    process_message,
)

__version__ = "0.3.0"

__all__ = [
    "CodeBlock",
    "DiagramResult",
    "GraphSpec",
    "GraphSpecError",
    "MessageResult",
    "RepochatError",
    "ValidationResult",
    "__version__",
    "extract_diagram_type",
    "generate_from_graph_spec",
    "iter_code_blocks",
    "parse_graph_spec",
    "prepare_diagram",
    "process_message",
    "repair_markdown",
    "sanitize_label",
    "sanitize_mermaid_code",
    "validate_mermaid_syntax",
]
