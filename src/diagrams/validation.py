"""Shallow acceptance check for Mermaid diagram code.

Only two things are checked: the code is not empty, and it names a diagram
type. Bracket balancing is not attempted because quoted labels full of
punctuation make it report false errors; the renderer has the final say.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

DIAGRAM_TYPES = (
    "graph",
    "flowchart",
    "sequenceDiagram",
    "classDiagram",
    "stateDiagram",
    "erDiagram",
    "gantt",
    "pie",
    "journey",
    "gitGraph",
    "mindmap",
    "timeline",
)
FLOWCHART_TYPES = frozenset({"graph", "flowchart"})
UNKNOWN_DIAGRAM_TYPE = "unknown"

_DIAGRAM_TYPE_RE = re.compile(r"\b(" + "|".join(DIAGRAM_TYPES) + r")\b")


class ValidationResult(BaseModel):
    valid: bool
    error: str | None = None


def extract_diagram_type(code: str) -> str:
    """Return the first diagram type keyword in ``code``, or ``"unknown"``."""
    match = _DIAGRAM_TYPE_RE.search(code)
    return match.group(1) if match else UNKNOWN_DIAGRAM_TYPE


def validate_mermaid_syntax(code: str) -> ValidationResult:
    """Reject empty code and code without a recognized diagram type."""
    if not code.strip():
        return ValidationResult(valid=False, error="Empty diagram code")
    if extract_diagram_type(code) == UNKNOWN_DIAGRAM_TYPE:
        return ValidationResult(valid=False, error="Invalid or missing diagram type")
    return ValidationResult(valid=True)
