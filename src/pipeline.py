"""Message pipeline: repair fences, then prepare every diagram block.

This is the seam between raw LLM output and the renderer. A chat message
goes through ``repair_markdown``; each ```` ```mermaid ```` or
```` ```mermaid-json ```` block is then converted (JSON spec → Mermaid),
sanitized, validated and written back as a plain ```` ```mermaid ```` block.
"""

from __future__ import annotations

import logging
import re
from enum import StrEnum

from pydantic import BaseModel, Field

from repochat.config import DiagramsConfig, RepochatConfig
from repochat.diagrams.generator import generate_from_graph_spec, parse_graph_spec
from repochat.diagrams.sanitizer import sanitize_mermaid_code
from repochat.diagrams.templates import get_fallback_template
from repochat.diagrams.validation import (
    FLOWCHART_TYPES,
    UNKNOWN_DIAGRAM_TYPE,
    extract_diagram_type,
    validate_mermaid_syntax,
)
from repochat.errors import GraphSpecError
from repochat.markdown.blocks import CodeBlock, replace_code_blocks
from repochat.markdown.fences import repair_markdown

logger = logging.getLogger(__name__)

MERMAID_LANGUAGE = "mermaid"
MERMAID_JSON_LANGUAGE = "mermaid-json"
DIAGRAM_LANGUAGES = frozenset({MERMAID_LANGUAGE, MERMAID_JSON_LANGUAGE})


class DiagramSource(StrEnum):
    """Where the final diagram code came from."""

    MERMAID = "mermaid"
    JSON = "json"


class DiagramResult(BaseModel):
    """Outcome of preparing one diagram block."""

    code: str
    source: DiagramSource = DiagramSource.MERMAID
    diagram_type: str = UNKNOWN_DIAGRAM_TYPE
    valid: bool = True
    error: str | None = None
    used_fallback: bool = False


class MessageResult(BaseModel):
    """A processed chat message and the diagrams found in it."""

    content: str
    diagrams: list[DiagramResult] = Field(default_factory=list)
    fences_repaired: bool = False

    @property
    def invalid_count(self) -> int:
        return sum(1 for d in self.diagrams if not d.valid)


def _looks_like_json(chart: str) -> bool:
    return chart.lstrip().startswith("{")


def prepare_diagram(
    chart: str,
    *,
    language: str = MERMAID_LANGUAGE,
    config: DiagramsConfig | None = None,
) -> DiagramResult:
    """Turn the body of a diagram block into code ready to render.

    JSON bodies (a ``mermaid-json`` block, or a ``mermaid`` block that
    starts with ``{``) are generated from the graph spec. Flowchart code
    written by the model is sanitized; other diagram types pass through.
    The result is then validated, and when ``use_fallback`` is set an
    invalid diagram is swapped for a template.

    Args:
        chart: Block body without the fence lines.
        language: The block's language tag.
        config: Diagram options; defaults apply when omitted.

    Returns:
        The prepared diagram. Never raises.
    """
    config = config or DiagramsConfig()
    code = chart
    source = DiagramSource.MERMAID

    if config.convert_json and (
        language == MERMAID_JSON_LANGUAGE or _looks_like_json(chart)
    ):
        try:
            code = generate_from_graph_spec(parse_graph_spec(chart))
            source = DiagramSource.JSON
        except GraphSpecError as exc:
            if language == MERMAID_JSON_LANGUAGE:
                logger.warning("Could not convert mermaid-json block: %s", exc)
                return DiagramResult(
                    code=chart, source=DiagramSource.JSON, valid=False, error=str(exc)
                )
            logger.warning(
                "JSON-looking mermaid block did not parse, using as is: %s", exc
            )

    diagram_type = extract_diagram_type(code)
    if (
        config.sanitize
        and source == DiagramSource.MERMAID
        and (diagram_type in FLOWCHART_TYPES or diagram_type == UNKNOWN_DIAGRAM_TYPE)
    ):
        code = sanitize_mermaid_code(code)

    validation = validate_mermaid_syntax(code)
    if validation.valid:
        return DiagramResult(code=code, source=source, diagram_type=diagram_type)

    logger.warning("Diagram failed validation: %s", validation.error)
    if config.use_fallback:
        fallback = get_fallback_template(chart)
        return DiagramResult(
            code=fallback,
            source=source,
            diagram_type=extract_diagram_type(fallback),
            error=validation.error,
            used_fallback=True,
        )
    return DiagramResult(
        code=code,
        source=source,
        diagram_type=diagram_type,
        valid=False,
        error=validation.error,
    )


def process_message(
    content: str, config: RepochatConfig | None = None
) -> MessageResult:
    """Repair a chat message and rewrite its diagram blocks.

    Args:
        content: Raw message text, possibly a partial stream.
        config: Processing options; defaults apply when omitted.

    Returns:
        The rewritten message plus one ``DiagramResult`` per diagram block,
        in document order.
    """
    config = config or RepochatConfig()
    repaired = repair_markdown(content, max_passes=config.fences.max_passes)
    diagrams: list[DiagramResult] = []
    dropped = False

    def _rewrite(block: CodeBlock) -> str | None:
        nonlocal dropped
        if block.language not in DIAGRAM_LANGUAGES:
            return None

        result = prepare_diagram(
            block.body, language=block.language, config=config.diagrams
        )
        diagrams.append(result)

        if not result.valid and config.diagrams.drop_invalid:
            dropped = True
            return ""
        if not result.valid and block.language == MERMAID_JSON_LANGUAGE:
            # Possibly still streaming; leave the JSON for the next pass.
            return None

        fence = "`" * block.fence_length
        return (
            f"{block.indent}{fence}{MERMAID_LANGUAGE}\n"
            f"{result.code}\n"
            f"{block.indent}{fence}"
        )

    rewritten = replace_code_blocks(repaired, _rewrite)
    if dropped:
        rewritten = re.sub(r"\n{3,}", "\n\n", rewritten)

    return MessageResult(
        content=rewritten,
        diagrams=diagrams,
        fences_repaired=repaired != content,
    )
