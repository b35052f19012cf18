"""Best-effort cleanup of LLM-written Mermaid flowchart code.

The model writes something close to Mermaid, but labels routinely carry
quotes, HTML, slashes or backticks that break the grammar, edge labels go
unquoted and arrows point at bare strings. Each line is run through an
ordered list of small rewrite rules; every label ends up quoted and passed
through ``sanitize_label``, the one place that decides which characters may
appear inside a Mermaid string.

Nothing here raises. Output that still does not render is left to the
renderer to reject.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from repochat.diagrams.models import DEFAULT_DIRECTION, Direction

COMMENT_MARKER = "%%"
DIRECTIVE_PREFIXES = ("classDef", "class ", "click ", "style ", "linkStyle ")
RESERVED_BARE_IDS = frozenset({"end", "direction"})

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_QUOTE_CHARS_RE = re.compile(r"[`\"'<>]")
_SLASHES_RE = re.compile(r"[\\/]")
_CONTROL_WS_RE = re.compile(r"[\n\t]")
_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9 .,;:!?()\-_]")
_WHITESPACE_RE = re.compile(r"\s+")

_DECLARATION_RE = re.compile(r"^(graph|flowchart)(?:\s|;|$)")
_EDGE_OPERATOR_RE = re.compile(r"--|\.->|-\.-|==>|~~~")
_PIPE_LABEL_RE = re.compile(r"(\||[=-]+>?\||[.-]+>?\|)\s*(.*?)\s*(\|)")
_INLINE_LABEL_RE = re.compile(
    r"(--+|\.\.+|==+)\s+(.+?)\s+(--+>?|\.\.+>?|==+>?)"
)
_SHAPE_OPENING_RE = re.compile(r"[\[\(\{]")
_DANGLING_TARGET_RE = re.compile(
    r"(-->|\.->|==>)\s*\"([^\"]+)\"(?!\s*[)\]}>]|\s*--|\s*\.\.|\s*==)"
)
_BARE_NODE_RE = re.compile(r"^([\w-]+)\s+(.+)$")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")

# (name, opening pattern, closing pattern, opening text, closing text).
# Order matters: at a given position the first shape that matches wins,
# so compound brackets come before the single-character ones.
NODE_SHAPES: tuple[tuple[str, str, str, str, str], ...] = (
    ("database", r"\[\(", r"\)\]", "[(", ")]"),
    ("subroutine", r"\[\[", r"\]\]", "[[", "]]"),
    ("circle", r"\(\(", r"\)\)", "((", "))"),
    ("hexagon", r"\{\{", r"\}\}", "{{", "}}"),
    ("parallelogram", r"\[/", r"/\]", "[/", "/]"),
    ("parallelogram_alt", r"\[\\", r"\\\]", "[\\", "\\]"),
    ("trapezoid", r"\[/", r"\\\]", "[/", "\\]"),
    ("trapezoid_alt", r"\[\\", r"/\]", "[\\", "/]"),
    ("rounded", r"\(", r"\)", "(", ")"),
    ("rectangle", r"\[", r"\]", "[", "]"),
    ("rhombus", r"\{", r"\}", "{", "}"),
    ("asymmetric", r">", r"\]", ">", "]"),
)


def _build_shape_pattern(quantifier: str) -> re.Pattern[str]:
    alternatives = "|".join(
        f"{opening}(?P<s{index}>\"[^\"]*\"|{quantifier}){closing}"
        for index, (_, opening, closing, _, _) in enumerate(NODE_SHAPES)
    )
    # Quoted strings are consumed whole so labels are never read as nodes.
    return re.compile(
        rf"(?P<quoted>\"[^\"]*\")|(?<!\w)(?P<id>\w+(?:-\w+)*)\s*(?:{alternatives})"
    )


_SHAPE_PATTERN_LAZY = _build_shape_pattern(".*?")
_SHAPE_PATTERN_GREEDY = _build_shape_pattern(".*")


def sanitize_label(text: str) -> str:
    """Reduce arbitrary text to characters that are safe inside a label.

    Strips HTML tags, backticks, quotes and angle brackets, turns slashes
    and control whitespace into spaces, drops everything outside
    ``[A-Za-z0-9 .,;:!?()-_]`` and collapses runs of whitespace.
    """
    text = _HTML_TAG_RE.sub(" ", text)
    text = _QUOTE_CHARS_RE.sub("", text)
    text = _SLASHES_RE.sub(" ", text)
    text = _CONTROL_WS_RE.sub(" ", text)
    text = _UNSAFE_CHARS_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_comments(code: str) -> str:
    """Drop everything after ``%%`` on each line."""
    return "\n".join(line.split(COMMENT_MARKER, 1)[0] for line in code.split("\n"))


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def has_edge_operator(line: str) -> bool:
    return bool(_EDGE_OPERATOR_RE.search(line))


# Terminal rules: when one applies, its result is the final line.


def passthrough_directive(line: str) -> str | None:
    """Styling and interaction directives are kept verbatim."""
    if line.startswith(DIRECTIVE_PREFIXES):
        return line
    return None


def quote_subgraph_title(line: str) -> str | None:
    """``subgraph Some/Title`` becomes ``subgraph "Some Title"``."""
    if not line.startswith("subgraph "):
        return None
    title = line[len("subgraph ") :].strip()
    if title.startswith('"'):
        return line
    return f'subgraph "{sanitize_label(title)}"'


def normalize_declaration(line: str) -> str | None:
    """Rewrite a ``graph`` / ``flowchart`` header to ``<type> <direction>``.

    An unknown or missing direction becomes ``TD``; a trailing ``;`` is
    dropped.
    """
    if not _DECLARATION_RE.match(line):
        return None
    parts = line.removesuffix(";").split()
    kind = parts[0].replace(";", "")
    direction = parts[1].replace(";", "") if len(parts) > 1 else DEFAULT_DIRECTION.value
    if direction not in Direction.__members__:
        direction = DEFAULT_DIRECTION.value
    return f"{kind} {direction}"


# Edge rules: only applied to lines that contain an edge operator.


def quote_pipe_labels(line: str) -> str:
    """``A -->|some label| B`` becomes ``A -->|"some label"| B``."""

    def _replace(match: re.Match[str]) -> str:
        start, content, end = match.groups()
        if not content.strip():
            return match.group(0)
        return f'{start}"{sanitize_label(_unquote(content))}"{end}'

    return _PIPE_LABEL_RE.sub(_replace, line)


def quote_inline_labels(line: str) -> str:
    """``A -- some label --> B`` becomes ``A -- "some label" --> B``."""

    def _replace(match: re.Match[str]) -> str:
        start, content, end = match.groups()
        text = content.strip()
        if not text:
            return match.group(0)
        # An unquoted bracket means this is a node, not a label.
        if not text.startswith('"') and _SHAPE_OPENING_RE.search(text):
            return match.group(0)
        return f'{start} "{sanitize_label(_unquote(content))}" {end}'

    return _INLINE_LABEL_RE.sub(_replace, line)


def node_id_from_label(label: str) -> str:
    """Derive a bare node id from label text."""
    return "N" + _NON_ALNUM_RE.sub("", sanitize_label(label))[:10]


def wrap_dangling_targets(line: str) -> str:
    """``A --> "Some Label"`` becomes ``A --> NSomeLabel["Some Label"]``."""

    def _replace(match: re.Match[str]) -> str:
        arrow, label = match.groups()
        return f'{arrow} {node_id_from_label(label)}["{sanitize_label(label)}"]'

    return _DANGLING_TARGET_RE.sub(_replace, line)


def requote_shapes(line: str, lazy: bool) -> str:
    """Quote and sanitize the label of every ``id<shape>label<shape>`` node.

    Args:
        line: A trimmed diagram line.
        lazy: Use non-greedy label matching, so one match cannot span
            several nodes on an edge line.

    Returns:
        The line with node labels rewritten.
    """
    pattern = _SHAPE_PATTERN_LAZY if lazy else _SHAPE_PATTERN_GREEDY

    def _replace(match: re.Match[str]) -> str:
        if match.group("quoted") is not None:
            return match.group(0)
        for index, (_, _, _, opening, closing) in enumerate(NODE_SHAPES):
            content = match.group(f"s{index}")
            if content is None:
                continue
            label = sanitize_label(_unquote(content))
            return f'{match.group("id")}{opening}"{label}"{closing}'
        return match.group(0)

    return pattern.sub(_replace, line)


def wrap_bare_node(line: str) -> str:
    """``A Some label`` becomes ``A["Some label"]``; other lines pass."""
    match = _BARE_NODE_RE.match(line)
    if match is None:
        return line
    node_id, label = match.groups()
    if node_id in RESERVED_BARE_IDS:
        return line
    return f'{node_id}["{sanitize_label(label.strip())}"]'


TERMINAL_RULES: tuple[Callable[[str], str | None], ...] = (
    passthrough_directive,
    quote_subgraph_title,
    normalize_declaration,
)

EDGE_RULES: tuple[Callable[[str], str], ...] = (
    quote_pipe_labels,
    quote_inline_labels,
    wrap_dangling_targets,
)


def sanitize_line(line: str) -> str:
    """Apply the rewrite rules to a single line; may return ``""``."""
    trimmed = line.strip()
    if not trimmed:
        return ""

    for rule in TERMINAL_RULES:
        result = rule(trimmed)
        if result is not None:
            return result

    is_edge = has_edge_operator(trimmed)
    processed = trimmed
    if is_edge:
        for edge_rule in EDGE_RULES:
            processed = edge_rule(processed)

    processed = requote_shapes(processed, lazy=is_edge)

    if processed == trimmed and not is_edge:
        return wrap_bare_node(trimmed)
    return processed


def sanitize_mermaid_code(code: str) -> str:
    """Coerce loose LLM-written flowchart code into valid Mermaid.

    Args:
        code: Diagram source as found inside a ```` ```mermaid ```` block.

    Returns:
        Cleaned diagram source, one statement per line, with blank lines
        removed.
    """
    code = strip_comments(code.replace("\r\n", "\n"))
    lines = (sanitize_line(line) for line in code.split("\n"))
    return "\n".join(line for line in lines if line)
