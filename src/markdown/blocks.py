"""Fenced code block extraction.

Walks markdown with the same fence matcher the repair step uses, so a block
that contains shorter fences is returned whole instead of being cut at the
first inner ```` ``` ````.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from pydantic import BaseModel

from repochat.markdown.fences import match_fence_blocks, scan_fence_markers


class CodeBlock(BaseModel):
    """A top-level fenced block found in a markdown document."""

    language: str = ""
    info_string: str = ""
    body: str = ""
    start_line: int
    end_line: int
    fence_length: int = 3
    indent: str = ""


def _collect_blocks(lines: list[str]) -> list[CodeBlock]:
    markers = scan_fence_markers(lines)
    blocks, _ = match_fence_blocks(markers)

    found: list[CodeBlock] = []
    for block in blocks:
        opener = markers[block.opener]
        words = opener.info_string.split()
        found.append(
            CodeBlock(
                language=words[0] if words else "",
                info_string=opener.info_string,
                body="\n".join(lines[block.start_line + 1 : block.end_line]),
                start_line=block.start_line,
                end_line=block.end_line,
                fence_length=block.fence_length,
                indent=opener.indent,
            )
        )
    return found


def iter_code_blocks(content: str) -> Iterator[CodeBlock]:
    """Yield each closed top-level fenced block in document order.

    A block whose opener never closes is not yielded; run
    ``repair_markdown`` first when the input may be truncated.
    """
    yield from _collect_blocks(content.split("\n"))


def replace_code_blocks(
    content: str,
    replacer: Callable[[CodeBlock], str | None],
) -> str:
    """Rebuild ``content`` with some fenced blocks replaced.

    Args:
        content: Markdown text.
        replacer: Called once per block. Returning None keeps the block as
            is; returning a string replaces the block's lines (fences
            included) with it, and an empty string removes the block.

    Returns:
        The rebuilt markdown.
    """
    lines = content.split("\n")
    output: list[str] = []
    cursor = 0

    for block in _collect_blocks(lines):
        replacement = replacer(block)
        if replacement is None:
            continue
        output.extend(lines[cursor : block.start_line])
        if replacement:
            output.extend(replacement.split("\n"))
        cursor = block.end_line + 1

    output.extend(lines[cursor:])
    return "\n".join(output)
