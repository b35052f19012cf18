"""Fence repair for LLM-generated markdown.

Chat answers routinely nest fenced blocks inside fenced blocks (a markdown
example inside a ```` ````markdown ```` block, a JSX snippet followed by
prose that re-uses ```` ``` ````). Renderers close a block at the first
delimiter that is long enough, so the answer fragments. This module rewrites
the minimal set of fence lines so every block closes where it was meant to.

The repair is a small fixpoint loop: each pass scans the fence lines into an
arena of ``FenceMarker`` records, pairs them into ``FenceBlock`` spans and
applies the first rewrite that is needed. Rewrites only ever lengthen a
backtick run (or append a closer), so the loop converges; it is capped at
``MAX_REPAIR_PASSES`` all the same.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel

logger = logging.getLogger(__name__)

MAX_REPAIR_PASSES = 3
FENCE_TOKEN = "```"

FENCE_LINE_RE = re.compile(r"^(?P<indent>\s*)(?P<ticks>`{3,})(?P<rest>.*)$")


class FenceMarker(BaseModel):
    """A single line that looks like a fence delimiter."""

    line_index: int
    tick_length: int
    info_string: str = ""
    indent: str = ""
    rest: str = ""

    @property
    def is_potential_closer(self) -> bool:
        # Closing fences never carry an info string.
        return not self.info_string


class FenceBlock(BaseModel):
    """A matched opener/closer pair.

    ``opener`` and ``closer`` index into the marker list the block was
    matched from.
    """

    start_line: int
    end_line: int
    fence_length: int
    opener: int
    closer: int


def parse_fence_line(line: str, line_index: int = 0) -> FenceMarker | None:
    """Return a marker for ``line`` if it is a fence delimiter, else None."""
    match = FENCE_LINE_RE.match(line)
    if match is None:
        return None
    return FenceMarker(
        line_index=line_index,
        tick_length=len(match.group("ticks")),
        info_string=match.group("rest").strip(),
        indent=match.group("indent"),
        rest=match.group("rest"),
    )


def scan_fence_markers(lines: list[str]) -> list[FenceMarker]:
    """Collect every fence-looking line, in document order."""
    markers: list[FenceMarker] = []
    for index, line in enumerate(lines):
        marker = parse_fence_line(line, index)
        if marker is not None:
            markers.append(marker)
    return markers


def match_fence_blocks(
    markers: list[FenceMarker],
) -> tuple[list[FenceBlock], int | None]:
    """Pair markers into blocks.

    An open block is closed by the next marker with no info string and a
    backtick run at least as long as the opener's. Anything else seen while
    a block is open is block content.

    Args:
        markers: Markers as returned by ``scan_fence_markers``.

    Returns:
        The matched blocks and the index of the opener left dangling at the
        end of the document (None when every block closed).
    """
    blocks: list[FenceBlock] = []
    open_index: int | None = None

    for index, marker in enumerate(markers):
        if open_index is None:
            open_index = index
            continue
        opener = markers[open_index]
        if marker.is_potential_closer and marker.tick_length >= opener.tick_length:
            blocks.append(
                FenceBlock(
                    start_line=opener.line_index,
                    end_line=marker.line_index,
                    fence_length=opener.tick_length,
                    opener=open_index,
                    closer=index,
                )
            )
            open_index = None

    return blocks, open_index


class _RepairPass:
    """One scan of the document plus at most one rewrite."""

    def __init__(self, lines: list[str]) -> None:
        self.lines = lines
        self.markers = scan_fence_markers(lines)
        self.blocks, self.dangling = match_fence_blocks(self.markers)

    def apply(self) -> bool:
        """Run the repair steps in order; stop at the first that rewrites."""
        return (
            self._lengthen_short_closer()
            or self._merge_fragmented_block()
            or self._close_dangling_block()
            or self._widen_nested_block()
        )

    def _set_fence(self, marker: FenceMarker, length: int, indent: str) -> None:
        self.lines[marker.line_index] = f"{indent}{'`' * length}{marker.rest}"

    def _closer_indent(self, closer: FenceMarker, opener: FenceMarker) -> str:
        return closer.indent or opener.indent

    def _lengthen_short_closer(self) -> bool:
        if self.dangling is None:
            return False
        opener = self.markers[self.dangling]
        candidate = next(
            (m for m in self.markers[self.dangling + 1 :] if m.is_potential_closer),
            None,
        )
        if candidate is None or candidate.tick_length >= opener.tick_length:
            return False

        self._set_fence(
            candidate, opener.tick_length, self._closer_indent(candidate, opener)
        )
        logger.debug(
            "Lengthened fence on line %d to close block opened on line %d",
            candidate.line_index,
            opener.line_index,
        )
        return True

    def _merge_fragmented_block(self) -> bool:
        block_openers = {block.opener for block in self.blocks}

        for block in self.blocks:
            next_index = block.closer + 1
            if next_index >= len(self.markers):
                continue
            following = self.markers[next_index]
            if not following.is_potential_closer:
                continue

            between = "".join(
                self.lines[block.end_line + 1 : following.line_index]
            ).strip()
            if between and (
                next_index in block_openers
                or following.tick_length >= block.fence_length
            ):
                # Text separates the two; only a longer outer fence claims it.
                continue

            opener = self.markers[block.opener]
            length = max(block.fence_length + 1, following.tick_length)
            self._set_fence(opener, length, opener.indent)
            self._set_fence(following, length, self._closer_indent(following, opener))
            logger.debug(
                "Merged block on lines %d-%d through line %d",
                block.start_line,
                block.end_line,
                following.line_index,
            )
            return True

        return False

    def _close_dangling_block(self) -> bool:
        if self.dangling is None:
            return False
        opener = self.markers[self.dangling]
        closer = f"{opener.indent}{'`' * opener.tick_length}"

        # Keep a trailing newline at the very end of the document.
        if len(self.lines) > 1 and self.lines[-1] == "":
            self.lines.insert(len(self.lines) - 1, closer)
        else:
            self.lines.append(closer)
        logger.debug("Appended closer for block opened on line %d", opener.line_index)
        return True

    def _widen_nested_block(self) -> bool:
        for block in self.blocks:
            inner = scan_fence_markers(
                self.lines[block.start_line + 1 : block.end_line]
            )
            inner_lengths = [m.tick_length for m in inner if m.is_potential_closer]
            if not inner_lengths or max(inner_lengths) < block.fence_length:
                continue

            opener = self.markers[block.opener]
            closer = self.markers[block.closer]
            length = max(max(inner_lengths) + 1, closer.tick_length)
            self._set_fence(opener, length, opener.indent)
            self._set_fence(closer, length, self._closer_indent(closer, opener))
            logger.debug(
                "Widened block on lines %d-%d to %d backticks",
                block.start_line,
                block.end_line,
                length,
            )
            return True

        return False


def repair_markdown(content: str, max_passes: int = MAX_REPAIR_PASSES) -> str:
    """Rewrite fence lines so nested and prematurely closed blocks render.

    Only fence lines change (their backtick run grows, and a rewritten closer
    may pick up the opener's indentation); a missing closer is appended at
    the end. Every other line is returned byte for byte. Never raises: if
    the pass limit is reached the best-effort text is returned.

    Args:
        content: Raw markdown, typically a chat message or a streamed chunk.
        max_passes: Upper bound on scan-and-rewrite passes.

    Returns:
        The repaired markdown.
    """
    if FENCE_TOKEN not in content:
        return content

    lines = content.split("\n")
    for pass_number in range(1, max_passes + 1):
        if not _RepairPass(lines).apply():
            break
        logger.debug("Fence repair pass %d rewrote the document", pass_number)

    return "\n".join(lines)
