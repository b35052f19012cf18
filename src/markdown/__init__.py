"""Markdown fence repair and fenced block extraction for chat answers."""

from repochat.markdown.blocks import CodeBlock, iter_code_blocks, replace_code_blocks
from repochat.markdown.fences import (
    MAX_REPAIR_PASSES,
    FenceBlock,
    FenceMarker,
    match_fence_blocks,
    repair_markdown,
    scan_fence_markers,
)

__all__ = [
    "MAX_REPAIR_PASSES",
    "CodeBlock",
    "FenceBlock",
    "FenceMarker",
    "iter_code_blocks",
    "match_fence_blocks",
    "repair_markdown",
    "replace_code_blocks",
    "scan_fence_markers",
]
