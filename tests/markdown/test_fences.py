"""Tests for src/markdown/fences.py — fence scanning, matching and repair."""

import pytest
from repochat.markdown.fences import (
    FenceMarker,
    match_fence_blocks,
    parse_fence_line,
    repair_markdown,
    scan_fence_markers,
)

JSX_EARLY_CLOSE = "\n".join(
    [
        "````jsx",
        "import { createRoot } from 'react-dom/client';",
        "",
        "function HelloMessage({ name }) {",
        "  return <div>Hello {name}</div>;",
        "}",
        "```",
        "",
        "-   This snippet uses **JSX**, an HTML-like syntax.",
        "```",
    ]
)

STREAMED_AFTER_PROSE = "```py\nx=1\n```\nSome prose\n```\npartial"

SAMPLES = [
    "plain text with `inline` code",
    "```python\nprint(1)\n```",
    "```python\nprint(1)",
    "```python\nprint(1)\n",
    "````jsx\nimport x;\n```\n\nMore content",
    "```\na\n```\n```\nb\n```",
    "````markdown\n```js\nx\n```\n````",
    "  ````md\n  text\n```",
    JSX_EARLY_CLOSE,
    STREAMED_AFTER_PROSE,
]


def _tick_lengths(text: str) -> dict[int, int]:
    return {m.line_index: m.tick_length for m in scan_fence_markers(text.split("\n"))}


class TestParseFenceLine:
    def test_plain_fence(self):
        marker = parse_fence_line("```", 4)
        assert marker == FenceMarker(line_index=4, tick_length=3)
        assert marker.is_potential_closer

    def test_info_string_is_trimmed(self):
        marker = parse_fence_line("````jsx  ")
        assert marker.tick_length == 4
        assert marker.info_string == "jsx"
        assert not marker.is_potential_closer

    def test_indent_is_captured(self):
        marker = parse_fence_line("    ```python")
        assert marker.indent == "    "
        assert marker.rest == "python"

    def test_short_runs_are_not_fences(self):
        assert parse_fence_line("``not a fence``") is None
        assert parse_fence_line("`inline` code") is None
        assert parse_fence_line("text ```") is None


class TestMatchFenceBlocks:
    def test_pairs_in_order(self):
        lines = ["```py", "a", "```", "text", "```js", "b", "```"]
        blocks, dangling = match_fence_blocks(scan_fence_markers(lines))
        assert [(b.start_line, b.end_line) for b in blocks] == [(0, 2), (4, 6)]
        assert dangling is None

    def test_shorter_closer_is_content(self):
        lines = ["````md", "```", "````"]
        blocks, dangling = match_fence_blocks(scan_fence_markers(lines))
        assert [(b.start_line, b.end_line) for b in blocks] == [(0, 2)]
        assert blocks[0].fence_length == 4
        assert dangling is None

    def test_info_string_never_closes(self):
        lines = ["```py", "```js"]
        markers = scan_fence_markers(lines)
        blocks, dangling = match_fence_blocks(markers)
        assert blocks == []
        assert dangling == 0

    def test_arena_indices_point_at_markers(self):
        lines = ["text", "```py", "x", "```"]
        markers = scan_fence_markers(lines)
        blocks, _ = match_fence_blocks(markers)
        assert markers[blocks[0].opener].line_index == 1
        assert markers[blocks[0].closer].line_index == 3


class TestRepairMarkdown:
    def test_text_without_fences_is_untouched(self):
        text = "Just prose.\n\n- a list\n- with `code`\n"
        assert repair_markdown(text) == text

    def test_well_formed_blocks_unchanged(self):
        text = "Intro\n```py\na = 1\n```\nprose\n```js\nb()\n```\nOutro"
        assert repair_markdown(text) == text

    def test_properly_nested_block_unchanged(self):
        text = (
            "````jsx\nfunction App() {\n  return <div>Hello</div>;\n}\n```\n\n"
            "More text here\n````"
        )
        assert repair_markdown(text) == text

    def test_info_fence_inside_longer_block_unchanged(self):
        text = "````markdown\n```python\nx = 1\n```\n````"
        assert repair_markdown(text) == text

    def test_early_close_and_trailing_fence_become_one_block(self):
        result = repair_markdown(JSX_EARLY_CLOSE).split("\n")
        assert result[0] == "`````jsx"
        assert result[6] == "````"
        assert result[9] == "`````"

        blocks, dangling = match_fence_blocks(scan_fence_markers(result))
        assert dangling is None
        assert [(b.start_line, b.end_line) for b in blocks] == [(0, 9)]

    def test_short_closer_is_lengthened(self):
        text = "````jsx\nimport x;\n```\n\nMore content"
        assert repair_markdown(text) == "````jsx\nimport x;\n````\n\nMore content"

    def test_unclosed_block_gets_closer(self):
        assert repair_markdown("```python\nprint(1)") == "```python\nprint(1)\n```"

    def test_appended_closer_keeps_trailing_newline(self):
        assert repair_markdown("```python\nprint(1)\n") == "```python\nprint(1)\n```\n"

    def test_appended_closer_uses_opener_indent(self):
        assert repair_markdown("  ```js\n  foo()") == "  ```js\n  foo()\n  ```"

    def test_lengthened_closer_without_indent_takes_openers(self):
        assert repair_markdown("  ````md\n  text\n```") == "  ````md\n  text\n  ````"

    def test_lengthened_closer_keeps_own_indent(self):
        assert repair_markdown("````md\ntext\n    ```") == "````md\ntext\n    ````"

    def test_adjacent_blocks_are_merged(self):
        text = "```\na\n```\n```\nb\n```"
        assert repair_markdown(text) == "`````\na\n```\n````\nb\n`````"

    def test_streamed_block_after_prose_stays_separate(self):
        assert repair_markdown(STREAMED_AFTER_PROSE) == (
            "```py\nx=1\n```\nSome prose\n```\npartial\n```"
        )

    def test_longer_outer_fence_claims_dangling_fence_across_prose(self):
        text = "````md\nx\n````\nprose\n```"
        assert repair_markdown(text) == "`````md\nx\n````\nprose\n`````"

    def test_pass_cap_limits_rewrites(self):
        result = repair_markdown(JSX_EARLY_CLOSE, max_passes=1).split("\n")
        assert result[0] == "````jsx"
        assert result[6] == "````"
        assert result[9] == "```"

    def test_crlf_line_endings_preserved(self):
        text = "````md\r\nx\r\n```\r\n"
        assert repair_markdown(text) == "````md\r\nx\r\n````\r\n"

    def test_crlf_well_formed_unchanged(self):
        text = "```py\r\nx\r\n```\r\n"
        assert repair_markdown(text) == text


class TestRepairProperties:
    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        once = repair_markdown(text)
        assert repair_markdown(once) == once

    @pytest.mark.parametrize("text", SAMPLES)
    def test_fences_never_shrink(self, text):
        before = _tick_lengths(text)
        after = _tick_lengths(repair_markdown(text))
        for line_index, length in before.items():
            assert after[line_index] >= length

    @pytest.mark.parametrize("text", SAMPLES)
    def test_no_block_left_open(self, text):
        lines = repair_markdown(text).split("\n")
        _, dangling = match_fence_blocks(scan_fence_markers(lines))
        assert dangling is None

    @pytest.mark.parametrize("text", SAMPLES)
    def test_non_fence_lines_preserved(self, text):
        original = text.split("\n")
        repaired = repair_markdown(text).split("\n")
        for index, line in enumerate(original):
            if parse_fence_line(line) is None and line:
                assert repaired[index] == line
