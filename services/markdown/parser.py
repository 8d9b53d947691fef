"""Markdown to block/inline tree parser.

Only the subset the interview assistant writes is recognized: headings 1-4,
bold, italic, inline code, links, ordered and unordered lists, fenced code
blocks, pipe tables, horizontal rules and blank-line separated paragraphs.
Anything else degrades to paragraphs and plain text; the parser never raises.

Both the HTML renderer and the Word exporter consume the output of
`parse_markdown`, so the two views always agree on block structure.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from models.markdown_ast import (
    BlockNode,
    CodeBlock,
    EmptyLine,
    Heading,
    HorizontalRule,
    InlineKind,
    InlineNode,
    Inlines,
    ListBlock,
    Paragraph,
    Table,
)

AUDIO_TAG_RE = re.compile(r"\[AUDIO\][\s\S]*?\[/AUDIO\]\s*", re.IGNORECASE)
_HEADING_RE = re.compile(r"^(#{1,4})\s+(.*)$")
_UNORDERED_RE = re.compile(r"^[-*]\s")
_ORDERED_RE = re.compile(r"^\d+\.\s(.*)$")
_RULE_RE = re.compile(r"^-{3,}$")
_SEPARATOR_RE = re.compile(r"^\|[\s\-:|]+\|$")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")


def strip_audio_tags(text: str) -> str:
    """Remove every `[AUDIO]...[/AUDIO]` span (case-insensitive, multi-line)."""
    return AUDIO_TAG_RE.sub("", text)


def is_table_row(line: str) -> bool:
    trimmed = line.strip()
    return len(trimmed) >= 2 and trimmed.startswith("|") and trimmed.endswith("|")


def is_table_separator(line: str) -> bool:
    return bool(_SEPARATOR_RE.match(line.strip()))


def parse_table_cells(row: str) -> List[str]:
    return [cell.strip() for cell in row.strip().split("|")[1:-1]]


def detect_heading(line: str) -> Optional[Tuple[int, str]]:
    match = _HEADING_RE.match(line)
    if not match:
        return None
    return len(match.group(1)), match.group(2)


def detect_list_item(line: str) -> Optional[Tuple[bool, str]]:
    """Return `(ordered, content)` for a list item line, else None."""
    if _UNORDERED_RE.match(line):
        return False, line[2:].strip()
    match = _ORDERED_RE.match(line)
    if match:
        return True, match.group(1).strip()
    return None


# ---------------------------------------------------------------------------
# Inline scanning
#
# A left-to-right scanner: the construct that starts earliest wins. At a `*`
# run the double delimiter is tried before the single one. Emphasis never
# nests: the closing delimiter is the nearest one of the same width, and any
# markers inside the span are kept as literal text. An opener without a closer
# is literal text.
# ---------------------------------------------------------------------------


def _find_single_star(text: str, start: int) -> int:
    """Index of the next lone `*` (not part of `**`) at or after `start`."""
    i = start
    while i < len(text):
        if text[i] == "*":
            if i + 1 < len(text) and text[i + 1] == "*":
                i += 2
                continue
            return i
        i += 1
    return -1


def _match_at(text: str, i: int) -> Optional[Tuple[InlineNode, int]]:
    """Try every inline construct at position `i`; return node and end index."""
    ch = text[i]
    if ch == "[":
        match = _LINK_RE.match(text, i)
        if match:
            return InlineNode(InlineKind.LINK, match.group(1), href=match.group(2)), match.end()
        return None
    if ch == "`":
        close = text.find("`", i + 1)
        if close > i + 1:
            return InlineNode(InlineKind.CODE, text[i + 1:close]), close + 1
        return None
    if ch == "*":
        if text.startswith("**", i):
            close = text.find("**", i + 2)
            if close > i + 2:
                return InlineNode(InlineKind.BOLD, text[i + 2:close]), close + 2
            if close == i + 2:
                return None
        close = _find_single_star(text, i + 1)
        if close > i + 1:
            return InlineNode(InlineKind.ITALIC, text[i + 1:close]), close + 1
    return None


def parse_inline(text: str) -> Inlines:
    """Split a line of text into inline nodes."""
    if not text:
        return ()
    nodes: List[InlineNode] = []
    buffer: List[str] = []
    i = 0
    while i < len(text):
        found = _match_at(text, i) if text[i] in "[`*" else None
        if found is None:
            buffer.append(text[i])
            i += 1
            continue
        if buffer:
            nodes.append(InlineNode(InlineKind.TEXT, "".join(buffer)))
            buffer = []
        node, i = found
        nodes.append(node)
    if buffer:
        nodes.append(InlineNode(InlineKind.TEXT, "".join(buffer)))
    return tuple(nodes)


# ---------------------------------------------------------------------------
# Block scanning
# ---------------------------------------------------------------------------


class _BlockScanner:
    """Single forward pass over lines with a little lookback state."""

    def __init__(self, collapse_empty_lines: bool) -> None:
        self.collapse_empty_lines = collapse_empty_lines
        self.nodes: List[BlockNode] = []
        self.in_code = False
        self.code_language = ""
        self.code_lines: List[str] = []
        self.table_rows: List[str] = []
        self.list_items: List[str] = []
        self.list_ordered = False
        self.last_was_empty = False

    def flush_list(self) -> None:
        if not self.list_items:
            return
        items = tuple(parse_inline(item) for item in self.list_items)
        self.nodes.append(ListBlock(ordered=self.list_ordered, items=items))
        self.list_items = []

    def flush_table(self) -> None:
        if not self.table_rows:
            return
        header = parse_table_cells(self.table_rows[0])
        data_rows = [row for row in self.table_rows[1:] if not is_table_separator(row)]
        headers = tuple(parse_inline(_strip_bold_wrapper(cell)) for cell in header)
        rows = tuple(tuple(parse_inline(cell) for cell in parse_table_cells(row)) for row in data_rows)
        self.nodes.append(Table(headers=headers, rows=rows))
        self.table_rows = []

    def flush_code(self) -> None:
        self.nodes.append(CodeBlock(language=self.code_language, text="\n".join(self.code_lines)))
        self.code_lines = []
        self.code_language = ""
        self.in_code = False

    def feed(self, line: str) -> None:
        if line.startswith("```"):
            self.last_was_empty = False
            if self.in_code:
                self.flush_code()
            else:
                self.flush_list()
                self.flush_table()
                self.in_code = True
                self.code_language = line[3:].strip()
            return

        if self.in_code:
            self.code_lines.append(line)
            return

        if is_table_row(line):
            self.flush_list()
            self.table_rows.append(line)
            self.last_was_empty = False
            return
        self.flush_table()

        if not line.strip():
            self.flush_list()
            if not self.collapse_empty_lines or not self.last_was_empty:
                self.nodes.append(EmptyLine())
            self.last_was_empty = True
            return
        self.last_was_empty = False

        heading = detect_heading(line)
        if heading:
            self.flush_list()
            level, content = heading
            self.nodes.append(Heading(level=level, children=parse_inline(content)))
            return

        item = detect_list_item(line)
        if item:
            ordered, content = item
            if not self.list_items:
                self.list_ordered = ordered
            self.list_items.append(content)
            return

        self.flush_list()
        if _RULE_RE.match(line):
            self.nodes.append(HorizontalRule())
            return
        self.nodes.append(Paragraph(children=parse_inline(line)))

    def finish(self) -> List[BlockNode]:
        self.flush_list()
        self.flush_table()
        if self.in_code:
            self.flush_code()
        return self.nodes


def _strip_bold_wrapper(cell: str) -> str:
    if cell.startswith("**") and cell.endswith("**") and len(cell) > 4:
        return cell[2:-2]
    return cell


def parse_markdown(
    markdown: str,
    *,
    strip_audio: bool = False,
    collapse_empty_lines: bool = True,
) -> List[BlockNode]:
    """Parse markdown text into a flat list of block nodes.

    Args:
        markdown: Raw markdown; non-string input yields an empty list.
        strip_audio: Remove spoken-summary spans before splitting into lines.
        collapse_empty_lines: Emit a single empty-line node per run of blank lines.

    Returns:
        The block nodes in document order.
    """
    if not isinstance(markdown, str) or not markdown:
        return []
    text = strip_audio_tags(markdown) if strip_audio else markdown
    scanner = _BlockScanner(collapse_empty_lines)
    for raw_line in text.split("\n"):
        scanner.feed(raw_line.rstrip("\r"))
    return scanner.finish()
