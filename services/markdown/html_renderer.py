"""Render the parsed markdown tree to sanitized HTML for on-screen display.

Inline text originates from model output, so every inline literal is escaped
and the resulting fragment is passed through an allow-list sanitizer before it
is placed inside the block markup. Code blocks are escaped and never carry
markup of their own.
"""

from __future__ import annotations

import html
from typing import Iterable, List, Sequence, Tuple

import nh3

from models.markdown_ast import (
    BlockNode,
    CodeBlock,
    EmptyLine,
    Heading,
    HorizontalRule,
    InlineKind,
    InlineNode,
    ListBlock,
    Paragraph,
    Table,
)
from services.markdown.parser import parse_markdown

ALLOWED_TAGS = {"a", "strong", "em", "code"}
ALLOWED_ATTRIBUTES = {
    "a": {"href", "target", "rel", "class"},
    "strong": {"class"},
    "em": {"class"},
    "code": {"class"},
}

HEADING_CLASSES = {
    1: "md-h1 text-2xl font-bold",
    2: "md-h2 text-xl font-bold",
    3: "md-h3 text-lg font-semibold",
    4: "md-h4 text-base font-semibold",
}


def escape(text: str) -> str:
    """Escape the five HTML metacharacters."""
    return html.escape(text, quote=True)


def sanitize_inline(fragment: str) -> str:
    """Strip every tag and attribute outside the inline allow-list."""
    return nh3.clean(
        fragment,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        link_rel=None,
    )


def _inline_markup(node: InlineNode) -> str:
    content = escape(node.content)
    if node.kind is InlineKind.BOLD:
        return f'<strong class="md-strong">{content}</strong>'
    if node.kind is InlineKind.ITALIC:
        return f'<em class="md-em">{content}</em>'
    if node.kind is InlineKind.CODE:
        return f'<code class="md-code">{content}</code>'
    if node.kind is InlineKind.LINK:
        href = escape(node.href or "")
        return (
            f'<a href="{href}" target="_blank" rel="noopener noreferrer" '
            f'class="md-link">{content}</a>'
        )
    return content


def render_inline(nodes: Iterable[InlineNode]) -> str:
    """Return sanitized markup for a sequence of inline nodes."""
    return sanitize_inline("".join(_inline_markup(node) for node in nodes))


def _render_table(table: Table) -> str:
    head = "".join(f"<th>{render_inline(cell)}</th>" for cell in table.headers)
    body_rows = []
    for row in table.rows:
        cells = "".join(f"<td>{render_inline(cell)}</td>" for cell in row)
        body_rows.append(f"<tr>{cells}</tr>")
    return (
        '<table class="md-table border-collapse border">'
        f"<thead><tr>{head}</tr></thead>"
        f"<tbody>{''.join(body_rows)}</tbody>"
        "</table>"
    )


def render_block(node: BlockNode) -> str:
    """Map one block node to its markup."""
    if isinstance(node, Heading):
        level = min(max(node.level, 1), 4)
        return f'<h{level} class="{HEADING_CLASSES[level]}">{render_inline(node.children)}</h{level}>'
    if isinstance(node, Paragraph):
        return f'<p class="md-p">{render_inline(node.children)}</p>'
    if isinstance(node, ListBlock):
        tag = "ol" if node.ordered else "ul"
        items = "".join(f"<li>{render_inline(item)}</li>" for item in node.items)
        return f'<{tag} class="md-list">{items}</{tag}>'
    if isinstance(node, CodeBlock):
        language = escape(node.language)
        lang_attr = f' data-language="{language}"' if language else ""
        return f'<pre class="md-pre font-mono"{lang_attr}><code>{escape(node.text)}</code></pre>'
    if isinstance(node, Table):
        return _render_table(node)
    if isinstance(node, HorizontalRule):
        return '<hr class="md-hr" />'
    if isinstance(node, EmptyLine):
        return '<div class="md-spacer"></div>'
    raise TypeError(f"Unsupported block node: {node!r}")


def render_blocks(nodes: Sequence[BlockNode]) -> List[Tuple[str, str]]:
    """Return `(kind, markup)` pairs, one per block node."""
    return [(node.kind, render_block(node)) for node in nodes]


def render_html(nodes: Sequence[BlockNode]) -> str:
    return "\n".join(markup for _, markup in render_blocks(nodes))


def render_markdown(markdown: str, *, strip_audio: bool = False) -> str:
    """Parse and render markdown in one step."""
    nodes = parse_markdown(markdown, strip_audio=strip_audio)
    return f'<div class="md-document">{render_html(nodes)}</div>'
