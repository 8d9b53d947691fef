"""Value types for the parsed markdown tree.

The tree is a flat sequence of block nodes; blocks that carry text hold a
tuple of inline nodes. Nodes are immutable and produced fresh per parse.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union


class InlineKind(str, Enum):
    TEXT = "text"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"
    LINK = "link"


@dataclass(frozen=True)
class InlineNode:
    kind: InlineKind
    content: str
    href: Optional[str] = None


Inlines = Tuple[InlineNode, ...]


@dataclass(frozen=True)
class Heading:
    kind: ClassVar[str] = "heading"
    level: int
    children: Inlines


@dataclass(frozen=True)
class Paragraph:
    kind: ClassVar[str] = "paragraph"
    children: Inlines


@dataclass(frozen=True)
class ListBlock:
    kind: ClassVar[str] = "list"
    ordered: bool
    items: Tuple[Inlines, ...]


@dataclass(frozen=True)
class CodeBlock:
    kind: ClassVar[str] = "codeBlock"
    language: str
    text: str


@dataclass(frozen=True)
class Table:
    kind: ClassVar[str] = "table"
    headers: Tuple[Inlines, ...]
    rows: Tuple[Tuple[Inlines, ...], ...]


@dataclass(frozen=True)
class HorizontalRule:
    kind: ClassVar[str] = "horizontalRule"


@dataclass(frozen=True)
class EmptyLine:
    kind: ClassVar[str] = "emptyLine"


BlockNode = Union[Heading, Paragraph, ListBlock, CodeBlock, Table, HorizontalRule, EmptyLine]
