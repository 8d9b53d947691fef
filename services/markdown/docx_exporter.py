"""Word (.docx) export of a generated specification.

The exporter walks the same block tree as the HTML renderer: one parse of the
markdown drives both views. Each block becomes one or more paragraphs (or a
table) with fixed styling; inline nodes become styled runs and links degrade
to plain text.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import date
from typing import Iterable, List, Optional, Sequence

from docx import Document
from docx.document import Document as DocumentObject
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor
from docx.text.paragraph import Paragraph as DocxParagraph

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
from utils.french_dates import format_french_date

DOCUMENT_TITLE = "Spécifications du Projet"
ACCENT_COLOR = "2E74B5"
CODE_FONT = "Courier New"
CODE_SHADING = "F5F5F5"
INLINE_CODE_SHADING = "F0F0F0"
TABLE_HEADER_SHADING = "D9E2F3"
LIST_INDENT = Inches(0.5)

# Control characters lxml refuses in XML text nodes.
_XML_INVALID_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

# level -> (font size, space before, space after)
HEADING_STYLES = {
    1: (Pt(18), Pt(20), Pt(10)),
    2: (Pt(16), Pt(15), Pt(7.5)),
    3: (Pt(14), Pt(10), Pt(5)),
    4: (Pt(12), Pt(7.5), Pt(5)),
}


def xml_safe(text: str) -> str:
    return _XML_INVALID_CHARS_RE.sub("", text or "")


def format_generation_date(day: date) -> str:
    return f"Généré le {format_french_date(day)}"


def _shade(element, fill: str) -> None:
    """Attach a solid `w:shd` fill to a paragraph, run or cell property element."""
    shd = OxmlElement("w:shd")
    shd.set(qn("w:val"), "clear")
    shd.set(qn("w:color"), "auto")
    shd.set(qn("w:fill"), fill)
    element.append(shd)


def _bottom_border(paragraph: DocxParagraph, color: str = ACCENT_COLOR, size: int = 6) -> None:
    p_pr = paragraph._p.get_or_add_pPr()
    borders = OxmlElement("w:pBdr")
    bottom = OxmlElement("w:bottom")
    bottom.set(qn("w:val"), "single")
    bottom.set(qn("w:sz"), str(size))
    bottom.set(qn("w:space"), "1")
    bottom.set(qn("w:color"), color)
    borders.append(bottom)
    p_pr.append(borders)


class DocxExporter:
    """Build a Word document from markdown."""

    def __init__(self, title: str = DOCUMENT_TITLE) -> None:
        self.title = title

    def export(self, markdown: str, *, generated_on: Optional[date] = None) -> bytes:
        """Return the bytes of a .docx file for `markdown`."""
        document = Document()
        self.add_title_block(document, generated_on or date.today())
        kinds = self.append_nodes(document, parse_markdown(markdown, strip_audio=True))
        logging.info("Exported specification to docx (%d blocks)", len(kinds))
        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def add_title_block(self, document: DocumentObject, generated_on: date) -> None:
        title = document.add_paragraph()
        title.alignment = WD_ALIGN_PARAGRAPH.CENTER
        title.paragraph_format.space_after = Pt(20)
        run = title.add_run(self.title)
        run.bold = True
        run.font.size = Pt(24)
        run.font.color.rgb = RGBColor.from_string(ACCENT_COLOR)

        stamp = document.add_paragraph()
        stamp.alignment = WD_ALIGN_PARAGRAPH.CENTER
        stamp.paragraph_format.space_after = Pt(30)
        run = stamp.add_run(format_generation_date(generated_on))
        run.font.size = Pt(11)
        run.font.color.rgb = RGBColor.from_string("666666")

        separator = document.add_paragraph()
        _bottom_border(separator)
        separator.paragraph_format.space_after = Pt(20)

    def append_nodes(self, document: DocumentObject, nodes: Sequence[BlockNode]) -> List[str]:
        """Append every block node to `document`; return the node kinds in order."""
        kinds: List[str] = []
        for node in nodes:
            self._append_node(document, node)
            kinds.append(node.kind)
        return kinds

    def _append_node(self, document: DocumentObject, node: BlockNode) -> None:
        if isinstance(node, Heading):
            size, before, after = HEADING_STYLES.get(node.level, HEADING_STYLES[4])
            paragraph = document.add_paragraph()
            paragraph.paragraph_format.space_before = before
            paragraph.paragraph_format.space_after = after
            self._add_runs(paragraph, node.children, bold=True, size=size)
        elif isinstance(node, Paragraph):
            paragraph = document.add_paragraph()
            paragraph.paragraph_format.space_after = Pt(7.5)
            self._add_runs(paragraph, node.children)
        elif isinstance(node, ListBlock):
            for index, item in enumerate(node.items, start=1):
                paragraph = document.add_paragraph()
                paragraph.paragraph_format.left_indent = LIST_INDENT
                paragraph.paragraph_format.space_after = Pt(5)
                paragraph.add_run(f"{index}. " if node.ordered else "• ")
                self._add_runs(paragraph, item)
        elif isinstance(node, CodeBlock):
            paragraph = document.add_paragraph()
            _shade(paragraph._p.get_or_add_pPr(), CODE_SHADING)
            paragraph.paragraph_format.space_after = Pt(10)
            run = paragraph.add_run(xml_safe(node.text))
            run.font.name = CODE_FONT
            run.font.size = Pt(10)
        elif isinstance(node, Table):
            self._add_table(document, node)
        elif isinstance(node, HorizontalRule):
            paragraph = document.add_paragraph()
            _bottom_border(paragraph, color="CCCCCC")
            paragraph.paragraph_format.space_after = Pt(10)
        elif isinstance(node, EmptyLine):
            document.add_paragraph().paragraph_format.space_after = Pt(5)
        else:
            raise TypeError(f"Unsupported block node: {node!r}")

    def _add_table(self, document: DocumentObject, table_node: Table) -> None:
        column_count = max([len(table_node.headers)] + [len(row) for row in table_node.rows])
        if column_count == 0:
            return
        table = document.add_table(rows=1 + len(table_node.rows), cols=column_count)
        table.style = "Table Grid"
        for col, cell_nodes in enumerate(table_node.headers):
            cell = table.rows[0].cells[col]
            _shade(cell._tc.get_or_add_tcPr(), TABLE_HEADER_SHADING)
            self._add_runs(cell.paragraphs[0], cell_nodes, bold=True)
        for row_index, row in enumerate(table_node.rows, start=1):
            for col, cell_nodes in enumerate(row[:column_count]):
                self._add_runs(table.rows[row_index].cells[col].paragraphs[0], cell_nodes)

    @staticmethod
    def _add_runs(
        paragraph: DocxParagraph,
        nodes: Iterable[InlineNode],
        *,
        bold: bool = False,
        size: Optional[Pt] = None,
    ) -> None:
        for node in nodes:
            run = paragraph.add_run(xml_safe(node.content))
            if bold or node.kind is InlineKind.BOLD:
                run.bold = True
            if node.kind is InlineKind.ITALIC:
                run.italic = True
            if node.kind is InlineKind.CODE:
                run.font.name = CODE_FONT
                _shade(run._r.get_or_add_rPr(), INLINE_CODE_SHADING)
            if size is not None:
                run.font.size = size
