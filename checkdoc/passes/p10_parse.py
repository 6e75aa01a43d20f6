"""
Pass 10 — Document Parsing

Parses normalized Markdown/plain text into addressable units:
headings (ATX and setext), paragraphs, fenced code blocks and
list items. Every unit keeps its 1-based source line range.

Blockquote markers are stripped and their content parsed as
paragraphs. Thematic breaks produce no unit.
"""

import re
from typing import Optional

from checkdoc.core.context import CheckContext
from checkdoc.core.errors import DocumentParseError
from checkdoc.core.logging import get_pass_logger
from checkdoc.ir.enums import UnitKind
from checkdoc.ir.schema import Document, Location, Unit
from checkdoc.passes.p00_normalize import normalize_text

PASS_NAME = "p10_parse"
log = get_pass_logger(PASS_NAME)

FENCE_OPEN = re.compile(r"^ {0,3}(`{3,}|~{3,})\s*([^`\s]*)")
ATX_HEADING = re.compile(r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$")
SETEXT_UNDERLINE = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")
THEMATIC_BREAK = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
LIST_MARKER = re.compile(r"^(\s*)(?:[-*+]|\d{1,9}[.)])(?:[ \t]+(.*))?$")
BLOCKQUOTE = re.compile(r"^ {0,3}>[ \t]?")


class _Block:
    """A unit under construction."""

    def __init__(self, kind: UnitKind, start: int) -> None:
        self.kind = kind
        self.start = start
        self.end = start
        self.raw: list[str] = []
        self.text_parts: list[Optional[str]] = []
        self.level: Optional[int] = None
        self.language: Optional[str] = None

    def add(self, line_no: int, raw: str, text: Optional[str]) -> None:
        self.end = line_no
        self.raw.append(raw)
        self.text_parts.append(text)


def parse_document(
    text: str,
    source: str = "<document>",
    strict_fences: bool = True,
) -> Document:
    """
    Parse text into a Document.

    Args:
        text: Document text (normalized here if it wasn't already)
        source: Path or label recorded on the Document
        strict_fences: Treat an unterminated code fence as an error

    Raises:
        DocumentParseError: On undecodable input, NUL characters or,
            with strict_fences, an unterminated code fence
    """
    text = normalize_text(text)
    lines = text.split("\n") if text else []
    # A trailing newline does not start another line
    if lines and lines[-1] == "":
        lines.pop()

    blocks = _scan(lines, strict_fences)
    units = _build_units(blocks)

    return Document(source=source, units=tuple(units), line_count=len(lines))


def _scan(lines: list[str], strict_fences: bool) -> list[_Block]:
    blocks: list[_Block] = []
    current: Optional[_Block] = None
    fence: Optional[tuple[str, int]] = None  # (fence char, length)

    def close() -> None:
        nonlocal current
        if current is not None:
            blocks.append(current)
            current = None

    for line_no, raw in enumerate(lines, start=1):
        # Inside a fenced code block
        if fence is not None:
            char, length = fence
            stripped = raw.strip()
            if stripped and set(stripped) == {char} and len(stripped) >= length:
                current.add(line_no, raw, None)
                close()
                fence = None
            else:
                current.add(line_no, raw, raw)
            continue

        opened = FENCE_OPEN.match(raw)
        if opened:
            close()
            marker = opened.group(1)
            current = _Block(UnitKind.CODE_BLOCK, line_no)
            current.language = opened.group(2) or None
            current.add(line_no, raw, None)
            fence = (marker[0], len(marker))
            continue

        content = BLOCKQUOTE.sub("", raw)
        while BLOCKQUOTE.match(content):
            content = BLOCKQUOTE.sub("", content)

        if not content.strip():
            close()
            continue

        heading = ATX_HEADING.match(content)
        if heading:
            close()
            block = _Block(UnitKind.HEADING, line_no)
            block.level = len(heading.group(1))
            block.add(line_no, raw, (heading.group(2) or "").strip())
            blocks.append(block)
            continue

        underline = SETEXT_UNDERLINE.match(content)
        if underline and current is not None and current.kind == UnitKind.PARAGRAPH:
            current.kind = UnitKind.HEADING
            current.level = 1 if underline.group(1)[0] == "=" else 2
            current.add(line_no, raw, None)
            close()
            continue

        if THEMATIC_BREAK.match(content):
            close()
            continue

        item = LIST_MARKER.match(content)
        if item:
            close()
            current = _Block(UnitKind.LIST_ITEM, line_no)
            current.add(line_no, raw, (item.group(2) or "").strip())
            continue

        if current is not None and current.kind in (UnitKind.PARAGRAPH, UnitKind.LIST_ITEM):
            # Lazy continuation of a paragraph or list item
            current.add(line_no, raw, content.strip())
            continue

        close()
        current = _Block(UnitKind.PARAGRAPH, line_no)
        current.add(line_no, raw, content.strip())

    if fence is not None:
        if strict_fences:
            raise DocumentParseError("unterminated code fence", line=current.start)
        log.warning("unterminated_fence", line=current.start)
    close()
    return blocks


def _build_units(blocks: list[_Block]) -> list[Unit]:
    units: list[Unit] = []
    section: Optional[str] = None

    for index, block in enumerate(blocks):
        if block.kind == UnitKind.CODE_BLOCK:
            text = "\n".join(p for p in block.text_parts if p is not None)
        else:
            text = " ".join(p for p in block.text_parts if p)

        if block.kind == UnitKind.HEADING:
            section = text

        units.append(
            Unit(
                index=index,
                kind=block.kind,
                text=text,
                location=Location(start_line=block.start, end_line=block.end),
                lines=tuple(block.raw),
                level=block.level,
                section=section,
                language=block.language,
            )
        )
    return units


def parse(ctx: CheckContext) -> CheckContext:
    """Parse ctx.normalized_text into ctx.document."""
    text = ctx.normalized_text
    if not text.strip():
        ctx.add_diagnostic(
            level="warning",
            code="EMPTY_DOCUMENT",
            message="Document is empty",
            source=PASS_NAME,
        )

    document = parse_document(
        text,
        source=ctx.request.source,
        strict_fences=ctx.settings.strict_fences,
    )

    counts: dict[str, int] = {}
    for unit in document.units:
        counts[unit.kind.value] = counts.get(unit.kind.value, 0) + 1

    log.info("parsed", units=len(document.units), lines=document.line_count, **counts)

    ctx.document = document
    ctx.add_trace(
        pass_name=PASS_NAME,
        action="parsed_document",
        after=f"{len(document.units)} units",
    )

    return ctx
