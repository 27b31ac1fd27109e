from __future__ import annotations

import re
from dataclasses import dataclass

from . import config
from .models import Block, PageBreakBlock, ParagraphBlock, TableBlock
from .parse_log import ParseLogState, warn
from .table_matrix import build_table_matrix, raw_table_rows
from .xml_scanner import iter_body_blocks
from .xml_text import extract_text

_RUN_PATTERN = re.compile(r"<w:r[\s>]")
_PAGE_BREAK_PATTERN = re.compile(r'<w:br\b[^>]*w:type="page"[^>]*/?>|<w:lastRenderedPageBreak\b', re.IGNORECASE)
_LEADING_CHECKBOX_PATTERN = re.compile(r"^([☐☑✓□]|\[[\sx]\])\s+", re.IGNORECASE)
_PASS_FAIL_PATTERN = re.compile(r"PASS\s*FAIL", re.IGNORECASE)


@dataclass(frozen=True)
class Paragraph:
    index: int
    text: str
    offset: int
    xml: str


def collect_paragraphs(
    xml: str,
    log_state: ParseLogState | None = None,
    max_paragraphs: int | None = None,
) -> list[Paragraph]:
    if max_paragraphs is None and len(xml) > config.LARGE_DOCUMENT_BYTES:
        max_paragraphs = config.LARGE_DOCUMENT_MAX_PARAGRAPHS
    paragraphs: list[Paragraph] = []
    for kind, element in iter_body_blocks(xml, log_state):
        if kind != "p":
            continue
        if max_paragraphs is not None and len(paragraphs) >= max_paragraphs:
            warn(log_state, rule="paragraph_cap", reason=f"stopped after {max_paragraphs} paragraphs")
            break
        text = extract_text(element.xml)
        if not text and not _RUN_PATTERN.search(element.xml):
            continue
        paragraphs.append(
            Paragraph(
                index=len(paragraphs),
                text=text,
                offset=element.start_index,
                xml=element.xml,
            )
        )
    return paragraphs


def has_leading_checkbox(text: str) -> bool:
    return bool(_LEADING_CHECKBOX_PATTERN.match(text.strip()))


def has_pass_fail(text: str) -> bool:
    return bool(_PASS_FAIL_PATTERN.search(text)) and ":" in text


def extract_blocks(xml: str, log_state: ParseLogState | None = None) -> list[Block]:
    blocks: list[Block] = []
    paragraph_id = 0
    table_id = 0
    for kind, element in iter_body_blocks(xml, log_state):
        if kind == "p":
            paragraph_id += 1
            text = extract_text(element.xml)
            blocks.append(
                ParagraphBlock(
                    id=paragraph_id,
                    text=text,
                    has_checkbox=has_leading_checkbox(text),
                    has_pass_fail=has_pass_fail(text),
                )
            )
            if _PAGE_BREAK_PATTERN.search(element.xml):
                blocks.append(PageBreakBlock())
        else:
            table_id += 1
            blocks.append(TableBlock(id=table_id, rows=build_table_matrix(element.xml)))
    return blocks


def document_lines(xml: str, log_state: ParseLogState | None = None) -> list[str]:
    lines: list[str] = []
    for kind, element in iter_body_blocks(xml, log_state):
        if kind == "p":
            text = extract_text(element.xml)
            if text:
                lines.extend(text.split("\n"))
            continue
        for row in raw_table_rows(element.xml):
            lines.append("\t".join(row))
    return lines
