from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable, Iterator

from .blocks import Paragraph
from .models import Checkbox, HeaderField, Reference, TaggedMeasure, TextField
from .section_rules import DEFAULT_HEADER_FIELDS, HeaderFieldRule
from .table_matrix import RawTable
from .text_nodes import NodeText
from .xml_scanner import body_span, iter_elements
from .xml_text import decode_entities, extract_text, normalize_spaces

PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Z0-9_]+)\}\}")
CHECKBOX_GLYPH_PATTERN = re.compile(r"[☐☑✓□]|\[[\sxX]\]")
_CHECKED_GLYPH_PATTERN = re.compile(r"[☑✓xX]")
_BLANK_VALUE_PATTERN = re.compile(r"^[_\-]+$")
_REFERENCE_PLACEHOLDER_PATTERN = re.compile(r"^(REF|REFERENCE|REF_.*)$")
_RETA_PATTERN = re.compile(r"(RETA-\d+-[A-Z0-9]+-\d+\.\d+)", re.IGNORECASE)
_REFERENCE_LABEL_PATTERN = re.compile(
    r"(?i:Référence|Reference)[\s:]+(?!SILOG\b)([A-Z0-9][A-Z0-9\-.]*\d[A-Z0-9\-.]*)"
)
_TITLE_HINT_PATTERN = re.compile(r"Cordon|FSOP|Formulaire", re.IGNORECASE)
TAGGED_MEASURE_PREFIX = "TAG_"
DOCUMENT_TITLE_SCAN = 10


@dataclass(frozen=True)
class GlyphMatch:
    ordinal: int
    start: int
    glyph: str
    label: str

    @property
    def checked(self) -> bool:
        return bool(_CHECKED_GLYPH_PATTERN.search(self.glyph))


def extract_placeholders(xml: str) -> list[str]:
    return sorted({match.group(0) for match in PLACEHOLDER_PATTERN.finditer(xml)})


def is_blank_value(value: str) -> bool:
    stripped = value.strip()
    return not stripped or bool(_BLANK_VALUE_PATTERN.match(stripped))


def extract_header_fields(
    lines: Iterable[str],
    rules: Iterable[HeaderFieldRule] = DEFAULT_HEADER_FIELDS,
) -> list[HeaderField]:
    text_lines = list(lines)
    fields: list[HeaderField] = []
    for rule in rules:
        pattern = rule.label_pattern()
        for line in text_lines:
            match = pattern.search(line)
            if match is None:
                continue
            value = match.group(1).strip()
            fields.append(
                HeaderField(
                    key=rule.key,
                    label=rule.label,
                    value=value,
                    placeholder=rule.placeholder,
                    is_empty=is_blank_value(value),
                )
            )
            break
    return fields


def iter_glyphs(text: str) -> Iterator[GlyphMatch]:
    """Yield each checkbox glyph with the label running to the next glyph."""
    matches = list(CHECKBOX_GLYPH_PATTERN.finditer(text))
    for ordinal, match in enumerate(matches):
        label_end = matches[ordinal + 1].start() if ordinal + 1 < len(matches) else len(text)
        yield GlyphMatch(
            ordinal=ordinal,
            start=match.start(),
            glyph=match.group(0),
            label=text[match.end() : label_end].strip(),
        )


def paragraph_glyphs(paragraph: Paragraph) -> Iterator[GlyphMatch]:
    # counted on the raw run text, the same text the injector rewrites
    for glyph in iter_glyphs(NodeText.from_fragment(paragraph.xml).text):
        yield replace(glyph, label=normalize_spaces(decode_entities(glyph.label)))


def detect_checkboxes(paragraphs: Iterable[Paragraph]) -> list[Checkbox]:
    found: list[tuple[Paragraph, GlyphMatch]] = []
    for paragraph in paragraphs:
        for glyph in paragraph_glyphs(paragraph):
            if not glyph.label or glyph.label.startswith("<"):
                continue
            found.append((paragraph, glyph))
    found.sort(key=lambda item: (item[0].index, item[0].offset + item[1].start))
    return [
        Checkbox(
            id=f"checkbox_{number}",
            label=glyph.label,
            checked=glyph.checked,
            position=paragraph.offset + glyph.start,
            paragraph_index=paragraph.index,
            glyph_index=glyph.ordinal,
        )
        for number, (paragraph, glyph) in enumerate(found)
    ]


def sort_checkboxes(checkboxes: Iterable[Checkbox]) -> list[Checkbox]:
    return sorted(checkboxes, key=Checkbox.sort_key)


def detect_text_fields(
    paragraphs: Iterable[Paragraph],
    tables: Iterable[RawTable],
) -> list[TextField]:
    # labels are filled in later by resolve_text_field_labels
    candidates: list[tuple[int, int, TextField]] = []
    for table in tables:
        order = 0
        for row_index, row in enumerate(table.rows):
            for column_index, value in enumerate(row):
                if is_blank_value(value):
                    field = TextField(
                        id="",
                        table_index=table.index,
                        row_index=row_index,
                        column_index=column_index,
                    )
                    candidates.append((table.start_index, order, field))
                order += 1
    for paragraph in paragraphs:
        text = paragraph.text.strip()
        if text and _BLANK_VALUE_PATTERN.match(text):
            candidates.append((paragraph.offset, 0, TextField(id="", paragraph_index=paragraph.index)))
    candidates.sort(key=lambda item: (item[0], item[1]))
    fields = []
    for number, (_, _, field) in enumerate(candidates):
        field.id = f"textfield_{number}"
        fields.append(field)
    return fields


def resolve_text_field_labels(
    fields: Iterable[TextField],
    paragraphs: list[Paragraph],
    tables: list[RawTable],
) -> list[TextField]:
    tables_by_index = {table.index: table for table in tables}
    resolved = []
    for field in fields:
        if field.table_index is not None:
            table = tables_by_index.get(field.table_index)
            label = _cell_label(field, table, paragraphs) if table is not None else ""
        else:
            label = _previous_paragraph_text(paragraphs, field.paragraph_index or 0)
        field.label = label
        resolved.append(field)
    return resolved


def _cell_label(field: TextField, table: RawTable, paragraphs: list[Paragraph]) -> str:
    row = table.rows[field.row_index or 0]
    column = field.column_index or 0
    for value in reversed(row[:column]):
        if not is_blank_value(value):
            return value
    if field.row_index:
        header = table.rows[0]
        if column < len(header) and not is_blank_value(header[column]):
            return header[column]
    before = [paragraph for paragraph in paragraphs if paragraph.offset < table.start_index]
    if before:
        return _previous_paragraph_text(paragraphs, before[-1].index + 1)
    return ""


def _previous_paragraph_text(paragraphs: list[Paragraph], index: int) -> str:
    for paragraph in reversed(paragraphs[:index]):
        if not is_blank_value(paragraph.text):
            return paragraph.text
    return ""


def extract_tagged_measures(placeholders: Iterable[str]) -> list[TaggedMeasure]:
    measures = []
    for placeholder in placeholders:
        tag = placeholder.strip("{}")
        if tag.upper().startswith(TAGGED_MEASURE_PREFIX):
            measures.append(TaggedMeasure(tag=tag, placeholder=placeholder))
    return measures


def extract_reference(text: str, placeholders: Iterable[str]) -> Reference:
    for placeholder in placeholders:
        if _REFERENCE_PLACEHOLDER_PATTERN.match(placeholder.strip("{}").upper()):
            return Reference(detected=True, placeholder=placeholder)
    match = _RETA_PATTERN.search(text)
    if match is not None:
        return Reference(detected=True, value=match.group(1))
    match = _REFERENCE_LABEL_PATTERN.search(text)
    if match is not None:
        return Reference(detected=True, value=match.group(1).strip())
    return Reference(detected=False)


def extract_document_title(xml: str) -> str | None:
    start, end = body_span(xml)
    candidates: list[str] = []
    for count, element in enumerate(iter_elements(xml, "p", start, end)):
        if count >= DOCUMENT_TITLE_SCAN:
            break
        text = extract_text(element.xml)
        if not 5 < len(text) < 100:
            continue
        if _TITLE_HINT_PATTERN.search(text):
            return text
        candidates.append(text)
    return candidates[0] if candidates else None
