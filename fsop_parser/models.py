from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class SectionType(str, Enum):
    TEXT = "text"
    PASS_FAIL = "pass_fail"
    TABLE = "table"
    CHECKBOXES = "checkboxes"
    TEXT_FIELDS = "text_fields"
    MIXED = "mixed"


class ColumnType(str, Enum):
    TEXT = "text"
    DATE = "date"
    TIME = "time"
    OPERATOR = "operator"
    NUMERIC = "numeric"


@dataclass
class Cell:
    text: str
    colspan: int = 1
    rowspan: int = 1
    fill: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"text": self.text}
        if self.colspan != 1:
            data["colspan"] = self.colspan
        if self.rowspan != 1:
            data["rowspan"] = self.rowspan
        if self.fill:
            data["fill"] = self.fill
        return data


@dataclass(frozen=True)
class ParagraphBlock:
    id: int
    text: str
    has_checkbox: bool = False
    has_pass_fail: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "paragraph",
            "id": self.id,
            "text": self.text,
            "hasCheckbox": self.has_checkbox,
            "hasPassFail": self.has_pass_fail,
        }


@dataclass(frozen=True)
class TableBlock:
    id: int
    rows: list[list[Cell]]

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "table",
            "id": self.id,
            "rows": [[cell.to_dict() for cell in row] for row in self.rows],
        }


@dataclass(frozen=True)
class PageBreakBlock:
    def to_dict(self) -> dict[str, object]:
        return {"type": "page_break"}


Block = Union[ParagraphBlock, TableBlock, PageBreakBlock]


@dataclass(frozen=True)
class HeaderField:
    key: str
    label: str
    value: str
    placeholder: str | None
    is_empty: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "label": self.label,
            "value": self.value,
            "placeholder": self.placeholder,
            "isEmpty": self.is_empty,
        }


@dataclass(frozen=True)
class Checkbox:
    id: str
    label: str
    checked: bool
    position: int
    paragraph_index: int
    glyph_index: int = 0

    def sort_key(self) -> tuple[int, int]:
        return self.paragraph_index, self.position

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "label": self.label,
            "checked": self.checked,
            "position": self.position,
            "paragraphIndex": self.paragraph_index,
        }


@dataclass
class TextField:
    id: str
    label: str = ""
    value: str = ""
    type: str = "text"
    table_index: int | None = None
    row_index: int | None = None
    column_index: int | None = None
    paragraph_index: int | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "type": self.type,
            "value": self.value,
            "label": self.label,
        }
        if self.table_index is not None:
            data["tableIndex"] = self.table_index
            data["rowIndex"] = self.row_index
            data["columnIndex"] = self.column_index
        if self.paragraph_index is not None:
            data["paragraphIndex"] = self.paragraph_index
        return data


@dataclass(frozen=True)
class Column:
    name: str
    type: ColumnType
    index: int

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "type": self.type.value, "index": self.index}


@dataclass(frozen=True)
class TableCellValue:
    column_index: int
    value: str
    type: ColumnType

    @property
    def is_empty(self) -> bool:
        return not self.value.strip()

    def to_dict(self) -> dict[str, object]:
        return {
            "columnIndex": self.column_index,
            "value": self.value,
            "type": self.type.value,
            "isEmpty": self.is_empty,
        }


@dataclass(frozen=True)
class TableRow:
    id: int
    cells: list[TableCellValue]

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "cells": [cell.to_dict() for cell in self.cells]}


@dataclass(frozen=True)
class Table:
    id: int
    headers: list[str]
    columns: list[Column]
    rows: list[TableRow]

    def header_text(self) -> str:
        return " ".join(self.headers).lower()

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "headers": list(self.headers),
            "columns": [column.to_dict() for column in self.columns],
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass(frozen=True)
class SectionTextField:
    label: str
    placeholder: str

    def to_dict(self) -> dict[str, object]:
        return {"label": self.label, "placeholder": self.placeholder}


@dataclass
class Section:
    id: int
    title: str
    type: SectionType = SectionType.TEXT
    fields: list[str] = field(default_factory=list)
    tables: list[Table] = field(default_factory=list)
    checkboxes: list[Checkbox] = field(default_factory=list)
    text_fields: list[SectionTextField] = field(default_factory=list)

    @property
    def table(self) -> Table | None:
        return self.tables[0] if self.tables else None

    def to_dict(self) -> dict[str, object]:
        table = self.table
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "fields": list(self.fields),
            "table": table.to_dict() if table is not None else None,
            "tables": [item.to_dict() for item in self.tables],
            "checkboxes": [checkbox.to_dict() for checkbox in self.checkboxes],
            "textFields": [text_field.to_dict() for text_field in self.text_fields],
        }


@dataclass(frozen=True)
class TaggedMeasure:
    tag: str
    placeholder: str
    detected: bool = True

    def to_dict(self) -> dict[str, object]:
        return {"tag": self.tag, "placeholder": self.placeholder, "detected": self.detected}


@dataclass(frozen=True)
class Reference:
    detected: bool
    value: str | None = None
    placeholder: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"detected": self.detected}
        if self.value is not None:
            data["value"] = self.value
        if self.placeholder is not None:
            data["placeholder"] = self.placeholder
        return data


@dataclass
class ParsedDocument:
    placeholders: list[str]
    header_fields: list[HeaderField]
    text_fields: list[TextField]
    checkboxes: list[Checkbox]
    sections: list[Section]
    blocks: list[Block]
    document_title: str | None
    reference: Reference
    tagged_measures: list[TaggedMeasure]
    metadata: dict[str, object] = field(default_factory=dict)

    def section(self, section_id: int) -> Section | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "placeholders": list(self.placeholders),
            "headerFields": [item.to_dict() for item in self.header_fields],
            "textFields": [item.to_dict() for item in self.text_fields],
            "checkboxes": [item.to_dict() for item in self.checkboxes],
            "sections": [item.to_dict() for item in self.sections],
            "blocks": [item.to_dict() for item in self.blocks],
            "documentTitle": self.document_title,
            "reference": self.reference.to_dict(),
            "taggedMeasures": [item.to_dict() for item in self.tagged_measures],
            "metadata": dict(self.metadata),
        }
