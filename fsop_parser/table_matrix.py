from __future__ import annotations

import re
from dataclasses import dataclass

from .models import Cell, Column, ColumnType, Table, TableCellValue, TableRow
from .parse_log import ParseLogState
from .xml_scanner import iter_body_blocks, iter_children
from .xml_text import extract_text

_GRID_SPAN_PATTERN = re.compile(r'<w:gridSpan\b[^>]*\bw:val="(\d+)"', re.IGNORECASE)
_GRID_BEFORE_PATTERN = re.compile(r'<w:gridBefore\b[^>]*\bw:val="(\d+)"', re.IGNORECASE)
_VMERGE_PATTERN = re.compile(r"<w:vMerge\b([^>]*?)/?>", re.IGNORECASE)
_VAL_PATTERN = re.compile(r'\bw:val="([^"]+)"', re.IGNORECASE)
_FILL_PATTERN = re.compile(r'<w:shd\b[^>]*\bw:fill="([0-9A-Fa-f]{6})"[^>]*/?>')
_NUMERIC_VALUE_PATTERN = re.compile(r"^-?\d+\.?\d*$")
_DATE_VALUE_PATTERN = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}")

_HEADER_TYPE_HINTS: tuple[tuple[tuple[str, ...], ColumnType], ...] = (
    (("date",), ColumnType.DATE),
    (("heure", "time"), ColumnType.TIME),
    (("opérateur", "operateur"), ColumnType.OPERATOR),
    (("lot", "numéro"), ColumnType.TEXT),
    (("quantité", "quantite"), ColumnType.NUMERIC),
    (("mesures", "mm", "db", "°c"), ColumnType.NUMERIC),
)


@dataclass(frozen=True)
class RawTable:
    index: int
    start_index: int
    end_index: int
    rows: list[list[str]]


def get_grid_span(tc_xml: str) -> int:
    match = _GRID_SPAN_PATTERN.search(_cell_properties(tc_xml))
    if match is None:
        return 1
    value = int(match.group(1))
    return value if value > 0 else 1


def get_vmerge(tc_xml: str) -> str | None:
    match = _VMERGE_PATTERN.search(_cell_properties(tc_xml))
    if match is None:
        return None
    value = _VAL_PATTERN.search(match.group(1) or "")
    if value is not None and value.group(1).lower() == "restart":
        return "restart"
    return "continue"


def get_cell_fill(tc_xml: str) -> str | None:
    match = _FILL_PATTERN.search(_cell_properties(tc_xml))
    if match is None:
        return None
    return f"#{match.group(1).upper()}"


def _cell_properties(tc_xml: str) -> str:
    # Only the cell's own <w:tcPr>; nested tables carry their own properties.
    start = tc_xml.find("<", tc_xml.find(">") + 1)
    if start == -1 or not tc_xml.startswith("<w:tcPr", start):
        return ""
    tag_end = tc_xml.find(">", start)
    if tag_end != -1 and tc_xml[tag_end - 1] == "/":
        return tc_xml[start : tag_end + 1]
    end = tc_xml.find("</w:tcPr>", start)
    if end == -1:
        return tc_xml[start:]
    return tc_xml[start:end]


def _row_offset(tr_xml: str) -> int:
    properties_end = tr_xml.find("<w:tc")
    head = tr_xml if properties_end == -1 else tr_xml[:properties_end]
    match = _GRID_BEFORE_PATTERN.search(head)
    return int(match.group(1)) if match else 0


def build_table_matrix(tbl_xml: str) -> list[list[Cell]]:
    rows: list[list[Cell]] = []
    merge_owners: dict[int, Cell] = {}
    for tr in iter_children(tbl_xml, "tr"):
        row_cells: list[Cell] = []
        column = _row_offset(tr.xml)
        for tc in iter_children(tr.xml, "tc"):
            colspan = get_grid_span(tc.xml)
            vmerge = get_vmerge(tc.xml)
            covered = range(column, column + colspan)
            if vmerge == "continue":
                owner = merge_owners.get(column)
                if owner is not None:
                    owner.rowspan += 1
                column += colspan
                continue
            cell = Cell(
                text=extract_text(tc.xml),
                colspan=colspan,
                fill=get_cell_fill(tc.xml),
            )
            row_cells.append(cell)
            for index in covered:
                if vmerge == "restart":
                    merge_owners[index] = cell
                else:
                    merge_owners.pop(index, None)
            column += colspan
        rows.append(row_cells)
    return rows


def raw_table_rows(tbl_xml: str) -> list[list[str]]:
    rows: list[list[str]] = []
    for tr in iter_children(tbl_xml, "tr"):
        cells = [extract_text(tc.xml) for tc in iter_children(tr.xml, "tc")]
        if cells:
            rows.append(cells)
    return rows


def iter_raw_tables(xml: str, log_state: ParseLogState | None = None) -> list[RawTable]:
    tables: list[RawTable] = []
    for kind, element in iter_body_blocks(xml, log_state):
        if kind != "tbl":
            continue
        tables.append(
            RawTable(
                index=len(tables),
                start_index=element.start_index,
                end_index=element.end_index,
                rows=raw_table_rows(element.xml),
            )
        )
    return tables


def infer_column_type(header: str, values: list[str]) -> ColumnType:
    lowered = header.lower()
    for words, column_type in _HEADER_TYPE_HINTS:
        if any(word in lowered for word in words):
            return column_type
    if any(_NUMERIC_VALUE_PATTERN.match(value) for value in values):
        return ColumnType.NUMERIC
    if any(_DATE_VALUE_PATTERN.search(value) for value in values):
        return ColumnType.DATE
    return ColumnType.TEXT


def build_table(raw: RawTable) -> Table | None:
    if not raw.rows:
        return None
    headers = list(raw.rows[0])
    data_rows = raw.rows[1:]
    columns = []
    for index, header in enumerate(headers):
        values = [row[index] for row in data_rows if index < len(row) and row[index]]
        columns.append(Column(name=header, type=infer_column_type(header, values), index=index))
    if not data_rows:
        data_rows = [[""] * len(headers)]
    rows = []
    for row_id, row in enumerate(data_rows):
        cells = [
            TableCellValue(
                column_index=index,
                value=row[index] if index < len(row) else "",
                type=columns[index].type,
            )
            for index in range(len(headers))
        ]
        rows.append(TableRow(id=row_id, cells=cells))
    return Table(id=raw.index, headers=headers, columns=columns, rows=rows)


def extract_tables(xml: str, log_state: ParseLogState | None = None) -> list[Table]:
    tables = []
    for raw in iter_raw_tables(xml, log_state):
        table = build_table(raw)
        if table is not None:
            tables.append(table)
    return tables
