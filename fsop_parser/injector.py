from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from time import perf_counter
from typing import Any, Mapping

from lxml import etree

from . import config
from .blocks import collect_paragraphs
from .docx_archive import read_document_xml, write_document_xml
from .errors import XmlValidationError
from .field_detector import CHECKBOX_GLYPH_PATTERN, detect_checkboxes
from .parse_log import ParseLogState, new_log_state, warn, write_log
from .text_nodes import (
    NodeText,
    Replacement,
    TextEdit,
    apply_edits,
    escape_text,
    render_node,
    rewrite_paragraphs,
)
from .xml_scanner import iter_body_blocks, iter_children
from .xml_text import escape_xml

ANY_SECTION = "*"
PASS_FAIL_VALUES = ("PASS", "FAIL")
_CHECKBOX_ID_PATTERN = re.compile(r"^(?:checkbox_)?(\d+)$")
_BLANK_FIELD_PATTERN = re.compile(r"([^:]+):\s*_{3,}")
_TAG_PATTERN = re.compile(r"<(/?)([A-Za-z][\w:.-]*)[^<>]*?(/?)>")
_DOUBLE_ESCAPE_PATTERN = re.compile(r"&amp;(?:amp|lt|gt|quot|apos);|&lt;&lt;|&gt;&gt;|&amp;&amp;")
_TRUE_WORDS = {"1", "true", "yes", "on", "checked", "x"}
_CHECKED_GLYPHS = {"☐": "☑", "□": "☑", "[ ]": "[x]"}
_UNCHECKED_GLYPHS = {"☑": "☐", "✓": "☐", "[x]": "[ ]", "[X]": "[ ]"}
_INSTRUCTION_KEYS = {
    "replacements": "replacements",
    "table_data": "table_data",
    "tableData": "table_data",
    "pass_fail_data": "pass_fail_data",
    "passFailData": "pass_fail_data",
    "checkbox_data": "checkbox_data",
    "checkboxData": "checkbox_data",
    "text_field_data": "text_field_data",
    "textFieldData": "text_field_data",
    "text_fields_data": "text_field_data",
    "textFieldsData": "text_field_data",
}


@dataclass
class InjectionInstructions:
    replacements: dict[str, Any] = field(default_factory=dict)
    table_data: dict[str, dict[str, dict[str, Any]]] = field(default_factory=dict)
    pass_fail_data: dict[str, dict[str, str]] = field(default_factory=dict)
    checkbox_data: dict[str, dict[str, Any]] = field(default_factory=dict)
    text_field_data: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "InjectionInstructions":
        values: dict[str, Any] = {}
        for key, raw in (data or {}).items():
            name = _INSTRUCTION_KEYS.get(key)
            if name is None:
                raise ValueError(f"unknown injection key: {key}")
            if raw is None:
                continue
            if not isinstance(raw, Mapping):
                raise ValueError(f"{key} must be an object")
            values[name] = raw
        return cls(
            replacements={str(k): v for k, v in values.get("replacements", {}).items()},
            table_data={
                str(table): {str(row): dict(cells) for row, cells in rows.items()}
                for table, rows in values.get("table_data", {}).items()
            },
            pass_fail_data=_by_section(values.get("pass_fail_data", {})),
            checkbox_data=_by_section(values.get("checkbox_data", {})),
            text_field_data=_by_section(values.get("text_field_data", {})),
        )

    def is_empty(self) -> bool:
        return not (
            self.replacements
            or self.table_data
            or self.pass_fail_data
            or self.checkbox_data
            or self.text_field_data
        )


def _by_section(data: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Accept ``{section: {key: value}}`` as well as a flat ``{key: value}``."""
    nested: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            nested.setdefault(str(key), {}).update({str(k): v for k, v in value.items()})
        else:
            nested.setdefault(ANY_SECTION, {})[str(key)] = value
    return nested


def _merged(data: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for values in _by_section(data).values():
        merged.update(values)
    return merged


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_WORDS
    return bool(value)


def _as_index(value: str) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def inject_placeholders(xml: str, replacements: Mapping[str, Any], log_state: ParseLogState | None = None) -> str:
    replaced = 0
    for key, value in replacements.items():
        needle = key if key.startswith("{{") else f"{{{{{key}}}}}"
        count = xml.count(needle)
        if not count:
            warn(log_state, rule="placeholder_missing", reason=f"{needle} not found")
            continue
        xml = xml.replace(needle, escape_xml(value))
        replaced += count
    if log_state is not None:
        log_state.count("placeholders_replaced", replaced)
    return xml


def _cell_edit(xml: str, cell_start: int, cell_xml: str, value: Any) -> TextEdit:
    escaped = escape_text("" if value is None else str(value))
    node_text = NodeText.from_fragment(xml, cell_start, cell_start + len(cell_xml))
    if node_text.nodes:
        node = node_text.nodes[0]
        return TextEdit(node.start, node.end, render_node(node, escaped))
    run = f'<w:r><w:t xml:space="preserve">{escaped}</w:t></w:r>'
    paragraph_close = cell_xml.rfind("</w:p>")
    if paragraph_close != -1:
        position = cell_start + paragraph_close
        return TextEdit(position, position, run)
    position = cell_start + cell_xml.rfind("</w:tc>")
    return TextEdit(position, position, f"<w:p>{run}</w:p>")


def inject_table_data(
    xml: str,
    table_data: Mapping[str, Mapping[str, Mapping[str, Any]]],
    log_state: ParseLogState | None = None,
) -> str:
    # row 0 is the first row after the header; only the first text node of a cell changes
    tables = [element for kind, element in iter_body_blocks(xml, log_state) if kind == "tbl"]
    targets: dict[tuple[int, int, int], Any] = {}
    for table_key, rows in table_data.items():
        for row_key, cells in rows.items():
            for column_key, value in cells.items():
                indexes = (_as_index(table_key), _as_index(row_key), _as_index(column_key))
                if None in indexes:
                    warn(log_state, rule="table_key", reason=f"invalid key {table_key}/{row_key}/{column_key}")
                    continue
                targets[indexes] = value
    edits: list[TextEdit] = []
    for (table_index, row_index, column_index), value in targets.items():
        if not 0 <= table_index < len(tables):
            warn(log_state, rule="table_missing", reason=f"table {table_index} not found")
            continue
        table = tables[table_index]
        rows = list(iter_children(table.xml, "tr"))
        target_row = row_index + 1
        if not 0 < target_row < len(rows):
            warn(log_state, rule="table_row_missing", reason=f"row {row_index} not found in table {table_index}")
            continue
        row = rows[target_row]
        cells = list(iter_children(row.xml, "tc"))
        if not 0 <= column_index < len(cells):
            warn(
                log_state,
                rule="table_cell_missing",
                reason=f"cell {column_index} not found in table {table_index} row {row_index}",
            )
            continue
        cell = cells[column_index]
        cell_start = table.start_index + row.start_index + cell.start_index
        edits.append(_cell_edit(xml, cell_start, cell.xml, value))
    if log_state is not None:
        log_state.count("table_cells_written", len(edits))
    return apply_edits(xml, edits) if edits else xml


def _pass_fail_pattern(label: str) -> re.Pattern[str]:
    return re.compile(
        rf"({re.escape(escape_text(label))})(\s*:\s*)(PASS|FAIL)((?:\s*/?\s*(?:PASS|FAIL))?)\b",
        re.IGNORECASE,
    )


def inject_pass_fail_data(
    xml: str,
    pass_fail_data: Mapping[str, Any],
    log_state: ParseLogState | None = None,
) -> str:
    selections: list[tuple[re.Pattern[str], str]] = []
    for label, value in _merged(pass_fail_data).items():
        selected = str(value or "").strip().upper()
        if selected not in PASS_FAIL_VALUES:
            warn(log_state, rule="pass_fail_value", reason=f"invalid selection {value!r} for {label}")
            continue
        selections.append((_pass_fail_pattern(label), selected))
    written = 0

    def rewriter(offset: int, node_text: NodeText) -> list[Replacement]:
        nonlocal written
        replacements = []
        for pattern, selected in selections:
            for match in pattern.finditer(node_text.text):
                replacements.append(Replacement(match.start(3), match.end(4), selected))
                written += 1
        return replacements

    if selections:
        xml = rewrite_paragraphs(xml, rewriter, log_state)
    if log_state is not None:
        log_state.count("pass_fail_written", written)
    return xml


def _swap_glyph(glyph: str, checked: bool) -> str | None:
    table = _CHECKED_GLYPHS if checked else _UNCHECKED_GLYPHS
    return table.get(glyph)


def inject_checkbox_data(
    xml: str,
    checkbox_data: Mapping[str, Any],
    log_state: ParseLogState | None = None,
) -> str:
    # ids follow the parser's numbering, so parse output addresses the same glyphs
    paragraphs = collect_paragraphs(xml, log_state)
    by_number = dict(enumerate(detect_checkboxes(paragraphs)))
    paragraph_offsets = {paragraph.index: paragraph.offset for paragraph in paragraphs}
    targets: dict[int, dict[int, bool]] = {}
    for checkbox_id, value in _merged(checkbox_data).items():
        match = _CHECKBOX_ID_PATTERN.match(checkbox_id.strip())
        checkbox = by_number.get(int(match.group(1))) if match else None
        if checkbox is None:
            warn(log_state, rule="checkbox_missing", reason=f"checkbox {checkbox_id} not found")
            continue
        offset = paragraph_offsets[checkbox.paragraph_index]
        targets.setdefault(offset, {})[checkbox.glyph_index] = _as_bool(value)
    written = 0

    def rewriter(offset: int, node_text: NodeText) -> list[Replacement]:
        nonlocal written
        states = targets.get(offset)
        if not states:
            return []
        glyphs = list(CHECKBOX_GLYPH_PATTERN.finditer(node_text.text))
        replacements = []
        for glyph_index, checked in states.items():
            if glyph_index >= len(glyphs):
                warn(log_state, rule="checkbox_glyph", reason=f"glyph {glyph_index} not found at {offset}")
                continue
            glyph = glyphs[glyph_index]
            swapped = _swap_glyph(glyph.group(0), checked)
            if swapped is None:
                continue
            replacements.append(Replacement(glyph.start(), glyph.end(), swapped))
            written += 1
        return replacements

    if targets:
        xml = rewrite_paragraphs(xml, rewriter, log_state)
    if log_state is not None:
        log_state.count("checkboxes_written", written)
    return xml


def inject_text_field_data(
    xml: str,
    text_field_data: Mapping[str, Any],
    log_state: ParseLogState | None = None,
) -> str:
    values: dict[int, str] = {}
    for key, value in _merged(text_field_data).items():
        index = _as_index(key)
        if index is None:
            warn(log_state, rule="text_field_key", reason=f"invalid text field index {key!r}")
            continue
        text = "" if value is None else str(value)
        if text.strip():
            values[index] = text
    position = 0
    written = 0

    def rewriter(offset: int, node_text: NodeText) -> list[Replacement]:
        nonlocal position, written
        replacements = []
        for match in _BLANK_FIELD_PATTERN.finditer(node_text.text):
            value = values.get(position)
            position += 1
            if value is None:
                continue
            label = match.group(1)
            label_start = match.start(1) + len(label) - len(label.lstrip())
            replacements.append(
                Replacement(label_start, match.end(), f"{label.strip()}: {escape_xml(value)}")
            )
            written += 1
        return replacements

    if values:
        xml = rewrite_paragraphs(xml, rewriter, log_state)
        if written < len(values):
            warn(log_state, rule="text_field_missing", reason=f"{len(values) - written} text fields not found")
    if log_state is not None:
        log_state.count("text_fields_written", written)
    return xml


def validate_injected_xml(xml: str, log_state: ParseLogState | None = None) -> None:
    # only structural loss raises; Word opens many documents lxml rejects
    if not xml or not xml.strip():
        raise XmlValidationError("document XML became empty")
    if "<" not in xml or ">" not in xml:
        raise XmlValidationError("document XML has no tags")
    stack: list[str] = []
    problems: list[str] = []
    for match in _TAG_PATTERN.finditer(xml):
        closing, name, self_closing = match.groups()
        if self_closing:
            continue
        if not closing:
            stack.append(name)
            continue
        if not stack:
            problems.append(f"unmatched closing tag {name}")
        else:
            opened = stack.pop()
            if opened != name:
                problems.append(f"expected {opened}, got {name}")
    if stack:
        problems.append("unclosed tags: " + ", ".join(stack[-5:]))
    if problems:
        warn(log_state, rule="tag_balance", reason="; ".join(problems[:5]))
    if _DOUBLE_ESCAPE_PATTERN.search(xml):
        warn(log_state, rule="double_escape", reason="double-escaped entities found")
    try:
        etree.fromstring(xml.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        warn(log_state, rule="well_formed", reason=str(exc))
    if "<w:document" not in xml and "<w:body" not in xml:
        raise XmlValidationError("essential Word document structure missing")


def inject_document_xml(
    xml: str,
    instructions: InjectionInstructions,
    log_state: ParseLogState | None = None,
) -> str:
    if instructions.replacements:
        xml = inject_placeholders(xml, instructions.replacements, log_state)
    if instructions.table_data:
        xml = inject_table_data(xml, instructions.table_data, log_state)
    if instructions.pass_fail_data:
        xml = inject_pass_fail_data(xml, instructions.pass_fail_data, log_state)
    if instructions.checkbox_data:
        xml = inject_checkbox_data(xml, instructions.checkbox_data, log_state)
    if instructions.text_field_data:
        xml = inject_text_field_data(xml, instructions.text_field_data, log_state)
    validate_injected_xml(xml, log_state)
    return xml


def read_pass_fail_value(text: str, label: str) -> str | None:
    match = re.search(rf"{re.escape(label)}\s*:\s*(PASS|FAIL)\b", text, re.IGNORECASE)
    return match.group(1).upper() if match else None


class FsopInjector:
    def __init__(self, keep_backup: bool = False) -> None:
        self.keep_backup = keep_backup
        self._last_log_state: ParseLogState | None = None

    @property
    def last_log_state(self) -> ParseLogState | None:
        return self._last_log_state

    def inject_file(
        self,
        docx_path: str | Path,
        instructions: InjectionInstructions | Mapping[str, Any],
    ) -> Path:
        path = Path(docx_path)
        if not isinstance(instructions, InjectionInstructions):
            instructions = InjectionInstructions.from_dict(instructions)
        started = perf_counter()
        log_state = new_log_state(path)
        try:
            if not path.exists():
                raise FileNotFoundError(f"document not found: {path}")
            if not path.is_file():
                raise IsADirectoryError(f"document path is not a file: {path}")
            xml = read_document_xml(path)
            if instructions.is_empty():
                warn(log_state, rule="no_instructions", reason="nothing to inject")
            else:
                injected = inject_document_xml(xml, instructions, log_state)
                write_document_xml(path, injected, keep_backup=self.keep_backup)
        except Exception as exc:
            log_state.error = str(exc)
            log_state.elapsed_sec = perf_counter() - started
            write_log(log_state, prefix=config.INJECT_LOG_FILE_PREFIX)
            self._last_log_state = log_state
            raise
        log_state.elapsed_sec = perf_counter() - started
        write_log(log_state, prefix=config.INJECT_LOG_FILE_PREFIX)
        self._last_log_state = log_state
        return path
