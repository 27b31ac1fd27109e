from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from time import perf_counter
from typing import Iterable

from . import config
from .blocks import collect_paragraphs, document_lines, extract_blocks
from .docx_archive import read_core_properties, read_document_xml
from .errors import DocumentXmlEmptyError
from .field_detector import (
    detect_checkboxes,
    detect_text_fields,
    extract_document_title,
    extract_header_fields,
    extract_placeholders,
    extract_reference,
    extract_tagged_measures,
    resolve_text_field_labels,
    sort_checkboxes,
)
from .models import Block, ParsedDocument, Reference, TaggedMeasure
from .parse_log import ParseLogState, new_log_state, warn, write_log
from .section_parser import extract_sections
from .section_rules import (
    DEFAULT_HEADER_FIELDS,
    DEFAULT_VOCABULARY,
    HeaderFieldRule,
    SectionVocabulary,
    validate_header_fields,
)
from .table_matrix import build_table, iter_raw_tables


def parse_document_xml(
    xml: str,
    source: str | None = None,
    log_state: ParseLogState | None = None,
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
    header_fields: Iterable[HeaderFieldRule] = DEFAULT_HEADER_FIELDS,
) -> ParsedDocument:
    if not xml or not xml.strip():
        raise DocumentXmlEmptyError("document XML is empty")
    paragraphs = collect_paragraphs(xml, log_state)
    raw_tables = iter_raw_tables(xml, log_state)
    tables = [table for table in (build_table(raw) for raw in raw_tables) if table is not None]
    placeholders = extract_placeholders(xml)
    header = extract_header_fields(document_lines(xml, log_state), header_fields)
    checkboxes = sort_checkboxes(detect_checkboxes(paragraphs))
    text_fields = resolve_text_field_labels(
        detect_text_fields(paragraphs, raw_tables),
        paragraphs,
        raw_tables,
    )
    sections = extract_sections(xml, paragraphs, raw_tables, tables, checkboxes, vocabulary, log_state)

    blocks: list[Block] = []
    try:
        blocks = extract_blocks(xml, log_state)
    except Exception as exc:
        warn(log_state, rule="blocks", reason=f"block extraction failed ({exc})")
    document_title: str | None = None
    reference = Reference(detected=False)
    tagged_measures: list[TaggedMeasure] = []
    try:
        document_title = extract_document_title(xml)
        reference = extract_reference("\n".join(paragraph.text for paragraph in paragraphs), placeholders)
        tagged_measures = extract_tagged_measures(placeholders)
    except Exception as exc:
        warn(log_state, rule="metadata", reason=f"title/reference extraction failed ({exc})")

    if log_state is not None:
        log_state.count("paragraphs", len(paragraphs))
        log_state.count("tables", len(raw_tables))
        log_state.count("placeholders", len(placeholders))
        log_state.count("checkboxes", len(checkboxes))
        log_state.count("text_fields", len(text_fields))
        log_state.count("sections", len(sections))
    return ParsedDocument(
        placeholders=placeholders,
        header_fields=header,
        text_fields=text_fields,
        checkboxes=checkboxes,
        sections=sections,
        blocks=blocks,
        document_title=document_title,
        reference=reference,
        tagged_measures=tagged_measures,
        metadata={
            "source": source,
            "parsedAt": datetime.now().isoformat(timespec="seconds"),
            "paragraphCount": len(paragraphs),
            "tableCount": len(raw_tables),
        },
    )


class FsopParser:
    def __init__(
        self,
        vocabulary: SectionVocabulary | None = None,
        header_fields: Iterable[HeaderFieldRule] | None = None,
    ) -> None:
        self.vocabulary = DEFAULT_VOCABULARY if vocabulary is None else vocabulary
        self.header_fields = tuple(DEFAULT_HEADER_FIELDS if header_fields is None else header_fields)
        self.vocabulary.validate()
        validate_header_fields(self.header_fields)
        self._last_log_state: ParseLogState | None = None

    @property
    def last_log_state(self) -> ParseLogState | None:
        return self._last_log_state

    def parse(self, docx_path: str | Path) -> ParsedDocument:
        path = Path(docx_path)
        started = perf_counter()
        log_state = new_log_state(path)
        try:
            _ensure_readable_file(path)
            xml = read_document_xml(path)
            document = parse_document_xml(
                xml,
                source=str(path),
                log_state=log_state,
                vocabulary=self.vocabulary,
                header_fields=self.header_fields,
            )
            document.metadata["coreProperties"] = read_core_properties(path, log_state)
        except Exception as exc:
            log_state.error = str(exc)
            log_state.elapsed_sec = perf_counter() - started
            write_log(log_state, prefix=config.LOG_FILE_PREFIX)
            self._last_log_state = log_state
            raise
        log_state.elapsed_sec = perf_counter() - started
        write_log(log_state, prefix=config.LOG_FILE_PREFIX)
        self._last_log_state = log_state
        return document

    def export_json(self, document: ParsedDocument, output_path: str | Path | None = None) -> Path:
        if output_path is None:
            config.ensure_base_dirs()
            output = config.DEFAULT_OUTPUT_PATH
        else:
            output = Path(output_path)
            output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", encoding="utf-8") as handle:
            json.dump(document.to_dict(), handle, ensure_ascii=False, indent=2)
        return output


def _ensure_readable_file(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"document not found: {path}")
    if not path.is_file():
        raise IsADirectoryError(f"document path is not a file: {path}")
    try:
        with path.open("rb"):
            pass
    except PermissionError as exc:
        raise PermissionError(f"document is not readable: {path}") from exc
