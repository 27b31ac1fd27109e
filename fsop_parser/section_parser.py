from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Sequence

from . import config
from .blocks import Paragraph
from .field_detector import sort_checkboxes
from .models import Checkbox, Section, SectionTextField, SectionType, Table
from .parse_log import ParseLogState, warn
from .section_rules import (
    DEFAULT_VOCABULARY,
    FALLBACK_NARROW_WINDOW,
    FALLBACK_WIDE_WINDOW,
    FIRST_TABLE_SECTION,
    LAST_SECTION_CHECKBOX_WINDOW,
    PASS_FAIL_LAST_SECTION_SPAN,
    PREFACE_SCAN_LIMIT,
    PREFACE_SECTION_ID,
    PREFACE_TITLE,
    SECONDARY_TABLE_HEADER_WORD,
    SECONDARY_TABLE_SECTION,
    SECTION_GAP_CHECK_MIN_ID,
    TABLE_OVERRIDE_SECTIONS,
    TITLE_CONTINUATION_LIMIT,
    TITLE_CONTINUATION_MAX_LENGTH,
    SectionVocabulary,
)
from .table_matrix import RawTable
from .xml_scanner import iter_elements
from .xml_text import extract_text

_LETTERS = "A-Za-zÀ-ÿ"
_LOWER = "a-zéèêëàâäôöùûüç"
_LETTER_PATTERN = re.compile(rf"[{_LETTERS}]")
_THREE_LETTERS_PATTERN = re.compile(rf"[{_LETTERS}]{{3,}}")
_HEADING_PATTERN = re.compile(r"^(\d+)[-\s.]+\s*(.+)$")
_STRICT_PATTERN = re.compile(rf"^(\d+)[-\s.]+\s*([{_LETTERS}].*)$")
_LOOSE_PATTERN = re.compile(r"^(\d+)[-\s.]+(.+)$")
_TIGHT_PATTERN = re.compile(rf"^(\d+)\s*([{_LETTERS}].*)$")
_NUMBERED_LINE_PATTERN = re.compile(r"^\d+[-\s.]+")
_MEASUREMENT_PATTERN = re.compile(r"^\d+[.,]?\d*\s*(mm|dB|°C|°F|°)\s*[±≤≥]")
_MEASUREMENT_LINE_PATTERN = re.compile(r"^\d+\s*(mm|dB)\s*[±≤≥]", re.IGNORECASE)
_CAPITALIZED_PAIR_PATTERN = re.compile(r"^[A-Z][a-z]+\s+[A-Z]")
_CASE_GAP_PATTERN = re.compile(rf"(?!dB\b)([{_LOWER}])([A-Z])")
_AVEC_BEFORE_PATTERN = re.compile(rf"([{_LOWER}])(avec)", re.IGNORECASE)
_AVEC_AFTER_PATTERN = re.compile(rf"(avec)([{_LOWER}])", re.IGNORECASE)
_GENERIC_PASS_FAIL_PATTERN = re.compile(r"([^:]+):\s*PASS\s*FAIL", re.IGNORECASE)
_PASS_PATTERN = re.compile(r"PASS", re.IGNORECASE)
_FAIL_PATTERN = re.compile(r"FAIL", re.IGNORECASE)
_BLANK_FIELD_PATTERN = re.compile(r"([^:]+):\s*_{3,}")
_BLANK_FIELD_SKIP_PATTERN = re.compile(r"PASS|FAIL|Connecteur", re.IGNORECASE)
_LINE_BREAK_PATTERN = re.compile(r"\s*\n\s*")
_WORD_SPLIT_PATTERN = re.compile(r"\s+")
BLANK_FIELD_PLACEHOLDER = "_______"
TITLE_REFERENCE_PLACEHOLDER = "MO XXX ind___"


@dataclass(frozen=True)
class TitleEntry:
    number: int
    title: str
    paragraph_index: int


@dataclass(frozen=True)
class SectionMatch:
    number: int
    title: str
    paragraph_index: int
    offset: int


@dataclass(frozen=True)
class _VocabularyPatterns:
    reference_after_colon: re.Pattern[str]
    reference_line: re.Pattern[str]
    reference_start: re.Pattern[str]
    reference_hint: re.Pattern[str]
    title_reference_field: tuple[re.Pattern[str], ...]
    pass_fail_line: re.Pattern[str]
    pass_fail_stop: re.Pattern[str]
    connector: re.Pattern[str]
    short_connector: re.Pattern[str]
    fallback_keyword: re.Pattern[str]


@lru_cache(maxsize=None)
def _patterns(vocabulary: SectionVocabulary) -> _VocabularyPatterns:
    prefix = re.escape(vocabulary.title_reference_prefix)
    suffix = re.escape(vocabulary.title_reference_suffix)
    label = re.escape(vocabulary.pass_fail_label)
    return _VocabularyPatterns(
        reference_after_colon=re.compile(rf"^({prefix}\s+\d+|{suffix})", re.IGNORECASE),
        reference_line=re.compile(rf"^({prefix}\s+\d+\s*{suffix}|{suffix})", re.IGNORECASE),
        reference_start=re.compile(rf"^({prefix}\s+\d+\s*{suffix}|{prefix}\s+\d+)", re.IGNORECASE),
        reference_hint=re.compile(rf"({prefix}|{suffix}|\d+)", re.IGNORECASE),
        title_reference_field=(
            re.compile(rf":\s*({prefix}\s+\d+\s+{suffix}\s*_+)", re.IGNORECASE),
            re.compile(rf"({prefix}\s+\d+\s+{suffix}\s*_{{2,}})", re.IGNORECASE),
        ),
        pass_fail_line=re.compile(rf"{label}.*PASS.*FAIL", re.IGNORECASE),
        pass_fail_stop=re.compile(rf"{label}\s+\d+.*PASS|FAIL", re.IGNORECASE),
        connector=re.compile(rf"({label}\s+\d+(?:\s*\([^)]+\))?)", re.IGNORECASE),
        short_connector=re.compile(rf"({label}\s+\d+)", re.IGNORECASE),
        fallback_keyword=re.compile(re.escape(vocabulary.fallback_keyword), re.IGNORECASE),
    )


def fold_lines(text: str) -> str:
    return _LINE_BREAK_PATTERN.sub(" ", text).strip()


def normalize_title(title: str) -> str:
    """Repair words glued together by run splitting, e.g. ``interférométriqueavec``."""
    title = _CASE_GAP_PATTERN.sub(r"\1 \2", title)
    title = _AVEC_BEFORE_PATTERN.sub(r"\1 \2", title)
    return _AVEC_AFTER_PATTERN.sub(r"\1 \2", title)


def is_measurement(text: str) -> bool:
    return bool(_MEASUREMENT_PATTERN.match(text))


def _texts_after(paragraphs: Sequence[Paragraph], index: int) -> list[str]:
    stop = min(index + 1 + TITLE_CONTINUATION_LIMIT, len(paragraphs))
    return [fold_lines(paragraphs[position].text) for position in range(index + 1, stop)]


def _harvest_continuation(title: str, following: Iterable[str], vocabulary: SectionVocabulary) -> str:
    patterns = _patterns(vocabulary)
    full = title
    for next_text in following:
        if not next_text or patterns.pass_fail_line.search(next_text):
            break
        if len(next_text) >= TITLE_CONTINUATION_MAX_LENGTH:
            break
        if full.endswith(":"):
            absorbed = patterns.reference_after_colon.match(next_text)
        else:
            absorbed = patterns.reference_line.match(next_text)
        if not absorbed:
            break
        full = f"{full} {next_text}"
    return full


def _match_continuation(title: str, following: Iterable[str], vocabulary: SectionVocabulary) -> str:
    patterns = _patterns(vocabulary)
    full = title
    for next_text in following:
        if _NUMBERED_LINE_PATTERN.match(next_text):
            break
        if patterns.reference_start.match(next_text):
            full = f"{full} {next_text}"
            continue
        if (
            full.endswith(":")
            and patterns.reference_after_colon.match(next_text)
            and len(next_text) < TITLE_CONTINUATION_MAX_LENGTH
        ):
            full = f"{full} {next_text}"
            continue
        if patterns.pass_fail_stop.search(next_text):
            break
        if vocabulary.is_table_header_line(next_text):
            break
        if _MEASUREMENT_LINE_PATTERN.match(next_text):
            break
        if (
            next_text
            and len(next_text) < 30
            and not _CAPITALIZED_PAIR_PATTERN.match(next_text)
            and patterns.reference_hint.search(next_text)
        ):
            full = f"{full} {next_text}"
            continue
        break
    return full


def harvest_titles(
    paragraphs: Sequence[Paragraph],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
    log_state: ParseLogState | None = None,
) -> dict[int, TitleEntry]:
    limit = len(paragraphs)
    if limit > config.TITLE_SCAN_PARAGRAPH_THRESHOLD:
        limit = min(limit, config.TITLE_SCAN_MAX_PARAGRAPHS)
        if limit < len(paragraphs):
            warn(log_state, rule="title_scan_cap", reason=f"title scan stopped after {limit} paragraphs")
    titles: dict[int, TitleEntry] = {}
    last_number = 0
    for index in range(limit):
        text = fold_lines(paragraphs[index].text)
        if len(text) < 5:
            continue
        match = _HEADING_PATTERN.match(text)
        if match is not None:
            remainder = match.group(2).strip()
            if not _LETTER_PATTERN.search(remainder):
                continue
            if is_measurement(text) or is_measurement(remainder):
                continue
            number = int(match.group(1))
            title = remainder
        elif vocabulary.starts_with_heading_word(text) and len(text) > 10:
            number = last_number + 1
            title = text
        else:
            continue
        if number == PREFACE_SECTION_ID:
            continue
        last_number = number
        if number in titles:
            warn(
                log_state,
                rule="duplicate_title",
                reason=f"title for section {number} already taken",
                section_id=number,
                paragraph_index=index,
            )
            continue
        full = _harvest_continuation(normalize_title(title), _texts_after(paragraphs, index), vocabulary)
        titles[number] = TitleEntry(number=number, title=f"{number}- {full.strip()}", paragraph_index=index)
    return titles


def is_valid_section_title(title: str, vocabulary: SectionVocabulary = DEFAULT_VOCABULARY) -> bool:
    if not _LETTER_PATTERN.search(title):
        return False
    if is_measurement(title):
        return False
    if _LETTER_PATTERN.match(title):
        return True
    if vocabulary.starts_with_known_word(title) or vocabulary.contains_section_keyword(title):
        return True
    return len(title) >= 5 and bool(_THREE_LETTERS_PATTERN.search(title))


def _numbered_match(text: str) -> re.Match[str] | None:
    match = _STRICT_PATTERN.match(text) or _LOOSE_PATTERN.match(text)
    if match is None and _LETTER_PATTERN.search(text):
        match = _TIGHT_PATTERN.match(text)
    return match


def match_sections(
    paragraphs: Sequence[Paragraph],
    titles: dict[int, TitleEntry],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
    log_state: ParseLogState | None = None,
) -> list[SectionMatch]:
    matches: list[SectionMatch] = []
    for index, paragraph in enumerate(paragraphs):
        text = fold_lines(paragraph.text)
        match = _numbered_match(text)
        if match is None:
            continue
        number = int(match.group(1))
        title = match.group(2).strip()
        if number == PREFACE_SECTION_ID:
            continue
        if is_measurement(text) or not is_valid_section_title(title, vocabulary):
            continue
        entry = titles.get(number)
        if entry is not None:
            full_title = entry.title
        else:
            full = _match_continuation(title, _texts_after(paragraphs, index), vocabulary)
            full_title = f"{number}- {full.strip()}"
        matches.append(
            SectionMatch(
                number=number,
                title=full_title,
                paragraph_index=index,
                offset=paragraph.offset,
            )
        )
    return matches


def matches_from_titles(
    paragraphs: Sequence[Paragraph],
    titles: dict[int, TitleEntry],
) -> list[SectionMatch]:
    entries = sorted(titles.values(), key=lambda entry: entry.paragraph_index)
    return [
        SectionMatch(
            number=entry.number,
            title=entry.title,
            paragraph_index=entry.paragraph_index,
            offset=paragraphs[entry.paragraph_index].offset,
        )
        for entry in entries
        if entry.paragraph_index < len(paragraphs)
    ]


def matches_from_keyword(
    paragraphs: Sequence[Paragraph],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
) -> list[SectionMatch]:
    keyword = _patterns(vocabulary).fallback_keyword
    matches: list[SectionMatch] = []
    for index, paragraph in enumerate(paragraphs):
        text = fold_lines(paragraph.text)
        if not keyword.search(text):
            continue
        match = _HEADING_PATTERN.match(text)
        if match is not None:
            number = int(match.group(1))
            title = match.group(2).strip()
            if number != PREFACE_SECTION_ID and keyword.search(title) and len(title) > 5:
                matches.append(SectionMatch(number, f"{number}- {title}", index, paragraph.offset))
    return matches


def data_tables(tables: Iterable[Table], vocabulary: SectionVocabulary = DEFAULT_VOCABULARY) -> list[Table]:
    return [table for table in tables if not vocabulary.is_header_table(table.header_text())]


def detect_pass_fail_fields(
    paragraphs: Sequence[Paragraph],
    start: int,
    stop: int,
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
) -> list[str]:
    patterns = _patterns(vocabulary)
    texts: list[str] = []
    for index in range(start + 1, min(stop, len(paragraphs))):
        text = fold_lines(paragraphs[index].text)
        if not text:
            continue
        if vocabulary.is_numbered_section_break(text):
            break
        texts.append(text)
    joined = " ".join(texts)
    fields: list[str] = []
    label = vocabulary.pass_fail_label.lower()
    lowered = joined.lower()
    if label in lowered and _PASS_PATTERN.search(joined) and _FAIL_PATTERN.search(joined):
        for match in patterns.connector.finditer(joined):
            name = match.group(1).strip()
            if name not in fields:
                fields.append(name)
    for text in texts:
        for match in _GENERIC_PASS_FAIL_PATTERN.finditer(text):
            name = match.group(1).strip()
            if label in name.lower() or not 5 < len(name) < 100:
                continue
            if name not in fields:
                fields.append(name)
    return fields


def _label_matches(label: str, texts: Sequence[str]) -> bool:
    for text in texts:
        if label in text or text[:50] in label:
            return True
    words = [word for word in _WORD_SPLIT_PATTERN.split(label) if len(word) > 3]
    if not words:
        return False
    for text in texts:
        text_words = [word for word in _WORD_SPLIT_PATTERN.split(text) if len(word) > 3]
        if not text_words:
            continue
        matching = sum(
            1 for word in words if any(other in word or word in other for other in text_words)
        )
        if matching * 2 >= len(words):
            return True
    return False


def select_checkboxes(
    checkboxes: Iterable[Checkbox],
    paragraphs: Sequence[Paragraph],
    start: int,
    end: int,
) -> list[Checkbox]:
    candidates = sort_checkboxes(
        checkbox for checkbox in checkboxes if start <= checkbox.paragraph_index < end
    )
    if not candidates:
        return []
    texts = [paragraph.text.lower() for paragraph in paragraphs[start:end] if paragraph.text]
    matched = [checkbox for checkbox in candidates if _label_matches(checkbox.label.lower(), texts)]
    return sort_checkboxes(matched or candidates)


def packaging_checkboxes(
    checkboxes: Sequence[Checkbox],
    assigned: set[str],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
) -> list[Checkbox]:
    window = [checkbox for checkbox in checkboxes if checkbox.id not in assigned]
    window = window[-LAST_SECTION_CHECKBOX_WINDOW:]
    return sort_checkboxes(
        checkbox for checkbox in window if vocabulary.is_packaging_label(checkbox.label)
    )


def detect_section_text_fields(
    title: str,
    paragraphs: Sequence[Paragraph],
    start: int,
    end: int,
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
) -> list[SectionTextField]:
    fields: list[SectionTextField] = []
    for pattern in _patterns(vocabulary).title_reference_field:
        match = pattern.search(title)
        if match is None:
            continue
        label = title.split(match.group(1))[0].rstrip().rstrip(":").strip()
        if label:
            fields.append(SectionTextField(label=f"{label} :MO", placeholder=TITLE_REFERENCE_PLACEHOLDER))
            break
    for paragraph in paragraphs[start:end]:
        match = _BLANK_FIELD_PATTERN.search(fold_lines(paragraph.text))
        if match is None:
            continue
        label = match.group(1).strip()
        if _BLANK_FIELD_SKIP_PATTERN.search(label) or len(label) <= 5:
            continue
        if any(label in field.label for field in fields):
            continue
        fields.append(SectionTextField(label=label, placeholder=BLANK_FIELD_PLACEHOLDER))
    return fields


def derive_section_type(
    fields: Sequence[str],
    tables: Sequence[Table],
    checkboxes: Sequence[Checkbox],
    text_fields: Sequence[SectionTextField],
) -> SectionType:
    if fields and tables:
        return SectionType.MIXED
    if fields:
        return SectionType.PASS_FAIL
    if tables:
        return SectionType.TABLE
    if checkboxes:
        return SectionType.CHECKBOXES
    if text_fields:
        return SectionType.TEXT_FIELDS
    return SectionType.TEXT


def associate_fields(
    matches: Sequence[SectionMatch],
    paragraphs: Sequence[Paragraph],
    tables: Sequence[Table],
    checkboxes: Sequence[Checkbox],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
    log_state: ParseLogState | None = None,
) -> list[Section]:
    paragraph_count = len(paragraphs)
    content_tables = data_tables(tables, vocabulary)
    assigned: set[str] = set()
    sections: list[Section] = []
    for position, match in enumerate(matches):
        start = match.paragraph_index
        is_last = position + 1 == len(matches)
        end = paragraph_count if is_last else matches[position + 1].paragraph_index
        pass_fail_stop = min(start + PASS_FAIL_LAST_SECTION_SPAN, paragraph_count) if is_last else end
        fields = detect_pass_fail_fields(paragraphs, start, pass_fail_stop, vocabulary)

        section_tables: list[Table] = []
        if tables and (not fields or match.number in TABLE_OVERRIDE_SECTIONS):
            if fields:
                warn(
                    log_state,
                    rule="pass_fail_override",
                    reason="PASS/FAIL replaced by the section table",
                    section_id=match.number,
                )
                fields = []
            table_index = match.number - FIRST_TABLE_SECTION
            if 0 <= table_index < len(content_tables):
                section_tables.append(content_tables[table_index])
        if match.number == SECONDARY_TABLE_SECTION and len(content_tables) > 1:
            for table in content_tables:
                if any(SECONDARY_TABLE_HEADER_WORD in header.lower() for header in table.headers):
                    if table not in section_tables:
                        section_tables.append(table)
                    break

        section_checkboxes = select_checkboxes(checkboxes, paragraphs, start, end)
        if is_last and not section_checkboxes and checkboxes:
            section_checkboxes = packaging_checkboxes(checkboxes, assigned, vocabulary)
            if section_checkboxes:
                warn(
                    log_state,
                    rule="last_section_checkboxes",
                    reason=f"{len(section_checkboxes)} packaging checkboxes attached",
                    section_id=match.number,
                )
        assigned.update(checkbox.id for checkbox in section_checkboxes)

        text_fields = detect_section_text_fields(match.title, paragraphs, start, end, vocabulary)
        sections.append(
            Section(
                id=match.number,
                title=match.title,
                type=derive_section_type(fields, section_tables, section_checkboxes, text_fields),
                fields=fields,
                tables=section_tables,
                checkboxes=section_checkboxes,
                text_fields=text_fields,
            )
        )
    return sections


def _preceding_texts(xml: str, table_start: int, window: int) -> list[str]:
    texts = []
    for element in iter_elements(xml, "p", max(0, table_start - window), table_start):
        text = fold_lines(extract_text(element.xml))
        if len(text) > 3:
            texts.append(text)
    return texts


def _heading_title(text: str, vocabulary: SectionVocabulary) -> tuple[int, str] | None:
    match = _HEADING_PATTERN.match(text)
    if match is None:
        return None
    title = match.group(2).strip()
    keyword = _patterns(vocabulary).fallback_keyword
    if (keyword.search(title) or title[:1].isupper()) and len(title) > 5:
        return int(match.group(1)), title
    return None


def _title_before_table(
    xml: str,
    table_start: int,
    number: int,
    default_title: str,
    vocabulary: SectionVocabulary,
) -> tuple[str, list[str]]:
    patterns = _patterns(vocabulary)
    title = default_title
    fields: list[str] = []
    narrow = _preceding_texts(xml, table_start, FALLBACK_NARROW_WINDOW)
    for position in range(len(narrow) - 1, -1, -1):
        text = narrow[position]
        heading = _heading_title(text, vocabulary)
        if heading is not None:
            heading_number, heading_title = heading
            if heading_title.endswith(":"):
                for next_text in narrow[position + 1 : position + 1 + TITLE_CONTINUATION_LIMIT]:
                    if (
                        patterns.reference_after_colon.match(next_text)
                        and len(next_text) < TITLE_CONTINUATION_MAX_LENGTH
                    ):
                        heading_title = f"{heading_title} {next_text}"
                        break
            title = f"{heading_number}- {heading_title}"
            break
        if patterns.short_connector.search(text) and (_PASS_PATTERN.search(text) or _FAIL_PATTERN.search(text)):
            for connector in patterns.short_connector.finditer(text):
                name = connector.group(1).strip()
                if name not in fields:
                    fields.append(name)
    if title != f"Section {number}":
        return title, fields
    wide = _preceding_texts(xml, table_start, FALLBACK_WIDE_WINDOW)
    for text in reversed(wide):
        heading = _heading_title(text, vocabulary)
        if heading is not None:
            return f"{heading[0]}- {heading[1]}", fields
    expected = re.compile(rf"^{number}[-\s.]")
    for text in reversed(wide):
        if not expected.match(text):
            continue
        match = _HEADING_PATTERN.match(text)
        if match is not None and len(match.group(2).strip()) > 5:
            return f"{number}- {match.group(2).strip()}", fields
    return title, fields


def sections_from_tables(
    xml: str,
    raw_tables: Sequence[RawTable],
    tables: Sequence[Table],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
) -> list[Section]:
    # last rung: one section per table, titled from the XML before it
    offsets = {raw.index: raw.start_index for raw in raw_tables}
    sections: list[Section] = []
    for position, table in enumerate(tables):
        number = position + 1
        title = f"Section {number}"
        fields: list[str] = []
        table_start = offsets.get(table.id)
        if table_start is not None:
            title, fields = _title_before_table(xml, table_start, number, title, vocabulary)
        section_type = SectionType.PASS_FAIL if fields else SectionType.TABLE
        sections.append(
            Section(
                id=number,
                title=title,
                type=section_type,
                fields=fields,
                tables=[table] if section_type is SectionType.TABLE else [],
            )
        )
    return sections


def preface_section(
    matches: Sequence[SectionMatch],
    paragraphs: Sequence[Paragraph],
    tables: Sequence[Table],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
) -> Section | None:
    if not matches:
        return None
    table = next((item for item in tables if vocabulary.is_preface_table(item.header_text())), None)
    if table is None:
        return None
    limit = min(matches[0].paragraph_index, PREFACE_SCAN_LIMIT, len(paragraphs))
    for paragraph in paragraphs[:limit]:
        text = paragraph.text.strip()
        if len(text) > 5 and vocabulary.is_preface_paragraph(text):
            return Section(
                id=PREFACE_SECTION_ID,
                title=PREFACE_TITLE,
                type=SectionType.TABLE,
                tables=[table],
            )
    return None


def finalize_sections(sections: Iterable[Section], log_state: ParseLogState | None = None) -> list[Section]:
    """Sort by id and keep the first section of each id."""
    unique: list[Section] = []
    seen: set[int] = set()
    for section in sorted(sections, key=lambda item: item.id):
        if section.id in seen:
            warn(
                log_state,
                rule="duplicate_section",
                reason=f"duplicate section {section.id} removed",
                section_id=section.id,
            )
            continue
        seen.add(section.id)
        unique.append(section)
    if seen and max(seen) >= SECTION_GAP_CHECK_MIN_ID:
        missing = [number for number in range(1, max(seen) + 1) if number not in seen]
        if missing:
            warn(
                log_state,
                rule="missing_sections",
                reason="missing sections: " + ", ".join(str(number) for number in missing),
            )
    return unique


def extract_sections(
    xml: str,
    paragraphs: Sequence[Paragraph],
    raw_tables: Sequence[RawTable],
    tables: Sequence[Table],
    checkboxes: Sequence[Checkbox],
    vocabulary: SectionVocabulary = DEFAULT_VOCABULARY,
    log_state: ParseLogState | None = None,
) -> list[Section]:
    # headings, then harvested titles, then the keyword, then one section per table
    titles = harvest_titles(paragraphs, vocabulary, log_state)
    matches = match_sections(paragraphs, titles, vocabulary, log_state)
    if not matches:
        matches = matches_from_titles(paragraphs, titles)
        if matches:
            warn(log_state, rule="fallback_titles", reason=f"{len(matches)} sections from harvested titles")
        elif not titles:
            matches = matches_from_keyword(paragraphs, vocabulary)
            if matches:
                warn(log_state, rule="fallback_keyword", reason=f"{len(matches)} sections from keyword")
    sections = associate_fields(matches, paragraphs, tables, checkboxes, vocabulary, log_state)
    if not sections and tables:
        sections = sections_from_tables(xml, raw_tables, tables, vocabulary)
        warn(log_state, rule="fallback_tables", reason=f"{len(sections)} sections from tables")
    preface = preface_section(matches, paragraphs, tables, vocabulary)
    if preface is not None:
        sections.append(preface)
    final = finalize_sections(sections, log_state)
    if not final:
        warn(log_state, rule="no_sections", reason="no section found")
    return final
