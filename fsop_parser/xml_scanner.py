from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator

from .parse_log import ParseLogState, warn

_BODY_OPEN_PATTERN = re.compile(r"<w:body(?=[\s>])[^>]*>")
_BODY_CLOSE = "</w:body>"


@dataclass(frozen=True)
class OuterElement:
    xml: str
    start_index: int
    end_index: int


def qualified_name(tag: str) -> str:
    return tag if ":" in tag else f"w:{tag}"


@lru_cache(maxsize=None)
def open_tag_pattern(tag: str) -> re.Pattern[str]:
    # "<w:p" must not match "<w:pPr" or "<w:proofErr".
    return re.compile(rf"<{re.escape(qualified_name(tag))}(?=[\s>/])")


@lru_cache(maxsize=None)
def close_tag_pattern(tag: str) -> re.Pattern[str]:
    return re.compile(rf"</{re.escape(qualified_name(tag))}\s*>")


def extract_outer_element(xml: str, tag: str, start_index: int) -> OuterElement | None:
    open_pattern = open_tag_pattern(tag)
    close_pattern = close_tag_pattern(tag)
    if not open_pattern.match(xml, start_index):
        return None
    depth = 0
    cursor = start_index
    length = len(xml)
    while cursor < length:
        next_open = open_pattern.search(xml, cursor)
        next_close = close_pattern.search(xml, cursor)
        if next_open is not None and (next_close is None or next_open.start() < next_close.start()):
            tag_end = xml.find(">", next_open.end())
            if tag_end == -1:
                return None
            cursor = tag_end + 1
            if xml[tag_end - 1] == "/":
                if depth == 0:
                    return OuterElement(xml[start_index:cursor], start_index, cursor)
                continue
            depth += 1
            continue
        if next_close is None:
            return None
        depth -= 1
        cursor = next_close.end()
        if depth == 0:
            return OuterElement(xml[start_index:cursor], start_index, cursor)
    return None


def body_span(xml: str) -> tuple[int, int]:
    match = _BODY_OPEN_PATTERN.search(xml)
    if match is None:
        return 0, len(xml)
    end = xml.rfind(_BODY_CLOSE)
    if end < match.end():
        end = len(xml)
    return match.end(), end


def iter_elements(
    xml: str,
    tag: str,
    start: int = 0,
    end: int | None = None,
    log_state: ParseLogState | None = None,
) -> Iterator[OuterElement]:
    limit = len(xml) if end is None else end
    pattern = open_tag_pattern(tag)
    cursor = start
    while cursor < limit:
        match = pattern.search(xml, cursor, limit)
        if match is None:
            return
        element = extract_outer_element(xml, tag, match.start())
        if element is None:
            warn(log_state, rule="scanner", reason=f"unclosed <{qualified_name(tag)}> at {match.start()}")
            cursor = match.end()
            continue
        yield element
        cursor = element.end_index


def iter_children(element_xml: str, tag: str) -> Iterator[OuterElement]:
    first_close = element_xml.find(">")
    if first_close == -1:
        return
    yield from iter_elements(element_xml, tag, start=first_close + 1)


def iter_body_blocks(
    xml: str,
    log_state: ParseLogState | None = None,
) -> Iterator[tuple[str, OuterElement]]:
    start, end = body_span(xml)
    paragraph_pattern = open_tag_pattern("p")
    table_pattern = open_tag_pattern("tbl")
    cursor = start
    while cursor < end:
        next_p = paragraph_pattern.search(xml, cursor, end)
        next_tbl = table_pattern.search(xml, cursor, end)
        if next_p is None and next_tbl is None:
            return
        if next_p is not None and (next_tbl is None or next_p.start() < next_tbl.start()):
            kind, match = "p", next_p
        else:
            kind, match = "tbl", next_tbl
        element = extract_outer_element(xml, kind, match.start())
        if element is None:
            warn(log_state, rule="scanner", reason=f"unclosed <w:{kind}> at {match.start()}")
            cursor = match.end()
            continue
        yield kind, element
        cursor = element.end_index

