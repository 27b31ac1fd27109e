from __future__ import annotations

import re

_TEXT_TOKEN_PATTERN = re.compile(
    r"<w:t(?P<attrs>(?:\s[^>]*?)?)(?<!/)>(?P<text>.*?)</w:t>"
    r"|<w:tab(?P<tab_attrs>(?:\s[^>]*?)?)/>"
    r"|<w:(?:br|cr)\b[^>]*?/>",
    re.DOTALL,
)
_PRESERVE_PATTERN = re.compile(r'xml:space\s*=\s*"preserve"', re.IGNORECASE)
_TAB_STOP_PATTERN = re.compile(r"\bw:pos\s*=")
_EMBEDDED_TAG_PATTERN = re.compile(r"</?[A-Za-z][\w.-]*:[A-Za-z][^<>]*>")
_MARKUP_PATTERN = re.compile(r"<[A-Za-z/?!]")
_NO_SPACE_BEFORE = re.compile(r"^[,.;:!?)]")
_SPACE_RUN_PATTERN = re.compile(r"[ \t]+")

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def decode_entities(raw: str) -> str:
    return raw.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")


def escape_xml(value: object) -> str:
    text = "" if value is None else str(value)
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def strip_embedded_tags(text: str) -> str:
    return _EMBEDDED_TAG_PATTERN.sub("", text)


def normalize_spaces(text: str) -> str:
    return _SPACE_RUN_PATTERN.sub(" ", text).strip()


def is_preserve_run(attrs: str) -> bool:
    return bool(_PRESERVE_PATTERN.search(attrs or ""))


def has_markup(fragment: str) -> bool:
    return bool(_MARKUP_PATTERN.search(fragment))


def extract_text(fragment: str) -> str:
    if not fragment:
        return ""
    if not has_markup(fragment):
        return normalize_spaces(fragment)
    parts: list[str] = []
    for match in _TEXT_TOKEN_PATTERN.finditer(fragment):
        token = match.group(0)
        if match.group("text") is not None:
            raw = strip_embedded_tags(decode_entities(match.group("text")))
            if is_preserve_run(match.group("attrs")):
                if raw:
                    parts.append(raw)
                continue
            trimmed = raw.strip()
            if not trimmed:
                continue
            if parts and _needs_space(parts[-1], trimmed):
                parts.append(" ")
            parts.append(trimmed)
        elif token.startswith("<w:tab"):
            if _TAB_STOP_PATTERN.search(match.group("tab_attrs") or ""):
                continue
            parts.append("\t")
        else:
            parts.append("\n")
    return normalize_spaces("".join(parts))


def _needs_space(previous: str, current: str) -> bool:
    if not previous or previous[-1].isspace():
        return False
    if current[0].isspace():
        return False
    if _NO_SPACE_BEFORE.match(current):
        return False
    return not previous.endswith("(")
