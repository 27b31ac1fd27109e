from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

# Section N receives data table N - FIRST_TABLE_SECTION.
FIRST_TABLE_SECTION = 2
# PASS/FAIL detected in these sections is a false positive; the table wins.
TABLE_OVERRIDE_SECTIONS = range(2, 5)
SECONDARY_TABLE_SECTION = 1
SECONDARY_TABLE_HEADER_WORD = "heure"
LAST_SECTION_CHECKBOX_WINDOW = 20
PASS_FAIL_LAST_SECTION_SPAN = 50
PREFACE_SECTION_ID = 0
PREFACE_SCAN_LIMIT = 50
PREFACE_TITLE = "Général : Composant"
SECTION_GAP_CHECK_MIN_ID = 10
TITLE_CONTINUATION_LIMIT = 2
TITLE_CONTINUATION_MAX_LENGTH = 50
FALLBACK_NARROW_WINDOW = 2_000
FALLBACK_WIDE_WINDOW = 10_000

_NUMBERED_PREFIX_PATTERN = re.compile(r"^\d+[-\s.]+\s*")


@dataclass(frozen=True)
class HeaderFieldRule:
    key: str
    label: str
    placeholder: str | None = None

    def validate(self) -> None:
        if not self.key.strip():
            raise ValueError("header field key must be non-empty")
        if not self.label.strip():
            raise ValueError("header field label must be non-empty")
        if self.placeholder is not None and not re.fullmatch(r"\{\{[A-Z0-9_]+\}\}", self.placeholder):
            raise ValueError(f"invalid header placeholder: {self.placeholder}")

    def label_pattern(self) -> re.Pattern[str]:
        label = re.escape(self.label).replace("°", "[°º]")
        return re.compile(rf"{label}[ :]*(?:\t[ :]*)?([^\t\n]*)", re.IGNORECASE)

    def to_dict(self) -> dict[str, object]:
        return {"key": self.key, "label": self.label, "placeholder": self.placeholder}


DEFAULT_HEADER_FIELDS: tuple[HeaderFieldRule, ...] = (
    HeaderFieldRule(
        key="NUMERO_LANCEMENT",
        label="Numéro lancement",
        placeholder="{{LT}}",
    ),
    HeaderFieldRule(
        key="NUMERO_CORDON",
        label="N° cordon",
    ),
    HeaderFieldRule(
        key="REFERENCE_SILOG",
        label="Référence SILOG",
    ),
    HeaderFieldRule(
        key="NUMERO_SERIE",
        label="Numéro de série",
        placeholder="{{SN}}",
    ),
)


@dataclass(frozen=True)
class SectionVocabulary:
    heading_start_words: tuple[str, ...]
    known_section_words: tuple[str, ...]
    section_keywords: tuple[str, ...]
    fallback_keyword: str
    pass_fail_label: str
    packaging_words: tuple[str, ...]
    header_table_keywords: tuple[str, ...]
    preface_keywords: tuple[str, ...]
    preface_table_words: tuple[str, ...]
    table_header_stop_words: tuple[str, ...]
    section_break_words: tuple[str, ...] = ()
    title_reference_prefix: str = "MO"
    title_reference_suffix: str = "ind"

    def validate(self) -> None:
        if not self.heading_start_words:
            raise ValueError("heading_start_words must be non-empty")
        if not self.fallback_keyword.strip():
            raise ValueError("fallback_keyword must be non-empty")
        if not self.pass_fail_label.strip():
            raise ValueError("pass_fail_label must be non-empty")
        for word in self.heading_start_words:
            if word not in self.known_section_words:
                raise ValueError(f"heading start word not a known section word: {word}")

    def to_dict(self) -> dict[str, object]:
        return {
            "heading_start_words": list(self.heading_start_words),
            "known_section_words": list(self.known_section_words),
            "section_keywords": list(self.section_keywords),
            "fallback_keyword": self.fallback_keyword,
            "pass_fail_label": self.pass_fail_label,
            "packaging_words": list(self.packaging_words),
            "header_table_keywords": list(self.header_table_keywords),
            "preface_keywords": list(self.preface_keywords),
            "preface_table_words": list(self.preface_table_words),
            "table_header_stop_words": list(self.table_header_stop_words),
            "section_break_words": list(self.section_break_words),
            "title_reference_prefix": self.title_reference_prefix,
            "title_reference_suffix": self.title_reference_suffix,
        }

    def starts_with_heading_word(self, text: str) -> bool:
        return _starts_with_any(text, self.heading_start_words)

    def starts_with_known_word(self, text: str) -> bool:
        return _starts_with_any(text, self.known_section_words)

    def contains_section_keyword(self, text: str) -> bool:
        return _alternation(self.heading_start_words + self.section_keywords).search(text) is not None

    def is_numbered_section_break(self, text: str) -> bool:
        match = _NUMBERED_PREFIX_PATTERN.match(text)
        if match is None:
            return False
        return _starts_with_any(text[match.end():], self.section_break_words)

    def is_packaging_label(self, label: str) -> bool:
        return _alternation(self.packaging_words).search(label) is not None

    def is_header_table(self, header_text: str) -> bool:
        lowered = header_text.lower()
        return any(keyword in lowered for keyword in self.header_table_keywords)

    def is_preface_paragraph(self, text: str) -> bool:
        return _alternation(self.preface_keywords).search(text) is not None

    def is_preface_table(self, header_text: str) -> bool:
        lowered = header_text.lower()
        return any(word in lowered for word in self.preface_table_words)

    def is_table_header_line(self, text: str) -> bool:
        return _starts_with_any(text, self.table_header_stop_words)


def _starts_with_any(text: str, words: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(lowered.startswith(word.lower()) for word in words)


@lru_cache(maxsize=None)
def _alternation(words: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile("|".join(re.escape(word) for word in words), re.IGNORECASE)


DEFAULT_VOCABULARY = SectionVocabulary(
    heading_start_words=(
        "Contrôle",
        "Montage",
        "Cyclage",
        "Tir",
        "Emballage",
        "Test",
        "Vérification",
    ),
    known_section_words=(
        "Contrôle",
        "Montage",
        "Cyclage",
        "Tir",
        "Emballage",
        "Données",
        "Section",
        "Formulaire",
        "Test",
        "Vérification",
    ),
    section_keywords=(
        "dimensionnel",
        "perte",
        "insertion",
        "return",
        "loss",
        "face",
        "optique",
    ),
    fallback_keyword="Contrôle",
    pass_fail_label="Connecteur",
    packaging_words=(
        "retreint",
        "thermo",
        "rayon",
        "courbure",
        "dessiccant",
        "étiquette",
        "emballage",
    ),
    header_table_keywords=(
        "numéro lancement",
        "référence silog",
        "n° cordon",
    ),
    preface_keywords=("Général", "Composant"),
    preface_table_words=("composant", "lot"),
    table_header_stop_words=("Mesures", "Date", "Opérateur"),
    section_break_words=("Contrôle", "Montage", "Cyclage", "Tir", "Emballage"),
)


def validate_header_fields(rules: Iterable[HeaderFieldRule]) -> None:
    seen: set[str] = set()
    for rule in rules:
        rule.validate()
        if rule.key in seen:
            raise ValueError(f"duplicate header field key: {rule.key}")
        seen.add(rule.key)
