from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from .parse_log import ParseLogState
from .xml_scanner import body_span, iter_elements

_TEXT_NODE_PATTERN = re.compile(r"(<w:t(?:\s[^>]*?)?(?<!/)>)(.*?)(</w:t>)", re.DOTALL)
_PRESERVE_ATTR = ' xml:space="preserve"'


@dataclass(frozen=True)
class TextNode:
    start: int
    end: int
    open_tag: str
    raw: str


@dataclass(frozen=True)
class TextEdit:
    start: int
    end: int
    replacement: str


@dataclass(frozen=True)
class Replacement:
    start: int
    end: int
    value: str


def escape_text(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class NodeText:
    def __init__(self, nodes: list[TextNode]) -> None:
        self.nodes = nodes
        self.starts: list[int] = []
        position = 0
        for node in nodes:
            self.starts.append(position)
            position += len(node.raw)
        self.text = "".join(node.raw for node in nodes)

    @classmethod
    def from_fragment(cls, xml: str, start: int = 0, end: int | None = None) -> "NodeText":
        limit = len(xml) if end is None else end
        nodes = [
            TextNode(
                start=match.start(),
                end=match.end(),
                open_tag=match.group(1),
                raw=match.group(2),
            )
            for match in _TEXT_NODE_PATTERN.finditer(xml, start, limit)
        ]
        return cls(nodes)

    def rewrite(self, replacements: Iterable[Replacement]) -> list[TextEdit]:
        raws = [node.raw for node in self.nodes]
        for item in sorted(replacements, key=lambda r: r.start, reverse=True):
            touched = [
                index
                for index, node_start in enumerate(self.starts)
                if node_start < item.end and node_start + len(self.nodes[index].raw) > item.start
            ]
            if not touched:
                continue
            for index in reversed(touched):
                node_start = self.starts[index]
                local_start = max(item.start, node_start) - node_start
                local_end = min(item.end, node_start + len(self.nodes[index].raw)) - node_start
                value = item.value if index == touched[0] else ""
                raws[index] = raws[index][:local_start] + value + raws[index][local_end:]
        edits = []
        for node, raw in zip(self.nodes, raws):
            if raw == node.raw:
                continue
            edits.append(TextEdit(node.start, node.end, render_node(node, raw)))
        return edits


def render_node(node: TextNode, raw: str) -> str:
    open_tag = node.open_tag
    if raw != raw.strip() and "xml:space" not in open_tag:
        open_tag = open_tag[:-1] + _PRESERVE_ATTR + ">"
    return f"{open_tag}{raw}</w:t>"


def apply_edits(xml: str, edits: Iterable[TextEdit]) -> str:
    """Splice non-overlapping edits into ``xml``; untouched bytes stay as they are."""
    ordered = sorted(edits, key=lambda edit: edit.start, reverse=True)
    previous_start = len(xml) + 1
    for edit in ordered:
        if edit.end > previous_start:
            raise ValueError(f"overlapping edits at {edit.start}")
        xml = xml[: edit.start] + edit.replacement + xml[edit.end :]
        previous_start = edit.start
    return xml


def rewrite_paragraphs(
    xml: str,
    rewriter: Callable[[int, NodeText], list[Replacement]],
    log_state: ParseLogState | None = None,
) -> str:
    start, end = body_span(xml)
    edits: list[TextEdit] = []
    for element in iter_elements(xml, "p", start, end, log_state):
        node_text = NodeText.from_fragment(xml, element.start_index, element.end_index)
        if not node_text.nodes:
            continue
        replacements = rewriter(element.start_index, node_text)
        if replacements:
            edits.extend(node_text.rewrite(replacements))
    if not edits:
        return xml
    return apply_edits(xml, edits)
