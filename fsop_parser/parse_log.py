from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from . import config


@dataclass
class WarningEntry:
    rule: str
    reason: str
    section_id: int | None = None
    paragraph_index: int | None = None


@dataclass
class ParseLogState:
    source: str
    start_time: datetime
    warnings: list[WarningEntry] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    error: str | None = None
    elapsed_sec: float | None = None

    def count(self, name: str, value: int) -> None:
        self.counts[name] = value

    def rules(self) -> list[str]:
        return [warning.rule for warning in self.warnings]


def new_log_state(source: str | Path | None = None) -> ParseLogState:
    return ParseLogState(
        source=str(source) if source is not None else "<memory>",
        start_time=datetime.now(),
    )


def warn(
    log_state: ParseLogState | None,
    rule: str,
    reason: str,
    section_id: int | None = None,
    paragraph_index: int | None = None,
) -> None:
    if log_state is None:
        return
    log_state.warnings.append(
        WarningEntry(
            rule=rule,
            reason=reason,
            section_id=section_id,
            paragraph_index=paragraph_index,
        )
    )


def write_log(log_state: ParseLogState, prefix: str | None = None) -> Path:
    config.ensure_base_dirs()
    log_path = config.build_log_path(log_state.start_time, prefix=prefix)
    lines = [
        f"source: {log_state.source}",
        f"elapsed_sec: {log_state.elapsed_sec:.3f}"
        if log_state.elapsed_sec is not None
        else "elapsed_sec: unknown",
    ]
    for name, value in log_state.counts.items():
        lines.append(f"{name}: {value}")
    if log_state.error:
        lines.append(f"error: {log_state.error}")
    lines.append(f"warnings_count: {len(log_state.warnings)}")
    for warning in log_state.warnings:
        parts = [f"rule={warning.rule}", f"reason={warning.reason}"]
        if warning.section_id is not None:
            parts.append(f"section_id={warning.section_id}")
        if warning.paragraph_index is not None:
            parts.append(f"paragraph_index={warning.paragraph_index}")
        lines.append("warning: " + " ".join(parts))
    log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return log_path
