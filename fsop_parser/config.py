from __future__ import annotations

from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
OUTPUT_DIR = PROJECT_ROOT / "output"
LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_OUTPUT_PATH = OUTPUT_DIR / "fsop_structure.json"

LOG_FILE_PREFIX = "fsop_parser"
INJECT_LOG_FILE_PREFIX = "fsop_injector"
LOG_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

DOCUMENT_PART = "word/document.xml"
CORE_PROPERTIES_PART = "docProps/core.xml"

LARGE_DOCUMENT_BYTES = 500_000
LARGE_DOCUMENT_MAX_PARAGRAPHS = 10_000
TITLE_SCAN_PARAGRAPH_THRESHOLD = 1_000
TITLE_SCAN_MAX_PARAGRAPHS = 2_000


def ensure_base_dirs() -> None:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def build_log_path(ts: datetime | None = None, prefix: str | None = None) -> Path:
    if ts is None:
        ts = datetime.now()
    if prefix is None:
        prefix = LOG_FILE_PREFIX
    name = f"{prefix}_{ts.strftime(LOG_TIMESTAMP_FORMAT)}.log"
    return LOG_DIR / name


def cleanup_logs(retention_days: int = 5, now: datetime | None = None) -> int:
    if retention_days <= 0:
        return 0
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        return 0
    base_time = now or datetime.now()
    cutoff = base_time.timestamp() - retention_days * 86400
    removed = 0
    for prefix in (LOG_FILE_PREFIX, INJECT_LOG_FILE_PREFIX):
        for path in LOG_DIR.glob(f"{prefix}_*.log"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError:
                continue
    return removed
