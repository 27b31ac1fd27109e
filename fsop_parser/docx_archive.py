from __future__ import annotations

import os
import shutil
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from lxml import etree

from . import config
from .errors import (
    DocumentXmlEmptyError,
    DocumentXmlNotFoundError,
    EmptyArtifactError,
    InvalidDocxError,
)
from .parse_log import ParseLogState, warn

_CORE_NS = {
    "cp": "http://schemas.openxmlformats.org/package/2006/metadata/core-properties",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
}
_CORE_FIELDS = (
    ("title", "dc:title"),
    ("creator", "dc:creator"),
    ("lastModifiedBy", "cp:lastModifiedBy"),
    ("revision", "cp:revision"),
    ("modified", "dcterms:modified"),
)


def _read_part(path: Path, part: str) -> bytes:
    try:
        with ZipFile(path) as archive:
            return archive.read(part)
    except BadZipFile as exc:
        raise InvalidDocxError(f"invalid docx file: {path}") from exc


def read_document_xml(path: str | Path) -> str:
    docx_path = Path(path)
    try:
        data = _read_part(docx_path, config.DOCUMENT_PART)
    except KeyError as exc:
        raise DocumentXmlNotFoundError(f"{config.DOCUMENT_PART} not found in {docx_path}") from exc
    xml = data.decode("utf-8")
    if not xml.strip():
        raise DocumentXmlEmptyError(f"{config.DOCUMENT_PART} is empty in {docx_path}")
    return xml


def read_core_properties(
    path: str | Path,
    log_state: ParseLogState | None = None,
) -> dict[str, str | None]:
    try:
        data = _read_part(Path(path), config.CORE_PROPERTIES_PART)
    except KeyError:
        return {}
    try:
        root = etree.fromstring(data)
    except etree.XMLSyntaxError as exc:
        warn(log_state, rule="core_properties", reason=f"failed to parse {config.CORE_PROPERTIES_PART} ({exc})")
        return {}
    properties: dict[str, str | None] = {}
    for key, tag in _CORE_FIELDS:
        elem = root.find(tag, namespaces=_CORE_NS)
        properties[key] = elem.text if elem is not None else None
    return properties


def _verify_docx(path: Path) -> None:
    try:
        Document(str(path))
    except (PackageNotFoundError, BadZipFile, KeyError, etree.XMLSyntaxError) as exc:
        raise InvalidDocxError(f"rewritten file does not open as a Word document: {path}") from exc
    read_document_xml(path)


def write_document_xml(path: str | Path, xml: str, keep_backup: bool = False) -> Path:
    docx_path = Path(path)
    if not xml.strip():
        raise DocumentXmlEmptyError("refusing to write an empty document part")
    backup_path = docx_path.with_name(docx_path.name + ".backup")
    temp_path = docx_path.with_name(docx_path.name + ".tmp")
    shutil.copy2(docx_path, backup_path)
    try:
        try:
            with ZipFile(docx_path, "r") as src, ZipFile(temp_path, "w") as dst:
                for info in src.infolist():
                    content = src.read(info.filename)
                    if info.filename == config.DOCUMENT_PART:
                        content = xml.encode("utf-8")
                    dst.writestr(info, content)
        except BadZipFile as exc:
            raise InvalidDocxError(f"invalid docx file: {docx_path}") from exc
        if temp_path.stat().st_size == 0:
            raise EmptyArtifactError(f"temporary archive is empty: {temp_path}")
        os.replace(temp_path, docx_path)
        if docx_path.stat().st_size == 0:
            raise EmptyArtifactError(f"written archive is empty: {docx_path}", code="DOCX_FINAL_FILE_EMPTY")
        _verify_docx(docx_path)
    except Exception:
        shutil.copy2(backup_path, docx_path)
        raise
    finally:
        if temp_path.exists():
            temp_path.unlink()
        if not keep_backup and backup_path.exists():
            backup_path.unlink()
    return docx_path
