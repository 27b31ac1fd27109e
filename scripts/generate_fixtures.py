from __future__ import annotations

from pathlib import Path
from zipfile import ZipFile, ZIP_DEFLATED

from docx import Document

ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = ROOT / "tests" / "fixtures"

SAMPLE_TITLE = "FSOP Cordon optique RETA-123-AB-1.0"
HEADER_ROWS = (
    ("Numéro lancement", "{{LT}}"),
    ("N° cordon", "______"),
    ("Référence SILOG", "CORD-2041"),
    ("Numéro de série", "{{SN}}"),
)
DIMENSION_ROWS = (
    ("Mesures", "Date", "Opérateur", "Valeur mm"),
    ("Longueur", "", "", ""),
)
INSERTION_ROWS = (
    ("Connecteur", "Perte dB", "Statut"),
    ("1", "", ""),
)


def _add_table(doc: Document, rows: tuple[tuple[str, ...], ...]) -> None:
    table = doc.add_table(rows=len(rows), cols=len(rows[0]))
    for row, values in zip(table.rows, rows):
        for cell, value in zip(row.cells, values):
            cell.text = value


def build_sample_form(path: Path) -> Path:
    """A small four-section form: PASS/FAIL, two measure tables, packaging."""
    doc = Document()
    doc.add_paragraph(SAMPLE_TITLE)
    _add_table(doc, HEADER_ROWS)
    doc.add_paragraph("1- Contrôle visuel des connecteurs")
    doc.add_paragraph("Connecteur 1 (coté A): PASS FAIL")
    doc.add_paragraph("Connecteur 2 (coté B): PASS FAIL")
    doc.add_paragraph("2- Contrôle dimensionnel")
    _add_table(doc, DIMENSION_ROWS)
    doc.add_paragraph("3- Perte d'insertion")
    _add_table(doc, INSERTION_ROWS)
    doc.add_paragraph("4- Emballage")
    doc.add_paragraph("☐ Thermo retreint posé")
    doc.add_paragraph("☐ Étiquette collée")
    doc.add_paragraph("Numéro de bobine : _______")
    doc.save(path)
    return path


def build_tables_only_form(path: Path) -> Path:
    doc = Document()
    doc.add_paragraph("Relevé des mesures")
    for index in range(3):
        _add_table(doc, (("Mesure", "Valeur"), (f"M{index + 1}", "")))
        doc.add_paragraph("Observations")
    doc.save(path)
    return path


def remove_part(path: Path, part: str) -> Path:
    temp_path = path.with_suffix(".tmp")
    with ZipFile(path, "r") as src, ZipFile(temp_path, "w", ZIP_DEFLATED) as dst:
        for info in src.infolist():
            if info.filename == part:
                continue
            dst.writestr(info, src.read(info.filename))
    temp_path.replace(path)
    return path


def main() -> None:
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)
    build_sample_form(FIXTURES_DIR / "FSOP_SAMPLE.docx")
    build_tables_only_form(FIXTURES_DIR / "FSOP_TABLES_ONLY.docx")
    print(f"fixtures generated in {FIXTURES_DIR}")


if __name__ == "__main__":
    main()
