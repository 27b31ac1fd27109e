import unittest

from fsop_parser.blocks import Paragraph, collect_paragraphs
from fsop_parser.field_detector import detect_checkboxes
from fsop_parser.models import Section, SectionTextField, SectionType
from fsop_parser.parse_log import new_log_state
from fsop_parser.section_parser import (
    TitleEntry,
    derive_section_type,
    detect_pass_fail_fields,
    detect_section_text_fields,
    extract_sections,
    finalize_sections,
    harvest_titles,
    is_valid_section_title,
    match_sections,
    matches_from_keyword,
    normalize_title,
    packaging_checkboxes,
    sections_from_tables,
    select_checkboxes,
)
from fsop_parser.table_matrix import build_table, iter_raw_tables


def _paragraphs(*texts: str) -> list[Paragraph]:
    return [Paragraph(index=index, text=text, offset=index * 100, xml=_p(text)) for index, text in enumerate(texts)]


def _p(text: str) -> str:
    escaped = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    return f"<w:p><w:r><w:t>{escaped}</w:t></w:r></w:p>"


def _tbl(*rows: tuple[str, ...]) -> str:
    body = "".join(
        "<w:tr>" + "".join(f"<w:tc>{_p(cell)}</w:tc>" for cell in row) + "</w:tr>" for row in rows
    )
    return f"<w:tbl><w:tblPr/>{body}</w:tbl>"


def _doc(*blocks: str) -> str:
    return f"<w:document><w:body>{''.join(blocks)}<w:sectPr/></w:body></w:document>"


def _sections(xml: str, log_state=None) -> list[Section]:
    paragraphs = collect_paragraphs(xml)
    raw_tables = iter_raw_tables(xml)
    tables = [build_table(raw) for raw in raw_tables]
    checkboxes = detect_checkboxes(paragraphs)
    return extract_sections(xml, paragraphs, raw_tables, tables, checkboxes, log_state=log_state)


class TitleTests(unittest.TestCase):
    def test_normalize_title(self) -> None:
        self.assertEqual(
            normalize_title("Contrôle interférométriqueavec embout"),
            "Contrôle interférométrique avec embout",
        )
        self.assertEqual(normalize_title("ContrôleDimensionnel"), "Contrôle Dimensionnel")
        self.assertEqual(normalize_title("Perte < 0,5dB"), "Perte < 0,5dB")

    def test_harvest_titles(self) -> None:
        log_state = new_log_state()
        paragraphs = _paragraphs(
            "1- Contrôle visuel",
            "2- Montage :",
            "MO 1097",
            "Connecteur 1: PASS FAIL",
            "Emballage du cordon final",
            "12 mm ± 0,5",
            "0- Préambule général",
            "1- Contrôle doublon",
        )
        titles = harvest_titles(paragraphs, log_state=log_state)
        self.assertEqual(sorted(titles), [1, 2, 3])
        self.assertEqual(titles[1].title, "1- Contrôle visuel")
        self.assertEqual(titles[2].title, "2- Montage : MO 1097")
        self.assertEqual(titles[3].title, "3- Emballage du cordon final")
        self.assertEqual(titles[3].paragraph_index, 4)
        self.assertIn("duplicate_title", log_state.rules())

    def test_title_validation(self) -> None:
        self.assertTrue(is_valid_section_title("Cyclage"))
        self.assertTrue(is_valid_section_title("(voir) note"))
        self.assertFalse(is_valid_section_title("123"))
        self.assertFalse(is_valid_section_title("(a) xx"))


class MatchTests(unittest.TestCase):
    def test_numbered_headings(self) -> None:
        paragraphs = _paragraphs(
            "Général",
            "1- Contrôle visuel",
            "Connecteur 1: PASS FAIL",
            "2 Montage",
            "3 mm ± 0,1",
            "4-",
            "5Cyclage thermique",
            "0- Préambule",
        )
        matches = match_sections(paragraphs, {})
        self.assertEqual([match.number for match in matches], [1, 2, 5])
        self.assertEqual([match.paragraph_index for match in matches], [1, 3, 6])
        self.assertEqual(
            [match.title for match in matches],
            ["1- Contrôle visuel", "2- Montage", "5- Cyclage thermique"],
        )
        self.assertEqual(matches[1].offset, 300)

    def test_harvested_title_overrides(self) -> None:
        paragraphs = _paragraphs("2 Montage")
        titles = {2: TitleEntry(2, "2- Montage final MO 1097", 0)}
        self.assertEqual(match_sections(paragraphs, titles)[0].title, "2- Montage final MO 1097")

    def test_title_continuation(self) -> None:
        paragraphs = _paragraphs("1- Contrôle final :", "MO 1097 ind", "Mesures", "3- Tir laser", "ind B")
        matches = match_sections(paragraphs, {})
        self.assertEqual(matches[0].title, "1- Contrôle final : MO 1097 ind")
        self.assertEqual(matches[1].title, "3- Tir laser ind B")

    def test_keyword_fallback(self) -> None:
        matches = matches_from_keyword(_paragraphs("Texte", "3- Contrôle optique"))
        self.assertEqual([(match.number, match.title) for match in matches], [(3, "3- Contrôle optique")])


class FieldAssociationTests(unittest.TestCase):
    def test_pass_fail_fields_stop_at_next_heading(self) -> None:
        paragraphs = _paragraphs(
            "1- Contrôle visuel",
            "Connecteur 1 (coté A): PASS FAIL",
            "Connecteur 2: PASS FAIL",
            "Propreté ferrule : PASS FAIL",
            "2- Montage",
            "Connecteur 9: PASS FAIL",
        )
        fields = detect_pass_fail_fields(paragraphs, 0, len(paragraphs))
        self.assertEqual(fields, ["Connecteur 1 (coté A)", "Connecteur 2", "Propreté ferrule"])

    def test_checkbox_selection(self) -> None:
        paragraphs = _paragraphs("4- Emballage", "☐ Thermo retreint posé", "☐ Étiquette collée", "5- Fin")
        checkboxes = detect_checkboxes(paragraphs)
        selected = select_checkboxes(checkboxes, paragraphs, 0, 3)
        self.assertEqual([checkbox.label for checkbox in selected], ["Thermo retreint posé", "Étiquette collée"])
        self.assertEqual(select_checkboxes(checkboxes, paragraphs, 3, 4), [])
        remaining = packaging_checkboxes(checkboxes, {"checkbox_0"})
        self.assertEqual([checkbox.id for checkbox in remaining], ["checkbox_1"])

    def test_section_text_fields(self) -> None:
        paragraphs = _paragraphs(
            "13- Emballage : MO 1098 ind___",
            "Numéro de bobine : _______",
            "Connecteur 1 : ____",
            "Lot : ____",
        )
        fields = detect_section_text_fields(paragraphs[0].text, paragraphs, 0, 4)
        self.assertEqual(fields, [
            SectionTextField(label="13- Emballage :MO", placeholder="MO XXX ind___"),
            SectionTextField(label="Numéro de bobine", placeholder="_______"),
        ])

    def test_section_type(self) -> None:
        table = object()
        self.assertEqual(derive_section_type(["a"], [table], [], []), SectionType.MIXED)
        self.assertEqual(derive_section_type(["a"], [], [], []), SectionType.PASS_FAIL)
        self.assertEqual(derive_section_type([], [table], [], []), SectionType.TABLE)
        self.assertEqual(derive_section_type([], [], [object()], []), SectionType.CHECKBOXES)
        self.assertEqual(derive_section_type([], [], [], [object()]), SectionType.TEXT_FIELDS)
        self.assertEqual(derive_section_type([], [], [], []), SectionType.TEXT)


class ExtractSectionsTests(unittest.TestCase):
    def test_duplicate_section_numbers_are_removed(self) -> None:
        log_state = new_log_state()
        xml = _doc(_p("5- Contrôle optique"), _p("texte"), _p("5- Contrôle optique bis"))
        sections = _sections(xml, log_state)
        self.assertEqual([section.id for section in sections], [5])
        self.assertIn("duplicate_section", log_state.rules())

    def test_tables_become_sections_without_headings(self) -> None:
        log_state = new_log_state()
        xml = _doc(
            _p("Relevé des mesures"),
            _tbl(("Mesure", "Valeur"), ("M1", "")),
            _tbl(("Mesure", "Valeur"), ("M2", "")),
            _tbl(("Mesure", "Valeur"), ("M3", "")),
        )
        sections = _sections(xml, log_state)
        self.assertEqual([section.id for section in sections], [1, 2, 3])
        self.assertEqual({section.type for section in sections}, {SectionType.TABLE})
        self.assertEqual(sections[2].table.rows[0].cells[0].value, "M3")
        self.assertIn("fallback_tables", log_state.rules())

    def test_table_section_titled_from_preceding_heading(self) -> None:
        xml = _doc(
            _tbl(("2- Mesures de longueur",)),
            _tbl(("Mesure", "Valeur"), ("L", "")),
        )
        sections = _sections(xml)
        self.assertEqual([section.title for section in sections], ["Section 1", "2- Mesures de longueur"])
        self.assertEqual(sections[1].type, SectionType.TABLE)

    def test_connector_line_before_table_gives_pass_fail_section(self) -> None:
        xml = _doc(
            _p("Connecteur 1: PASS FAIL"),
            _tbl(("Mesure", "Valeur"), ("M1", "")),
        )
        raw_tables = iter_raw_tables(xml)
        tables = [build_table(raw) for raw in raw_tables]
        sections = sections_from_tables(xml, raw_tables, tables)
        self.assertEqual(len(sections), 1)
        self.assertEqual((sections[0].id, sections[0].title), (1, "Section 1"))
        self.assertEqual(sections[0].type, SectionType.PASS_FAIL)
        self.assertEqual(sections[0].fields, ["Connecteur 1"])
        self.assertEqual(sections[0].tables, [])

    def test_tables_follow_section_numbers(self) -> None:
        log_state = new_log_state()
        xml = _doc(
            _tbl(("Numéro lancement", "{{LT}}")),
            _p("1- Contrôle visuel"),
            _p("Connecteur 1 (coté A): PASS FAIL"),
            _p("2- Contrôle dimensionnel"),
            _p("Connecteur 2: PASS FAIL"),
            _tbl(("Mesures", "Date"), ("", "")),
            _p("3- Perte d'insertion"),
            _tbl(("Connecteur", "Perte dB"), ("1", "")),
        )
        sections = _sections(xml, log_state)
        self.assertEqual([section.id for section in sections], [1, 2, 3])
        self.assertEqual(sections[0].type, SectionType.PASS_FAIL)
        self.assertEqual(sections[0].fields, ["Connecteur 1 (coté A)"])
        self.assertEqual(sections[1].type, SectionType.TABLE)
        self.assertEqual(sections[1].fields, [])
        self.assertEqual(sections[1].table.headers, ["Mesures", "Date"])
        self.assertEqual(sections[2].table.headers, ["Connecteur", "Perte dB"])
        self.assertIn("pass_fail_override", log_state.rules())

    def test_harvested_titles_used_when_nothing_is_numbered(self) -> None:
        log_state = new_log_state()
        xml = _doc(_p("Contrôle final du cordon"), _p("☐ Conforme"))
        sections = _sections(xml, log_state)
        self.assertEqual([(section.id, section.title) for section in sections], [(1, "1- Contrôle final du cordon")])
        self.assertEqual(sections[0].type, SectionType.CHECKBOXES)
        self.assertIn("fallback_titles", log_state.rules())

    def test_last_section_takes_packaging_checkboxes(self) -> None:
        log_state = new_log_state()
        xml = _doc(
            _p("☐ Thermo retreint posé"),
            _p("☐ Conforme"),
            _p("1- Contrôle visuel"),
            _p("2- Emballage final"),
        )
        sections = _sections(xml, log_state)
        self.assertEqual([checkbox.label for checkbox in sections[-1].checkboxes], ["Thermo retreint posé"])
        self.assertIn("last_section_checkboxes", log_state.rules())

    def test_preface_section(self) -> None:
        xml = _doc(
            _p("Général : Composant utilisé"),
            _tbl(("Composant", "Lot"), ("Fibre", "")),
            _p("1- Contrôle visuel"),
        )
        sections = _sections(xml)
        self.assertEqual([section.id for section in sections], [0, 1])
        self.assertEqual(sections[0].title, "Général : Composant")
        self.assertEqual(sections[0].type, SectionType.TABLE)

    def test_no_sections_is_logged(self) -> None:
        log_state = new_log_state()
        self.assertEqual(_sections(_doc(_p("Texte libre")), log_state), [])
        self.assertIn("no_sections", log_state.rules())

    def test_gap_warning(self) -> None:
        log_state = new_log_state()
        sections = [Section(id=number, title=str(number)) for number in (1, 2, 10)]
        finalize_sections(sections, log_state)
        self.assertIn("missing_sections", log_state.rules())


if __name__ == "__main__":
    unittest.main()
