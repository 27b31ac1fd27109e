import unittest
from dataclasses import replace

from fsop_parser.section_rules import (
    DEFAULT_HEADER_FIELDS,
    DEFAULT_VOCABULARY,
    FIRST_TABLE_SECTION,
    TABLE_OVERRIDE_SECTIONS,
    HeaderFieldRule,
    validate_header_fields,
)


class HeaderFieldRuleTests(unittest.TestCase):
    def test_default_rules(self) -> None:
        keys = [rule.key for rule in DEFAULT_HEADER_FIELDS]
        self.assertEqual(keys, ["NUMERO_LANCEMENT", "NUMERO_CORDON", "REFERENCE_SILOG", "NUMERO_SERIE"])
        validate_header_fields(DEFAULT_HEADER_FIELDS)

    def test_invalid_rules(self) -> None:
        with self.assertRaises(ValueError):
            HeaderFieldRule(key=" ", label="Lot").validate()
        with self.assertRaises(ValueError):
            HeaderFieldRule(key="LOT", label="Lot", placeholder="LOT").validate()
        with self.assertRaises(ValueError):
            validate_header_fields([HeaderFieldRule("LOT", "Lot"), HeaderFieldRule("LOT", "N° lot")])

    def test_label_pattern_accepts_ordinal_sign(self) -> None:
        rule = HeaderFieldRule(key="NUMERO_CORDON", label="N° cordon")
        match = rule.label_pattern().search("nº cordon : C-12")
        self.assertIsNotNone(match)
        self.assertEqual(match.group(1), "C-12")


class VocabularyTests(unittest.TestCase):
    def test_default_vocabulary_is_valid(self) -> None:
        DEFAULT_VOCABULARY.validate()
        self.assertEqual(DEFAULT_VOCABULARY.to_dict()["pass_fail_label"], "Connecteur")

    def test_heading_words_must_be_known(self) -> None:
        vocabulary = replace(DEFAULT_VOCABULARY, heading_start_words=("Nettoyage",))
        with self.assertRaises(ValueError):
            vocabulary.validate()

    def test_numbered_section_break(self) -> None:
        self.assertTrue(DEFAULT_VOCABULARY.is_numbered_section_break("2- Contrôle dimensionnel"))
        self.assertTrue(DEFAULT_VOCABULARY.is_numbered_section_break("13 emballage"))
        self.assertFalse(DEFAULT_VOCABULARY.is_numbered_section_break("2 mm ± 0,1"))
        self.assertFalse(DEFAULT_VOCABULARY.is_numbered_section_break("Contrôle"))

    def test_word_predicates(self) -> None:
        vocabulary = DEFAULT_VOCABULARY
        self.assertTrue(vocabulary.starts_with_heading_word("Cyclage thermique"))
        self.assertFalse(vocabulary.starts_with_heading_word("Données"))
        self.assertTrue(vocabulary.starts_with_known_word("Données"))
        self.assertTrue(vocabulary.contains_section_keyword("Mesure de perte d'insertion"))
        self.assertTrue(vocabulary.is_packaging_label("Thermo retreint posé"))
        self.assertTrue(vocabulary.is_packaging_label("ÉTIQUETTE collée"))
        self.assertFalse(vocabulary.is_packaging_label("Longueur"))
        self.assertTrue(vocabulary.is_header_table("numéro lancement {{lt}}"))
        self.assertTrue(vocabulary.is_preface_table("composant lot"))
        self.assertTrue(vocabulary.is_preface_paragraph("Général : Composant"))
        self.assertTrue(vocabulary.is_table_header_line("Date de mesure"))

    def test_table_ordering_constants(self) -> None:
        self.assertEqual(FIRST_TABLE_SECTION, 2)
        self.assertEqual(list(TABLE_OVERRIDE_SECTIONS), [2, 3, 4])


if __name__ == "__main__":
    unittest.main()
