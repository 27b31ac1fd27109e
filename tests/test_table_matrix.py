import unittest

from fsop_parser.models import ColumnType
from fsop_parser.table_matrix import (
    RawTable,
    build_table,
    build_table_matrix,
    extract_tables,
    get_cell_fill,
    get_grid_span,
    get_vmerge,
    infer_column_type,
    iter_raw_tables,
    raw_table_rows,
)


def _tc(text: str, properties: str = "") -> str:
    tc_pr = f"<w:tcPr>{properties}</w:tcPr>" if properties else ""
    return f"<w:tc>{tc_pr}<w:p><w:r><w:t>{text}</w:t></w:r></w:p></w:tc>"


def _tr(*cells: str, properties: str = "") -> str:
    tr_pr = f"<w:trPr>{properties}</w:trPr>" if properties else ""
    return f"<w:tr>{tr_pr}{''.join(cells)}</w:tr>"


def _tbl(*rows: str) -> str:
    return f"<w:tbl><w:tblPr/><w:tblGrid/>{''.join(rows)}</w:tbl>"


class CellPropertyTests(unittest.TestCase):
    def test_grid_span(self) -> None:
        self.assertEqual(get_grid_span(_tc("a", '<w:gridSpan w:val="3"/>')), 3)
        self.assertEqual(get_grid_span(_tc("a")), 1)

    def test_vmerge_values(self) -> None:
        self.assertEqual(get_vmerge(_tc("a", '<w:vMerge w:val="restart"/>')), "restart")
        self.assertEqual(get_vmerge(_tc("a", '<w:vMerge w:val="continue"/>')), "continue")
        self.assertEqual(get_vmerge(_tc("a", "<w:vMerge/>")), "continue")
        self.assertIsNone(get_vmerge(_tc("a")))

    def test_nested_table_properties_are_ignored(self) -> None:
        nested = _tbl(_tr(_tc("x", "<w:vMerge/>")))
        cell = f"<w:tc><w:p/>{nested}</w:tc>"
        self.assertIsNone(get_vmerge(cell))

    def test_fill(self) -> None:
        cell = _tc("a", '<w:shd w:val="clear" w:color="auto" w:fill="d9d9d9"/>')
        self.assertEqual(get_cell_fill(cell), "#D9D9D9")
        self.assertIsNone(get_cell_fill(_tc("a")))

    def test_self_closing_properties(self) -> None:
        self.assertEqual(get_grid_span("<w:tc><w:tcPr/><w:p/></w:tc>"), 1)


class MatrixTests(unittest.TestCase):
    def test_vertical_merge_yields_one_cell(self) -> None:
        xml = _tbl(
            _tr(_tc("A", '<w:vMerge w:val="restart"/>'), _tc("B")),
            _tr(_tc("", '<w:vMerge w:val="continue"/>'), _tc("C")),
        )
        rows = build_table_matrix(xml)
        self.assertEqual(len(rows[0]), 2)
        self.assertEqual(rows[0][0].rowspan, 2)
        self.assertEqual([cell.text for cell in rows[1]], ["C"])

    def test_merge_chain_over_three_rows(self) -> None:
        xml = _tbl(
            _tr(_tc("A", '<w:vMerge w:val="restart"/>')),
            _tr(_tc("", "<w:vMerge/>")),
            _tr(_tc("", "<w:vMerge/>")),
        )
        rows = build_table_matrix(xml)
        self.assertEqual(rows[0][0].rowspan, 3)
        self.assertEqual(rows[1], [])

    def test_horizontal_span_and_grid_before(self) -> None:
        xml = _tbl(
            _tr(_tc("A"), _tc("B", '<w:vMerge w:val="restart"/>')),
            _tr(_tc("", "<w:vMerge/>"), properties='<w:gridBefore w:val="1"/>'),
            _tr(_tc("Total", '<w:gridSpan w:val="2"/>')),
        )
        rows = build_table_matrix(xml)
        self.assertEqual(rows[0][1].rowspan, 2)
        self.assertEqual(rows[0][0].rowspan, 1)
        self.assertEqual(rows[2][0].colspan, 2)
        self.assertEqual(rows[2][0].to_dict(), {"text": "Total", "colspan": 2})

    def test_plain_cell_ends_merge(self) -> None:
        xml = _tbl(
            _tr(_tc("A", '<w:vMerge w:val="restart"/>')),
            _tr(_tc("B")),
            _tr(_tc("", "<w:vMerge/>")),
        )
        rows = build_table_matrix(xml)
        self.assertEqual(rows[0][0].rowspan, 1)
        self.assertEqual(rows[1][0].text, "B")


class TableModelTests(unittest.TestCase):
    def test_raw_rows_skip_rows_without_cells(self) -> None:
        xml = _tbl(_tr(_tc("a"), _tc("b")), "<w:tr><w:trPr/></w:tr>", _tr(_tc("c")))
        self.assertEqual(raw_table_rows(xml), [["a", "b"], ["c"]])

    def test_column_types(self) -> None:
        self.assertEqual(infer_column_type("Date", []), ColumnType.DATE)
        self.assertEqual(infer_column_type("Heure", []), ColumnType.TIME)
        self.assertEqual(infer_column_type("Opérateur", []), ColumnType.OPERATOR)
        self.assertEqual(infer_column_type("N° lot", ["12"]), ColumnType.TEXT)
        self.assertEqual(infer_column_type("Quantité", []), ColumnType.NUMERIC)
        self.assertEqual(infer_column_type("Perte dB", []), ColumnType.NUMERIC)
        self.assertEqual(infer_column_type("Valeur", ["12.5"]), ColumnType.NUMERIC)
        self.assertEqual(infer_column_type("Contrôle", ["01/02/2024"]), ColumnType.DATE)
        self.assertEqual(infer_column_type("Remarque", ["ok"]), ColumnType.TEXT)

    def test_rows_are_padded_to_header_width(self) -> None:
        table = build_table(RawTable(index=3, start_index=0, end_index=0, rows=[["Mesures", "Date"], ["1.2"]]))
        self.assertEqual(table.id, 3)
        self.assertEqual(table.headers, ["Mesures", "Date"])
        self.assertEqual([cell.value for cell in table.rows[0].cells], ["1.2", ""])
        self.assertTrue(table.rows[0].cells[1].is_empty)
        self.assertEqual(table.columns[1].type, ColumnType.DATE)

    def test_header_only_table_gets_blank_row(self) -> None:
        table = build_table(RawTable(index=0, start_index=0, end_index=0, rows=[["A", "B"]]))
        self.assertEqual(len(table.rows), 1)
        self.assertEqual([cell.value for cell in table.rows[0].cells], ["", ""])

    def test_empty_table(self) -> None:
        self.assertIsNone(build_table(RawTable(index=0, start_index=0, end_index=0, rows=[])))

    def test_extract_tables_uses_body_order(self) -> None:
        body = _tbl(_tr(_tc("Mesures"))) + "<w:p/>" + _tbl(_tr(_tc("Date")), _tr(_tc("01/01/2024")))
        xml = f"<w:document><w:body>{body}</w:body></w:document>"
        raw = iter_raw_tables(xml)
        self.assertEqual([table.index for table in raw], [0, 1])
        self.assertEqual(xml[raw[1].start_index : raw[1].start_index + 7], "<w:tbl>")
        tables = extract_tables(xml)
        self.assertEqual([table.id for table in tables], [0, 1])
        self.assertEqual(tables[1].rows[0].cells[0].value, "01/01/2024")


if __name__ == "__main__":
    unittest.main()
