import unittest

from clinic_sync.errors import ExtractionError
from clinic_sync.extractor import cell_span, clean_cell, decode_entities, extract_rows


class ExtractRowsTests(unittest.TestCase):
    def test_rows_and_cells_are_read_case_insensitively(self):
        html = "<TABLE><TR><TH>Doctor Name</TH><Td>Visits</tD></TR><tr><td>A</td><td>1</td></tr></TABLE>"
        self.assertEqual(extract_rows(html), [["Doctor Name", "Visits"], ["A", "1"]])

    def test_markup_is_stripped_and_whitespace_collapsed(self):
        html = "<tr><td>  <b>Dr.</b>\n   <i>Smith</i>  </td><td><span> 12 </span></td></tr>"
        self.assertEqual(extract_rows(html), [["Dr. Smith", "12"]])

    def test_rows_without_cells_are_dropped(self):
        html = "<tr></tr><tr><td>kept</td></tr><tr>  </tr>"
        self.assertEqual(extract_rows(html), [["kept"]])

    def test_rows_of_only_empty_cells_are_dropped(self):
        html = "<tr><td></td><td>  </td></tr><tr><td>x</td></tr>"
        self.assertEqual(extract_rows(html), [["x"]])

    def test_nbsp_cell_keeps_its_column(self):
        html = "<tr><td>1 - Smith</td><td>&nbsp;</td><td>500</td></tr>"
        self.assertEqual(extract_rows(html), [["1 - Smith", " ", "500"]])

    def test_colspan_filler_never_survives_compaction(self):
        spanned = extract_rows('<tr><td colspan="2">Cardiology</td><td></td><td>5</td></tr>')
        plain = extract_rows("<tr><td>Cardiology</td><td>5</td></tr>")
        self.assertEqual(spanned, plain)
        self.assertEqual(len(spanned[0]), 2)

    def test_empty_cells_inside_a_row_are_removed(self):
        self.assertEqual(extract_rows("<tr><td>a</td><td></td><td>b</td></tr>"), [["a", "b"]])

    def test_no_rows_raises_extraction_error(self):
        with self.assertRaises(ExtractionError):
            extract_rows("<html><body><p>No table here</p></body></html>")

    def test_all_empty_table_raises_extraction_error(self):
        with self.assertRaises(ExtractionError):
            extract_rows("<table><tr><td> </td></tr></table>")


class CellHelpersTests(unittest.TestCase):
    def test_named_entities_are_decoded(self):
        self.assertEqual(decode_entities("a &amp; b &lt;c&gt; &quot;d&quot; &apos;e&apos;"), "a & b <c> \"d\" 'e'")

    def test_numeric_and_hex_references_are_decoded(self):
        self.assertEqual(decode_entities("O&#39;Neil &#x41;"), "O'Neil A")

    def test_unknown_entities_pass_through(self):
        self.assertEqual(decode_entities("&copy; &bogus;"), "&copy; &bogus;")

    def test_entities_are_decoded_after_trimming(self):
        self.assertEqual(clean_cell("<td>&nbsp;</td>"), " ")
        self.assertEqual(clean_cell("<td>  Dr.&nbsp;Smith \n</td>"), "Dr. Smith")

    def test_decoded_markup_is_kept_as_text(self):
        self.assertEqual(clean_cell("<td>&lt;b&gt;</td>"), "<b>")

    def test_cell_span_reads_opening_tag_only(self):
        self.assertEqual(cell_span('<td colspan="3">x</td>'), 3)
        self.assertEqual(cell_span("<td colspan=2>x</td>"), 2)
        self.assertEqual(cell_span('<td colspan="1">x</td>'), 1)
        self.assertEqual(cell_span("<td>colspan=4</td>"), 1)


if __name__ == "__main__":
    unittest.main()
