import tempfile
import unittest
from pathlib import Path

from clinic_sync.csv_codec import decode_text, encode_row, encode_rows, read_csv_file, split_line, write_csv_file


class EncodeTests(unittest.TestCase):
    def test_plain_cells_are_not_quoted(self):
        self.assertEqual(encode_row(["a", "b c", "1.5"]), "a,b c,1.5")

    def test_special_cells_are_quoted_and_quotes_doubled(self):
        self.assertEqual(encode_row(["a", "b,c", 'd"e', "f\ng"]), 'a,"b,c","d""e","f\ng"')

    def test_none_and_numbers(self):
        self.assertEqual(encode_row([None, 5, 2.5]), ",5,2.5")

    def test_rows_are_newline_separated(self):
        self.assertEqual(encode_rows([["h1", "h2"], ["1", "2"]]), "h1,h2\n1,2\n")


class DecodeTests(unittest.TestCase):
    def test_round_trip_of_comma_and_quote_cells(self):
        row = ["a", "b,c", 'd"e']
        self.assertEqual(split_line(encode_row(row)), row)

    def test_cells_are_trimmed(self):
        self.assertEqual(split_line(" a , b ,c "), ["a", "b", "c"])

    def test_empty_cells_are_kept(self):
        self.assertEqual(split_line("a,,c,"), ["a", "", "c", ""])
        self.assertEqual(split_line('"",x'), ["", "x"])

    def test_backslash_quote_is_literal(self):
        self.assertEqual(split_line('a\\"b,c'), ['a\\"b', "c"])

    def test_blank_lines_and_crlf_are_ignored(self):
        text = "\ufeffh1,h2\r\n\r\n1,2\r\n   \n3,4"
        self.assertEqual(decode_text(text), [["h1", "h2"], ["1", "2"], ["3", "4"]])

    def test_file_round_trip(self):
        rows = [["Doctor Name", "Cash"], ["Dr. Haddad, Jr.", "250.75"], ['The "Clinic"', "0"]]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "out.csv"
            write_csv_file(path, rows)
            self.assertEqual(read_csv_file(path), rows)


if __name__ == "__main__":
    unittest.main()
