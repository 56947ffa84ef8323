"""
Tests for format detection and CSV/XML/JSON parsing
"""

import pytest

from file_processor import FileProcessor
from models import FileFormat


class TestDetectFormat:
    """Content first, extension only for empty content"""

    @pytest.mark.parametrize(
        "content,expected",
        [
            ('{"products": []}', FileFormat.JSON),
            ('[{"ref": "A"}]', FileFormat.JSON),
            ('<?xml version="1.0"?><catalogue/>', FileFormat.XML),
            ("<produits><produit/></produits>", FileFormat.XML),
            ("Ref;Prix\nA;1,5", FileFormat.CSV),
            ("\ufeff  \n {\"a\": 1}", FileFormat.JSON),
            (b"<root/>", FileFormat.XML),
        ],
    )
    def test_content_decides(self, content, expected):
        assert FileProcessor.detect_format(content) == expected

    def test_content_wins_over_extension(self):
        assert FileProcessor.detect_format('[{"a": 1}]', "tarifs.csv") == FileFormat.JSON
        assert FileProcessor.detect_format("a;b\n1;2", "tarifs.xml") == FileFormat.CSV

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("tarifs.json", FileFormat.JSON),
            ("TARIFS.XML", FileFormat.XML),
            ("tarifs.txt", FileFormat.CSV),
            ("tarifs", FileFormat.CSV),
            (None, FileFormat.CSV),
        ],
    )
    def test_extension_for_empty_content(self, filename, expected):
        assert FileProcessor.detect_format("   \n", filename) == expected

    def test_total_on_none(self):
        assert FileProcessor.detect_format(None) == FileFormat.CSV

    def test_idempotent(self):
        content = "<items><item><ref>1</ref></item></items>"
        first = FileProcessor.detect_format(content, "a.csv")
        assert FileProcessor.detect_format(content, "a.csv") == first


class TestResolveFormat:
    def test_selected_kept_for_empty_content(self):
        assert FileProcessor.resolve_format("", "a.csv", FileFormat.JSON) == FileFormat.JSON

    def test_selected_corrected_by_content(self):
        assert FileProcessor.resolve_format("<a/>", None, FileFormat.CSV) == FileFormat.XML


class TestDetectDelimiter:
    @pytest.mark.parametrize(
        "content,expected",
        [
            ("a;b;c\n1,5;2,5;3", ";"),
            ("a,b\n1,2", ","),
            ("a\tb\n1\t2", "\t"),
            ("a|b\n1|2", "|"),
            ("single", ","),
            ("a;b,c", ";"),
        ],
    )
    def test_header_line(self, content, expected):
        assert FileProcessor.detect_delimiter(content) == expected


class TestParseCsv:
    def test_semicolon_with_decimal_commas(self, scenario_csv):
        parsed = FileProcessor.parse_csv(scenario_csv)

        assert parsed.format == FileFormat.CSV
        assert parsed.headers == ["Ref fournisseur", "Prix HT", "Stock"]
        assert parsed.rows == [{"Ref fournisseur": "SKU1", "Prix HT": "19,99", "Stock": "5"}]

    def test_blank_cells_are_none(self):
        parsed = FileProcessor.parse_csv("ref,prix,ean\nA,1.5,\nB,2,123\n")

        assert parsed.row_count == 2
        assert parsed.rows[0]["ean"] is None
        assert parsed.rows[1]["ean"] == "123"

    def test_short_row_cells_are_none(self):
        parsed = FileProcessor.parse_csv("ref;prix;ean\nA;1,5\n")

        assert parsed.rows == [{"ref": "A", "prix": "1,5", "ean": None}]

    def test_values_stay_strings(self):
        parsed = FileProcessor.parse_csv("ean;prix\n0123456789012;1\n")
        assert parsed.rows[0]["ean"] == "0123456789012"

    def test_empty(self):
        parsed = FileProcessor.parse_csv("")
        assert parsed.is_empty
        assert parsed.headers == []


class TestParseXml:
    def test_known_record_tag(self):
        content = (
            '<?xml version="1.0"?>'
            "<catalogue>"
            "<produit><reference>A1</reference><prix>1,50</prix></produit>"
            "<produit><reference>A2</reference><prix>2</prix><ean>123</ean></produit>"
            "</catalogue>"
        )
        parsed = FileProcessor.parse_xml(content)

        assert parsed.headers == ["reference", "prix", "ean"]
        assert parsed.rows[0] == {"reference": "A1", "prix": "1,50", "ean": None}
        assert parsed.rows[1]["ean"] == "123"

    def test_record_tag_used_as_field(self):
        content = (
            "<catalogue>"
            "<article><reference>A1</reference><produit>Stylo</produit><prix>0,85</prix></article>"
            "<article><reference>A2</reference><produit>Cahier</produit><prix>1,25</prix></article>"
            "</catalogue>"
        )
        parsed = FileProcessor.parse_xml(content)

        assert parsed.headers == ["reference", "produit", "prix"]
        assert parsed.rows[1] == {"reference": "A2", "produit": "Cahier", "prix": "1,25"}

    def test_generic_children(self):
        content = "<root><x><code>1</code></x><y><code>2</code></y><meta/></root>"
        parsed = FileProcessor.parse_xml(content)

        assert [row["code"] for row in parsed.rows] == ["1", "2"]

    def test_malformed(self):
        assert FileProcessor.parse_xml("<a><b></a>").is_empty


class TestParseJson:
    def test_known_key_and_nested_objects(self):
        content = '{"products": [{"ref": "A", "price": 1.5, "info": {"ean": "123"}}]}'
        parsed = FileProcessor.parse_json(content)

        assert "info.ean" in parsed.headers
        assert parsed.rows[0]["ref"] == "A"
        assert parsed.rows[0]["price"] == "1.5"
        assert parsed.rows[0]["info.ean"] == "123"

    def test_top_level_array_with_gaps(self):
        parsed = FileProcessor.parse_json('[{"a": 1}, {"a": 2, "b": 5}]')

        assert parsed.rows[0]["b"] is None
        assert parsed.rows[1]["b"] == "5"

    def test_first_array_property(self):
        parsed = FileProcessor.parse_json('{"meta": 1, "lignes": [{"x": "1"}]}')
        assert parsed.rows == [{"x": "1"}]

    def test_invalid(self):
        assert FileProcessor.parse_json("{not json").is_empty


class TestHelpers:
    def test_decode_cp1252(self):
        assert FileProcessor.decode_bytes("Désignation".encode("cp1252")) == "Désignation"

    def test_decode_strips_bom(self):
        assert FileProcessor.decode_bytes("\ufeffref".encode("utf-8")) == "ref"

    def test_analyze_structure(self, scenario_csv):
        analysis = FileProcessor.analyze_file_structure(FileProcessor.parse_csv(scenario_csv))

        assert analysis["total_rows"] == 1
        assert analysis["sample_data"]["Prix HT"] == "19,99"
        assert analysis["missing_values"]["Stock"] == 0

    def test_supported_formats(self):
        assert FileProcessor.get_supported_formats(FileFormat.CSV) == [".csv", ".txt"]
        assert FileProcessor.get_supported_formats(FileFormat.JSON) == [".json"]

    def test_validate_file_size(self):
        assert FileProcessor.validate_file_size(20 * 1024 * 1024, 20)
        assert not FileProcessor.validate_file_size(20 * 1024 * 1024 + 1, 20)
