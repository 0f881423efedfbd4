"""
Tests for core utility functions
"""

from core.utils import parse_json_array


class TestParseJsonArray:
    """Tests for the permissive JSON array parser used on URL columns"""

    def test_parse_array_of_urls(self):
        """Test a well-formed array"""
        result = parse_json_array('["/uploads/a.jpg", "/uploads/b.jpg"]')
        assert result.ok
        assert result.items == ["/uploads/a.jpg", "/uploads/b.jpg"]

    def test_empty_values_are_empty_arrays(self):
        """None, blank strings and JSON null are not errors"""
        for raw in (None, "", "   ", "null", "[]"):
            result = parse_json_array(raw)
            assert result.ok, raw
            assert result.items == []

    def test_skips_empty_and_non_string_elements(self):
        """Only non-empty strings are kept"""
        result = parse_json_array('["/uploads/a.jpg", null, "", 42, {"u": 1}]')
        assert result.ok
        assert result.items == ["/uploads/a.jpg"]
        assert result.elements == ["/uploads/a.jpg", None, "", 42, {"u": 1}]

    def test_malformed_json(self):
        """Malformed JSON yields no items and an error"""
        result = parse_json_array('["/uploads/a.jpg", ')
        assert not result.ok
        assert result.items == []
        assert "invalid JSON" in result.error

    def test_non_array_json(self):
        """A JSON object or scalar is not an array"""
        for raw in ('{"url": "/uploads/a.jpg"}', '"/uploads/a.jpg"', "3"):
            result = parse_json_array(raw)
            assert not result.ok, raw
            assert result.items == []

    def test_bytes_input(self):
        """Bytes from the driver are decoded"""
        result = parse_json_array(b'["/uploads/a.jpg"]')
        assert result.items == ["/uploads/a.jpg"]

    def test_already_decoded_list(self):
        """Lists (e.g. from a JSON column type) pass through"""
        result = parse_json_array(["/uploads/a.jpg", None])
        assert result.items == ["/uploads/a.jpg"]
