"""Unit tests for price parsing and formatting."""
import pytest

from processor.models import Cost
from processor.price_parser import format_cost, parse_price_string


class TestParsePriceString:
    """Test cases for parse_price_string."""

    @pytest.mark.parametrize('text', ['Free', 'FREE', 'free ', '', '$', None])
    def test_free_and_empty(self, text):
        """Test that free and empty prices become a zero single price."""
        assert parse_price_string(text) == Cost('single', 0)

    def test_range(self):
        """Test parsing a dollar range."""
        assert parse_price_string('$15-$25') == Cost('range', [15, 25])

    def test_range_with_spaces(self):
        """Test that whitespace around the hyphen is ignored."""
        assert parse_price_string(' $15 - $25 ') == Cost('range', [15, 25])

    @pytest.mark.parametrize('text', ['$15–$25', '$15—$25', '$15 – $25'])
    def test_range_with_typographic_dash(self, text):
        """Test that en and em dashes separate a range like a hyphen."""
        assert parse_price_string(text) == Cost('range', [15, 25])

    def test_minimum(self):
        """Test parsing a minimum price."""
        assert parse_price_string('$25+') == Cost('minimum', 25)

    def test_single_value(self):
        """Test parsing a single price."""
        assert parse_price_string('$20') == Cost('single', 20)

    def test_decimal_and_thousands(self):
        """Test decimals and thousands separators."""
        assert parse_price_string('$12.50') == Cost('single', 12.5)
        assert parse_price_string('$1,000+') == Cost('minimum', 1000)

    def test_whole_numbers_are_ints(self):
        """Test that whole amounts come back as int."""
        cost = parse_price_string('$15.00-$25')
        assert cost.value == [15, 25]
        assert all(isinstance(value, int) for value in cost.value)

    @pytest.mark.parametrize('text', ['garbage', '$10-', 'tbd+', 'nan', 'inf'])
    def test_unparseable_falls_back_to_free(self, text):
        """Test that unparseable input never raises."""
        assert parse_price_string(text) == Cost('single', 0)

    def test_inverted_range_is_rejected(self):
        """Test that a range whose minimum exceeds its maximum is a failure."""
        assert parse_price_string('$25-$15') == Cost('single', 0)

    def test_failure_is_logged(self, caplog):
        """Test that parse failures are logged."""
        with caplog.at_level('WARNING', logger='processor.price_parser'):
            parse_price_string('garbage')
        assert any('garbage' in record.message for record in caplog.records)


class TestFormatCost:
    """Test cases for format_cost."""

    def test_single(self):
        assert format_cost(Cost('single', 15)) == '$15'

    def test_range(self):
        assert format_cost(Cost('range', [15, 25])) == '$15 - $25'

    def test_minimum(self):
        assert format_cost(Cost('minimum', 25)) == '$25+'

    def test_malformed_range(self):
        assert format_cost(Cost('range', 15)) == ''

    def test_unknown_type(self):
        assert format_cost(Cost('donation', 5)) == 'N/A'
