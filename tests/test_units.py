import pytest

from planview.units import (
    format_bytes,
    format_rows,
    format_time,
    parse_bytes,
    parse_rows,
    parse_time,
    parse_value,
)


@pytest.mark.parametrize("seconds", [0, 500e-9, 1.592e-3, 26.134, 1.5 * 60 * 60])
def test_time_round_trip(seconds):
    assert parse_time(format_time(seconds)) == pytest.approx(seconds, rel=1e-9, abs=1e-15)


@pytest.mark.parametrize(
    "seconds, text",
    [
        (0, "0"),
        (500e-9, "500ns"),
        (1.592e-3, "1.592ms"),
        (26.134, "26.134s"),
        (90, "1.5m"),
        (5400, "1.5h"),
    ],
)
def test_format_time_uses_shortest_unit(seconds, text):
    assert format_time(seconds) == text


@pytest.mark.parametrize(
    "text, seconds",
    [
        ("26s134ms", 26.134),
        ("2s345ms", 2.345),
        ("1h2m", 3720),
        ("103.060ms", 0.10306),
        ("1.592 ms", 0.001592),
        ("12us", 12e-6),
        ("7ns", 7e-9),
        ("3", 3),
    ],
)
def test_parse_time(text, seconds):
    assert parse_time(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", [None, "", "-", "N/A", "soon", "12 parsecs"])
def test_parse_time_is_neutral_on_bad_input(text):
    assert parse_time(text) == 0


def test_parse_rows_prefers_exact_count():
    assert parse_rows("207.615K (207615)") == 207615
    assert parse_rows("3.336K") == 3336
    assert parse_rows("1.5M") == 1500000
    assert parse_rows("1,234") == 1234
    assert parse_rows("N/A") == 0
    assert parse_rows("lots") == 0


def test_parse_bytes_binary_units():
    assert parse_bytes("18.636 KB") == pytest.approx(18.636 * 1024)
    assert parse_bytes("1.045 GB") == pytest.approx(1.045 * 1024 ** 3)
    assert parse_bytes("12 B") == 12
    assert parse_bytes(None) == 0


def test_format_bytes_and_rows():
    assert format_bytes(1536) == "1.50 KB"
    assert format_bytes(3 * 1024 ** 3) == "3.00 GB"
    assert format_bytes(0) == "0.00 B"
    assert format_rows(1500) == "1.50K"
    assert format_rows(2500000) == "2.50M"
    assert format_rows(999) == "999"


def test_parse_value_dispatches_on_shape():
    assert parse_value("3.336K (3336)") == 3336
    assert parse_value("2 MB") == 2 * 1024 * 1024
    assert parse_value("26s134ms") == pytest.approx(26.134)
    assert parse_value("42") == 42
    assert parse_value("-") == 0


@pytest.mark.parametrize("value", [{"value": 5}, ["5ms"], ("1", "2"), object()])
@pytest.mark.parametrize("parser", [parse_time, parse_bytes, parse_rows, parse_value])
def test_parsers_read_structured_values_as_zero(parser, value):
    assert parser(value) == 0
