import math
from datetime import date, datetime
import pytest
from project_controls.utils.dates import parse_date, week_ending_date
from project_controls.utils.numeric import finite, parse_numeric, round_cents, safe_divide, sanitize


@pytest.mark.parametrize("value, expected", [
    (None, 0.0),
    ('', 0.0),
    ('   ', 0.0),
    (1250, 1250.0),
    (12.5, 12.5),
    ('$1,234.50', 1234.5),
    (' 2 000 ', 2000.0),
    ('(1,200.00)', -1200.0),
    ('$(75)', -75.0),
    (' $-   ', 0.0),
    ('--', 0.0),
    ('12.5%', 12.5),
    ('N/A', 0.0),
    ('abc123', 0.0),
    (True, 0.0),
    (float('nan'), 0.0),
    (float('inf'), 0.0),
])
def test_parse_numeric(value, expected):
    assert parse_numeric(value) == expected


def test_finite_replaces_non_finite_values():
    assert finite(float('-inf')) == 0.0
    assert finite('3.5') == 3.5
    assert finite(object()) == 0.0


def test_safe_divide_and_round_cents():
    assert safe_divide(10, 0) == 0.0
    assert safe_divide(10, None) == 0.0
    assert round_cents(3200 / 60) == 53.33


def test_sanitize_walks_nested_structures():
    cleaned = sanitize({'a': [1.0, float('nan')], 'b': {'c': float('inf')}, 'd': 'text'})
    assert cleaned == {'a': [1.0, 0.0], 'b': {'c': 0.0}, 'd': 'text'}
    assert all(math.isfinite(v) for v in cleaned['a'])


def test_week_ending_is_sunday():
    assert week_ending_date('2025-01-01') == date(2025, 1, 5)
    assert week_ending_date(date(2025, 1, 5)) == date(2025, 1, 5)
    assert week_ending_date(date(2025, 1, 6)) == date(2025, 1, 12)
    assert week_ending_date('2025-01-06T08:30:00Z') == date(2025, 1, 12)


def test_parse_date_variants():
    assert parse_date(datetime(2025, 2, 3, 10, 0)) == date(2025, 2, 3)
    assert parse_date('') is None
    with pytest.raises(ValueError):
        parse_date('not a date')
