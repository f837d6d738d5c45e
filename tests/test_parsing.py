from datetime import date

import pytest

from kasbot.parsing import (
    coerce_amount,
    coerce_date,
    parse_amount,
    parse_count,
    parse_due_day,
    parse_fee_value,
    parse_platform,
    parse_positive_amount,
    parse_total_with_interest,
)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3.5jt", 3_500_000),
        ("500rb", 500_000),
        ("3.500.000", 3_500_000),
        ("20rb", 20_000),
        ("3500000", 3_500_000),
        ("45k", 45_000),
        ("Rp 150.000", 150_000),
        ("1,5 juta", 1_500_000),
        ("2 ribu", 2_000),
        ("abc", None),
        ("", None),
        ("3.50.00", None),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


def test_positive_amount_rejects_zero():
    assert parse_positive_amount("0") is None
    assert parse_positive_amount("10rb") == 10_000


def test_total_with_interest_accepts_skip_words():
    assert parse_total_with_interest("skip") == 0
    assert parse_total_with_interest("Ga tau") == 0
    assert parse_total_with_interest("4.9jt") == 4_900_000
    assert parse_total_with_interest("banyak") is None


def test_platform_collapses_whitespace():
    assert parse_platform("  Shopee   Pinjam ") == "Shopee Pinjam"
    assert parse_platform("   ") is None


@pytest.mark.parametrize(
    "text, expected",
    [("12", 12), ("12 bulan", 12), ("10x", 10), ("6 kali", 6), ("0", None), ("dua belas", None)],
)
def test_parse_count(text, expected):
    assert parse_count(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("13", 13), ("tanggal 5", 5), ("tgl 31", 31), ("0", None), ("32", None), ("besok", None)],
)
def test_parse_due_day(text, expected):
    assert parse_due_day(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("5", 5.0), ("0.25", 0.25), ("0,25", 0.25), ("5%", 5.0), ("50rb", 50_000.0), ("-1", None), ("nan", None)],
)
def test_parse_fee_value(text, expected):
    assert parse_fee_value(text) == expected


def test_coerce_amount_from_classifier_values():
    assert coerce_amount(150000) == 150_000.0
    assert coerce_amount("150rb") == 150_000.0
    assert coerce_amount("Rp150.000,-") == 150_000.0
    assert coerce_amount(True) is None
    assert coerce_amount(None) is None
    assert coerce_amount(float("nan")) is None


def test_coerce_date():
    assert coerce_date("2026-03-10") == date(2026, 3, 10)
    assert coerce_date("2026-03-10T08:00:00") == date(2026, 3, 10)
    assert coerce_date("kemarin") is None
    assert coerce_date(None) is None
