import pytest

from packages.ingestion_engine.amounts import parse_amount, split_debit_credit


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12.34", 12.34),
        ("-25", -25.0),
        ("1,234.56", 1234.56),
        ("$25.00", 25.0),
        ("USD 25.00", 25.0),
        ("($133.08)", -133.08),
        ("(1,000.00)", -1000.0),
        (42, 42.0),
    ],
)
def test_parse_amount_variants(raw, expected):
    assert parse_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "--"])
def test_parse_amount_unparseable_is_zero(raw):
    assert parse_amount(raw) == 0.0


def test_split_debit_is_negative():
    assert split_debit_credit("50.00", "") == -50.0


def test_split_credit_is_positive():
    assert split_debit_credit("", "100.00") == 100.0


def test_split_credit_wins_when_both_populated():
    assert split_debit_credit("50.00", "100.00") == 100.0


def test_split_both_empty_is_zero():
    assert split_debit_credit("", "") == 0.0
    assert split_debit_credit(None, None) == 0.0
