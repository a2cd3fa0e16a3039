import pytest

from packages.ingestion_engine.columns import ColumnResolver, CsvFormatError


@pytest.fixture
def resolver():
    return ColumnResolver()


def test_resolve_amount_layout(resolver):
    mapping = resolver.resolve(["Transaction Date", "Description", "Amount"])
    assert mapping.date == 0
    assert mapping.description == 1
    assert mapping.amount == 2
    assert mapping.debit is None
    assert mapping.credit is None


def test_resolve_debit_credit_layout(resolver):
    mapping = resolver.resolve(["Date", "Description", "Debit", "Credit"])
    assert mapping.debit == 2
    assert mapping.credit == 3
    assert mapping.amount is None


def test_claimed_columns_are_not_reused(resolver):
    """'Transaction Amount' must not double as the description column."""
    mapping = resolver.resolve(["Posted Date", "Transaction Amount", "Payee"])
    assert mapping.date == 0
    assert mapping.amount == 1
    assert mapping.description == 2


def test_required_width(resolver):
    mapping = resolver.resolve(["Amount", "Memo", "Date"])
    assert mapping.required_width == 3


def test_missing_date_column(resolver):
    with pytest.raises(CsvFormatError) as exc_info:
        resolver.resolve(["Description", "Amount"])
    assert "date column" in str(exc_info.value)
    assert "Available headers: Description, Amount" in str(exc_info.value)
    assert exc_info.value.headers == ["Description", "Amount"]


def test_missing_description_column(resolver):
    with pytest.raises(CsvFormatError, match="description column"):
        resolver.resolve(["Date", "Amount"])


def test_missing_amount_columns(resolver):
    with pytest.raises(CsvFormatError, match="amount columns"):
        resolver.resolve(["Date", "Description"])


def test_custom_keywords():
    resolver = ColumnResolver(
        {"date": ["fecha"], "description": ["concepto"], "amount": ["importe"]}
    )
    mapping = resolver.resolve(["Fecha", "Concepto", "Importe"])
    assert (mapping.date, mapping.description, mapping.amount) == (0, 1, 2)
