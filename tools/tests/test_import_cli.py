import pytest

from apps.api.core.config import Settings
from tools.import_transactions import build_parser, import_files, main

CSV = """Date,Description,Amount
01/15/2025,STARBUCKS,-4.50
01/16/2025,PAYROLL,2500.00
"""


def test_parser_import_command():
    args = build_parser().parse_args(["import", "a.csv", "b.csv", "--bank-type", "amex"])
    assert args.command == "import"
    assert args.files == ["a.csv", "b.csv"]
    assert args.bank_type == "amex"
    assert args.categorize is False


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_import_files_reports_counts(tmp_path, capsys):
    path = tmp_path / "checking.csv"
    path.write_text(CSV, encoding="utf-8")

    failures = await import_files([str(path)], settings=Settings(_env_file=None, STORE_BACKEND="memory"))

    assert failures == 0
    output = capsys.readouterr().out
    assert "2 parsed, 2 saved, 0 duplicates" in output


@pytest.mark.asyncio
async def test_import_files_counts_bad_files(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text("Foo,Bar\n1,2\n", encoding="utf-8")

    failures = await import_files([str(path)], settings=Settings(_env_file=None, STORE_BACKEND="memory"))

    assert failures == 1


def test_main_rejects_missing_file(tmp_path):
    assert main(["import", str(tmp_path / "missing.csv")]) == 1
