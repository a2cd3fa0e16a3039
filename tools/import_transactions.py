import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

from apps.api.core.config import Settings
from apps.api.domains.ingestion.service import ingest_csv
from apps.api.main import build_store
from packages.categorization.engine import CategorizationEngine
from packages.categorization.processor import TransactionProcessor
from packages.ingestion_engine.columns import CsvFormatError

# Load env
load_dotenv()


async def import_files(paths, bank_type=None, categorize=False, settings=None) -> int:
    """Import each CSV into the configured store. Returns the number of failed files."""
    settings = settings or Settings()
    store = build_store(settings)
    await store.open()

    processor = None
    if categorize:
        engine = CategorizationEngine.from_file(settings.CATEGORY_RULES_PATH or None)
        processor = TransactionProcessor(engine, store=store, batch_size=settings.BATCH_SIZE)

    failures = 0
    try:
        for path in paths:
            print(f"📂 Reading file: {path}")
            with open(path, "r", encoding="utf-8-sig") as f:
                content = f.read()

            try:
                result = await ingest_csv(
                    store,
                    content,
                    file_name=os.path.basename(path),
                    bank_type=bank_type,
                    processor=processor,
                )
            except CsvFormatError as e:
                print(f"❌ {path}: {e}")
                failures += 1
                continue

            upload = result.upload
            print(
                f"   {upload.bank_type}: {upload.total} parsed, {result.saved} saved, "
                f"{result.duplicates} duplicates, {result.skipped} rows skipped "
                f"(upload {upload.upload_id})"
            )
    finally:
        store.close()
    return failures


async def delete_upload(upload_id: str, settings=None) -> int:
    settings = settings or Settings()
    store = build_store(settings)
    await store.open()
    try:
        deleted = await store.delete_by_upload_id(upload_id)
    finally:
        store.close()
    print(f"🗑️  Deleted {deleted} transactions from upload {upload_id}")
    return deleted


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import bank statement CSVs into the ledger")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import one or more CSV files")
    import_parser.add_argument("files", nargs="+", help="Path to CSV file")
    import_parser.add_argument(
        "--bank-type",
        choices=["amex", "truist", "generic"],
        default=None,
        help="Bank format (detected from the file name when omitted)",
    )
    import_parser.add_argument(
        "--categorize", action="store_true", help="Run the categorization engine"
    )

    delete_parser = subparsers.add_parser("delete", help="Delete an upload")
    delete_parser.add_argument("upload_id", help="Upload id printed by the import command")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "import":
        missing = [path for path in args.files if not os.path.exists(path)]
        if missing:
            print(f"❌ File not found: {', '.join(missing)}")
            return 1
        failures = asyncio.run(import_files(args.files, args.bank_type, args.categorize))
        return 1 if failures else 0

    asyncio.run(delete_upload(args.upload_id))
    return 0


if __name__ == "__main__":
    sys.exit(main())
