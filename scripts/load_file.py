"""CLI entry point for loading a CSV/Excel file into a table.

Usage:
    python -m scripts.load_file --db-url sqlite:///data.db --table invMasterAux --file data.xlsx
"""

import argparse
import logging
import sys
from pathlib import Path

from tableload import BulkTableLoader, create_service
from tableload.parsing import FileDecodeError, UnsupportedFileType, parse_upload

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Replace a table's rows with a file's contents")
    parser.add_argument(
        "--db-url", required=True, help="Database URL (sqlite:/// or postgresql://)"
    )
    parser.add_argument("--table", required=True, help="Target table name")
    parser.add_argument("--file", required=True, help="Path to a .csv, .xlsx or .xls file")
    parser.add_argument("--pool-size", type=int, default=1, help="Connections to open")
    parser.add_argument(
        "--lenient-columns",
        action="store_true",
        help="Let the first row define the columns; missing keys load as NULL",
    )
    args = parser.parse_args()

    path = Path(args.file)
    try:
        rows = parse_upload(path.name, path.read_bytes())
    except (UnsupportedFileType, FileDecodeError, OSError) as e:
        logger.error("Could not read %s: %s", path, e)
        sys.exit(1)

    service = create_service(args.db_url, args.pool_size)
    service.connect()
    try:
        loader = BulkTableLoader(service, strict_columns=not args.lenient_columns)
        result = loader.load(args.table, rows)
    finally:
        service.close()

    if not result.success:
        logger.error("%s %s", result.message, result.error or "")
        sys.exit(1)
    logger.info("Done. %s", result.message)


if __name__ == "__main__":
    main()
