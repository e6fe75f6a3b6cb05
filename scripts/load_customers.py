"""
Replace the customer directory with the council CSV extracts.

    python scripts/load_customers.py data/COUNCIL_A_CUSTOMER_LIST.CSV data/COUNCIL_B_CUSTOMER_LIST.CSV

With no arguments the two default extract names are read from --dir.
Idempotent: every run replaces all rows.
"""
import argparse
import json
from pathlib import Path

from directdebit.ingest.csv_loader import DEFAULT_FILES, load_customer_files
from directdebit.store.customer_directory import RedisCustomerDirectory


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load council customer CSV extracts into the directory.")
    parser.add_argument("files", nargs="*", help="CSV files to load (default: the two council extracts)")
    parser.add_argument("--dir", default="data", help="Directory holding the default extracts")
    return parser.parse_args(argv)


def main(argv=None) -> dict:
    args = parse_args(argv)
    files = [Path(f) for f in args.files] or [Path(args.dir) / name for name in DEFAULT_FILES]
    result = load_customer_files(files, RedisCustomerDirectory())
    print(json.dumps(result))
    return result


if __name__ == "__main__":
    main()
