"""
Council customer extracts -> customer directory.

Each council drops a CSV (customer_number, postcode, ...) with a header row.
A load replaces the whole directory with the union of all files.
"""
import csv
import io
import time
from pathlib import Path
from typing import Iterable, List

from directdebit.observability.logging import log
from directdebit.store.customer_directory import CustomerDirectory, CustomerRecord

DEFAULT_FILES = ("COUNCIL_A_CUSTOMER_LIST.CSV", "COUNCIL_B_CUSTOMER_LIST.CSV")
MIN_COLUMNS = 3


def organization_for_file(name: str) -> str:
    return "council-a" if "COUNCIL_A" in Path(name).name.upper() else "council-b"


def parse_customer_csv(text: str, organization: str) -> List[CustomerRecord]:
    records: List[CustomerRecord] = []
    rows = csv.reader(io.StringIO(text))
    next(rows, None)  # header
    for row in rows:
        if len(row) < MIN_COLUMNS:
            continue
        customer_number = row[0].replace('"', "").strip()
        # Postcode spaces are kept; lookups compare with spaces removed
        postcode = row[1].replace('"', "").strip()
        if not customer_number:
            continue
        records.append(CustomerRecord(customer_number=customer_number, postcode=postcode, organization=organization))
    return records


def read_customer_file(path: Path) -> List[CustomerRecord]:
    text = path.read_text(encoding="utf-8-sig")
    records = parse_customer_csv(text, organization_for_file(path.name))
    log(event="customer_file_parsed", file=path.name, chars=len(text), records=len(records))
    return records


def load_customer_files(paths: Iterable[Path], directory: CustomerDirectory) -> dict:
    t0 = time.monotonic()
    paths = [Path(p) for p in paths]
    all_records: List[CustomerRecord] = []
    for p in paths:
        all_records.extend(read_customer_file(p))

    loaded = directory.replace_all(all_records)
    duration = round(time.monotonic() - t0, 3)
    log(event="customer_load_completed", recordsLoaded=loaded, filesProcessed=len(paths), durationSec=duration)
    return {
        "success": True,
        "recordsLoaded": loaded,
        "filesProcessed": len(paths),
        "duration": f"{duration} seconds",
    }
