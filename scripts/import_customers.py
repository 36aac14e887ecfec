"""
Import customers from a CSV file.

Usage:
    python scripts/import_customers.py <path_to_csv> [--dry-run]

Recognised columns (case-insensitive):
    - NAME or COMPANY NAME (required)
    - TYPE
    - EMAIL
    - PHONE, or PHONE1 A + PHONE1 #
    - STREET / STREET1
    - CITY
    - STATE
    - ZIP / ZIPCODE
    - NOTES / COMPANY NOTES

Rows whose name already exists are skipped.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fieldops.db import SessionLocal, Base, engine
from fieldops.models import models  # noqa: F401
from fieldops.services.customer_import import import_customers_csv


def main(argv):
    args = [a for a in argv if not a.startswith("--")]
    dry_run = "--dry-run" in argv
    if len(args) != 1:
        print(__doc__)
        return 1

    csv_path = args[0]
    if not os.path.exists(csv_path):
        print(f"ERROR: File not found: {csv_path}")
        return 1

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
            result = import_customers_csv(db, f, dry_run=dry_run)
    finally:
        db.close()

    for message in result["messages"]:
        print(f"  - {message}")
    print("=" * 60)
    print(f"Created: {result['created']}")
    print(f"Skipped: {result['skipped']}")
    print(f"Errors:  {result['errors']}")
    if dry_run:
        print("(dry run, nothing was written)")
    print("=" * 60)
    return 0 if result["errors"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
