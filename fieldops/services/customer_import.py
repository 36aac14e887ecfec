"""
CSV customer import.

Recognised columns (case-insensitive): NAME or COMPANY NAME (required), TYPE,
EMAIL, PHONE or PHONE1 A + PHONE1 #, STREET/STREET1, CITY, STATE, ZIP/ZIPCODE,
NOTES/COMPANY NOTES.
"""
import csv
import re
from typing import Dict, IO, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import Customer


log = structlog.get_logger()


def clean_phone(phone_a: Optional[str], phone_num: Optional[str] = None) -> Optional[str]:
    """Join area code and number; 10 digit (or 1 + 10 digit) numbers become (XXX) XXX-XXXX."""
    digits = re.sub(r"[^\d]", "", phone_a or "") + re.sub(r"[^\d]", "", phone_num or "")
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    if len(digits) == 11 and digits[0] == "1":
        return f"({digits[1:4]}) {digits[4:7]}-{digits[7:]}"
    return digits or None


def normalize_field(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = str(value).strip()
    return value or None


def _first(row: Dict[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        value = normalize_field(row.get(key))
        if value:
            return value
    return None


def import_customers_csv(db: Session, stream: IO[str], dry_run: bool = False) -> Dict[str, object]:
    created = skipped = errors = 0
    messages = []

    sample = stream.read(2048)
    stream.seek(0)
    try:
        delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t").delimiter
    except csv.Error:
        delimiter = ","

    reader = csv.DictReader(stream, delimiter=delimiter)
    if reader.fieldnames:
        reader.fieldnames = [name.strip().upper() for name in reader.fieldnames]

    seen = set()
    for row_num, row in enumerate(reader, start=2):
        name = _first(row, "NAME", "COMPANY NAME", "COMPANYNAME")
        if not name:
            messages.append(f"Row {row_num}: missing name, skipped")
            skipped += 1
            continue
        if name.lower() in seen or db.query(Customer).filter(Customer.name == name).first():
            messages.append(f"Row {row_num}: customer '{name}' already exists, skipped")
            skipped += 1
            continue
        try:
            phone = row.get("PHONE")
            if phone:
                phone = clean_phone(phone)
            else:
                phone = clean_phone(row.get("PHONE1 A"), row.get("PHONE1 #"))
            customer = Customer(
                name=name,
                customer_type=_first(row, "TYPE", "CUSTOMER TYPE"),
                email=_first(row, "EMAIL"),
                phone=phone,
                billing_street=_first(row, "STREET", "STREET1"),
                billing_city=_first(row, "CITY"),
                billing_state=_first(row, "STATE"),
                billing_zip=_first(row, "ZIP", "ZIPCODE"),
                notes=_first(row, "NOTES", "COMPANY NOTES"),
            )
            if not dry_run:
                db.add(customer)
                db.commit()
            seen.add(name.lower())
            created += 1
        except Exception as e:
            db.rollback()
            messages.append(f"Row {row_num}: {e}")
            errors += 1

    log.info("customer_import_finished", created=created, skipped=skipped, errors=errors, dry_run=dry_run)
    return {"created": created, "skipped": skipped, "errors": errors, "dry_run": dry_run, "messages": messages}
