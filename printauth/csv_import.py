"""Parse CSV exports into users for bulk creation."""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .models import ImportUser, parse_provider_id


DELIMITERS = (";", ",", "\t", "|")

COLUMN_ALIASES: Dict[str, str] = {
    "upn": "user_name",
    "username": "user_name",
    "user": "user_name",
    "fullname": "full_name",
    "name": "full_name",
    "emailaddress": "email",
    "email": "email",
    "cardid": "card_id",
    "card": "card_id",
    "shortid": "short_id",
    "short": "short_id",
    "pin": "short_id",
    "otp": "otp",
    "pid": "provider_id",
    "providerid": "provider_id",
    "provider": "provider_id",
}


@dataclass
class CsvParseResult:
    users: List[ImportUser] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid_users(self) -> List[ImportUser]:
        return [user for user in self.users if not user.errors]


def detect_delimiter(content: str) -> str:
    """Pick the delimiter that splits the first line into the most fields."""

    first_line = content.split("\n", 1)[0]
    best, best_count = ",", 1
    for delimiter in DELIMITERS:
        count = len(first_line.split(delimiter))
        if count > best_count:
            best, best_count = delimiter, count
    return best


def parse_csv(content: str) -> CsvParseResult:
    result = CsvParseResult()
    cleaned = content.lstrip("\ufeff")
    if not cleaned.strip():
        result.errors.append("CSV file is empty")
        return result

    delimiter = detect_delimiter(cleaned)
    result.warnings.append(f'Detected delimiter: "{delimiter}"')

    rows = [
        row
        for row in csv.reader(io.StringIO(cleaned), delimiter=delimiter)
        if any(cell.strip() for cell in row)
    ]
    if not rows:
        result.errors.append("No data found in CSV file")
        return result

    headers = [cell.strip().lower() for cell in rows[0]]
    result.warnings.append(f"Found columns: {', '.join(headers)}")

    fields = [COLUMN_ALIASES.get(header) for header in headers]
    if "user_name" not in fields:
        result.errors.append("Required column 'UPN' or 'Username' not found in CSV")
        return result

    for row_number, row in enumerate(rows[1:], start=1):
        values: Dict[str, str] = {}
        for index, name in enumerate(fields):
            if name is None:
                continue
            values[name] = row[index].strip() if index < len(row) else ""

        provider_raw = values.pop("provider_id", "")
        user = ImportUser(user_name=values.pop("user_name", ""), **values)
        user.provider_id = parse_provider_id(provider_raw)
        user.errors = user.validate()
        if user.errors:
            result.warnings.append(f"Row {row_number}: {', '.join(user.errors)}")
        result.users.append(user)

    if not result.users:
        result.errors.append("No valid user records found in CSV")
    else:
        result.warnings.append(f"Parsed {len(result.users)} user(s)")
    return result


def read_csv_file(path: Path) -> CsvParseResult:
    """Read a UTF-8 CSV file; unreadable or mis-encoded files become parse errors."""

    try:
        with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
            content = handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        return CsvParseResult(errors=[f"Failed to parse CSV: {exc}"])
    return parse_csv(content)


__all__ = ["CsvParseResult", "detect_delimiter", "parse_csv", "read_csv_file"]
