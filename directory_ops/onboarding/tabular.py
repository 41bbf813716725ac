"""CSV input for onboarding.

One user per row after a header row.  ``email``, ``firstName`` and
``lastName`` are required; every other non-empty column becomes an optional
profile attribute.
"""

import csv
import io
from typing import Dict, List

CONTACT_COLUMN = "email"
GIVEN_NAME_COLUMN = "firstName"
FAMILY_NAME_COLUMN = "lastName"

REQUIRED_COLUMNS = (CONTACT_COLUMN, GIVEN_NAME_COLUMN, FAMILY_NAME_COLUMN)


def parse_rows(csv_text: str) -> List[Dict[str, str]]:
    """Parse CSV text into row dicts, skipping blank lines.

    Header names and cell values are stripped; empty cells are dropped so a
    missing value and an absent column look the same to the import stage.
    """
    reader = csv.DictReader(io.StringIO(csv_text.strip()))
    rows: List[Dict[str, str]] = []
    for raw in reader:
        row: Dict[str, str] = {}
        for key, value in raw.items():
            # DictReader puts overflow cells under a None key
            if key is None or value is None:
                continue
            key = key.strip()
            value = value.strip() if isinstance(value, str) else value
            if key and value:
                row[key] = value
        if row:
            rows.append(row)
    return rows


def missing_required(row: Dict[str, str]) -> List[str]:
    """Names of required columns that are absent or empty in ``row``."""
    return [col for col in REQUIRED_COLUMNS if not row.get(col)]


def row_profile(row: Dict[str, str]) -> Dict[str, str]:
    """Directory profile for a row: login mirrors the contact identifier."""
    profile = dict(row)
    profile["login"] = row[CONTACT_COLUMN]
    return profile
