"""
Tabular Row Normalizer - turns spreadsheet rows into canonical student rows.

Spreadsheets arrive with whatever headers the operator typed ("E-mail",
"Email Address", " First Name "). Each canonical field has an ordered list
of accepted header synonyms; headers are compared after trimming and
lower-casing, and the first synonym that holds a non-empty value wins.

The student key is derived from the normalized email only, which is what
makes a re-import land on the same record.
"""

from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from pydantic import BaseModel

# Canonical field -> accepted header synonyms, in priority order
FIELD_SYNONYMS = {
    "email": ("email", "e-mail", "email address"),
    "first_name": ("firstname", "first name", "name"),
    "last_name": ("lastname", "last name"),
    "enrolled": ("enrolled", "is enrolled"),
    "phone": ("phone", "mobile"),
    "notes": ("notes", "note"),
}

TRUE_VALUES = frozenset({"true", "1", "yes", "y"})

# Characters encodeURIComponent leaves alone, besides the RFC 3986 unreserved set
_KEY_SAFE_CHARS = "!*'()"


class NormalizedRow(BaseModel):
    """One spreadsheet row with canonical keys. email is empty for invalid rows."""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    enrolled: bool = False
    phone: str = ""
    notes: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.email)


def normalize_key(key: Any) -> str:
    """Header name as used for synonym matching."""
    if key is None:
        return ""
    return str(key).strip().lower()


def cell_text(value: Any) -> str:
    """
    Text form of a spreadsheet cell.

    Integral floats render without the fractional part, so a phone number
    stored as 9876543210.0 comes out as "9876543210".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def to_boolean(value: Any) -> bool:
    """
    True iff the trimmed, lower-cased value is one of true/1/yes/y.

    Never raises: anything else, including None and empty cells, is False.
    """
    if isinstance(value, bool):
        return value
    try:
        return cell_text(value).lower() in TRUE_VALUES
    except Exception:
        # str() of an arbitrary object may itself fail
        return False


def normalize_email(value: Any) -> str:
    return cell_text(value).lower()


def student_key(email: str) -> Optional[str]:
    """
    Deterministic document key for a student.

    Emails differing only in case or surrounding whitespace share a key.
    Returns None when there is no email to key on.
    """
    normalized = normalize_email(email)
    if not normalized:
        return None
    return quote(normalized, safe=_KEY_SAFE_CHARS)


def resolve_field(row: Mapping[str, Any], field: str) -> Any:
    """First non-empty value among the synonyms of a canonical field."""
    for synonym in FIELD_SYNONYMS[field]:
        value = row.get(synonym)
        if value is not None and cell_text(value) != "":
            return value
    return None


def normalize_row(raw_row: Mapping[Any, Any]) -> NormalizedRow:
    """Map one raw header-keyed row onto the canonical student fields."""
    row: Dict[str, Any] = {}
    for key, value in raw_row.items():
        # Headers that collide after normalization: the rightmost column wins
        row[normalize_key(key)] = value

    return NormalizedRow(
        email=normalize_email(resolve_field(row, "email")),
        first_name=cell_text(resolve_field(row, "first_name")),
        last_name=cell_text(resolve_field(row, "last_name")),
        enrolled=to_boolean(resolve_field(row, "enrolled")),
        phone=cell_text(resolve_field(row, "phone")),
        notes=cell_text(resolve_field(row, "notes")),
    )
