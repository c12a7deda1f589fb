from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class IssueCode(str, Enum):
    """Typed row issue classifications."""
    missing_required = "missing_required"
    invalid_email = "invalid_email"
    missing_name = "missing_name"


@dataclass(eq=False)
class ParseError(Exception):
    """A hard field error. The row is rejected."""
    code: IssueCode
    detail: str

    def __str__(self) -> str:
        return self.detail


@dataclass(eq=False)
class SoftIssue(Exception):
    """
    A value that could not be used as given. The row is still imported.
    `fallback` is written in its place when not `None`, otherwise the field stays absent.
    """
    detail: str
    fallback: Any = None

    def __str__(self) -> str:
        return self.detail


def normalize_cell(v: Any) -> str | None:
    """Trim a raw cell. Missing and blank cells become `None`, any other text is kept (`"N/A"` included)."""
    if v is None:
        return None
    s = str(v).strip()
    if not s:
        return None
    return s



## -- text fields

def parse_text(v: str) -> str:
    """Free text, stored verbatim after trimming."""
    return v.strip()


def split_full_name(v: str) -> tuple[str, str | None]:
    """
    Split a single `Name` cell on whitespace.
    First token is the first name, everything after it is the last name.
    """
    parts = v.split()
    if not parts:
        return "", None
    first = parts[0]
    last = " ".join(parts[1:]) or None
    return first, last



## -- email

# deliberately simple: `local@domain.tld`, no whitespace, exactly one `@`
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(v: str | None) -> bool:
    if not v:
        return False
    return _EMAIL_RE.match(v) is not None


def parse_email(v: str) -> str:
    """Lowercased email. Raises `ParseError` on anything not shaped like `local@domain.tld`."""
    s = v.strip()
    if not is_valid_email(s):
        raise ParseError(IssueCode.invalid_email, f"Invalid email format: {v}")
    return s.lower()



## -- enumerations

DEFAULT_STATUS = "active"

_STATUS_VALUES = {"processing", "active", "replied_manual"}
_STATUS_SYNONYMS = {
    "new": "active",
    "new_lead": "active",
    "replied": "replied_manual",
}


def normalize_status(v: str) -> str:
    """
    Map a status cell onto the canonical lead status.
    Unknown input raises `SoftIssue` carrying `DEFAULT_STATUS` as its fallback.
    """
    s = v.strip().lower()
    if s in _STATUS_VALUES:
        return s
    if s in _STATUS_SYNONYMS:
        return _STATUS_SYNONYMS[s]
    raise SoftIssue(f"Unknown status {v!r}, using {DEFAULT_STATUS!r}", fallback=DEFAULT_STATUS)


_QUALITY_RANKS = {"hot", "warm", "cold"}


def parse_quality_rank(v: str) -> str:
    s = v.strip().lower()
    if s not in _QUALITY_RANKS:
        raise SoftIssue(f"Unknown quality rank {v!r} ignored")
    return s



## -- numbers

def parse_score(v: str) -> float:
    """Float parse. Non-numeric and non-finite input raises `SoftIssue` (field dropped)."""
    try:
        x = float(v.strip())
    except ValueError:
        raise SoftIssue(f"Non-numeric score {v!r} ignored")
    if not math.isfinite(x):
        raise SoftIssue(f"Non-numeric score {v!r} ignored")
    return x
