"""
Record fingerprinting.

A fingerprint is a short deterministic digest of a record's name and
price. Two records with the same fingerprint are treated as the same
listing, both when comparing consecutive extraction attempts and when
comparing against the stored baseline. It is a dedup heuristic sized for
readability in logs, not a security boundary.
"""

import hashlib

from .models import Record

FINGERPRINT_LENGTH = 8


def fingerprint_text(text: str) -> str:
    """Return the first 8 hex characters of the MD5 digest of ``text``."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def fingerprint(record: Record) -> str:
    """Fingerprint a record from ``"{name}_{price}"``."""
    return fingerprint_text(f"{record.name}_{record.price}")
