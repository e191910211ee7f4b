"""
Student ID Module - Student360 School Notes System

Canonical student identifiers. Every student ID that enters the system, whether
typed by an admin, read from a CSV row or decoded from a QR code, passes through
normalize_student_id() before it is used as a document key.

Canonical form: S-<digits>
"""

import re

STUDENT_ID_PREFIX = 'S-'

_WHITESPACE = re.compile(r'\s+')
_PREFIXED = re.compile(r'^S-?(\d+)$', re.ASCII)
_DIGITS_ONLY = re.compile(r'^(\d+)$', re.ASCII)


def normalize_student_id(raw) -> str:
    """
    Normalize raw text into a canonical student ID.

    QR payloads that are clearly not a bare ID (JSON objects, URLs) are
    rejected before any pattern matching.

    Args:
        raw: Raw text (None is treated as empty)

    Returns:
        str: Canonical ID such as 'S-10025', or '' when the input is invalid
    """
    cleaned = _WHITESPACE.sub('', str(raw or '').strip())
    if not cleaned:
        return ''

    if cleaned.startswith('{') or cleaned.lower().startswith('http') or '://' in cleaned:
        return ''

    candidate = cleaned.upper()
    match = _PREFIXED.match(candidate) or _DIGITS_ONLY.match(candidate)
    if not match:
        return ''

    return f"{STUDENT_ID_PREFIX}{match.group(1)}"


def is_valid_student_id(raw) -> bool:
    """Check whether raw text normalizes to a usable student ID."""
    return bool(normalize_student_id(raw))
