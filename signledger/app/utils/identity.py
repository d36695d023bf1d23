"""
Signer identity normalization.

Normalized values are what enters the binding payload, so these
functions must stay stable: any change alters future digests for the
same human input.
"""

from __future__ import annotations

import re


TAX_ID_LENGTH = 11

_NON_DIGITS = re.compile(r"[^0-9]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    """Trim, collapse internal whitespace to one space, upper-case."""
    return _WHITESPACE.sub(" ", name.strip()).upper()


def normalize_tax_id(tax_id: str) -> str:
    """Strip everything but ASCII digits; other scripts' digits are dropped."""
    return _NON_DIGITS.sub("", tax_id)


def _check_digit(digits: str) -> int:
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = (total * 10) % 11
    return 0 if remainder == 10 else remainder


def validate_tax_id(tax_id: str) -> bool:
    """
    Validate a Brazilian CPF.

    Accepts formatted or digits-only input. Rejects wrong lengths,
    repeated-digit sequences and bad mod-11 check digits.
    """
    digits = normalize_tax_id(tax_id)

    if len(digits) != TAX_ID_LENGTH:
        return False

    if len(set(digits)) == 1:
        return False

    if _check_digit(digits[:9]) != int(digits[9]):
        return False

    return _check_digit(digits[:10]) == int(digits[10])


def format_tax_id(tax_id: str) -> str:
    """Render as ``XXX.XXX.XXX-XX``; unchanged when not 11 digits."""
    digits = normalize_tax_id(tax_id)
    if len(digits) != TAX_ID_LENGTH:
        return tax_id
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
