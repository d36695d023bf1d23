"""
Failure taxonomy for signing and finalization.

Every failure that can reach a caller of the signing or finalization
entry points carries a machine-readable ``reason`` so that callers (and
the HTTP layer) can distinguish them without parsing messages.

Recovery policy:
- Unreadable input is fatal. A malformed byte buffer cannot self-heal.
- An unavailable digest primitive is an environment failure and is
  surfaced as-is.
- Layout overflow is a deterministic property of the ledger and the page
  geometry. Retrying produces the same outcome.
"""

from __future__ import annotations

from enum import Enum


class ReasonCode(str, Enum):
    DOCUMENT_UNREADABLE = "document_unreadable"
    DOCUMENT_TOO_LARGE = "document_too_large"
    DIGEST_UNAVAILABLE = "digest_unavailable"
    ENTRY_TOO_LARGE = "entry_too_large"
    PAGE_TOO_SMALL = "page_too_small"
    INVALID_SIGNER = "invalid_signer"


class FinalizationError(RuntimeError):
    """Base class for all fatal finalization failures."""

    reason: ReasonCode = ReasonCode.DOCUMENT_UNREADABLE

    def __init__(self, message: str, *, reason: ReasonCode | None = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class DocumentUnreadableError(FinalizationError):
    """Raised when the input bytes cannot be loaded as a document."""

    reason = ReasonCode.DOCUMENT_UNREADABLE


class DigestUnavailableError(FinalizationError):
    """Raised when the SHA-256 primitive cannot be obtained."""

    reason = ReasonCode.DIGEST_UNAVAILABLE


class LayoutOverflowError(FinalizationError):
    """
    Raised when protocol content cannot fit on a page.

    ``entry_too_large``: one signer entry does not fit on a fresh page.
    ``page_too_small``: the fixed sections do not fit, even on A4.
    """

    reason = ReasonCode.ENTRY_TOO_LARGE


class SignerValidationError(ValueError):
    """Raised when signer input cannot produce a valid signature record."""

    reason = ReasonCode.INVALID_SIGNER
