"""
Signing action.

One call records one signature event: inputs are normalized, the tax id
is validated, the binding digest is computed over the exact document
bytes presented, and a NEW ledger containing the record is returned.

Chaining:
    With ``chain=False`` (default) every signer digest is computed over
    the same base document and is independent of earlier signers. With
    ``chain=True`` the previous signer's digest is bound into the payload
    (``|PREV:<digest>|``), so reordering or removing an earlier record
    invalidates every later one.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict

from signledger.app.errors import SignerValidationError
from signledger.app.schemas.ledger import (
    DocumentLedger,
    SignerRecord,
    append_signature,
)
from signledger.app.utils.hashing import compute_binding, digests_match
from signledger.app.utils.identity import (
    normalize_name,
    normalize_tax_id,
    validate_tax_id,
)
from signledger.app.utils.timestamps import parse_utc_timestamp, utc_now_timestamp

logger = logging.getLogger(__name__)


class SigningResult(BaseModel):
    ledger: DocumentLedger
    signature: SignerRecord

    model_config = ConfigDict(frozen=True)


def sign_document(
    doc_bytes: bytes,
    ledger: DocumentLedger,
    *,
    name: str,
    tax_id: str,
    device_token: str,
    signed_at: Optional[str] = None,
    chain: bool = False,
) -> SigningResult:
    """
    Record one signature against ``doc_bytes``.

    Raises:
        SignerValidationError: on an empty name, an invalid tax id, an
            empty device token or a malformed ``signed_at``.
        DigestUnavailableError: if SHA-256 cannot be obtained.
    """
    normalized_name = normalize_name(name)
    normalized_tax_id = normalize_tax_id(tax_id)

    if not normalized_name:
        raise SignerValidationError("Signer name is empty.")

    if not validate_tax_id(normalized_tax_id):
        raise SignerValidationError("Invalid CPF.")

    if not device_token:
        raise SignerValidationError("Device token is empty.")

    if signed_at is None:
        signed_at = utc_now_timestamp()
    else:
        try:
            parse_utc_timestamp(signed_at)
        except ValueError as exc:
            raise SignerValidationError(
                f"signed_at must use the fixed UTC encoding, got {signed_at!r}"
            ) from exc

    previous_digest = ledger.last_digest if chain else None

    digest = compute_binding(
        doc_bytes,
        normalized_name,
        normalized_tax_id,
        device_token,
        signed_at,
        previous_digest,
    )

    record = SignerRecord(
        id=str(uuid4()),
        name=normalized_name,
        tax_id=normalized_tax_id,
        device_token=device_token,
        signed_at=signed_at,
        digest=digest,
    )

    logger.info(
        "signature_recorded",
        extra={
            "document_id": ledger.document_id,
            "position": ledger.signer_count + 1,
            "digest_prefix": digest[:16],
            "chained": previous_digest is not None,
        },
    )

    return SigningResult(
        ledger=append_signature(ledger, record),
        signature=record,
    )


def verify_binding(
    doc_bytes: bytes,
    record: SignerRecord,
    previous_digest: Optional[str] = None,
) -> bool:
    """Recompute ``record.digest`` from its inputs and compare."""
    recomputed = compute_binding(
        doc_bytes,
        record.name,
        record.tax_id,
        record.device_token,
        record.signed_at,
        previous_digest,
    )
    return digests_match(record.digest, recomputed)


def verify_ledger(
    doc_bytes: bytes,
    ledger: DocumentLedger,
    *,
    chain: bool = False,
) -> bool:
    """Verify every record of ``ledger`` in ledger order."""
    previous: Optional[str] = None
    for record in ledger.signatures:
        if not verify_binding(doc_bytes, record, previous if chain else None):
            return False
        previous = record.digest
    return True
