"""
Signature ledger schemas.

A ledger is the per-document record of signing events. It is:
- append-only (insertion order is signing order)
- immutable (every mutation returns a new ledger value)
- owned by the calling session, never by the finalization engine

The JSON shape uses camelCase keys:

    {documentId, sourceMetadata: {fileName, fileSize, lastModified},
     signatures: [{id, name, taxId, deviceToken, signedAt, digest}],
     createdAt, updatedAt}

IMPORTANT:
- Signature order is the sole source of truth for who signed first.
  Timestamps may be skewed and MUST NOT be used to reorder entries.
"""

from __future__ import annotations

from typing import Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from signledger.app.utils.identity import normalize_name
from signledger.app.utils.timestamps import TIMESTAMP_PATTERN, utc_now_timestamp


DIGEST_PATTERN = r"^[0-9a-f]{64}$"


class _LedgerModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SourceMetadata(_LedgerModel):
    """Identity of the uploaded file a ledger belongs to."""

    file_name: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0, description="Size in bytes")
    last_modified: int = Field(
        0,
        description="Last-modified time in epoch milliseconds",
    )


class SignerRecord(_LedgerModel):
    """
    One signing event.

    ``digest`` is a pure function of (document bytes at signing time,
    name, tax_id, device_token, signed_at). Records are never edited.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    tax_id: str = Field(..., pattern=r"^[0-9]{11}$")
    device_token: str = Field(..., min_length=1)
    signed_at: str = Field(..., pattern=TIMESTAMP_PATTERN)
    digest: str = Field(..., pattern=DIGEST_PATTERN)

    @field_validator("name")
    @classmethod
    def name_must_be_normalized(cls, v: str) -> str:
        if v != normalize_name(v):
            raise ValueError(
                "Signer name must be normalized "
                "(trimmed, single-spaced, upper-case)."
            )
        return v


class DocumentLedger(_LedgerModel):
    document_id: str = Field(..., min_length=1)
    source_metadata: SourceMetadata
    signatures: Tuple[SignerRecord, ...] = ()
    created_at: str = Field(..., pattern=TIMESTAMP_PATTERN)
    updated_at: str = Field(..., pattern=TIMESTAMP_PATTERN)

    @property
    def signer_count(self) -> int:
        return len(self.signatures)

    @property
    def last_digest(self) -> str | None:
        return self.signatures[-1].digest if self.signatures else None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "DocumentLedger":
        return cls.model_validate_json(raw)


# ----------------------------------------------------------------------
# Ledger lifecycle
# ----------------------------------------------------------------------

def create_ledger(source_metadata: SourceMetadata) -> DocumentLedger:
    now = utc_now_timestamp()
    return DocumentLedger(
        document_id=str(uuid4()),
        source_metadata=source_metadata,
        signatures=(),
        created_at=now,
        updated_at=now,
    )


def append_signature(
    ledger: DocumentLedger,
    record: SignerRecord,
) -> DocumentLedger:
    """Return a new ledger with ``record`` appended; ``ledger`` is untouched."""
    if any(existing.id == record.id for existing in ledger.signatures):
        raise ValueError(f"Signature id already recorded: {record.id}")

    return ledger.model_copy(
        update={
            "signatures": ledger.signatures + (record,),
            "updated_at": utc_now_timestamp(),
        }
    )


def matches_source(ledger: DocumentLedger, metadata: SourceMetadata) -> bool:
    """True when the ledger was created for this exact upload."""
    current = ledger.source_metadata
    return (
        current.file_name == metadata.file_name
        and current.file_size == metadata.file_size
        and current.last_modified == metadata.last_modified
    )
