"""
Finalized artifact transport object.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

from signledger.app.schemas.ledger import DIGEST_PATTERN


class FinalizedArtifact(BaseModel):
    """
    Result of one finalization.

    ``document_digest`` is the SHA-256 of the input bytes and is the value
    stamped (truncated) in every page header. It is NOT the digest of
    ``content`` and NOT any individual signer digest.
    """

    content: bytes = Field(..., repr=False)
    document_digest: str = Field(..., pattern=DIGEST_PATTERN)
    display_digest: str
    protocol_page_count: int = Field(..., ge=1)
    total_page_count: int = Field(..., ge=1)
    signer_count: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


def finalized_file_name(file_name: str, signer_count: int) -> str:
    """Download name for a finalized artifact, e.g. ``contract_signed_2x.pdf``."""
    stem = re.sub(r"\.pdf$", "", file_name, flags=re.IGNORECASE)
    return f"{stem}_signed_{signer_count}x.pdf"
