"""
Binding hash primitives.

This module provides the deterministic digests used by the signing
engine:

- the per-signer binding digest, tying one signer's identity fields and
  signing time to the exact document bytes presented at signing time
- the whole-document digest stamped on every page at finalization

Explicit non-scope:
- Normalization of names or tax ids (callers pass normalized values)
- Any secret key material. These are content-binding checksums, not MACs.

IMPORTANT DESIGN RULE:
- Field order and labels of the binding payload are frozen. Changing them
  makes every historical digest unreproducible.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Union

import anyio

from signledger.app.errors import DigestUnavailableError


BytesLike = Union[bytes, bytearray, memoryview]


def _new_sha256():
    try:
        return hashlib.new("sha256")
    except ValueError as exc:
        raise DigestUnavailableError(
            f"SHA-256 digest primitive is unavailable: {exc}"
        ) from exc


def _require_bytes(data: object, caller: str) -> None:
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(
            f"{caller} expects document bytes, "
            f"got {type(data).__name__}"
        )


def build_binding_payload(
    name: str,
    tax_id: str,
    device_token: str,
    signed_at: str,
    previous_digest: Optional[str] = None,
) -> bytes:
    """
    Build the labeled signer suffix appended to the document bytes.

    The pipe-delimited labels keep field boundaries unambiguous, e.g. a
    name ending in digits followed by a tax id.
    """
    payload = (
        f"|NAME:{name}"
        f"|CPF:{tax_id}"
        f"|DEVICE:{device_token}"
        f"|TIME:{signed_at}|"
    )
    if previous_digest is not None:
        payload += f"PREV:{previous_digest}|"
    return payload.encode("utf-8")


def compute_binding(
    doc_bytes: BytesLike,
    name: str,
    tax_id: str,
    device_token: str,
    signed_at: str,
    previous_digest: Optional[str] = None,
) -> str:
    """
    Compute the binding digest of one signature event.

    Args:
        doc_bytes:
            Exact document bytes presented at signing time.
        name:
            Normalized signer name.
        tax_id:
            Digits-only tax id.
        device_token:
            Opaque per-device token.
        signed_at:
            Fixed-encoding UTC timestamp (``YYYY-MM-DDTHH:MM:SS.mmmZ``).
        previous_digest:
            Digest of the preceding signer when hash chaining is enabled.
            ``None`` keeps signer digests independent of each other.

    Returns:
        64 lower-case hex characters.

    Raises:
        DigestUnavailableError: if SHA-256 cannot be obtained.
    """
    _require_bytes(doc_bytes, "compute_binding")

    digest = _new_sha256()
    digest.update(doc_bytes)
    digest.update(
        build_binding_payload(
            name,
            tax_id,
            device_token,
            signed_at,
            previous_digest,
        )
    )
    return digest.hexdigest()


def compute_document_digest(doc_bytes: BytesLike) -> str:
    """Compute the whole-document SHA-256 as 64 lower-case hex characters."""
    _require_bytes(doc_bytes, "compute_document_digest")

    digest = _new_sha256()
    digest.update(doc_bytes)
    return digest.hexdigest()


async def compute_document_digest_async(doc_bytes: BytesLike) -> str:
    """
    Compute the whole-document digest off the event loop.

    The caller awaits completion before any further work proceeds.
    """
    return await anyio.to_thread.run_sync(compute_document_digest, doc_bytes)


def digests_match(expected: str, actual: str) -> bool:
    """Constant-time, case-insensitive digest comparison."""
    return hmac.compare_digest(expected.lower(), actual.lower())
