"""
Tests for the binding and whole-document digests.

Coverage matrix:

  Determinism       same inputs twice                        -> same digest
  Layout            digest == sha256(D + |NAME:..|CPF:..|..) -> frozen payload
  Golden            reference signer inputs                  -> pinned hex digest
  Sensitivity       any single field or byte changed         -> new digest
  Chaining          PREV appended after TIME                 -> differs from unchained
  Document digest   sync and async agree with hashlib        -> same value
  Environment       SHA-256 unavailable                      -> DigestUnavailableError
"""

import hashlib

import pytest

from signledger.app.errors import DigestUnavailableError, ReasonCode
from signledger.app.utils import hashing
from signledger.app.utils.hashing import (
    build_binding_payload,
    compute_binding,
    compute_document_digest,
    compute_document_digest_async,
    digests_match,
)
from signledger.tests.fixtures.ledgers import SIGNED_AT, VALID_CPF


DOC = b"%PDF-1.7 fixed document bytes"


def _binding(**overrides):
    fields = dict(
        doc_bytes=DOC,
        name="JOAO DA SILVA",
        tax_id=VALID_CPF,
        device_token="dev-1",
        signed_at=SIGNED_AT,
    )
    fields.update(overrides)
    return compute_binding(**fields)


# ---------------------------------------------------------------------------
# Payload layout
# ---------------------------------------------------------------------------

def test_payload_layout_is_labeled_and_pipe_delimited():
    payload = build_binding_payload("JOAO DA SILVA", VALID_CPF, "dev-1", SIGNED_AT)

    assert payload == (
        b"|NAME:JOAO DA SILVA|CPF:52998224725|DEVICE:dev-1"
        b"|TIME:2024-01-15T10:30:00.000Z|"
    )


def test_digest_is_sha256_of_document_followed_by_payload():
    expected = hashlib.sha256(
        DOC
        + b"|NAME:JOAO DA SILVA|CPF:52998224725|DEVICE:dev-1"
        + b"|TIME:2024-01-15T10:30:00.000Z|"
    ).hexdigest()

    assert _binding() == expected


def test_digest_is_64_lowercase_hex():
    digest = _binding()

    assert len(digest) == 64
    assert digest == digest.lower()
    int(digest, 16)


def test_reference_signer_digest_is_pinned():
    # Changing this value invalidates every digest already issued.
    assert _binding(
        name="JOAO DA SILVA",
        tax_id="52998224725",
        device_token="dev-1",
        signed_at="2024-01-15T10:30:00.000Z",
    ) == "3203dc1b256ca4cc9c434cae6f9bcab542b5f9c9eb4d550ab77c1cc4483b8e88"


def test_non_ascii_name_is_utf8_encoded():
    digest = _binding(name="JOÃO DA SILVA")

    expected = hashlib.sha256(
        DOC + "|NAME:JOÃO DA SILVA".encode("utf-8")
        + b"|CPF:52998224725|DEVICE:dev-1|TIME:2024-01-15T10:30:00.000Z|"
    ).hexdigest()
    assert digest == expected


# ---------------------------------------------------------------------------
# Determinism and sensitivity
# ---------------------------------------------------------------------------

def test_same_inputs_produce_same_digest():
    assert _binding() == _binding()


@pytest.mark.parametrize(
    "override",
    [
        {"doc_bytes": DOC + b" "},
        {"name": "JOAO DA SILVB"},
        {"tax_id": "11144477735"},
        {"device_token": "dev-2"},
        {"signed_at": "2024-01-15T10:30:00.001Z"},
    ],
)
def test_any_changed_input_changes_digest(override):
    assert _binding(**override) != _binding()


def test_field_boundaries_are_unambiguous():
    """Shifting characters between adjacent fields must not collide."""
    a = _binding(name="ANA 1", device_token="23")
    b = _binding(name="ANA", device_token="123")

    assert a != b


# ---------------------------------------------------------------------------
# Chaining
# ---------------------------------------------------------------------------

def test_previous_digest_is_appended_after_time():
    previous = "ab" * 32
    payload = build_binding_payload(
        "JOAO DA SILVA", VALID_CPF, "dev-1", SIGNED_AT, previous
    )

    assert payload.endswith(f"|TIME:{SIGNED_AT}|PREV:{previous}|".encode())


def test_chained_digest_differs_from_independent_digest():
    assert _binding(previous_digest="ab" * 32) != _binding()


# ---------------------------------------------------------------------------
# Whole-document digest
# ---------------------------------------------------------------------------

def test_document_digest_matches_hashlib():
    assert compute_document_digest(DOC) == hashlib.sha256(DOC).hexdigest()


@pytest.mark.anyio
async def test_async_document_digest_matches_sync():
    assert await compute_document_digest_async(DOC) == compute_document_digest(DOC)


def test_text_input_is_rejected():
    with pytest.raises(TypeError):
        compute_document_digest("not bytes")


def test_digests_match_ignores_case():
    digest = _binding()

    assert digests_match(digest, digest.upper())
    assert not digests_match(digest, "0" * 64)


# ---------------------------------------------------------------------------
# Environment failure
# ---------------------------------------------------------------------------

def test_missing_sha256_raises_digest_unavailable(monkeypatch):
    def unavailable(name, *args, **kwargs):
        raise ValueError(f"unsupported hash type {name}")

    monkeypatch.setattr(hashing.hashlib, "new", unavailable)

    with pytest.raises(DigestUnavailableError) as excinfo:
        _binding()

    assert excinfo.value.reason == ReasonCode.DIGEST_UNAVAILABLE
