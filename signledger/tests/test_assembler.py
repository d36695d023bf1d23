"""
Tests for the finalization coordinator.

Coverage matrix:

  Page count        input pages + protocol pages        -> total
  Order             protocol pages first, originals after -> untouched order
  Headers           counted after insertion             -> "Page i of N" on every page
  Digest            whole-document digest of the input  -> stamped, not signer digests
  Geometry          dominant input size, too-short input -> protocol page size, A4
  Ledger            finalize twice                      -> ledger unchanged
  Failures          unreadable, too many pages, no SHA  -> typed error, FAILED event
  Events            happy path                          -> ordered progression
  Real PDF          pikepdf/reportlab path              -> overlays carry header text
"""

import hashlib
import json

import pytest

from signledger.app.config import SignLedgerConfig
from signledger.app.coordinator.assembler import DocumentAssembler
from signledger.app.errors import (
    DigestUnavailableError,
    DocumentUnreadableError,
    ReasonCode,
)
from signledger.app.events import FinalizeEventType, RecordingEventEmitter
from signledger.app.layout.header_stamp import header_digest_text
from signledger.app.utils import hashing
from signledger.tests.fixtures.fake_document import (
    RecordingLoader,
    fake_document_bytes,
)
from signledger.tests.fixtures.ledgers import (
    ledger_with,
    many_signers,
    signer_record,
)
from signledger.tests.fixtures.pdf_factory import (
    A4_POINTS,
    LETTER_POINTS,
    contract_pdf,
    corrupted_pdf,
    minimal_valid_pdf,
    original_content,
    overlay_text,
    page_count,
    page_sizes,
    pdf_with_pages,
)

pytestmark = pytest.mark.anyio


# ---------------------------------------------------------------------------
# Builder-level behavior (in-memory document)
# ---------------------------------------------------------------------------

async def test_protocol_pages_are_inserted_in_front():
    loader = RecordingLoader()
    assembler = DocumentAssembler(loader=loader)
    doc = fake_document_bytes([(600, 800), (600, 800)])

    output = json.loads(await assembler.finalize(doc, ledger_with([signer_record(doc)])))

    origins = [page["origin"] for page in output["pages"]]
    assert origins == ["protocol", "source", "source"]


async def test_header_counts_pages_after_insertion():
    loader = RecordingLoader()
    assembler = DocumentAssembler(loader=loader)
    doc = fake_document_bytes([(600, 800)] * 3)

    artifact = await assembler.finalize_artifact(
        doc, many_signers(doc, 12)
    )

    pages = loader.document.pages
    total = len(pages)
    assert total == 3 + artifact.protocol_page_count
    assert artifact.protocol_page_count >= 2
    for index, page in enumerate(pages):
        assert f"Page {index + 1} of {total}" in page.text_values()


async def test_stamped_digest_is_whole_document_digest():
    loader = RecordingLoader()
    assembler = DocumentAssembler(loader=loader)
    doc = fake_document_bytes([(600, 800)])
    record = signer_record(doc)

    artifact = await assembler.finalize_artifact(doc, ledger_with([record]))

    expected = hashlib.sha256(doc).hexdigest()
    assert artifact.document_digest == expected
    assert expected != record.digest
    for page in loader.document.pages:
        assert header_digest_text(expected) in page.text_values()


async def test_protocol_page_takes_dominant_size():
    loader = RecordingLoader()
    assembler = DocumentAssembler(loader=loader)
    doc = fake_document_bytes([(600, 800), (600, 800), (612, 792)])

    await assembler.finalize(doc, ledger_with())

    protocol = loader.document.pages[0]
    assert (protocol.width, protocol.height) == (600, 800)


async def test_document_is_closed_after_finalize():
    loader = RecordingLoader()
    assembler = DocumentAssembler(loader=loader)
    doc = fake_document_bytes([(600, 800)])

    await assembler.finalize(doc, ledger_with())

    assert loader.document.closed


async def test_ledger_is_not_mutated():
    assembler = DocumentAssembler(loader=RecordingLoader())
    doc = fake_document_bytes([(600, 800)])
    ledger = many_signers(doc, 4)
    snapshot = ledger.to_json()

    await assembler.finalize(doc, ledger)
    await assembler.finalize(doc, ledger)

    assert ledger.to_json() == snapshot


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

async def test_events_follow_pipeline_order():
    emitter = RecordingEventEmitter()
    assembler = DocumentAssembler(loader=RecordingLoader(), event_emitter=emitter)
    doc = fake_document_bytes([(600, 800)])

    await assembler.finalize(doc, ledger_with([signer_record(doc)]))

    assert emitter.types() == [
        FinalizeEventType.FINALIZE_STARTED,
        FinalizeEventType.DIGEST_COMPUTED,
        FinalizeEventType.PROTOCOL_BUILT,
        FinalizeEventType.HEADERS_STAMPED,
        FinalizeEventType.FINALIZE_COMPLETED,
    ]


async def test_failure_emits_failed_event_with_reason():
    emitter = RecordingEventEmitter()
    assembler = DocumentAssembler(loader=RecordingLoader(), event_emitter=emitter)

    with pytest.raises(DocumentUnreadableError):
        await assembler.finalize(b"{not json", ledger_with())

    events = emitter.events
    assert events[-1].event_type == FinalizeEventType.FINALIZE_FAILED
    assert events[-1].details == {"reason": "document_unreadable"}


async def test_broken_emitter_does_not_break_finalize():
    class ExplodingEmitter:
        async def emit(self, event):
            raise RuntimeError("observer down")

    assembler = DocumentAssembler(
        loader=RecordingLoader(),
        event_emitter=ExplodingEmitter(),
    )
    doc = fake_document_bytes([(600, 800)])

    output = await assembler.finalize(doc, ledger_with())

    assert json.loads(output)["pages"]


# ---------------------------------------------------------------------------
# Real PDFs
# ---------------------------------------------------------------------------

async def test_real_pdf_gains_protocol_page_and_headers():
    doc = contract_pdf()
    ledger = ledger_with([signer_record(doc)])

    output = await DocumentAssembler().finalize(doc, ledger)

    assert page_count(output) == page_count(doc) + 1

    digest_text = header_digest_text(hashlib.sha256(doc).hexdigest())
    overlays = overlay_text(output)
    total = len(overlays)
    for index, text in enumerate(overlays):
        assert f"(Page {index + 1} of {total})" in text
        assert digest_text in text
    assert "Signature Protocol" in overlays[0]
    assert "JOAO DA SILVA" in overlays[0]


async def test_real_pdf_keeps_original_content():
    doc = contract_pdf("Original clause text")

    output = await DocumentAssembler().finalize(doc, ledger_with())

    assert page_count(output) == 2
    assert b"(Original clause text) Tj" in original_content(output, 1)


async def test_real_pdf_protocol_size_follows_input():
    doc = pdf_with_pages([LETTER_POINTS, LETTER_POINTS, A4_POINTS])

    output = await DocumentAssembler().finalize(doc, ledger_with())

    sizes = page_sizes(output)
    assert sizes[0] == pytest.approx(LETTER_POINTS)
    assert sizes[1:] == [
        pytest.approx(LETTER_POINTS),
        pytest.approx(LETTER_POINTS),
        pytest.approx(A4_POINTS),
    ]


async def test_empty_pdf_gets_a4_protocol_page():
    output = await DocumentAssembler().finalize(minimal_valid_pdf(), ledger_with())

    assert page_sizes(output) == [pytest.approx((595.28, 841.89))]


async def test_receipt_sized_pdf_gets_a4_protocol_page():
    doc = pdf_with_pages([(300, 300)])

    output = await DocumentAssembler().finalize(doc, ledger_with())

    assert page_sizes(output) == [
        pytest.approx((595.28, 841.89)),
        pytest.approx((300, 300)),
    ]


async def test_many_signers_real_pdf():
    doc = contract_pdf()

    artifact = await DocumentAssembler().finalize_artifact(
        doc, many_signers(doc, 12)
    )

    assert artifact.protocol_page_count == 3
    assert page_count(artifact.content) == 4
    assert artifact.total_page_count == 4


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

async def test_unreadable_input_raises():
    with pytest.raises(DocumentUnreadableError) as excinfo:
        await DocumentAssembler().finalize(corrupted_pdf(), ledger_with())

    assert excinfo.value.reason == ReasonCode.DOCUMENT_UNREADABLE


async def test_empty_input_raises():
    with pytest.raises(DocumentUnreadableError):
        await DocumentAssembler().finalize(b"", ledger_with())


async def test_page_limit_is_enforced():
    assembler = DocumentAssembler(SignLedgerConfig(MAX_PAGE_COUNT=2))
    doc = pdf_with_pages([A4_POINTS] * 3)

    with pytest.raises(DocumentUnreadableError) as excinfo:
        await assembler.finalize(doc, ledger_with())

    assert excinfo.value.reason == ReasonCode.DOCUMENT_TOO_LARGE


async def test_missing_sha256_surfaces_digest_unavailable(monkeypatch):
    def unavailable(name, *args, **kwargs):
        raise ValueError("disabled")

    monkeypatch.setattr(hashing.hashlib, "new", unavailable)

    with pytest.raises(DigestUnavailableError):
        await DocumentAssembler(loader=RecordingLoader()).finalize(
            fake_document_bytes([(600, 800)]),
            ledger_with(),
        )


# ---------------------------------------------------------------------------
# Blocking entry point
# ---------------------------------------------------------------------------

def test_finalize_sync_matches_async_result():
    doc = fake_document_bytes([(600, 800)])
    assembler = DocumentAssembler(loader=RecordingLoader())

    output = assembler.finalize_sync(doc, ledger_with())

    assert len(json.loads(output)["pages"]) == 2
