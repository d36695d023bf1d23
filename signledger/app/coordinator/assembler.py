"""
Document finalization coordinator.

IMPORTANT:
The assembler enforces order. It MUST NOT:
- mutate the ledger
- interpret document content
- run steps concurrently

Execution order (strictly sequential):
    1. Load the document bytes into a mutable page collection
    2. Compute the whole-document digest over the input bytes
    3. Detect the dominant page size of the CURRENT pages
    4. Build the protocol page(s) and insert them at the front
    5. Stamp the header on every page, counted after insertion
    6. Serialize

The document object is exclusively owned by one finalize call.
"""

from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Callable, Optional

import anyio

from signledger.app.config import SignLedgerConfig
from signledger.app.document.builder import (
    HELVETICA,
    HELVETICA_BOLD,
    DocumentBuilder,
)
from signledger.app.document.pikepdf_document import PikePdfDocument
from signledger.app.errors import FinalizationError
from signledger.app.events import (
    FinalizeEvent,
    FinalizeEventEmitter,
    FinalizeEventType,
    NullEventEmitter,
)
from signledger.app.layout.geometry import detect_dominant_size
from signledger.app.layout.header_stamp import HeaderStamper
from signledger.app.layout.protocol_page import ProtocolPageBuilder
from signledger.app.schemas.artifact import FinalizedArtifact
from signledger.app.schemas.ledger import DocumentLedger
from signledger.app.utils.digest_format import truncated_group_hex
from signledger.app.utils.hashing import compute_document_digest_async

logger = logging.getLogger(__name__)


DocumentLoader = Callable[[bytes], DocumentBuilder]


class DocumentAssembler:
    """
    Orchestrates digest, protocol layout and header stamping into one
    finalize operation.
    """

    def __init__(
        self,
        config: Optional[SignLedgerConfig] = None,
        *,
        loader: Optional[DocumentLoader] = None,
        page_builder: Optional[ProtocolPageBuilder] = None,
        event_emitter: Optional[FinalizeEventEmitter] = None,
    ) -> None:
        self._config = config or SignLedgerConfig()
        self._loader = loader or partial(
            PikePdfDocument.load,
            max_pages=self._config.MAX_PAGE_COUNT,
        )
        self._page_builder = page_builder or ProtocolPageBuilder(
            display_timezone=self._config.DISPLAY_TIMEZONE,
        )
        self._events = event_emitter or NullEventEmitter()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def finalize(
        self,
        doc_bytes: bytes,
        ledger: DocumentLedger,
        *,
        generated_at: Optional[datetime] = None,
    ) -> bytes:
        artifact = await self.finalize_artifact(
            doc_bytes,
            ledger,
            generated_at=generated_at,
        )
        return artifact.content

    def finalize_sync(
        self,
        doc_bytes: bytes,
        ledger: DocumentLedger,
        *,
        generated_at: Optional[datetime] = None,
    ) -> bytes:
        """Blocking entry point for callers outside an event loop."""
        return anyio.run(
            partial(self.finalize, doc_bytes, ledger, generated_at=generated_at)
        )

    async def finalize_artifact(
        self,
        doc_bytes: bytes,
        ledger: DocumentLedger,
        *,
        generated_at: Optional[datetime] = None,
    ) -> FinalizedArtifact:
        document_id = ledger.document_id

        await self._emit(document_id, FinalizeEventType.FINALIZE_STARTED)
        logger.info(
            "finalize_started",
            extra={
                "document_id": document_id,
                "signer_count": ledger.signer_count,
                "input_bytes": len(doc_bytes),
            },
        )

        try:
            artifact = await self._run(doc_bytes, ledger, generated_at)
        except FinalizationError as exc:
            logger.warning(
                "finalize_failed",
                extra={
                    "document_id": document_id,
                    "reason": exc.reason.value,
                },
            )
            await self._emit(
                document_id,
                FinalizeEventType.FINALIZE_FAILED,
                {"reason": exc.reason.value},
            )
            raise

        await self._emit(
            document_id,
            FinalizeEventType.FINALIZE_COMPLETED,
            {"total_page_count": artifact.total_page_count},
        )
        logger.info(
            "finalize_completed",
            extra={
                "document_id": document_id,
                "digest_prefix": artifact.document_digest[:16],
                "protocol_page_count": artifact.protocol_page_count,
                "total_page_count": artifact.total_page_count,
            },
        )
        return artifact

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(
        self,
        doc_bytes: bytes,
        ledger: DocumentLedger,
        generated_at: Optional[datetime],
    ) -> FinalizedArtifact:
        # 1. Load
        document = self._loader(doc_bytes)
        try:
            return await self._assemble(document, doc_bytes, ledger, generated_at)
        finally:
            close = getattr(document, "close", None)
            if close is not None:
                close()

    async def _assemble(
        self,
        document: DocumentBuilder,
        doc_bytes: bytes,
        ledger: DocumentLedger,
        generated_at: Optional[datetime],
    ) -> FinalizedArtifact:
        document_id = ledger.document_id

        # 2. Whole-document digest
        digest = await compute_document_digest_async(doc_bytes)
        await self._emit(
            document_id,
            FinalizeEventType.DIGEST_COMPUTED,
            {"digest_prefix": digest[:16]},
        )

        # 3. Geometry of the current pages
        geometry = detect_dominant_size(document.get_pages())

        # 4. Protocol pages, inserted in front in order
        contents = self._page_builder.build(
            ledger,
            digest,
            geometry,
            generated_at=generated_at,
        )
        regular = document.embed_font(HELVETICA)
        bold = document.embed_font(HELVETICA_BOLD)
        for index, content in enumerate(contents):
            page = document.insert_page(index, (content.width, content.height))
            content.draw_onto(page, regular=regular, bold=bold)

        await self._emit(
            document_id,
            FinalizeEventType.PROTOCOL_BUILT,
            {"protocol_page_count": len(contents)},
        )

        # 5. Header on every page, counted after insertion
        pages = document.get_pages()
        HeaderStamper(regular).stamp(pages, digest)
        await self._emit(
            document_id,
            FinalizeEventType.HEADERS_STAMPED,
            {"page_count": len(pages)},
        )

        # 6. Serialize
        content = document.serialize()

        return FinalizedArtifact(
            content=content,
            document_digest=digest,
            display_digest=truncated_group_hex(digest),
            protocol_page_count=len(contents),
            total_page_count=len(pages),
            signer_count=ledger.signer_count,
        )

    async def _emit(
        self,
        document_id: str,
        event_type: FinalizeEventType,
        details: Optional[dict] = None,
    ) -> None:
        try:
            await self._events.emit(
                FinalizeEvent(
                    document_id=document_id,
                    event_type=event_type,
                    details=details,
                )
            )
        except Exception:
            # Observability must never break finalization
            logger.exception(
                "event_emit_failed",
                extra={"event_type": event_type.value},
            )
