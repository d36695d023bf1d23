"""
Protocol page layout and pagination.

The protocol is a human-readable registry of every signature in a ledger,
rendered on one or more pages placed in front of the original content.

Layout model:
    A vertical cursor starts at the top margin. Every text line consumes a
    fixed line height. Sections (header, document, signatures,
    authenticity) are separated by a horizontal rule and extra spacing.

Pagination:
    Before each signer entry, the builder checks that the entry plus the
    authenticity reserve still fits above the bottom margin. If not, the
    current page is closed and the cursor is reset to the top margin of a
    NEW page, where the registry continues. The authenticity section is
    always drawn on the page the cursor ends on.

Geometry fallback:
    Protocol pages take the detected page size. A size too short for the
    fixed sections (title, document, authenticity) is replaced by A4.

Overflow guard:
    If a single entry plus the authenticity reserve cannot fit on a fresh
    page, LayoutOverflowError is raised up front. Pagination therefore
    always terminates.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from signledger.app.document.builder import RGB
from signledger.app.errors import LayoutOverflowError, ReasonCode
from signledger.app.layout.geometry import A4, PageSize
from signledger.app.layout.page_content import Box, PageContent, PageItem, Rule, TextRun
from signledger.app.schemas.ledger import DocumentLedger, SignerRecord
from signledger.app.utils.digest_format import abbreviate, truncated_group_hex
from signledger.app.utils.identity import format_tax_id
from signledger.app.utils.timestamps import format_display_timestamp

logger = logging.getLogger(__name__)


TITLE_COLOR: RGB = (0.1, 0.3, 0.5)
HEADING_COLOR: RGB = (0.2, 0.4, 0.6)
TEXT_COLOR: RGB = (0.2, 0.2, 0.2)
MUTED_COLOR: RGB = (0.5, 0.5, 0.5)
DIGEST_COLOR: RGB = (0.4, 0.4, 0.4)
SIGNED_COLOR: RGB = (0.1, 0.5, 0.2)
RULE_COLOR: RGB = (0.8, 0.8, 0.8)
BOX_BORDER_COLOR: RGB = (0.6, 0.6, 0.6)
BOX_FILL_COLOR: RGB = (0.97, 0.97, 0.97)

AUTHENTICATION_METHOD = "Unique device identifier"
NO_SIGNATURES_TEXT = "No signatures recorded."


class ProtocolLayout(BaseModel):
    """Fixed text grid of the protocol page, in PDF points."""

    MARGIN: float = 50
    LINE_HEIGHT: float = 14
    SECTION_SPACING: float = 20
    HEADING_GAP: float = 5
    RULE_GAP: float = 10
    INDENT: float = 10

    TITLE_FONT_SIZE: float = 16
    SUBTITLE_FONT_SIZE: float = 12
    NORMAL_FONT_SIZE: float = 9
    SMALL_FONT_SIZE: float = 8

    ENTRY_LINES: int = 6
    ENTRY_SPACING: float = 10

    DIGEST_BOX_HEIGHT: float = 30
    DIGEST_BOX_DROP: float = 25
    DIGEST_BOX_AFTER: float = 20
    FOOTER_GAP: float = 20

    DIGEST_EDGE_LENGTH: int = 16

    model_config = ConfigDict(frozen=True)

    @property
    def heading_height(self) -> float:
        return self.LINE_HEIGHT + self.HEADING_GAP

    @property
    def section_break_height(self) -> float:
        return self.SECTION_SPACING + 2 * self.RULE_GAP

    @property
    def entry_height(self) -> float:
        return self.ENTRY_LINES * self.LINE_HEIGHT + self.ENTRY_SPACING

    @property
    def first_page_fixed_height(self) -> float:
        """Title, document section and the signatures heading."""
        header = self.LINE_HEIGHT + self.HEADING_GAP + 2 * self.RULE_GAP
        document = self.heading_height + 5 * self.LINE_HEIGHT
        return (
            header
            + document
            + self.section_break_height
            + self.heading_height
        )

    @property
    def authenticity_height(self) -> float:
        """Vertical space reserved for the terminal section."""
        return (
            self.section_break_height
            + self.heading_height
            + self.LINE_HEIGHT
            + self.HEADING_GAP
            + self.DIGEST_BOX_DROP
            + self.DIGEST_BOX_AFTER
            + 2 * self.LINE_HEIGHT
            + self.FOOTER_GAP
            + 3 * self.LINE_HEIGHT
        )


class _PageCursor:
    def __init__(self, geometry: PageSize, layout: ProtocolLayout):
        self.layout = layout
        self.width = geometry.width
        self.height = geometry.height
        self.y = geometry.height - layout.MARGIN
        self.items: List[PageItem] = []

    def text(
        self,
        text: str,
        *,
        size: Optional[float] = None,
        bold: bool = False,
        color: RGB = TEXT_COLOR,
        indent: float = 0,
    ) -> None:
        self.items.append(
            TextRun(
                text=text,
                x=self.layout.MARGIN + indent,
                y=self.y,
                size=size or self.layout.NORMAL_FONT_SIZE,
                bold=bold,
                color=color,
            )
        )
        self.y -= self.layout.LINE_HEIGHT

    def heading(self, text: str) -> None:
        self.text(
            text,
            size=self.layout.SUBTITLE_FONT_SIZE,
            bold=True,
            color=HEADING_COLOR,
        )
        self.y -= self.layout.HEADING_GAP

    def rule(self) -> None:
        self.items.append(
            Rule(
                x_start=self.layout.MARGIN,
                x_end=self.width - self.layout.MARGIN,
                y=self.y,
                color=RULE_COLOR,
            )
        )
        self.y -= self.layout.RULE_GAP

    def section_break(self) -> None:
        self.y -= self.layout.SECTION_SPACING
        self.rule()
        self.y -= self.layout.RULE_GAP

    def content(self) -> PageContent:
        return PageContent(
            width=self.width,
            height=self.height,
            items=tuple(self.items),
        )


class ProtocolPageBuilder:
    """
    Builds the protocol registry pages for a ledger.

    Pure: the same ledger, digest, geometry and generation time always
    produce the same page content.
    """

    def __init__(
        self,
        layout: Optional[ProtocolLayout] = None,
        *,
        display_timezone: str = "UTC",
    ):
        self._layout = layout or ProtocolLayout()
        self._timezone = display_timezone

    @property
    def layout(self) -> ProtocolLayout:
        return self._layout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(
        self,
        ledger: DocumentLedger,
        whole_doc_digest: str,
        geometry: PageSize,
        *,
        generated_at: Optional[datetime] = None,
    ) -> List[PageContent]:
        geometry = self.resolve_geometry(geometry)
        self._check_entry_capacity(ledger, geometry)

        generated_at = generated_at or datetime.now(timezone.utc)
        pages: List[PageContent] = []

        cursor = _PageCursor(geometry, self._layout)
        self._draw_header(cursor)
        self._draw_document_section(cursor, ledger, whole_doc_digest)
        cursor = self._draw_signatures(cursor, ledger, geometry, pages)
        self._draw_authenticity(cursor, ledger, whole_doc_digest, generated_at)
        pages.append(cursor.content())

        logger.debug(
            "protocol_pages_built",
            extra={
                "document_id": ledger.document_id,
                "signer_count": ledger.signer_count,
                "page_count": len(pages),
            },
        )
        return pages

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def _fixed_minimum(self) -> float:
        """Space needed by the fixed sections plus one line of registry."""
        layout = self._layout
        return (
            layout.first_page_fixed_height
            + layout.LINE_HEIGHT
            + layout.authenticity_height
        )

    def resolve_geometry(self, geometry: PageSize) -> PageSize:
        """
        Page size the protocol is laid out on.

        The detected size when it holds the fixed sections, otherwise A4.
        """
        usable = geometry.height - 2 * self._layout.MARGIN
        if self._fixed_minimum() <= usable:
            return geometry

        fallback_usable = A4.height - 2 * self._layout.MARGIN
        if self._fixed_minimum() > fallback_usable:
            raise LayoutOverflowError(
                f"Protocol sections need {self._fixed_minimum():.1f}pt; "
                f"even A4 only offers {fallback_usable:.1f}pt.",
                reason=ReasonCode.PAGE_TOO_SMALL,
            )

        logger.info(
            "protocol_geometry_fallback",
            extra={
                "detected_width": geometry.width,
                "detected_height": geometry.height,
            },
        )
        return A4

    def _check_entry_capacity(
        self,
        ledger: DocumentLedger,
        geometry: PageSize,
    ) -> None:
        if not ledger.signatures:
            return

        layout = self._layout
        usable = geometry.height - 2 * layout.MARGIN
        continuation_minimum = (
            layout.heading_height
            + layout.entry_height
            + layout.authenticity_height
        )
        if continuation_minimum > usable:
            raise LayoutOverflowError(
                f"Signature entry too large: an entry needs "
                f"{continuation_minimum:.1f}pt including the authenticity "
                f"reserve, a fresh page offers {usable:.1f}pt."
            )

    def _fits_entry(self, cursor: _PageCursor) -> bool:
        layout = self._layout
        return (
            cursor.y - layout.entry_height
            >= layout.MARGIN + layout.authenticity_height
        )

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _draw_header(self, cursor: _PageCursor) -> None:
        cursor.text(
            "Signature Protocol",
            size=self._layout.TITLE_FONT_SIZE,
            bold=True,
            color=TITLE_COLOR,
        )
        cursor.y -= self._layout.HEADING_GAP
        cursor.rule()
        cursor.y -= self._layout.RULE_GAP

    def _draw_document_section(
        self,
        cursor: _PageCursor,
        ledger: DocumentLedger,
        digest: str,
    ) -> None:
        layout = self._layout
        indent = layout.INDENT
        small = layout.SMALL_FONT_SIZE

        envelope = re.sub(
            r"\.pdf$", "", ledger.source_metadata.file_name, flags=re.IGNORECASE
        )
        author = ledger.signatures[0].name if ledger.signatures else "Local System"
        status = "Completed" if ledger.signatures else "Pending"

        cursor.heading("Document")
        cursor.text(f"Envelope name: {envelope}", indent=indent)
        cursor.text(f"Author: {author}", indent=indent)
        cursor.text(f"Status: {status}", indent=indent)
        cursor.text(f"HASH: {truncated_group_hex(digest)}", indent=indent, size=small)
        cursor.text(f"SHA256: {digest}", indent=indent, size=small)
        cursor.section_break()

    def _draw_signatures(
        self,
        cursor: _PageCursor,
        ledger: DocumentLedger,
        geometry: PageSize,
        pages: List[PageContent],
    ) -> _PageCursor:
        """Draw the registry; returns the cursor of the page it ends on."""
        cursor.heading("Signatures")

        if not ledger.signatures:
            cursor.text(
                NO_SIGNATURES_TEXT,
                indent=self._layout.INDENT,
                color=MUTED_COLOR,
            )
            return cursor

        for record in ledger.signatures:
            if not self._fits_entry(cursor):
                pages.append(cursor.content())
                cursor = _PageCursor(geometry, self._layout)
                cursor.heading("Signatures (continued)")
            self._draw_entry(cursor, record)

        return cursor

    def _draw_entry(self, cursor: _PageCursor, record: SignerRecord) -> None:
        layout = self._layout
        indent = layout.INDENT
        small = layout.SMALL_FONT_SIZE

        signed_at = format_display_timestamp(record.signed_at, self._timezone)

        cursor.text(
            f"Name: {record.name} - CPF: {format_tax_id(record.tax_id)}",
            indent=indent,
            bold=True,
        )
        cursor.text(f"Date: {signed_at}", indent=indent)
        cursor.text(
            "Status: Signed electronically",
            indent=indent,
            color=SIGNED_COLOR,
        )
        cursor.text(
            f"Authentication: {AUTHENTICATION_METHOD}",
            indent=indent,
            size=small,
        )
        cursor.text(f"Device ID: {record.device_token}", indent=indent, size=small)
        cursor.text(
            "Signature hash: "
            f"{abbreviate(record.digest, layout.DIGEST_EDGE_LENGTH)}",
            indent=indent,
            size=small,
            color=DIGEST_COLOR,
        )
        cursor.y -= layout.ENTRY_SPACING

    def _draw_authenticity(
        self,
        cursor: _PageCursor,
        ledger: DocumentLedger,
        digest: str,
        generated_at: datetime,
    ) -> None:
        layout = self._layout
        small = layout.SMALL_FONT_SIZE
        metadata = ledger.source_metadata

        cursor.section_break()
        cursor.heading("Authenticity")
        cursor.text(
            "To verify the authenticity of this document, use the hash below:",
            indent=layout.INDENT,
            size=small,
        )
        cursor.y -= layout.HEADING_GAP

        box_y = cursor.y - layout.DIGEST_BOX_DROP
        cursor.items.append(
            Box(
                x=layout.MARGIN + layout.INDENT,
                y=box_y,
                width=cursor.width - 2 * layout.MARGIN - 2 * layout.INDENT,
                height=layout.DIGEST_BOX_HEIGHT,
                fill=BOX_FILL_COLOR,
                border=BOX_BORDER_COLOR,
                border_width=1,
            )
        )
        cursor.items.append(
            TextRun(
                text=f"HASH: {truncated_group_hex(digest)}",
                x=layout.MARGIN + 2 * layout.INDENT,
                y=box_y + 10,
                size=small,
                bold=True,
                color=TEXT_COLOR,
            )
        )
        cursor.y = box_y - layout.DIGEST_BOX_AFTER

        generated = format_display_timestamp(generated_at, self._timezone)
        cursor.text(
            "This document was signed electronically.",
            size=small,
            color=MUTED_COLOR,
        )
        cursor.text(f"Generated at: {generated}", size=small, color=MUTED_COLOR)
        cursor.y -= layout.FOOTER_GAP

        cursor.text(
            f"Original file: {metadata.file_name}",
            size=small,
            color=MUTED_COLOR,
        )
        cursor.text(
            f"Size: {metadata.file_size / 1024:.2f} KB",
            size=small,
            color=MUTED_COLOR,
        )
        cursor.text(
            f"Total signatures: {ledger.signer_count}",
            size=small,
            color=MUTED_COLOR,
        )
