"""
pikepdf-backed document builder.

Drawing is deferred: each page records its drawing operations, and at
serialization time the operations are rendered into a single reportlab
overlay per page which is then stamped onto the page as a Form XObject.
The original page content is preserved untouched underneath.

Error handling policy:
    Only pikepdf.PdfError is translated (into DocumentUnreadableError).
    Any other exception indicates a logic error and propagates.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Callable, List, Optional, Sequence, Tuple

import pikepdf
from pikepdf import Array, Dictionary, Name
from reportlab.pdfgen import canvas

from signledger.app.document.builder import (
    BLACK,
    RGB,
    FontHandle,
    StandardFont,
)
from signledger.app.errors import DocumentUnreadableError, ReasonCode

logger = logging.getLogger(__name__)


DrawOp = Callable[[canvas.Canvas], None]


class PikePdfPage:
    """A page of a :class:`PikePdfDocument` that accepts drawing calls."""

    def __init__(self, page: pikepdf.Page):
        self._page = page
        self._ops: List[DrawOp] = []

        x0, y0, x1, y1 = (float(v) for v in page.mediabox)
        self._width = abs(x1 - x0)
        self._height = abs(y1 - y0)

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def has_drawing(self) -> bool:
        return bool(self._ops)

    # ------------------------------------------------------------------
    # Drawing calls (recorded)
    # ------------------------------------------------------------------

    def draw_text(
        self,
        text: str,
        *,
        x: float,
        y: float,
        size: float,
        font: FontHandle,
        color: RGB = BLACK,
    ) -> None:
        def op(c: canvas.Canvas) -> None:
            c.setFillColorRGB(*color)
            c.setFont(font.name, size)
            c.drawString(x, y, text)

        self._ops.append(op)

    def draw_rectangle(
        self,
        *,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: Optional[RGB] = None,
        border: Optional[RGB] = None,
        border_width: float = 0.0,
    ) -> None:
        def op(c: canvas.Canvas) -> None:
            if fill is not None:
                c.setFillColorRGB(*fill)
            if border is not None:
                c.setStrokeColorRGB(*border)
                c.setLineWidth(border_width)
            c.rect(
                x,
                y,
                width,
                height,
                stroke=1 if border is not None and border_width > 0 else 0,
                fill=1 if fill is not None else 0,
            )

        self._ops.append(op)

    def draw_line(
        self,
        *,
        start: Tuple[float, float],
        end: Tuple[float, float],
        thickness: float,
        color: RGB = BLACK,
    ) -> None:
        def op(c: canvas.Canvas) -> None:
            c.setStrokeColorRGB(*color)
            c.setLineWidth(thickness)
            c.line(start[0], start[1], end[0], end[1])

        self._ops.append(op)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_overlay(self) -> bytes:
        """Render the recorded operations as a one-page PDF of this size."""
        buffer = BytesIO()
        c = canvas.Canvas(
            buffer,
            pagesize=(self._width, self._height),
            invariant=1,
        )
        for op in self._ops:
            c.saveState()
            op(c)
            c.restoreState()
        c.showPage()
        c.save()
        return buffer.getvalue()

    def apply_overlay(self, pdf: pikepdf.Pdf, overlay: pikepdf.Pdf) -> None:
        form = pdf.copy_foreign(overlay.pages[0].as_form_xobject())
        self._page.add_overlay(form, pikepdf.Rectangle(self._page.mediabox))


class PikePdfDocument:
    """
    Mutable PDF document implementing the document builder capability.

    Exclusively owned by one caller for its lifetime. Not thread-safe.
    """

    def __init__(self, pdf: pikepdf.Pdf):
        self._pdf = pdf
        self._pages: List[PikePdfPage] = [
            PikePdfPage(page) for page in pdf.pages
        ]

    @classmethod
    def load(
        cls,
        data: bytes,
        *,
        max_pages: Optional[int] = None,
    ) -> "PikePdfDocument":
        """
        Parse document bytes.

        Raises:
            DocumentUnreadableError: if the bytes are empty, are not a
                parseable PDF, or exceed ``max_pages``.
        """
        if not data:
            raise DocumentUnreadableError(
                "Corrupted or unreadable document: empty input."
            )

        try:
            pdf = pikepdf.open(BytesIO(data))
        except pikepdf.PdfError as exc:
            logger.warning("document_parse_failed", extra={"error": str(exc)})
            raise DocumentUnreadableError(
                f"Corrupted or unreadable document: {exc}"
            ) from exc

        if max_pages is not None and len(pdf.pages) > max_pages:
            page_count = len(pdf.pages)
            pdf.close()
            raise DocumentUnreadableError(
                f"Document has {page_count} pages; "
                f"the limit is {max_pages}.",
                reason=ReasonCode.DOCUMENT_TOO_LARGE,
            )

        return cls(pdf)

    def get_pages(self) -> Sequence[PikePdfPage]:
        return tuple(self._pages)

    def insert_page(
        self,
        index: int,
        size: Tuple[float, float],
    ) -> PikePdfPage:
        width, height = size
        blank = pikepdf.Page(
            self._pdf.make_indirect(
                Dictionary(
                    Type=Name.Page,
                    MediaBox=Array([0, 0, width, height]),
                    Resources=Dictionary(),
                    Contents=self._pdf.make_stream(b""),
                )
            )
        )
        self._pdf.pages.insert(index, blank)

        page = PikePdfPage(self._pdf.pages[index])
        self._pages.insert(index, page)
        return page

    def embed_font(self, name: str) -> StandardFont:
        return StandardFont(name)

    def serialize(self) -> bytes:
        """
        Flush recorded drawing onto the pages and write the PDF.

        Overlay documents stay open until the output is written because
        copied foreign streams are read lazily.
        """
        overlays: List[pikepdf.Pdf] = []
        try:
            for page in self._pages:
                if not page.has_drawing:
                    continue
                overlay = pikepdf.open(BytesIO(page.render_overlay()))
                overlays.append(overlay)
                page.apply_overlay(self._pdf, overlay)

            buffer = BytesIO()
            self._pdf.save(buffer, deterministic_id=True)
            return buffer.getvalue()
        finally:
            for overlay in overlays:
                overlay.close()

    def close(self) -> None:
        self._pdf.close()

    def __enter__(self) -> "PikePdfDocument":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
