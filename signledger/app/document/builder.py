"""
Document builder capability.

The layout engine never talks to a PDF library directly. It draws through
this narrow interface, so the same algorithms run against the pikepdf
backed implementation in production and against an in-memory fake in
tests.

Coordinates are PDF points with the origin at the bottom-left corner of
the page.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, Tuple

from reportlab.pdfbase import pdfmetrics


RGB = Tuple[float, float, float]

BLACK: RGB = (0.0, 0.0, 0.0)

HELVETICA = "Helvetica"
HELVETICA_BOLD = "Helvetica-Bold"

STANDARD_FONTS = frozenset({
    "Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique",
    "Helvetica", "Helvetica-Bold", "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic",
    "Symbol", "ZapfDingbats",
})


class FontHandle(Protocol):
    name: str

    def width_of_text_at_size(self, text: str, size: float) -> float:
        ...


class MutablePage(Protocol):
    @property
    def width(self) -> float:
        ...

    @property
    def height(self) -> float:
        ...

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
        ...

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
        ...

    def draw_line(
        self,
        *,
        start: Tuple[float, float],
        end: Tuple[float, float],
        thickness: float,
        color: RGB = BLACK,
    ) -> None:
        ...


class DocumentBuilder(Protocol):
    def get_pages(self) -> Sequence[MutablePage]:
        ...

    def insert_page(
        self,
        index: int,
        size: Tuple[float, float],
    ) -> MutablePage:
        ...

    def embed_font(self, name: str) -> FontHandle:
        ...

    def serialize(self) -> bytes:
        ...


class StandardFont:
    """
    One of the standard 14 PDF fonts, measured with reportlab's AFM metrics.

    Width measurement must agree with what the renderer draws, so the same
    font name is used for both.
    """

    def __init__(self, name: str):
        if name not in STANDARD_FONTS:
            raise ValueError(f"Not a standard PDF font: {name}")
        self.name = name

    def width_of_text_at_size(self, text: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, self.name, size)

    def __repr__(self) -> str:
        return f"StandardFont({self.name!r})"
