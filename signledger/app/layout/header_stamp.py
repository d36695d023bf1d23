"""
Running header stamped on every page of the finalized artifact.

Each page receives a light background band across the full width, the
truncated whole-document digest centered in it, and a right-aligned
``Page i of N`` label. The digest text is identical on every page of one
finalization.

Text placement depends on measured text width, so a single font is used
for the whole document.
"""

from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel, ConfigDict

from signledger.app.document.builder import RGB, FontHandle, MutablePage
from signledger.app.utils.digest_format import truncated_group_hex


BAND_COLOR: RGB = (0.95, 0.95, 0.95)
DIGEST_TEXT_COLOR: RGB = (0.3, 0.3, 0.3)
PAGE_TEXT_COLOR: RGB = (0.5, 0.5, 0.5)


class HeaderLayout(BaseModel):
    MARGIN_TOP: float = 15
    FONT_SIZE: float = 7
    BAND_HEIGHT: float = 18
    RIGHT_PADDING: float = 10

    model_config = ConfigDict(frozen=True)


def header_digest_text(whole_doc_digest: str) -> str:
    return f"HASH: {truncated_group_hex(whole_doc_digest)}"


def page_label(index: int, total: int) -> str:
    return f"Page {index + 1} of {total}"


class HeaderStamper:
    def __init__(self, font: FontHandle, layout: HeaderLayout | None = None):
        self._font = font
        self._layout = layout or HeaderLayout()

    def stamp(
        self,
        pages: Sequence[MutablePage],
        whole_doc_digest: str,
    ) -> None:
        """
        Overlay the header on ``pages`` in place.

        ``pages`` must be the final page sequence: the page count in each
        label is read from it.
        """
        layout = self._layout
        size = layout.FONT_SIZE
        total = len(pages)
        digest_text = header_digest_text(whole_doc_digest)
        digest_width = self._font.width_of_text_at_size(digest_text, size)

        for index, page in enumerate(pages):
            width = page.width
            height = page.height
            baseline = height - layout.MARGIN_TOP

            page.draw_rectangle(
                x=0,
                y=height - layout.BAND_HEIGHT,
                width=width,
                height=layout.BAND_HEIGHT,
                fill=BAND_COLOR,
            )

            page.draw_text(
                digest_text,
                x=(width - digest_width) / 2,
                y=baseline,
                size=size,
                font=self._font,
                color=DIGEST_TEXT_COLOR,
            )

            label = page_label(index, total)
            label_width = self._font.width_of_text_at_size(label, size)
            page.draw_text(
                label,
                x=width - label_width - layout.RIGHT_PADDING,
                y=baseline,
                size=size,
                font=self._font,
                color=PAGE_TEXT_COLOR,
            )
