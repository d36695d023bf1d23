"""
Library-independent page content.

The protocol page builder emits PageContent values: a page size plus an
ordered list of drawing items. Rendering onto a real page happens
separately, through the document builder capability.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from signledger.app.document.builder import (
    BLACK,
    RGB,
    FontHandle,
    MutablePage,
)


class TextRun(BaseModel):
    kind: Literal["text"] = "text"
    text: str
    x: float
    y: float
    size: float
    bold: bool = False
    color: RGB = BLACK

    model_config = ConfigDict(frozen=True)


class Rule(BaseModel):
    """Horizontal separator from ``x_start`` to ``x_end`` at ``y``."""

    kind: Literal["rule"] = "rule"
    x_start: float
    x_end: float
    y: float
    thickness: float = 0.5
    color: RGB = BLACK

    model_config = ConfigDict(frozen=True)


class Box(BaseModel):
    kind: Literal["box"] = "box"
    x: float
    y: float
    width: float
    height: float
    fill: Optional[RGB] = None
    border: Optional[RGB] = None
    border_width: float = 0.0

    model_config = ConfigDict(frozen=True)


PageItem = Union[TextRun, Rule, Box]


class PageContent(BaseModel):
    width: float
    height: float
    items: Tuple[PageItem, ...] = Field(default_factory=tuple)

    model_config = ConfigDict(frozen=True)

    @property
    def texts(self) -> List[str]:
        return [item.text for item in self.items if isinstance(item, TextRun)]

    @property
    def lowest_y(self) -> float:
        """Lowest baseline or box bottom drawn on the page."""
        return min((item.y for item in self.items), default=self.height)

    def draw_onto(
        self,
        page: MutablePage,
        *,
        regular: FontHandle,
        bold: FontHandle,
    ) -> None:
        for item in self.items:
            if isinstance(item, TextRun):
                page.draw_text(
                    item.text,
                    x=item.x,
                    y=item.y,
                    size=item.size,
                    font=bold if item.bold else regular,
                    color=item.color,
                )
            elif isinstance(item, Rule):
                page.draw_line(
                    start=(item.x_start, item.y),
                    end=(item.x_end, item.y),
                    thickness=item.thickness,
                    color=item.color,
                )
            else:
                page.draw_rectangle(
                    x=item.x,
                    y=item.y,
                    width=item.width,
                    height=item.height,
                    fill=item.fill,
                    border=item.border,
                    border_width=item.border_width,
                )
