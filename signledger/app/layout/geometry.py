"""
Dominant page size detection.

Synthesized protocol pages take the size shared by most pages of the
source document so the finalized artifact stays visually consistent.
"""

from __future__ import annotations

from typing import Dict, NamedTuple, Sequence, Union

from signledger.app.document.builder import MutablePage


class PageSize(NamedTuple):
    width: float
    height: float


# ISO A4 in PDF points.
A4 = PageSize(595.28, 841.89)


SizedPage = Union[PageSize, tuple, MutablePage]


def _size_of(page: SizedPage) -> PageSize:
    if isinstance(page, tuple):
        width, height = page
        return PageSize(width, height)
    return PageSize(page.width, page.height)


def detect_dominant_size(pages: Sequence[SizedPage]) -> PageSize:
    """
    Return the most frequent (width, height) pair.

    - no pages: A4
    - one page: its size
    - otherwise: highest count, exact equality; ties go to the size
      encountered first
    """
    if not pages:
        return A4

    if len(pages) == 1:
        return _size_of(pages[0])

    # dicts keep insertion order, which makes the tie-break stable
    counts: Dict[PageSize, int] = {}
    for page in pages:
        size = _size_of(page)
        counts[size] = counts.get(size, 0) + 1

    dominant = A4
    best = 0
    for size, count in counts.items():
        if count > best:
            dominant = size
            best = count

    return dominant
