from signledger.app.layout.geometry import A4, PageSize, detect_dominant_size
from signledger.tests.fixtures.fake_document import FakePage


def test_no_pages_falls_back_to_a4():
    assert detect_dominant_size([]) == A4


def test_single_page_is_its_own_size():
    assert detect_dominant_size([(612, 792)]) == PageSize(612, 792)


def test_most_frequent_size_wins():
    pages = [(600, 800), (600, 800), (612, 792)]

    assert detect_dominant_size(pages) == PageSize(600, 800)


def test_ties_go_to_first_encountered_size():
    a = (595, 842)
    b = (612, 792)

    assert detect_dominant_size([a, b, b, a]) == PageSize(*a)
    assert detect_dominant_size([b, a, a, b]) == PageSize(*b)


def test_sizes_compare_exactly():
    pages = [(595.28, 841.89), (595.0, 842.0), (595.0, 842.0)]

    assert detect_dominant_size(pages) == PageSize(595.0, 842.0)


def test_accepts_page_objects():
    pages = [FakePage(300, 400), FakePage(500, 500), FakePage(300, 400)]

    assert detect_dominant_size(pages) == PageSize(300, 400)
