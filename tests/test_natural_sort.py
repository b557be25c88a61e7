import itertools
from pathlib import Path

from comicenc.core import natural_compare, natural_key, sort_pages


NAMES = ["page2", "page10", "page1", "007", "7", "a", "a1", "a1b", "b", "10b", "10a", "x99999999999999999999999"]


def test_numeric_runs_compare_by_value():
    assert natural_compare("page2", "page10") < 0
    assert natural_compare("page10", "page2") > 0
    assert natural_compare("007", "7") == 0
    assert "007" != "7"


def test_huge_numbers_do_not_overflow():
    assert natural_compare("p99999999999999999999999", "p100000000000000000000000") < 0


def test_prefix_sorts_first():
    assert natural_compare("a1", "a1b") < 0
    assert natural_compare("chapter", "chapter1") < 0


def test_total_order():
    for a in NAMES:
        assert natural_compare(a, a) == 0
    for a, b in itertools.permutations(NAMES, 2):
        assert natural_compare(a, b) == -natural_compare(b, a)
    for a, b, c in itertools.permutations(NAMES, 3):
        if natural_compare(a, b) <= 0 and natural_compare(b, c) <= 0:
            assert natural_compare(a, c) <= 0


def test_digits_sort_before_text():
    assert natural_key("1") < natural_key("a")


def test_sort_pages_natural_and_simple():
    pages = [Path("ch/p10.png"), Path("ch/p2.png"), Path("ch/p1.png")]
    assert [p.name for p in sort_pages(pages)] == ["p1.png", "p2.png", "p10.png"]
    assert [p.name for p in sort_pages(pages, simple=True)] == ["p1.png", "p10.png", "p2.png"]


def test_sort_pages_is_deterministic_on_ties():
    a = [Path("007.png"), Path("7.png")]
    b = [Path("7.png"), Path("007.png")]
    assert sort_pages(a) == sort_pages(b)
