import pytest
from pathlib import Path

from comicenc.config import EncodingOptions
from comicenc.events import EventRecorder
from comicenc.testing import make_chapter as _make_chapter
from comicenc.testing import run_comicenc as _run_comicenc


@pytest.fixture
def run_comicenc():
    return _run_comicenc


@pytest.fixture
def make_chapter():
    return _make_chapter


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def enc_opts():
    return EncodingOptions()


@pytest.fixture
def chapters_root(tmp_path: Path) -> Path:
    """Three chapters: 3, 2 and 4 pages."""
    root = tmp_path / "chapters"
    _make_chapter(root, "Chapter 1", ["1.png", "2.png", "10.png"])
    _make_chapter(root, "Chapter 2", ["a.jpg", "b.jpg"])
    _make_chapter(root, "Chapter 10", ["p1.png", "p2.png", "extra/p3.png", "extra/p4.png"])
    return root
