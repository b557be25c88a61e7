"""Core utilities: page ordering, chapter scanning and volume naming."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .types_ import BuildMethod, Chapter, Each, Ranges, Single, VolumeNames

IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "bmp", "webp"})

EXTENDED_IMAGE_EXTENSIONS = IMAGE_EXTENSIONS | frozenset(
    {"tif", "tiff", "tga", "ico", "pnm", "pbm", "pgm", "ppm", "avif", "jxl", "qoi"}
)

ARCHIVE_EXTENSION = ".cbz"
STAGING_EXTENSION = ".comic-enc-partial"
DISPLAY_MAX_LEN = 50

_RUNS = re.compile(r"(\d+)|(\D+)")

PathLike = Union[str, os.PathLike]


class InvalidFileName(ValueError):
    """An entry's name is not valid text and cannot go into an archive."""

    def __init__(self, path: PathLike):
        super().__init__(f"invalid file name: {os.fsdecode(path)!r}")
        self.path = Path(path)


# Natural ordering


def natural_key(path: PathLike) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """Return the run-by-run sort key of `path`.

    Digit runs become `(0, value)` and text runs `(1, text)`, so a number
    sorts before text at the same position and tuples never compare an int
    with a str.

    >>> natural_key('page10.png')
    ((1, 'page'), (0, 10), (1, '.png'))
    """
    return tuple(
        (0, int(digits)) if digits else (1, text)
        for digits, text in _RUNS.findall(os.fspath(path))
    )


def natural_compare(a: PathLike, b: PathLike) -> int:
    """Compare two paths the way humans order numbered files.

    >>> natural_compare('page2', 'page10')
    -1
    >>> natural_compare('007', '7')
    0
    >>> natural_compare('a1', 'a1b')
    -1
    """
    ka, kb = natural_key(a), natural_key(b)
    return (ka > kb) - (ka < kb)


def sort_pages(paths: Iterable[Path], simple: bool = False) -> List[Path]:
    """Sort page paths, lexicographically when `simple` else naturally.

    Natural ties (e.g. `007` and `7`) fall back to the plain string so the
    result never depends on traversal order.

    >>> [p.name for p in sort_pages([Path('p10.png'), Path('p2.png'), Path('p1.png')])]
    ['p1.png', 'p2.png', 'p10.png']
    >>> [p.name for p in sort_pages([Path('p10.png'), Path('p2.png')], simple=True)]
    ['p10.png', 'p2.png']
    """
    if simple:
        return sorted(paths, key=os.fspath)
    return sorted(paths, key=lambda p: (natural_key(p), os.fspath(p)))


# Chapter scanning


def has_image_ext(path: PathLike, accept_extended: bool = False) -> bool:
    """Return True when `path` has an accepted raster image extension.

    >>> has_image_ext('001.JPG')
    True
    >>> has_image_ext('001.tiff')
    False
    >>> has_image_ext('001.tiff', accept_extended=True)
    True
    """
    allowed = EXTENDED_IMAGE_EXTENSIONS if accept_extended else IMAGE_EXTENSIONS
    suffix = os.path.splitext(os.fspath(path))[1]
    return suffix[1:].lower() in allowed


def is_valid_text(name: str) -> bool:
    """Return True when `name` survives a strict UTF-8 round trip."""
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def scan_chapter_dir(directory: PathLike, accept_extended: bool = False) -> List[Path]:
    """Return every image file under `directory`, recursively.

    Args:
        directory: the chapter directory to walk.
        accept_extended: use the extended extension allow-list.

    Returns:
        List[Path]: matching files, in traversal order (callers sort them).

    Raises:
        OSError: when a directory cannot be listed.
        InvalidFileName: when an entry's name is not valid text.
    """
    files: List[Path] = []
    pending = [os.fspath(directory)]
    while pending:
        current = pending.pop()
        with os.scandir(current) as it:
            for entry in it:
                if not is_valid_text(entry.name):
                    raise InvalidFileName(entry.path)
                # Symlinked directories are not followed, so nothing is visited twice
                if entry.is_dir(follow_symlinks=False):
                    pending.append(entry.path)
                elif entry.is_file() and has_image_ext(entry.name, accept_extended):
                    files.append(Path(entry.path))
    return files


# Volume naming


def pad(number: int, width: int) -> str:
    """Zero-pad `number` to `width` digits.

    >>> pad(3, 2)
    '03'
    """
    return f"{number:0{width}d}"


def truncate_display(name: str, limit: int = DISPLAY_MAX_LEN) -> str:
    """Cut `name` at `limit` characters with an ellipsis marker.

    >>> truncate_display('short')
    'short'
    >>> truncate_display('abcdef', limit=3)
    'abc...'
    """
    if len(name) <= limit:
        return name
    return f"{name[:limit]}..."


def _unknown_method(method: object) -> TypeError:
    return TypeError(f"unknown build method: {method!r}")


def _single_chapter(chapters: Sequence[Chapter]) -> Chapter:
    if len(chapters) != 1:
        raise AssertionError(
            f"Internal error: individual chapter's volume must contain exactly 1 chapter, got {len(chapters)}"
        )
    return chapters[0]


def volume_base_path(
    method: BuildMethod,
    output: Path,
    volume: int,
    vol_num_len: int,
    chapter_num_len: int,
    start_chapter: int,
    chapters: Sequence[Chapter],
) -> Path:
    """Return the output path of a volume, without any extension.

    >>> chapters = [Chapter(n, Path(f'c{n}'), f'c{n}') for n in range(10, 15)]
    >>> volume_base_path(Ranges(), Path('out'), 3, 2, 3, 10, chapters).name
    'Volume-03'
    >>> volume_base_path(Ranges(append_chapters_range=True), Path('out'), 3, 2, 3, 10, chapters).name
    'Volume-03 (c010-c014)'
    >>> volume_base_path(Each(), Path('out'), 1, 1, 1, 1, [Chapter(1, Path('x'), 'Ch 1.5')]).name
    'Ch 1.5'
    >>> volume_base_path(Single(), Path('out/book.cbz'), 1, 1, 1, 1, chapters).name
    'book'
    """
    output = Path(output)
    if isinstance(method, Ranges):
        name = f"Volume-{pad(volume, vol_num_len)}"
        if method.append_chapters_range and chapters:
            end_chapter = start_chapter + len(chapters) - 1
            name += f" (c{pad(start_chapter, chapter_num_len)}-c{pad(end_chapter, chapter_num_len)})"
        return output / name
    if isinstance(method, Each):
        return output / _single_chapter(chapters).name
    if isinstance(method, Single):
        return output.with_suffix("")
    raise _unknown_method(method)


def with_extension(base: Path, extension: str) -> Path:
    """Append `extension` to `base` without replacing dotted name parts.

    >>> with_extension(Path('Ch 1.5'), '.cbz').name
    'Ch 1.5.cbz'
    """
    return base.with_name(base.name + extension)


def final_volume_path(base: Path, pages: Optional[int] = None) -> Path:
    """Return the published archive path, with the page count when given.

    >>> final_volume_path(Path('Volume-01')).name
    'Volume-01.cbz'
    >>> final_volume_path(Path('Volume-01'), 42).name
    'Volume-01 (42 pages).cbz'
    """
    if pages is None:
        return with_extension(base, ARCHIVE_EXTENSION)
    return with_extension(base, f" ({pages} pages){ARCHIVE_EXTENSION}")


def volume_display_name(
    method: BuildMethod, base: Path, volume: int, vol_num_len: int, chapters: Sequence[Chapter]
) -> str:
    """Return the label used for a volume in progress and success reports."""
    if isinstance(method, Ranges):
        return pad(volume, vol_num_len)
    if isinstance(method, Each):
        name = _single_chapter(chapters).name
        return f"'{name if method.display_full_names else truncate_display(name)}'"
    if isinstance(method, Single):
        return f"'{base.name}'"
    raise _unknown_method(method)


def resolve_volume_names(
    method: BuildMethod,
    output: Path,
    volume: int,
    vol_num_len: int,
    chapter_num_len: int,
    start_chapter: int,
    chapters: Sequence[Chapter],
) -> VolumeNames:
    """Resolve the base, staging and display names of a volume.

    The result only depends on the arguments.

    >>> names = resolve_volume_names(Ranges(), Path('out'), 7, 2, 2, 1, [])
    >>> names.staging.name, names.display
    ('Volume-07.comic-enc-partial', '07')
    """
    base = volume_base_path(method, output, volume, vol_num_len, chapter_num_len, start_chapter, chapters)
    return VolumeNames(
        base=base,
        staging=with_extension(base, STAGING_EXTENSION),
        display=volume_display_name(method, base, volume, vol_num_len, chapters),
    )


def chapter_dir_name(
    method: BuildMethod, volume: int, chapter: Chapter, vol_num_len: int, chapter_num_len: int
) -> str:
    """Return the archive directory holding a chapter's pages.

    >>> chapter_dir_name(Ranges(), 1, Chapter(4, Path('c'), 'c'), 2, 3)
    'Vol_01_Chapter_004'
    >>> chapter_dir_name(Each(), 1, Chapter(4, Path('c'), 'Side story'), 2, 3)
    'Side story'
    """
    if isinstance(method, Each):
        return chapter.name
    if isinstance(method, (Ranges, Single)):
        return f"Vol_{pad(volume, vol_num_len)}_Chapter_{pad(chapter.number, chapter_num_len)}"
    raise _unknown_method(method)


def page_entry_name(
    method: BuildMethod,
    volume: int,
    chapter: int,
    page: int,
    page_count: int,
    ext: str,
    vol_num_len: int,
    chapter_num_len: int,
) -> str:
    """Return a page's file name inside its chapter directory.

    Pages are numbered from 0, padded to the digit width of `page_count`.

    >>> page_entry_name(Ranges(), 1, 4, 3, 12, 'png', 2, 3)
    'Vol_01_Chapter_004_Pic_03.png'
    >>> page_entry_name(Each(), 5, 4, 3, 9, 'webp', 2, 3)
    '05_Pic_3.webp'
    """
    page_str = pad(page, len(str(page_count)))
    if isinstance(method, Each):
        return f"{pad(volume, vol_num_len)}_Pic_{page_str}.{ext}"
    if isinstance(method, (Ranges, Single)):
        return f"Vol_{pad(volume, vol_num_len)}_Chapter_{pad(chapter, chapter_num_len)}_Pic_{page_str}.{ext}"
    raise _unknown_method(method)
