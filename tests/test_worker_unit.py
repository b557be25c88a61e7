import os
import zipfile
from pathlib import Path

import pytest

from comicenc import events
from comicenc.config import EncodingOptions
from comicenc.core import STAGING_EXTENSION
from comicenc.testing import image_bytes, make_chapter
from comicenc.types_ import Chapter, Each, Ranges, Single
from comicenc.worker import VolumeJob, build_volume, build_volumes


def chapters_of(root: Path, names, start=1):
    return [Chapter(start + i, root / n, n) for i, n in enumerate(names)]


def page_entries(archive: Path):
    with zipfile.ZipFile(archive) as z:
        return [i.filename for i in z.infolist() if not i.is_dir()], [i.filename for i in z.infolist() if i.is_dir()]


def test_ranges_volume_layout_and_page_count(tmp_path: Path, chapters_root: Path, recorder):
    out = tmp_path / "out"
    out.mkdir()
    chs = chapters_of(chapters_root, ["Chapter 1", "Chapter 2", "Chapter 10"], start=10)

    res = build_volume(
        Ranges(append_chapters_range=True),
        EncodingOptions(append_pages_count=True),
        out, 3, 4, 2, 3, 10, chs,
        on_event=recorder,
    )

    assert res.pages == 9
    assert res.path == out / "Volume-03 (c010-c012) (9 pages).cbz"
    assert res.path.exists()
    assert not res.staging_path.exists()
    assert res.staging_path.name.endswith(STAGING_EXTENSION)
    assert not res.skipped

    pages, dirs = page_entries(res.path)
    assert dirs == ["Vol_03_Chapter_010/", "Vol_03_Chapter_011/", "Vol_03_Chapter_012/"]
    assert len(pages) == res.pages
    for p in pages:
        assert sum(p.startswith(d) for d in dirs) == 1
    assert pages[:3] == [
        "Vol_03_Chapter_010/Vol_03_Chapter_010_Pic_0.png",
        "Vol_03_Chapter_010/Vol_03_Chapter_010_Pic_1.png",
        "Vol_03_Chapter_010/Vol_03_Chapter_010_Pic_2.png",
    ]
    assert pages[3] == "Vol_03_Chapter_011/Vol_03_Chapter_011_Pic_0.jpg"

    kinds = recorder.kinds()
    assert kinds.count(events.PAGE_ADDED) == 9
    assert kinds.count(events.CHAPTER_ADDED) == 3
    assert kinds[-1] == events.VOLUME_WRITTEN
    assert "containing 9 pages" in recorder.events[-1].message


def test_pages_follow_natural_order(tmp_path: Path):
    root = tmp_path / "src"
    make_chapter(root, "c", ["10.png", "2.png", "1.png"])
    (root / "c" / "10.png").write_bytes(image_bytes("PNG") + b"ten")
    (root / "c" / "2.png").write_bytes(image_bytes("PNG") + b"two")
    out = tmp_path / "out"
    out.mkdir()

    res = build_volume(Ranges(), EncodingOptions(), out, 1, 1, 1, 1, 1, chapters_of(root, ["c"]), on_event=lambda e: None)
    with zipfile.ZipFile(res.path) as z:
        assert z.read("Vol_1_Chapter_1/Vol_1_Chapter_1_Pic_1.png").endswith(b"two")
        assert z.read("Vol_1_Chapter_1/Vol_1_Chapter_1_Pic_2.png").endswith(b"ten")

    simple = build_volume(
        Ranges(), EncodingOptions(simple_sorting=True, overwrite=True), out, 1, 1, 1, 1, 1,
        chapters_of(root, ["c"]), on_event=lambda e: None,
    )
    with zipfile.ZipFile(simple.path) as z:
        assert z.read("Vol_1_Chapter_1/Vol_1_Chapter_1_Pic_1.png").endswith(b"ten")


def test_each_volume_layout(tmp_path: Path, chapters_root: Path, recorder):
    out = tmp_path / "out"
    out.mkdir()
    res = build_volume(
        Each(), EncodingOptions(), out, 3, 3, 1, 2, 10,
        chapters_of(chapters_root, ["Chapter 10"], start=10),
        on_event=recorder,
    )
    assert res.path == out / "Chapter 10.cbz"
    pages, dirs = page_entries(res.path)
    assert dirs == ["Chapter 10/"]
    assert pages == [f"Chapter 10/3_Pic_{i}.png" for i in range(4)]


def test_each_skip_existing_writes_nothing(tmp_path: Path, chapters_root: Path, recorder):
    out = tmp_path / "out"
    out.mkdir()
    existing = out / "Chapter 1.cbz"
    existing.write_bytes(b"previous")
    before = sorted(os.listdir(out))

    res = build_volume(
        Each(skip_existing=True), EncodingOptions(), out, 1, 3, 1, 2, 1,
        chapters_of(chapters_root, ["Chapter 1"]),
        on_event=recorder,
    )

    assert res.skipped
    assert res.path == existing
    assert res.pages == 0
    assert existing.read_bytes() == b"previous"
    assert sorted(os.listdir(out)) == before
    assert recorder.kinds() == [events.VOLUME_SKIPPED]


def test_single_output_file(tmp_path: Path, chapters_root: Path):
    target = tmp_path / "book.cbz"
    res = build_volume(
        Single(), EncodingOptions(compress_losslessly=True), target, 1, 1, 1, 1, 1,
        [Chapter(1, chapters_root / "Chapter 2", "Chapter 2")],
        on_event=lambda e: None,
    )
    assert res.path == target
    with zipfile.ZipFile(target) as z:
        infos = [i for i in z.infolist() if not i.is_dir()]
        assert len(infos) == 2
        assert all(i.compress_type == zipfile.ZIP_DEFLATED for i in infos)


def test_webp_transcoding(tmp_path: Path):
    root = tmp_path / "src"
    make_chapter(root, "c", ["1.png", "2.jpg"])
    (root / "c" / "0.webp").write_bytes(image_bytes("WEBP"))
    gray = root / "c" / "3.png"
    gray.write_bytes(image_bytes("PNG", "L"))
    out = tmp_path / "out"
    out.mkdir()

    res = build_volume(
        Ranges(), EncodingOptions(compress_webp=True), out, 1, 1, 1, 1, 1,
        chapters_of(root, ["c"]), on_event=lambda e: None,
    )
    assert res.pages == 4
    with zipfile.ZipFile(res.path) as z:
        names = [n for n in z.namelist() if not n.endswith("/")]
        assert all(n.endswith(".webp") for n in names)
        # already-WebP sources are copied verbatim
        assert z.read("Vol_1_Chapter_1/Vol_1_Chapter_1_Pic_0.webp") == (root / "c" / "0.webp").read_bytes()
        for n in names:
            assert z.read(n)[8:12] == b"WEBP"


def test_default_sink_logs(tmp_path: Path, chapters_root: Path, caplog):
    out = tmp_path / "out"
    out.mkdir()
    with caplog.at_level("INFO", logger="comicenc"):
        build_volume(Ranges(), EncodingOptions(), out, 1, 1, 1, 1, 1, chapters_of(chapters_root, ["Chapter 1"]))
    assert "Successfully written volume 1 / 1" in caplog.text


def test_build_volumes_parallel(tmp_path: Path, chapters_root: Path):
    out = tmp_path / "out"
    out.mkdir()
    chs = chapters_of(chapters_root, ["Chapter 1", "Chapter 2", "Chapter 10"])
    jobs = [
        VolumeJob(Each(), EncodingOptions(), out, i + 1, 3, 1, 1, ch.number, [ch])
        for i, ch in enumerate(chs)
    ]
    results = build_volumes(jobs, nb_worker=3, on_event=lambda e: None)
    assert [r.path.name for r in results] == ["Chapter 1.cbz", "Chapter 2.cbz", "Chapter 10.cbz"]
    assert [r.pages for r in results] == [3, 2, 4]
    assert not list(out.glob(f"*{STAGING_EXTENSION}"))


def test_build_volumes_stops_at_first_error(tmp_path: Path, chapters_root: Path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "Volume-1.cbz").write_bytes(b"taken")
    chs = chapters_of(chapters_root, ["Chapter 1", "Chapter 2"])
    jobs = [VolumeJob(Ranges(), EncodingOptions(), out, i + 1, 2, 1, 1, ch.number, [ch]) for i, ch in enumerate(chs)]
    from comicenc.errors import OutputExistsError

    with pytest.raises(OutputExistsError):
        build_volumes(jobs, nb_worker=1, on_event=lambda e: None)
    assert not (out / "Volume-2.cbz").exists()
