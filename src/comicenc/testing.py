"""Small helpers exported for tests.

These convenience functions are intended for use by the test suite only.
"""
from io import BytesIO
import os
from pathlib import Path
import subprocess
import sys
from typing import Iterable

from PIL import Image


def image_bytes(fmt: str = "PNG", mode: str = "RGB", size=(8, 12)) -> bytes:
    img = Image.new(mode, size)
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_page(path: Path, name: str, mode: str = "RGB", fmt: str = "PNG") -> Path:
    p = path / name
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(image_bytes(fmt, mode))
    return p


def make_chapter(root: Path, name: str, pages: Iterable[str] = ("1.png", "2.png", "10.png")) -> Path:
    chapter = root / name
    chapter.mkdir(parents=True, exist_ok=True)
    for page in pages:
        fmt = "JPEG" if page.lower().endswith((".jpg", ".jpeg")) else Path(page).suffix[1:].upper() or "PNG"
        make_page(chapter, page, fmt=fmt)
    return chapter


def run_comicenc(args):
    src = str(Path(__file__).resolve().parents[1])
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (src, env.get("PYTHONPATH")) if p)
    cmd = [sys.executable, "-m", "comicenc"] + [str(a) for a in args]
    res = subprocess.run(cmd, capture_output=True, text=True, env=env)
    return res
