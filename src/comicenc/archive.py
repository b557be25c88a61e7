"""Streaming writer for a staged volume archive."""

from __future__ import annotations

import posixpath
import zipfile
from pathlib import Path
from typing import IO, Optional


class VolumeArchive:
    """ZIP writer owning a volume's staging file until `finish()`.

    Every entry uses the same compression method: `ZIP_DEFLATED` when
    `compress_losslessly` is set, `ZIP_STORED` otherwise.

    Usage:
        with VolumeArchive.open(staging, compress_losslessly=True) as archive:
            archive.add_chapter_directory('Vol_1_Chapter_1')
            archive.add_page('Vol_1_Chapter_1/Vol_1_Chapter_1_Pic_0.png', data)
            archive.finish()
    """

    def __init__(self, zf: zipfile.ZipFile, path: Path, compression: int):
        self._zf: Optional[zipfile.ZipFile] = zf
        self.path = path
        self.compression = compression

    @classmethod
    def open(cls, staging_path: Path, compress_losslessly: bool = False) -> "VolumeArchive":
        """Create (or truncate) `staging_path` and return a writer on it.

        Raises:
            OSError: when the file cannot be created.
        """
        compression = zipfile.ZIP_DEFLATED if compress_losslessly else zipfile.ZIP_STORED
        zf = zipfile.ZipFile(staging_path, "w", compression=compression)
        return cls(zf, Path(staging_path), compression)

    @property
    def closed(self) -> bool:
        return self._zf is None

    def _writer(self) -> zipfile.ZipFile:
        if self._zf is None:
            raise ValueError(f"archive already closed: {self.path}")
        return self._zf

    def add_chapter_directory(self, name: str) -> str:
        """Add a top-level directory entry and return its archive name."""
        dir_name = name.rstrip("/") + "/"
        info = zipfile.ZipInfo(dir_name)
        info.compress_type = zipfile.ZIP_STORED
        # drwxrwxr-x plus the MS-DOS directory flag
        info.external_attr = (0o40775 << 16) | 0x10
        self._writer().writestr(info, b"")
        return dir_name

    def start_page(self, path_in_archive: str, size: int) -> IO[bytes]:
        """Create a page entry and return its writable stream.

        The stream must be written in full and closed before the next entry
        is started.
        """
        info = zipfile.ZipInfo(path_in_archive)
        info.compress_type = self.compression
        info.external_attr = 0o644 << 16
        info.file_size = size
        stream = self._writer().open(info, mode="w")
        return stream

    def add_page(self, path_in_archive: str, data: bytes) -> None:
        """Write one page entry in full."""
        with self.start_page(path_in_archive, len(data)) as stream:
            stream.write(data)

    def finish(self) -> Path:
        """Write the central directory and close the staging file."""
        zf = self._writer()
        self._zf = None
        zf.close()
        return self.path

    def abort(self) -> None:
        """Release the file handle after a failure, leaving the staging file."""
        if self._zf is not None:
            zf, self._zf = self._zf, None
            zf.close()

    def __enter__(self) -> "VolumeArchive":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.abort()


def entry_path(dir_name: str, name: str) -> str:
    """Join an archive directory and an entry name with forward slashes.

    >>> entry_path('Vol_1_Chapter_1/', 'Vol_1_Chapter_1_Pic_0.png')
    'Vol_1_Chapter_1/Vol_1_Chapter_1_Pic_0.png'
    """
    return posixpath.join(dir_name.rstrip("/"), name)
