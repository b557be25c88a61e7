"""Error taxonomy for volume builds.

Every error carries the coordinates needed to pinpoint the failure: the volume
ordinal, and when relevant the chapter ordinal, the chapter directory and the
file involved. Underlying exceptions are chained (`raise ... from err`).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class EncodingError(RuntimeError):
    """Base class for every failure of a volume build."""

    def __init__(
        self,
        message: str,
        volume: int,
        chapter: Optional[int] = None,
        chapter_path: Optional[Path] = None,
        path: Optional[Path] = None,
    ):
        super().__init__(message)
        self.volume = volume
        self.chapter = chapter
        self.chapter_path = chapter_path
        self.path = path


class OutputCollisionError(EncodingError):
    """The output location is already taken."""


class FilesystemError(EncodingError):
    """A file or directory could not be created, read, written or renamed."""


class DataValidityError(EncodingError):
    """Source data cannot be packed as-is."""


# Output collisions


class OutputExistsError(OutputCollisionError):
    def __init__(self, volume: int, path: Path):
        super().__init__(
            f"Output file for volume {volume} already exists at '{path}' (overwrite not allowed)",
            volume,
            path=path,
        )


class OutputIsDirectoryError(OutputCollisionError):
    def __init__(self, volume: int, path: Path):
        super().__init__(
            f"Output path for volume {volume} is a directory: '{path}'",
            volume,
            path=path,
        )


# Filesystem failures


class VolumeFileCreateError(FilesystemError):
    def __init__(self, volume: int, path: Path, err: OSError):
        super().__init__(
            f"Failed to create file for volume {volume} at '{path}': {err}",
            volume,
            path=path,
        )


class ChapterListingError(FilesystemError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, err: OSError):
        super().__init__(
            f"Failed to list files of chapter {chapter} (volume {volume}) in '{chapter_path}': {err}",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
        )


class ChapterDirectoryInZipError(FilesystemError):
    def __init__(self, volume: int, chapter: int, dir_name: str, err: Exception):
        super().__init__(
            f"Failed to create directory '{dir_name}' for chapter {chapter} in volume {volume}'s archive: {err}",
            volume,
            chapter=chapter,
            path=Path(dir_name),
        )


class ImageEntryInZipError(FilesystemError):
    def __init__(self, volume: int, chapter: int, path_in_zip: str, err: Exception):
        super().__init__(
            f"Failed to create entry '{path_in_zip}' for chapter {chapter} in volume {volume}'s archive: {err}",
            volume,
            chapter=chapter,
            path=Path(path_in_zip),
        )


class ImageOpenError(FilesystemError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, path: Path, err: OSError):
        super().__init__(
            f"Failed to open image '{path}' from chapter {chapter} (volume {volume}): {err}",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
            path=path,
        )


class ImageReadError(FilesystemError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, path: Path, err: OSError):
        super().__init__(
            f"Failed to read image '{path}' from chapter {chapter} (volume {volume}): {err}",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
            path=path,
        )


class ImageWriteError(FilesystemError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, path: Path, err: Exception):
        super().__init__(
            f"Failed to write image '{path}' from chapter {chapter} to volume {volume}'s archive: {err}",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
            path=path,
        )


class ArchiveCloseError(FilesystemError):
    def __init__(self, volume: int, path: Path, err: Exception):
        super().__init__(
            f"Failed to finalize archive of volume {volume} at '{path}': {err}",
            volume,
            path=path,
        )


class OverwriteOutputError(FilesystemError):
    def __init__(self, volume: int, path: Path, err: OSError):
        super().__init__(
            f"Failed to remove existing output file of volume {volume} at '{path}': {err}",
            volume,
            path=path,
        )


class RenameArchiveError(FilesystemError):
    def __init__(self, volume: int, staging_path: Path, path: Path, err: OSError):
        super().__init__(
            f"Failed to rename archive of volume {volume} from '{staging_path}' to '{path}': {err}",
            volume,
            path=path,
        )
        self.staging_path = staging_path


# Data validity failures


class InvalidItemNameError(DataValidityError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, path: Path):
        super().__init__(
            f"Item '{path}' in chapter {chapter} (volume {volume}) does not have a valid UTF-8 name",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
            path=path,
        )


class UnusableExtensionError(DataValidityError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, path: Path):
        super().__init__(
            f"Image '{path}' in chapter {chapter} (volume {volume}) has an unusable extension",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
            path=path,
        )


class ImageConvertError(DataValidityError):
    def __init__(self, volume: int, chapter: int, chapter_path: Path, path: Path, err: Exception):
        super().__init__(
            f"Failed to convert image '{path}' from chapter {chapter} (volume {volume}) to WebP: {err}",
            volume,
            chapter=chapter,
            chapter_path=chapter_path,
            path=path,
        )
