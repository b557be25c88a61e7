"""comicenc: pack chapter directories of page images into .cbz volumes.

Public API:
- build_volume(method, enc_opts, output, volume, volumes, vol_num_len, chapter_num_len, start_chapter, chapters)
- build_volumes(jobs, nb_worker=1)

`build_volume` is the unit of work: one call writes one staged archive and
publishes it under its final name, or raises an `EncodingError`.
"""
from .config import EncodingOptions
from .errors import EncodingError
from .types_ import BuildResult, Chapter, Each, Ranges, Single
from .worker import VolumeJob, build_volume, build_volumes

__all__ = [
    "BuildResult",
    "Chapter",
    "Each",
    "EncodingError",
    "EncodingOptions",
    "Ranges",
    "Single",
    "VolumeJob",
    "build_volume",
    "build_volumes",
]
