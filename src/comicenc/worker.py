"""Worker primitives: per-volume build orchestration and multi-volume runs."""

from __future__ import annotations

import concurrent.futures
import logging
import os
import time
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Sequence

from .archive import VolumeArchive, entry_path
from .config import EncodingOptions
from .core import (
    InvalidFileName,
    chapter_dir_name,
    final_volume_path,
    is_valid_text,
    page_entry_name,
    pad,
    resolve_volume_names,
    scan_chapter_dir,
    sort_pages,
    truncate_display,
)
from .errors import (
    ArchiveCloseError,
    ChapterDirectoryInZipError,
    ChapterListingError,
    ImageConvertError,
    ImageEntryInZipError,
    ImageOpenError,
    ImageReadError,
    ImageWriteError,
    InvalidItemNameError,
    OutputExistsError,
    OutputIsDirectoryError,
    OverwriteOutputError,
    RenameArchiveError,
    UnusableExtensionError,
    VolumeFileCreateError,
)
from .events import (
    ARCHIVE_FINISHED,
    CHAPTER_ADDED,
    CHAPTER_SCANNED,
    PAGE_ADDED,
    PAGE_TRANSCODED,
    VOLUME_SKIPPED,
    VOLUME_WRITTEN,
    EventSink,
    log_event,
)
from .transcode import TranscodeError, needs_transcode, transcode_to_webp
from .types_ import BuildEvent, BuildMethod, BuildResult, Chapter, Each, Ranges, Single

logger = logging.getLogger(__name__)


class VolumeJob(NamedTuple):
    """Arguments of one `build_volume` call, as prepared by the caller."""

    method: BuildMethod
    enc_opts: EncodingOptions
    output: Path
    volume: int
    volumes: int
    vol_num_len: int
    chapter_num_len: int
    start_chapter: int
    chapters: Sequence[Chapter]


class _VolumeBuild:
    """State of one volume while it is being written."""

    def __init__(
        self,
        method: BuildMethod,
        enc_opts: EncodingOptions,
        volume: int,
        vol_num_len: int,
        chapter_num_len: int,
        display: str,
        emit: EventSink,
    ):
        self.method = method
        self.enc_opts = enc_opts
        self.volume = volume
        self.vol_num_len = vol_num_len
        self.chapter_num_len = chapter_num_len
        self.display = display
        self.emit = emit
        self.pages = 0

    def event(self, kind: str, level: int, message: str, chapter: Optional[int] = None) -> None:
        self.emit(BuildEvent(kind, level, message, self.volume, chapter))

    def chapter_display(self, chapter: Chapter) -> str:
        if isinstance(self.method, Each):
            return self.display
        return pad(chapter.number, self.chapter_num_len)

    def list_pages(self, chapter: Chapter) -> List[Path]:
        try:
            pages = scan_chapter_dir(chapter.path, self.enc_opts.accept_extended_image_formats)
        except InvalidFileName as e:
            raise InvalidItemNameError(self.volume, chapter.number, chapter.path, e.path) from e
        except OSError as e:
            raise ChapterListingError(self.volume, chapter.number, chapter.path, e) from e
        self.event(
            CHAPTER_SCANNED,
            logging.DEBUG,
            f"Found {len(pages)} picture files in chapter {chapter.number}'s directory '{chapter.name}'",
            chapter.number,
        )
        return sort_pages(pages, self.enc_opts.simple_sorting)

    def announce_chapter(self, chapter: Chapter) -> None:
        shown = self.chapter_display(chapter)
        if isinstance(self.method, Ranges):
            if self.method.debug_chapters_path:
                self.event(
                    CHAPTER_ADDED,
                    logging.INFO,
                    f"Adding chapter {shown} to volume {self.display} from directory '{chapter.name}'",
                    chapter.number,
                )
            else:
                self.event(
                    CHAPTER_ADDED,
                    logging.DEBUG,
                    f"Adding chapter {shown} to volume {self.display}...",
                    chapter.number,
                )
        elif isinstance(self.method, Each):
            self.event(
                CHAPTER_ADDED,
                logging.DEBUG,
                f"Adding directory n°{chapter.number} to volume {self.display}",
                chapter.number,
            )
        elif isinstance(self.method, Single):
            pass
        else:
            raise TypeError(f"unknown build method: {self.method!r}")

    def page_extension(self, chapter: Chapter, page: Path) -> str:
        if self.enc_opts.compress_webp:
            return "webp"
        ext = page.suffix[1:]
        if not ext or not is_valid_text(ext):
            raise UnusableExtensionError(self.volume, chapter.number, chapter.path, page)
        return ext

    def read_page(self, chapter: Chapter, page: Path) -> bytes:
        try:
            fh = open(page, "rb")
        except OSError as e:
            raise ImageOpenError(self.volume, chapter.number, chapter.path, page, e) from e
        with fh:
            try:
                data = fh.read()
            except OSError as e:
                raise ImageReadError(self.volume, chapter.number, chapter.path, page, e) from e

        if self.enc_opts.compress_webp and needs_transcode(page):
            try:
                data = transcode_to_webp(data)
            except TranscodeError as e:
                raise ImageConvertError(self.volume, chapter.number, chapter.path, page, e) from e
            self.event(PAGE_TRANSCODED, logging.DEBUG, f"Converted '{page}' to WebP", chapter.number)
        return data

    def add_chapter(self, archive: VolumeArchive, chapter: Chapter) -> None:
        pages = self.list_pages(chapter)
        self.announce_chapter(chapter)

        dir_name = chapter_dir_name(
            self.method, self.volume, chapter, self.vol_num_len, self.chapter_num_len
        )
        try:
            archive.add_chapter_directory(dir_name)
        except OSError as e:
            raise ChapterDirectoryInZipError(self.volume, chapter.number, dir_name, e) from e

        for page_nb, page in enumerate(pages):
            name = page_entry_name(
                self.method,
                self.volume,
                chapter.number,
                page_nb,
                len(pages),
                self.page_extension(chapter, page),
                self.vol_num_len,
                self.chapter_num_len,
            )
            path_in_zip = entry_path(dir_name, name)
            data = self.read_page(chapter, page)

            try:
                dest = archive.start_page(path_in_zip, len(data))
            except OSError as e:
                raise ImageEntryInZipError(self.volume, chapter.number, path_in_zip, e) from e
            try:
                with dest:
                    dest.write(data)
            except OSError as e:
                raise ImageWriteError(self.volume, chapter.number, chapter.path, page, e) from e

            self.pages += 1
            self.event(
                PAGE_ADDED,
                logging.DEBUG,
                f"Added picture '{page}' from chapter {self.chapter_display(chapter)} "
                f"to volume {self.display} as '{path_in_zip}'",
                chapter.number,
            )


def publish_volume(staging: Path, final: Path, volume: int, overwrite: bool) -> Path:
    """Move a finished staging archive to its final name.

    The final path is only ever produced by this rename.
    """
    if final.exists():
        if not overwrite:
            raise OutputExistsError(volume, final)
        if final.is_dir():
            raise OutputIsDirectoryError(volume, final)
        try:
            final.unlink()
        except OSError as e:
            raise OverwriteOutputError(volume, final, e) from e
    try:
        os.rename(staging, final)
    except OSError as e:
        raise RenameArchiveError(volume, staging, final, e) from e
    return final


def _format_elapsed(seconds: float) -> str:
    return f"{int(seconds)}.{int(seconds * 1000) % 1000:03d} s"


def build_volume(
    method: BuildMethod,
    enc_opts: EncodingOptions,
    output: Path,
    volume: int,
    volumes: int,
    vol_num_len: int,
    chapter_num_len: int,
    start_chapter: int,
    chapters: Sequence[Chapter],
    on_event: Optional[EventSink] = None,
) -> BuildResult:
    """Build one volume archive from an ordered list of chapters.

    This performs the whole volume sequence:
    1. resolve the volume's names (and honour `Each.skip_existing`);
    2. create the staging archive next to the final location;
    3. for each chapter, list and sort its pages, add its directory and
       write every page (transcoded to WebP when asked);
    4. finish the archive, then rename it to its final name, appending the
       page count when `enc_opts.append_pages_count` is set.

    Args:
        method: the build strategy (`Ranges`, `Each` or `Single`).
        enc_opts: encoding policy shared by the job.
        output: output directory (`Ranges`/`Each`) or output file (`Single`).
        volume: 1-based volume ordinal.
        volumes: total number of volumes of the job.
        vol_num_len: zero-padding width of volume numbers.
        chapter_num_len: zero-padding width of chapter numbers.
        start_chapter: number of the first chapter of this volume.
        chapters: chapters of this volume, in order.
        on_event: progress sink; defaults to `events.log_event`.

    Returns:
        BuildResult: the published path (or the pre-existing one when
        skipped), the staging path, the page count and the elapsed seconds.

    Raises:
        EncodingError: any failure aborts the whole volume. The staging file
            may be left behind.
    """
    emit = on_event or log_event
    started = time.perf_counter()
    output = Path(output)
    end_chapter = start_chapter + len(chapters) - 1

    names = resolve_volume_names(
        method, output, volume, vol_num_len, chapter_num_len, start_chapter, chapters
    )

    # skip_existing conflicts with append_pages_count, so the name is predictable here
    if isinstance(method, Each) and method.skip_existing:
        existing = final_volume_path(names.base)
        if existing.exists():
            emit(
                BuildEvent(
                    VOLUME_SKIPPED,
                    logging.WARNING,
                    f"Warning: skipping volume {volume} containing chapters {start_chapter} to "
                    f"{end_chapter} as its output file '{existing}' already exists (--skip-existing provided)",
                    volume,
                )
            )
            return BuildResult(existing, names.staging, 0, time.perf_counter() - started, skipped=True)

    if names.staging.exists() and not enc_opts.overwrite:
        raise OutputExistsError(volume, names.staging)

    try:
        archive = VolumeArchive.open(names.staging, enc_opts.compress_losslessly)
    except OSError as e:
        raise VolumeFileCreateError(volume, names.staging, e) from e

    build = _VolumeBuild(method, enc_opts, volume, vol_num_len, chapter_num_len, names.display, emit)
    with archive:
        for chapter in chapters:
            build.add_chapter(archive, chapter)
        try:
            archive.finish()
        except OSError as e:
            raise ArchiveCloseError(volume, names.staging, e) from e
    emit(BuildEvent(ARCHIVE_FINISHED, logging.DEBUG, f"Closed archive '{names.staging}'", volume))

    final = final_volume_path(names.base, build.pages if enc_opts.append_pages_count else None)
    publish_volume(names.staging, final, volume, enc_opts.overwrite)

    elapsed = time.perf_counter() - started
    shown_file = truncate_display(final.name)
    right_padding = " " * max(0, 50 - len(shown_file))
    if isinstance(method, Each):
        message = (
            f"Successfully written volume {pad(volume, vol_num_len)} / {volumes} to file "
            f"'{shown_file}{right_padding}', containing {build.pages} pages in {_format_elapsed(elapsed)}."
        )
    else:
        message = (
            f"Successfully written volume {names.display} / {volumes} (chapters "
            f"{pad(start_chapter, chapter_num_len)} to {pad(end_chapter, chapter_num_len)}) in "
            f"'{shown_file}'{right_padding}, containing {build.pages} pages in {_format_elapsed(elapsed)}."
        )
    emit(BuildEvent(VOLUME_WRITTEN, logging.INFO, message, volume))

    return BuildResult(final, names.staging, build.pages, elapsed)


def build_volumes(
    jobs: Sequence[VolumeJob],
    nb_worker: int = 1,
    on_event: Optional[EventSink] = None,
) -> List[BuildResult]:
    """Build independent volumes, serially or with a thread pool.

    The first error is re-raised; in threaded mode volumes not yet started
    are cancelled and in-flight ones are allowed to finish.

    Returns:
        List[BuildResult]: one result per job, in job order.
    """
    if nb_worker <= 1 or len(jobs) <= 1:
        results: List[BuildResult] = []
        for job in jobs:
            logger.debug(f"[worker] building volume {job.volume} / {job.volumes}")
            results.append(build_volume(*job, on_event=on_event))
        return results

    logger.debug(f"[worker] Using ThreadPoolExecutor with {nb_worker} workers")
    by_volume: Dict[int, BuildResult] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=nb_worker) as ex:
        futures = {ex.submit(build_volume, *job, on_event=on_event): job for job in jobs}
        try:
            for fut in concurrent.futures.as_completed(futures):
                job = futures[fut]
                by_volume[job.volume] = fut.result()
                logger.debug(f"[worker] built volume {job.volume}: {by_volume[job.volume].path}")
        except Exception:
            for fut in futures:
                fut.cancel()
            raise
    return [by_volume[job.volume] for job in jobs]
