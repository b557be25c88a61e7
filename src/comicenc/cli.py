"""CLI layer: argument parsing, config loading, chapter discovery and orchestration."""
from __future__ import annotations

import argparse
import json
import logging
import math
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import EncodingOptions
from .core import natural_key
from .errors import EncodingError
from .types_ import Chapter, Each, Ranges, Single
from .worker import VolumeJob, build_volumes

logger = logging.getLogger(__name__)

CONFIG_FILE = 'comicenc.json'


def setup_logging(verbose: bool = False, loglevel: Optional[str] = None, force_color: Optional[bool] = None,
                  silent: bool = False):
    """Configure root logger with a compact, colored formatter and emoji prefixes.

    - verbose -> DEBUG level, otherwise INFO
    - silent -> ERROR level (overrides verbose)
    - loglevel: explicit string level to override verbose/silent (e.g. DEBUG|INFO|WARNING|ERROR)
    - force_color: True/False to override automatic TTY detection
    """
    root = logging.getLogger()
    root.handlers.clear()

    # Determine numeric level (loglevel overrides verbose and silent)
    if loglevel:
        lvl = loglevel.upper()
        if lvl == 'WARN':
            lvl = 'WARNING'
        level = getattr(logging, lvl, logging.INFO)
    elif silent:
        level = logging.ERROR
    else:
        level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()

    # Decide whether to use color based on the handler stream TTY or caller override
    stream = handler.stream
    if force_color is True:
        use_color = True
    elif force_color is False:
        use_color = False
    else:
        use_color = hasattr(stream, "isatty") and stream.isatty()

    handler.setFormatter(ColorFormatter(use_color))
    root.setLevel(level)
    root.addHandler(handler)


class ColorFormatter(logging.Formatter):
    COLORS = {
        'DEBUG': '\x1b[34m',    # blue
        'INFO': '\x1b[32m',     # green
        'WARNING': '\x1b[33m',  # yellow
        'ERROR': '\x1b[31m',    # red
        'CRITICAL': '\x1b[31;1m',
    }
    EMOJI = {
        'DEBUG': '🔧',
        'INFO': '✅',
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '💥',
    }
    RESET = '\x1b[0m'

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        emoji = self.EMOJI.get(level, '')
        if self.use_color:
            color = self.COLORS.get(level, '')
            prefix = f"{color}{emoji} {level}:{self.RESET}"
        else:
            prefix = f"{emoji} {level}:"
        formatted = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"
        return formatted


def load_config_from_path(path: str) -> Dict[str, Any]:
    """Load an optional JSON config file (`comicenc.json`) from `path`.

    Supported keys (optional): the `EncodingOptions` field names plus
    `chapters_per_volume`, `start_chapter` and `nb_worker`.

    Raises:
        ValueError: if a `comicenc.json` file is present but cannot be parsed
                    as a valid JSON object (dict). The caller should treat this
                    as a configuration error and abort.

    Returns an empty dict when no config file is present.
    """
    cfg_path = os.path.join(path, CONFIG_FILE)
    if not os.path.isfile(cfg_path):
        return {}
    try:
        with open(cfg_path, 'r', encoding='utf-8') as fh:
            data = json.load(fh)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid {CONFIG_FILE} ({cfg_path}): {e.msg}")
    except OSError as e:
        raise ValueError(f"Invalid {CONFIG_FILE} ({cfg_path}): {e}")
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {CONFIG_FILE} ({cfg_path}): top-level JSON must be an object")
    return data


def discover_chapters(root: Path, start_chapter: int = 1) -> List[Chapter]:
    """Return the chapter directories directly under `root`, naturally ordered.

    Chapters are numbered from `start_chapter` in that order. Hidden
    directories are ignored.

    Raises:
        OSError: if `root` cannot be listed.
    """
    dirs = [p for p in Path(root).iterdir() if p.is_dir() and not p.name.startswith('.')]
    dirs.sort(key=lambda p: (natural_key(p.name), p.name))
    return [Chapter(start_chapter + i, d, d.name) for i, d in enumerate(dirs)]


def plan_compile_jobs(
    chapters: List[Chapter],
    output: Path,
    enc_opts: EncodingOptions,
    chapters_per_volume: Optional[int] = None,
    append_chapters_range: bool = False,
    debug_chapters_path: bool = False,
    display_full_names: bool = False,
    skip_existing: bool = False,
) -> List[VolumeJob]:
    """Partition `chapters` into volume jobs.

    With `chapters_per_volume` chapters are grouped in contiguous ranges,
    otherwise every chapter becomes its own volume.

    Example:
    >>> chs = [Chapter(n, Path(f'c{n}'), f'c{n}') for n in range(1, 6)]
    >>> [(j.volume, j.start_chapter, len(j.chapters)) for j in plan_compile_jobs(chs, Path('o'), EncodingOptions(), 2)]
    [(1, 1, 2), (2, 3, 2), (3, 5, 1)]
    >>> plan_compile_jobs(chs, Path('o'), EncodingOptions())[4].vol_num_len
    1
    """
    if not chapters:
        return []
    chapter_num_len = len(str(chapters[-1].number))

    if chapters_per_volume:
        method = Ranges(append_chapters_range=append_chapters_range, debug_chapters_path=debug_chapters_path)
        volumes = math.ceil(len(chapters) / chapters_per_volume)
        groups = [chapters[i:i + chapters_per_volume] for i in range(0, len(chapters), chapters_per_volume)]
    else:
        method = Each(display_full_names=display_full_names, skip_existing=skip_existing)
        volumes = len(chapters)
        groups = [[c] for c in chapters]

    vol_num_len = len(str(volumes))
    return [
        VolumeJob(
            method=method,
            enc_opts=enc_opts,
            output=output,
            volume=i + 1,
            volumes=volumes,
            vol_num_len=vol_num_len,
            chapter_num_len=chapter_num_len,
            start_chapter=group[0].number,
            chapters=group,
        )
        for i, group in enumerate(groups)
    ]


def _add_encoding_args(p: argparse.ArgumentParser):
    p.add_argument('--overwrite', action='store_true', default=None, help='overwrite existing output files')
    p.add_argument('--compress-losslessly', action='store_true', default=None,
                   help='deflate archive entries instead of storing them')
    p.add_argument('--compress-webp', action='store_true', default=None,
                   help='transcode pages to lossy WebP (quality 60)')
    p.add_argument('--accept-extended-image-formats', action='store_true', default=None,
                   help='also accept tif/tga/ico/pnm/avif/jxl/qoi pages')
    p.add_argument('--simple-sorting', action='store_true', default=None,
                   help='sort pages lexicographically instead of naturally')
    p.add_argument('--append-pages-count', action='store_true', default=None,
                   help='append " (<N> pages)" to output file names')
    p.add_argument('--nb-worker', type=int, default=None, help='number of volumes built in parallel (default 1)')
    p.add_argument('--verbose', action='store_true', help='verbose logging')
    p.add_argument('--silent', action='store_true', help='only log errors')
    p.add_argument('--loglevel', type=str, default=None,
                   choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL', 'WARN'],
                   help='explicit log level (overrides --verbose/--silent)')


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='comicenc', description="Pack chapter directories of page images into .cbz volumes")
    sub = p.add_subparsers(dest='command', required=True)

    compile_p = sub.add_parser('compile', help='pack every chapter directory under --input into volumes')
    compile_p.add_argument('--input', required=True, help='directory holding one sub-directory per chapter')
    compile_p.add_argument('--output', required=True, help='directory receiving the .cbz volumes')
    mode = compile_p.add_mutually_exclusive_group()
    mode.add_argument('--chapters-per-volume', type=int, default=None, help='number of chapters per volume')
    mode.add_argument('--each', action='store_true', help='one volume per chapter directory (default)')
    compile_p.add_argument('--start-chapter', type=int, default=None, help='number of the first chapter (default 1)')
    compile_p.add_argument('--append-chapters-range', action='store_true',
                           help='append " (cXX-cYY)" to volume names')
    compile_p.add_argument('--debug-chapters-path', action='store_true',
                           help='log the directory of every chapter added to a volume')
    compile_p.add_argument('--display-full-names', action='store_true',
                           help='do not truncate chapter names in progress lines')
    compile_p.add_argument('--skip-existing', action='store_true',
                           help='skip chapters whose volume file already exists (--each only)')
    _add_encoding_args(compile_p)

    single_p = sub.add_parser('single', help='pack one directory of pages into one .cbz file')
    single_p.add_argument('--input', required=True, help='directory holding the pages')
    single_p.add_argument('--output', required=True, help='path of the .cbz file to create')
    _add_encoding_args(single_p)

    return p


def _merge_config(args: argparse.Namespace, path_config: Dict[str, Any]) -> EncodingOptions:
    """Apply `comicenc.json` defaults where the CLI left a value unset."""
    values: Dict[str, Any] = dict(path_config)
    for key in ('overwrite', 'compress_losslessly', 'compress_webp', 'accept_extended_image_formats',
                'simple_sorting', 'append_pages_count'):
        if getattr(args, key) is not None:
            values[key] = getattr(args, key)
    if args.nb_worker is None:
        args.nb_worker = int(path_config.get('nb_worker', 1))
    if args.command == 'compile':
        if args.chapters_per_volume is None and not args.each and 'chapters_per_volume' in path_config:
            args.chapters_per_volume = int(path_config['chapters_per_volume'])
        if args.start_chapter is None:
            args.start_chapter = int(path_config.get('start_chapter', 1))
    return EncodingOptions.from_mapping(values)


def main(argv=None) -> int:
    """Command-line entry point for the `comicenc` tool.

    Returns:
        int: exit code (0 on success, 2 on invalid arguments or configuration,
             6 when a volume build fails).
    """
    started = time.perf_counter()
    p = build_parser()
    args = p.parse_args(argv)

    setup_logging(args.verbose, loglevel=args.loglevel, silent=args.silent)

    input_dir = Path(args.input)
    if not input_dir.is_dir():
        logger.error(f'input is not a directory: {input_dir}')
        return 2

    try:
        path_config = load_config_from_path(args.input)
        enc_opts = _merge_config(args, path_config)
    except ValueError as e:
        logger.error(str(e))
        return 2

    if args.nb_worker < 1:
        logger.error('--nb-worker must be at least 1')
        return 2

    output = Path(args.output)
    if args.command == 'compile':
        if args.chapters_per_volume is not None and args.chapters_per_volume < 1:
            logger.error('--chapters-per-volume must be at least 1')
            return 2
        if args.skip_existing and args.chapters_per_volume:
            logger.error('--skip-existing can only be used when building one volume per chapter')
            return 2
        if args.skip_existing and enc_opts.append_pages_count:
            logger.error('--skip-existing cannot be combined with --append-pages-count')
            return 2
        try:
            chapters = discover_chapters(input_dir, args.start_chapter)
        except OSError as e:
            logger.error(f'failed to list chapters in {input_dir}: {e}')
            return 2
        if not chapters:
            logger.error(f'no chapter directory found in {input_dir}')
            return 2
        logger.debug(f'[info] found {len(chapters)} chapter directories in {input_dir}')
        output.mkdir(parents=True, exist_ok=True)
        jobs = plan_compile_jobs(
            chapters,
            output,
            enc_opts,
            chapters_per_volume=args.chapters_per_volume,
            append_chapters_range=args.append_chapters_range,
            debug_chapters_path=args.debug_chapters_path,
            display_full_names=args.display_full_names,
            skip_existing=args.skip_existing,
        )
    else:
        if output.suffix.lower() != '.cbz':
            output = output.with_name(output.name + '.cbz')
        output.parent.mkdir(parents=True, exist_ok=True)
        jobs = [
            VolumeJob(
                method=Single(),
                enc_opts=enc_opts,
                output=output,
                volume=1,
                volumes=1,
                vol_num_len=1,
                chapter_num_len=1,
                start_chapter=1,
                chapters=[Chapter(1, input_dir, input_dir.name)],
            )
        ]

    try:
        build_volumes(jobs, nb_worker=args.nb_worker)
    except EncodingError as e:
        logger.error(str(e))
        return 6

    elapsed = time.perf_counter() - started
    secs = int(elapsed)
    logger.info(f'Done in {secs // 60}m{secs % 60:>2}.{int(elapsed * 1000) % 1000:03d}s.')
    return 0
