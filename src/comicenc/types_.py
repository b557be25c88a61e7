from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional, TypeAlias, Union


class Chapter(NamedTuple):
    """A chapter directory to pack.

    `number` is the chapter ordinal, `path` the directory holding its pages and
    `name` the directory's display name.
    """

    number: int
    path: Path
    name: str


@dataclass(frozen=True)
class Ranges:
    """Volumes are contiguous ranges of chapters."""

    append_chapters_range: bool = False
    debug_chapters_path: bool = False


@dataclass(frozen=True)
class Each:
    """One volume per chapter directory."""

    display_full_names: bool = False
    skip_existing: bool = False


@dataclass(frozen=True)
class Single:
    """One explicit output file."""


# Closed set of strategies: every decision point matches all three.
BuildMethod: TypeAlias = Union[Ranges, Each, Single]


class VolumeNames(NamedTuple):
    """Names resolved before writing a volume.

    `base` has no extension; the final path is derived from it once the page
    count is known.
    """

    base: Path
    staging: Path
    display: str


class BuildResult(NamedTuple):
    """Outcome of a single volume build."""

    path: Path
    staging_path: Path
    pages: int
    elapsed: float
    skipped: bool = False


class BuildEvent(NamedTuple):
    """Progress notification emitted by the orchestrator."""

    kind: str
    level: int
    message: str
    volume: int
    chapter: Optional[int] = None
