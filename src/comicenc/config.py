from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict


@dataclass
class EncodingOptions:
    """Encoding policy shared by every volume of a job.

    This dataclass centralizes the options the CLI (or `comicenc.json`)
    validated before any volume is built.
    """

    overwrite: bool = False
    compress_losslessly: bool = False
    compress_webp: bool = False
    accept_extended_image_formats: bool = False
    simple_sorting: bool = False
    append_pages_count: bool = False

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "EncodingOptions":
        """Build options from a mapping, ignoring unrelated keys.

        Raises:
            ValueError: when an option is not a boolean.

        >>> EncodingOptions.from_mapping({'overwrite': True, 'nb_worker': 2}).overwrite
        True
        >>> EncodingOptions.from_mapping({'overwrite': 'false'})
        Traceback (most recent call last):
        ...
        ValueError: option 'overwrite' must be true or false, got 'false'
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for key, value in values.items():
            if not isinstance(value, bool):
                raise ValueError(f"option {key!r} must be true or false, got {value!r}")
        return cls(**values)
