"""Mapping of layer names onto store file paths.

Each layer lives in ``<root>/<filtered name><extension>``. Characters that
are unsafe in file names are replaced so that names such as
``topp:states`` or ``roads/primary`` map to a single flat file.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")
_LEADING_DOTS = re.compile(r"^\.+")


def filtered_layer_name(layer_name: str) -> str:
    """Return the file-name-safe form of a layer name.

    >>> filtered_layer_name("topp:states")
    'topp_states'
    >>> filtered_layer_name("my layer/v2")
    'my_layer_v2'
    >>> filtered_layer_name("..hidden")
    '__hidden'

    Raises:
        ValueError: if the name is empty.
    """
    if not layer_name:
        raise ValueError("Layer name must not be empty")
    filtered = _UNSAFE_CHARS.sub("_", layer_name)
    return _LEADING_DOTS.sub(lambda m: "_" * len(m.group(0)), filtered)


def layer_path(
    root: pathlib.Path,
    layer_name: str,
    extension: str = ".sqlite",
) -> pathlib.Path:
    """Return the store file path for ``layer_name`` under ``root``."""
    return root / f"{filtered_layer_name(layer_name)}{extension}"
