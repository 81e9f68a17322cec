"""Data models for cached tiles and layer metadata.

This module defines the value types passed between the repositories, the
blob store facade and the HTTP surface. A tile is addressed by its layer,
grid set, format and z/x/y coordinate; the blob bytes and their size travel
in a TileRecord.

Example:
    Addressing a tile and reading its size after a lookup:
        >>> from tilestore.db.models import TileCoordinate, TileKey
        >>> key = TileKey(
        ...     layer_name="topp:states",
        ...     grid_set_id="EPSG:900913",
        ...     format="png",
        ...     coordinate=TileCoordinate(x=1, y=2, z=3),
        ... )
        >>> record = store.get(key)
        >>> record.size if record else None
        1024
"""

from __future__ import annotations

import dataclasses
import datetime

BBox = tuple[float, float, float, float]


@dataclasses.dataclass(frozen=True)
class TileCoordinate:
    """Column/row/zoom triple of a tile. No bounds are enforced."""

    x: int
    y: int
    z: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)


@dataclasses.dataclass(frozen=True)
class TileKey:
    """Identifies at most one tile row within a layer's store.

    Attributes:
        layer_name: Layer the tile belongs to; selects the store file.
        grid_set_id: Tiling scheme the coordinate refers to.
        format: Blob format, stored in the ``type`` column (e.g. "png").
        coordinate: Tile x/y/z.
    """

    layer_name: str
    grid_set_id: str
    format: str
    coordinate: TileCoordinate

    @property
    def row_key(self) -> tuple[str, int, int, int, str]:
        """Natural key columns in ``tiles`` column order."""
        c = self.coordinate
        return (self.grid_set_id, c.x, c.y, c.z, self.format)


@dataclasses.dataclass(frozen=True)
class TileRecord:
    """A stored tile: its key, blob bytes and last-modified timestamp.

    ``size`` is always derived from the blob, never set independently.
    """

    key: TileKey
    blob: bytes
    last_modified: datetime.datetime

    @property
    def size(self) -> int:
        return len(self.blob)


@dataclasses.dataclass(frozen=True)
class MetadataEntry:
    """One key/value row of a layer's ``meta`` table."""

    layer_name: str
    key: str
    value: str


@dataclasses.dataclass(frozen=True)
class TileRange:
    """A block of tiles across zoom levels, optionally clipped to bounds.

    Only used to describe range deletes, which the SQLite store does not
    support.
    """

    layer_name: str
    grid_set_id: str
    format: str
    zoom_start: int
    zoom_stop: int
    bounds: BBox | None = None
