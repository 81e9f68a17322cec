"""Storage layer for the per-layer SQLite tile stores.

This package holds the data model, the file layout of the stores, the
connection handles and their registry, the schema manager and the
repositories operating on the ``tiles`` and ``meta`` tables.

Example:
    Wire the storage layer by hand (the blob store facade does this):
        >>> from tilestore.db import registry, schema, tiles
        >>> reg = registry.ConnectionRegistry(schema.SchemaManager(root))
        >>> repo = tiles.TileRepository(reg, notifier)
"""
