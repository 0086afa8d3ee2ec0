"""
Core tile types.

Tile identity, flat tile buffers, content hashing and tile set decoding.
"""

from .tiles import Tile, TileFlags, TILE_INDEX_MAX
from .tileset import TilesetData

__all__ = ["Tile", "TileFlags", "TILE_INDEX_MAX", "TilesetData"]
