"""
Tile Auto-Mapper - Tileset Decoding

Decodes a tile set image into its 256 per-tile textures. The image is laid
out as a 16x16 grid of equally sized tiles; tile index = row * 16 + col.
"""

import io
from pathlib import Path

import numpy as np
from PIL import Image

TILES_PER_ROW = 16
TILE_COUNT = TILES_PER_ROW * TILES_PER_ROW


def split_tileset(rgba: np.ndarray) -> np.ndarray:
    """
    Split an RGBA image array into 256 tile arrays.

    Args:
        rgba: Array of shape (height, width, 4)

    Returns:
        Array of shape (256, tile_height, tile_width, 4)

    Raises:
        ValueError: If either dimension is not divisible by 16
    """
    height, width = rgba.shape[0], rgba.shape[1]
    if width == 0 or height == 0 or width % TILES_PER_ROW or height % TILES_PER_ROW:
        raise ValueError("Given resource is not a tile set that is divisible by 16")

    tile_w = width // TILES_PER_ROW
    tile_h = height // TILES_PER_ROW
    grid = rgba.reshape(TILES_PER_ROW, tile_h, TILES_PER_ROW, tile_w, 4)
    return grid.swapaxes(1, 2).reshape(TILE_COUNT, tile_h, tile_w, 4).copy()


class TilesetData:
    """Per-tile RGBA textures decoded from a tile set image."""

    def __init__(self, tiles: np.ndarray):
        self.tiles = tiles
        self.tile_height = tiles.shape[1]
        self.tile_width = tiles.shape[2]

    @classmethod
    def from_bytes(cls, image_bytes: bytes) -> "TilesetData":
        """Decode PNG (or any Pillow-readable) bytes."""
        with Image.open(io.BytesIO(image_bytes)) as img:
            rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8)
        return cls(split_tileset(rgba))

    @classmethod
    def load(cls, path: str | Path) -> "TilesetData":
        return cls.from_bytes(Path(path).read_bytes())

    @property
    def num_tiles(self) -> int:
        return len(self.tiles)

    def tile_array(self, tile_idx: int) -> np.ndarray:
        """Raw (h, w, 4) array for a tile."""
        return self.tiles[tile_idx]

    def tile_image(self, tile_idx: int) -> Image.Image:
        """Tile as a PIL RGBA image."""
        return Image.fromarray(np.ascontiguousarray(self.tiles[tile_idx]))
