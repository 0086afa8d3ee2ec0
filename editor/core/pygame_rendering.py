"""
Tile Auto-Mapper - Pygame Rendering

Turns decoded tile set textures into pygame surfaces, applying tile
orientation flags and canvas scale.
"""

from typing import Optional

import pygame
from pygame import Surface

from tilemap.core.tiles import Tile
from tilemap.core.tileset import TilesetData
from tilemap.rendering.pil_renderer import orient_tile_image

from .constants import COLOR_EMPTY_TILE


_placeholder_cache: dict[tuple[int, int], Surface] = {}

def render_placeholder_tile(size: int, index: int) -> Surface:
    """Checkered tile shown for non-empty tiles when no tile set is loaded."""
    cache_key = (size, index)
    if cache_key in _placeholder_cache:
        return _placeholder_cache[cache_key]

    surf = Surface((size, size))
    shade = 60 + (index * 37) % 160
    gray1 = (shade, shade, shade)
    gray2 = (shade + 30, shade + 30, shade + 30)
    checker_size = max(1, size // 4)

    for row in range(4):
        for col in range(4):
            color = gray1 if (row + col) % 2 == 0 else gray2
            rect = (col * checker_size, row * checker_size, checker_size, checker_size)
            pygame.draw.rect(surf, color, rect)

    _placeholder_cache[cache_key] = surf
    return surf


class TileSurfaces:
    """Scaled and oriented pygame surfaces for the tiles of a tile set."""

    def __init__(self, tileset: Optional[TilesetData] = None):
        self.tileset = tileset
        self._cache: dict[tuple[Tile, int], Surface] = {}

    def set_tileset(self, tileset: Optional[TilesetData]):
        self.tileset = tileset
        self._cache.clear()

    def render_tile(self, tile: Tile, size: int) -> Surface:
        """Render a tile to a `size`x`size` surface."""
        cache_key = (tile, size)
        if cache_key in self._cache:
            return self._cache[cache_key]

        if self.tileset is None:
            if tile.is_empty:
                surf = Surface((size, size))
                surf.fill(COLOR_EMPTY_TILE)
            else:
                surf = render_placeholder_tile(size, tile.index)
        else:
            image = orient_tile_image(self.tileset.tile_image(tile.index), tile.flags)
            surf = pygame.image.frombuffer(image.tobytes(), image.size, "RGBA")
            surf = pygame.transform.scale(surf, (size, size))

        self._cache[cache_key] = surf
        return surf
