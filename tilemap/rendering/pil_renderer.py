"""
Tile Auto-Mapper - PIL Renderer

PIL-based rendering for generating PNG images of tile layers.
Used by the automap tool to preview results.
"""

from PIL import Image

from ..core.tiles import Tile, TileFlags
from ..core.tileset import TilesetData
from ..formats.layer_data import TileLayerData


def orient_tile_image(image: Image.Image, flags: TileFlags) -> Image.Image:
    """
    Apply tile orientation flags to a tile image.

    ROTATE turns the tile 90 degrees clockwise and is applied before the flips.
    """
    if flags & TileFlags.ROTATE:
        image = image.transpose(Image.Transpose.ROTATE_270)
    if flags & TileFlags.XFLIP:
        image = image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if flags & TileFlags.YFLIP:
        image = image.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    return image


def render_layer_to_image(
    layer: TileLayerData,
    tileset: TilesetData,
    background: tuple[int, int, int, int] = (0, 0, 0, 0),
) -> Image.Image:
    """
    Render a tile layer to a PIL Image.

    Args:
        layer: Layer to render
        tileset: Decoded tile set providing one texture per tile index
        background: RGBA color behind empty and transparent tiles

    Returns:
        PIL RGBA Image object
    """
    tile_w = tileset.tile_width
    tile_h = tileset.tile_height
    img = Image.new("RGBA", (layer.width * tile_w, layer.height * tile_h), background)

    cache: dict[Tile, Image.Image] = {}
    for y in range(layer.height):
        for x in range(layer.width):
            tile = layer.tiles[y * layer.width + x]
            if tile.is_empty:
                continue

            tile_img = cache.get(tile)
            if tile_img is None:
                tile_img = orient_tile_image(tileset.tile_image(tile.index), tile.flags)
                cache[tile] = tile_img

            img.alpha_composite(tile_img, (x * tile_w, y * tile_h))

    return img
