"""Unit tests for tile set decoding and rendering."""

import numpy as np
import pytest
from PIL import Image

from editor.core.pygame_rendering import TileSurfaces
from tilemap.core.tiles import Tile, TileFlags
from tilemap.core.tileset import TilesetData, split_tileset
from tilemap.formats.layer_data import TileLayerData
from tilemap.rendering.pil_renderer import orient_tile_image, render_layer_to_image


@pytest.fixture
def tileset(tileset_png_bytes):
    return TilesetData.from_bytes(tileset_png_bytes)


def corner_image():
    """2x2 RGBA image with a single red pixel in the top-left corner."""
    arr = np.zeros((2, 2, 4), dtype=np.uint8)
    arr[0, 0] = (255, 0, 0, 255)
    return Image.fromarray(arr)


def red_corner(image):
    arr = np.asarray(image)
    return tuple(int(v) for v in np.argwhere(arr[:, :, 0] == 255)[0])


class TestSplitTileset:
    def test_tile_count_and_size(self, tileset):
        assert tileset.num_tiles == 256
        assert (tileset.tile_width, tileset.tile_height) == (4, 4)

    def test_tile_order_is_row_major(self, tileset):
        # The fixture colors tile i with red channel i
        assert tileset.tile_array(17)[0, 0, 0] == 17
        assert tileset.tile_array(255)[3, 3, 0] == 255

    @pytest.mark.parametrize("shape", [(60, 64, 4), (64, 40, 4), (0, 0, 4)])
    def test_rejects_sizes_not_divisible_by_16(self, shape):
        with pytest.raises(ValueError, match="divisible by 16"):
            split_tileset(np.zeros(shape, dtype=np.uint8))

    def test_rejects_non_image(self):
        with pytest.raises(OSError):
            TilesetData.from_bytes(b"not a png")


class TestOrientTileImage:
    @pytest.mark.parametrize(
        "flags, corner",
        [
            (TileFlags.NONE, (0, 0)),
            (TileFlags.XFLIP, (0, 1)),
            (TileFlags.YFLIP, (1, 0)),
            (TileFlags.ROTATE, (0, 1)),
            (TileFlags.ROTATE | TileFlags.XFLIP, (0, 0)),
        ],
    )
    def test_orientation(self, flags, corner):
        assert red_corner(orient_tile_image(corner_image(), flags)) == corner

    def test_opaque_does_not_transform(self):
        assert red_corner(orient_tile_image(corner_image(), TileFlags.OPAQUE)) == (0, 0)


class TestRenderLayer:
    def test_image_size(self, tileset, island_layer):
        img = render_layer_to_image(island_layer, tileset)
        assert img.size == (8 * 4, 6 * 4)

    def test_empty_tiles_show_background(self, tileset):
        layer = TileLayerData.from_indices([[0, 5]])
        img = render_layer_to_image(layer, tileset, background=(1, 2, 3, 255))
        assert img.getpixel((0, 0)) == (1, 2, 3, 255)
        assert img.getpixel((4, 0)) == (5, 250, 0, 255)


class TestTileSurfaces:
    def test_scaled_surface(self, tileset):
        surfaces = TileSurfaces(tileset)
        surf = surfaces.render_tile(Tile(3), 16)
        assert surf.get_size() == (16, 16)
        assert surfaces.render_tile(Tile(3), 16) is surf

    def test_placeholder_without_tileset(self):
        surf = TileSurfaces().render_tile(Tile(3), 8)
        assert surf.get_size() == (8, 8)

    def test_set_tileset_clears_cache(self, tileset):
        surfaces = TileSurfaces()
        first = surfaces.render_tile(Tile(3), 8)
        surfaces.set_tileset(tileset)
        assert surfaces.render_tile(Tile(3), 8) is not first
