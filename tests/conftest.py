"""Shared pytest fixtures for auto-mapper tests."""

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from editor.algorithms.auto_mapper_interface import DesignTileLayerInput
from editor.algorithms.auto_mapper_rules import (
    CheckGroup,
    EditorRule,
    RuleRun,
    RuleTile,
    SpawnType,
    TileExpr,
    TileOffset,
)
from tilemap.core.tiles import Tile
from tilemap.formats.layer_data import TileLayerData


def window_from_rows(rows: list[list[int]], **kwargs) -> DesignTileLayerInput:
    """Build an input window from rows of tile indices."""
    tiles = [Tile(index) for row in rows for index in row]
    return DesignTileLayerInput(tiles, len(rows[0]), len(rows), **kwargs)


def indices(tiles: list[Tile], width: int) -> list[list[int]]:
    """Tile indices of a flat buffer as rows."""
    return [[t.index for t in tiles[y : y + width]] for y in range(0, len(tiles), width)]


def needs(dx: int, dy: int, index: int, negate: bool = False) -> dict:
    """Single-test check group keyed by its offset."""
    return {TileOffset(dx, dy): CheckGroup(TileExpr(index), negate=negate)}


def single_rule(*rule_tiles: RuleTile) -> EditorRule:
    """Rule set with one run holding the given rule tiles."""
    return EditorRule([RuleRun(list(rule_tiles))])


@pytest.fixture
def samples_dir():
    """Path to the bundled sample rules and layers."""
    return Path(__file__).parent.parent / "samples"


@pytest.fixture
def island_layer(samples_dir):
    """8x6 layer with a 6x3 block of tile 1."""
    layer = TileLayerData()
    layer.load(str(samples_dir / "island.json"))
    return layer


@pytest.fixture
def fill_rule():
    """Spawnable rule without neighbour checks: writes tile 7 everywhere."""
    return single_rule(RuleTile(7, tile_type=SpawnType.SPAWNABLE))


@pytest.fixture
def tileset_png_bytes():
    """64x64 PNG tile set (4x4 pixel tiles), each tile a distinct color."""
    arr = np.zeros((64, 64, 4), dtype=np.uint8)
    for index in range(256):
        row, col = divmod(index, 16)
        arr[row * 4 : (row + 1) * 4, col * 4 : (col + 1) * 4] = (index, 255 - index, 0, 255)
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def tileset_png(tmp_path, tileset_png_bytes):
    """Tile set PNG written to disk."""
    path = tmp_path / "tiles.png"
    path.write_bytes(tileset_png_bytes)
    return path
