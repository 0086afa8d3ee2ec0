"""
Tile Auto-Mapper - Tile Layer Data Model

A single design tile layer: dimensions plus a flat row-major tile buffer.
Handles loading from and saving to JSON files.
"""

from typing import Optional

from . import compact_json as json
from ..core.tiles import (
    Tile,
    TileFlags,
    empty_tiles,
    read_rect,
    validate_rect,
    write_rect,
)


def parse_hex_row(row_str: str) -> list[int]:
    """Parse a space-separated hex row, e.g. "01 02 A3" -> [1, 2, 163]."""
    return [int(x, 16) for x in row_str.split()]


def format_hex_row(row: list[int]) -> str:
    """Format tile indices as a space-separated uppercase hex row."""
    return " ".join(f"{b:02X}" for b in row)


class TileLayerData:
    """Manages a tile layer's dimensions and tiles."""

    def __init__(self, width: int = 0, height: int = 0, name: str = ""):
        self.width = width
        self.height = height
        self.name = name
        self.tiles: list[Tile] = empty_tiles(width * height)
        self.filepath: Optional[str] = None
        self.modified: bool = False

    @classmethod
    def from_indices(
        cls, rows: list[list[int]], name: str = ""
    ) -> "TileLayerData":
        """Build a layer from rows of tile indices (flags cleared)."""
        height = len(rows)
        width = len(rows[0]) if rows else 0
        layer = cls(width, height, name)
        for row_idx, row in enumerate(rows):
            if len(row) != width:
                raise ValueError(
                    f"Row {row_idx} has {len(row)} tiles, expected {width}"
                )
            for col_idx, index in enumerate(row):
                layer.tiles[row_idx * width + col_idx] = Tile(index)
        return layer

    def load(self, path: str):
        """Load layer data from JSON file."""
        with open(path, "r") as f:
            data = json.load(f)

        width = data["width"]
        height = data["height"]
        index_rows = [parse_hex_row(row) for row in data["rows"]]
        flag_rows = data.get("flags") or [[0] * width for _ in range(height)]

        if len(index_rows) != height or len(flag_rows) != height:
            raise ValueError(f"Layer file {path} does not have {height} rows")

        tiles: list[Tile] = []
        for row_idx, (indices, flags) in enumerate(zip(index_rows, flag_rows)):
            if len(indices) != width or len(flags) != width:
                raise ValueError(
                    f"Layer file {path}: row {row_idx} is not {width} tiles wide"
                )
            tiles.extend(Tile(i, TileFlags(f)) for i, f in zip(indices, flags))

        self.width = width
        self.height = height
        self.name = data.get("name", "")
        self.tiles = tiles
        self.filepath = path
        self.modified = False

    def save(self, path: Optional[str] = None):
        """Save layer data to JSON file."""
        if path is None:
            path = self.filepath
        if path is None:
            raise ValueError("No save path specified")

        data = {
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "rows": [format_hex_row(row) for row in self.index_rows()],
            "flags": [
                [int(t.flags) for t in self.tiles[y * self.width : (y + 1) * self.width]]
                for y in range(self.height)
            ],
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

        self.filepath = path
        self.modified = False

    def index_rows(self) -> list[list[int]]:
        """Tile indices as a list of rows."""
        return [
            [t.index for t in self.tiles[y * self.width : (y + 1) * self.width]]
            for y in range(self.height)
        ]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_tile(self, x: int, y: int) -> Tile:
        if not self.in_bounds(x, y):
            raise IndexError(f"Tile ({x}, {y}) outside {self.width}x{self.height} layer")
        return self.tiles[y * self.width + x]

    def set_tile(self, x: int, y: int, tile: Tile):
        """Set a tile; positions outside the layer are ignored."""
        if self.in_bounds(x, y):
            self.tiles[y * self.width + x] = tile
            self.modified = True

    def read_rect(self, x: int, y: int, w: int, h: int) -> list[Tile]:
        validate_rect(self.width, self.height, x, y, w, h)
        return read_rect(self.tiles, self.width, x, y, w, h)

    def write_rect(self, x: int, y: int, w: int, h: int, tiles: list[Tile]):
        validate_rect(self.width, self.height, x, y, w, h)
        write_rect(self.tiles, self.width, x, y, w, h, tiles)
        self.modified = True
