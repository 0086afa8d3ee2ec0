"""
Tile Auto-Mapper - Tile Types

Tile identity (index + flags) and helpers for flat row-major tile buffers.
"""

from dataclasses import dataclass
from enum import IntFlag

TILE_INDEX_MAX = 255
EMPTY_TILE_INDEX = 0


class TileFlags(IntFlag):
    """Per-tile orientation/opacity flags."""

    NONE = 0
    XFLIP = 1
    YFLIP = 2
    OPAQUE = 4
    ROTATE = 8


ORIENTATION_FLAGS = TileFlags.XFLIP | TileFlags.YFLIP | TileFlags.ROTATE


@dataclass(frozen=True)
class Tile:
    """A single layer cell. Index 0 is the empty tile."""

    index: int = EMPTY_TILE_INDEX
    flags: TileFlags = TileFlags.NONE

    def __post_init__(self):
        if not 0 <= self.index <= TILE_INDEX_MAX:
            raise ValueError(f"Tile index out of range: {self.index}")
        # Normalize plain ints so equality and hashing stay consistent
        object.__setattr__(self, "flags", TileFlags(self.flags))

    @property
    def is_empty(self) -> bool:
        return self.index == EMPTY_TILE_INDEX

    def to_pair(self) -> list[int]:
        return [self.index, int(self.flags)]

    @classmethod
    def from_pair(cls, pair) -> "Tile":
        index, flags = pair
        return cls(int(index), TileFlags(int(flags)))


def empty_tiles(count: int) -> list[Tile]:
    """Create a buffer of `count` empty tiles."""
    return [Tile() for _ in range(count)]


def validate_rect(
    layer_width: int, layer_height: int, x: int, y: int, w: int, h: int
) -> None:
    """
    Check that a rectangle lies inside a layer.

    Raises:
        ValueError: If the rectangle is empty or exceeds the layer bounds
    """
    if w < 1 or h < 1:
        raise ValueError(f"Rectangle must be at least 1x1, got {w}x{h}")
    if x < 0 or y < 0 or x + w > layer_width or y + h > layer_height:
        raise ValueError(
            f"Rectangle ({x}, {y}, {w}, {h}) exceeds layer "
            f"bounds {layer_width}x{layer_height}"
        )


def read_rect(
    tiles: list[Tile], layer_width: int, x: int, y: int, w: int, h: int
) -> list[Tile]:
    """
    Copy a rectangular slice of a flat row-major buffer.

    Args:
        tiles: Full layer buffer
        layer_width: Width of the full layer
        x, y, w, h: Rectangle to copy (must lie inside the layer)

    Returns:
        New flat buffer of w * h tiles
    """
    result: list[Tile] = []
    for row in range(y, y + h):
        start = row * layer_width + x
        result.extend(tiles[start : start + w])
    return result


def write_rect(
    tiles: list[Tile],
    layer_width: int,
    x: int,
    y: int,
    w: int,
    h: int,
    rect_tiles: list[Tile],
) -> None:
    """Write a w * h buffer back into a full layer buffer in place."""
    if len(rect_tiles) != w * h:
        raise ValueError(
            f"Expected {w * h} tiles for a {w}x{h} rectangle, got {len(rect_tiles)}"
        )
    for row in range(h):
        start = (y + row) * layer_width + x
        tiles[start : start + w] = rect_tiles[row * w : (row + 1) * w]
