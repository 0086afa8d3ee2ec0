"""
Tile Auto-Mapper - Backend Interface

The contract every auto-mapper backend implements: declare the modes it
supports and run a pure transform over an input window.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol

from tilemap.core.tiles import Tile

DESIGN_TILE_LAYER = "design_tile_layer"


class AutoMapperError(Exception):
    """Base class for auto-mapper failures."""


class UnsupportedModeError(AutoMapperError):
    """A backend was invoked in a mode it does not declare."""


class TileCountMismatchError(AutoMapperError):
    """A backend returned a different number of tiles than it was given."""


class AutoMapperRunError(AutoMapperError):
    """A backend failed while transforming its input."""


class RuleFormatError(AutoMapperError, ValueError):
    """A persisted rule could not be decoded."""


@dataclass(frozen=True)
class AutoMapperMode:
    """
    A mode supported by a backend.

    neighbouring_tiles: If set, the backend can run on a sub-rectangle of a
    layer as long as it gets this many tiles of padding on every side.
    A value of 1 means all tiles directly around the current tile, 2 the
    tiles around those, and so on. If None, no padding is requested.
    """

    kind: str = DESIGN_TILE_LAYER
    neighbouring_tiles: Optional[int] = None


@dataclass
class DesignTileLayerInput:
    """
    Window of a design tile layer handed to a backend.

    off_x/off_y locate the window within the layer and full_width/full_height
    give the layer's size. These are bookkeeping only and must not be used to
    index `tiles`.
    """

    tiles: list[Tile]
    width: int
    height: int
    off_x: int = 0
    off_y: int = 0
    full_width: int = 0
    full_height: int = 0
    kind: str = field(default=DESIGN_TILE_LAYER, init=False)

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Window must be at least 1x1, got {self.width}x{self.height}")
        if len(self.tiles) != self.width * self.height:
            raise ValueError(
                f"Window {self.width}x{self.height} needs "
                f"{self.width * self.height} tiles, got {len(self.tiles)}"
            )
        self.full_width = self.full_width or self.off_x + self.width
        self.full_height = self.full_height or self.off_y + self.height


@dataclass
class DesignTileLayerOutput:
    tiles: list[Tile]
    kind: str = DESIGN_TILE_LAYER


class AutoMapperInterface(Protocol):
    """Protocol defining the backend interface.

    Backends don't need to inherit from this - they just need to implement
    these methods.
    """

    def supported_modes(self) -> list[AutoMapperMode]:
        """Returns the list of supported auto mapper modes."""
        ...

    def run(self, seed: int, input: DesignTileLayerInput) -> DesignTileLayerOutput:
        """Run the auto mapper on the given input window.

        Raises:
            AutoMapperRunError: If the backend fails
        """
        ...


def design_tile_layer_radius(backend: AutoMapperInterface) -> Optional[int]:
    """
    Look up the padding a backend needs for design tile layers.

    Raises:
        UnsupportedModeError: If the backend declares no design tile layer mode
    """
    for mode in backend.supported_modes():
        if mode.kind == DESIGN_TILE_LAYER:
            return mode.neighbouring_tiles
    raise UnsupportedModeError(
        "Design tile layer auto mapper not available on this rule."
    )
