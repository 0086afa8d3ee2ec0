"""
Tile Auto-Mapper - Host Adapter

Bridges an edit request on a layer to a backend's pure contract: pads the
requested rectangle by the backend's neighbour radius, runs the backend on a
copy of that window and packages the result as an undoable diff.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from editor.algorithms.auto_mapper_interface import (
    DESIGN_TILE_LAYER,
    AutoMapperInterface,
    DesignTileLayerInput,
    RuleFormatError,
    TileCountMismatchError,
    UnsupportedModeError,
    design_tile_layer_radius,
)
from editor.algorithms.auto_mapper_rules import EditorRule
from editor.algorithms.legacy_rules import load_legacy_rules
from editor.algorithms.script_rules import ScriptModule
from editor.core.constants import (
    EDITOR_RULE_EXTENSION,
    LEGACY_RULES_EXTENSION,
    SCRIPT_MODULE_EXTENSION,
)
from tilemap.core.tiles import Tile, read_rect, validate_rect
from tilemap.formats import compact_json as json
from tilemap.formats.layer_data import TileLayerData


def compute_padded_rect(
    layer_width: int,
    layer_height: int,
    x: int,
    y: int,
    w: int,
    h: int,
    radius: Optional[int],
) -> tuple[int, int, int, int]:
    """
    Grow a sub-rectangle by the neighbour radius, clamped to the layer.

    Returns:
        (x, y, w, h) of the padded window. With radius None the requested
        rectangle is returned unchanged.

    Raises:
        ValueError: If the requested rectangle is empty or leaves the layer
    """
    validate_rect(layer_width, layer_height, x, y, w, h)
    if radius is None:
        return x, y, w, h

    px = max(0, x - radius)
    py = max(0, y - radius)
    pw = min(w + radius * 2, layer_width - px)
    ph = min(h + radius * 2, layer_height - py)
    return px, py, pw, ph


@dataclass
class ReplaceTilesAction:
    """Undoable replacement of a rectangle of tiles on one layer."""

    old_tiles: list[Tile]
    new_tiles: list[Tile]
    x: int
    y: int
    w: int
    h: int
    is_background: bool = False
    group_index: int = 0
    layer_index: int = 0

    def apply(self, layer: TileLayerData):
        layer.write_rect(self.x, self.y, self.w, self.h, self.new_tiles)

    def revert(self, layer: TileLayerData):
        layer.write_rect(self.x, self.y, self.w, self.h, self.old_tiles)

    def changed_count(self) -> int:
        return sum(1 for old, new in zip(self.old_tiles, self.new_tiles) if old != new)

    def undo_info(self) -> str:
        place = "background" if self.is_background else "foreground"
        return (
            f"Replace {len(self.old_tiles)} tiles with {len(self.new_tiles)} tiles "
            f"@({self.x}, {self.y})-({self.x + self.w}, {self.y + self.h}) "
            f"from layer #{self.layer_index} in {place}"
        )


def run_layer(
    backend: AutoMapperInterface,
    seed: int,
    layer_width: int,
    layer_height: int,
    all_tiles: list[Tile],
    sub_x: int,
    sub_y: int,
    sub_w: int,
    sub_h: int,
    is_background: bool = False,
    group_index: int = 0,
    layer_index: int = 0,
) -> ReplaceTilesAction:
    """
    Run a backend on a sub-rectangle of a layer.

    The backend sees the sub-rectangle padded by its declared neighbour
    radius; the returned diff covers that whole padded window. Nothing is
    written to `all_tiles`.

    Raises:
        UnsupportedModeError: If the backend has no design tile layer mode
        TileCountMismatchError: If the backend returned the wrong tile count
        ValueError: If the sub-rectangle is invalid for the layer
    """
    if len(all_tiles) != layer_width * layer_height:
        raise ValueError(
            f"Layer {layer_width}x{layer_height} needs "
            f"{layer_width * layer_height} tiles, got {len(all_tiles)}"
        )

    radius = design_tile_layer_radius(backend)
    x, y, w, h = compute_padded_rect(
        layer_width, layer_height, sub_x, sub_y, sub_w, sub_h, radius
    )

    old_tiles = read_rect(all_tiles, layer_width, x, y, w, h)
    window = DesignTileLayerInput(
        list(old_tiles), w, h,
        off_x=x, off_y=y,
        full_width=layer_width, full_height=layer_height,
    )
    output = backend.run(seed, window)

    if output.kind != DESIGN_TILE_LAYER:
        raise UnsupportedModeError(
            f"Auto mapper returned {output.kind} output for a design tile layer"
        )
    if len(output.tiles) != len(old_tiles):
        raise TileCountMismatchError(
            "Tiles from auto mapper are not the same as the tiles from the layer: "
            f"{len(output.tiles)} vs {len(old_tiles)}"
        )

    return ReplaceTilesAction(
        old_tiles=old_tiles,
        new_tiles=list(output.tiles),
        x=x,
        y=y,
        w=w,
        h=h,
        is_background=is_background,
        group_index=group_index,
        layer_index=layer_index,
    )


class AutoMapperRule:
    """A named rule backed by any auto-mapper backend."""

    def __init__(self, name: str, backend: AutoMapperInterface, kind: str):
        self.name = name
        self.backend = backend
        self.kind = kind

    @property
    def rule_hash(self) -> str:
        return self.backend.rule_hash()

    @property
    def radius(self) -> Optional[int]:
        return design_tile_layer_radius(self.backend)

    def supported_modes(self):
        return self.backend.supported_modes()

    def run(self, seed, input):
        return self.backend.run(seed, input)

    def run_on_layer(
        self,
        seed: int,
        layer: TileLayerData,
        rect: Optional[tuple[int, int, int, int]] = None,
        is_background: bool = False,
        group_index: int = 0,
        layer_index: int = 0,
    ) -> ReplaceTilesAction:
        """Run over `rect` of a layer (whole layer if None); the layer is not modified."""
        x, y, w, h = rect if rect is not None else (0, 0, layer.width, layer.height)
        return run_layer(
            self.backend, seed, layer.width, layer.height, layer.tiles,
            x, y, w, h, is_background, group_index, layer_index,
        )


def rules_from_bytes(
    name: str, extension: str, data: bytes, cache_dir: Optional[str] = None
) -> dict[str, AutoMapperRule]:
    """
    Decode the contents of a rule file.

    A legacy `.rules` file yields one rule per configuration, named
    "<name>/<config>". Other formats yield a single rule.

    Raises:
        RuleFormatError: If the contents cannot be decoded
        ValueError: If the extension is unknown
    """
    if extension == EDITOR_RULE_EXTENSION:
        try:
            tree = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise RuleFormatError(f"{name}: {e}") from None
        return {name: AutoMapperRule(name, EditorRule.from_dict(tree), extension)}

    if extension == SCRIPT_MODULE_EXTENSION:
        module = ScriptModule.from_source(data, name, cache_dir)
        return {name: AutoMapperRule(name, module, extension)}

    if extension == LEGACY_RULES_EXTENSION:
        return {
            f"{name}/{config}": AutoMapperRule(f"{name}/{config}", rule, extension)
            for config, rule in load_legacy_rules(data).items()
        }

    raise ValueError(f"Unknown rule file extension: {extension}")


def load_rule_file(path, cache_dir: Optional[str] = None) -> dict[str, AutoMapperRule]:
    """Read a rule file from disk, selecting the backend by its extension."""
    path = Path(path)
    return rules_from_bytes(path.stem, path.suffix, path.read_bytes(), cache_dir)
