"""
Tile Auto-Mapper - Editor State

Manages application state including the selected tile and rule, auto mode,
view settings, and canvas position.
"""

from typing import Optional, Tuple

from editor.core.constants import DEFAULT_SEED
from tilemap.core.tiles import TILE_INDEX_MAX, TileFlags


class EditorState:
    """Manages editor application state."""

    def __init__(self):
        # Painting
        self.selected_tile: int = 1
        self.selected_flags: TileFlags = TileFlags.NONE

        # Auto mapper
        self.auto_mode: bool = False
        self.active_rule: Optional[str] = None
        self.seed: int = DEFAULT_SEED

        # View settings
        self.show_grid: bool = True

        # Canvas position and zoom
        self.canvas_offset_x: int = 0
        self.canvas_offset_y: int = 0
        self.canvas_scale: int = 2

        # Mouse state
        self.mouse_down: bool = False
        self.last_paint_pos: Optional[Tuple[int, int]] = None

    def select_tile(self, index: int):
        """Select the tile to paint; out of range indices are ignored."""
        if 0 <= index <= TILE_INDEX_MAX:
            self.selected_tile = index

    def toggle_flag(self, flag: TileFlags):
        self.selected_flags ^= flag

    def toggle_auto_mode(self):
        """Toggle running the active rule after each paint."""
        self.auto_mode = not self.auto_mode

    def toggle_grid(self):
        """Toggle grid visibility."""
        self.show_grid = not self.show_grid

    def cycle_rule(self, rule_names: list[str], step: int = 1):
        """Make the next rule in `rule_names` active."""
        if not rule_names:
            self.active_rule = None
            return
        if self.active_rule not in rule_names:
            self.active_rule = rule_names[0]
            return
        index = rule_names.index(self.active_rule)
        self.active_rule = rule_names[(index + step) % len(rule_names)]

    def reset_canvas_position(self):
        """Reset canvas to origin."""
        self.canvas_offset_x = 0
        self.canvas_offset_y = 0
