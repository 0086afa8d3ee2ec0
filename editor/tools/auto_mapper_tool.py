"""
Auto-mapper tool: paints tiles and runs the active rule on the layer.
"""

import pygame

from editor.algorithms.auto_mapper_interface import AutoMapperError
from editor.controllers.auto_mapper import ReplaceTilesAction
from tilemap.core.tiles import Tile

from .base_tool import ToolContext, ToolResult


class AutoMapperTool:
    """Paint tool that can re-run the active rule around every stroke."""

    def __init__(self):
        self.is_painting = False
        self.paint_button = 1
        self.last_paint_pos: tuple[int, int] | None = None

    def handle_mouse_down(self, tile_pos, button, modifiers, context):
        if button not in (1, 3):
            return ToolResult.not_handled()

        self.is_painting = True
        self.paint_button = button
        return self._paint_at(tile_pos, context)

    def handle_mouse_up(self, button, context):
        if button == self.paint_button:
            self.is_painting = False
            self.last_paint_pos = None
        return ToolResult.handled()

    def handle_mouse_motion(self, tile_pos, context):
        if self.is_painting:
            return self._paint_at(tile_pos, context)
        return ToolResult.not_handled()

    def handle_key_down(self, key, modifiers, context):
        if key == pygame.K_a:
            return self.run_active_rule(context)

        if key == pygame.K_TAB:
            step = -1 if modifiers & pygame.KMOD_SHIFT else 1
            context.state.cycle_rule(context.rule_names(), step)
            name = context.state.active_rule or "none"
            return ToolResult(handled=True, needs_render=True, message=f"Active rule: {name}")

        if key == pygame.K_m:
            context.state.toggle_auto_mode()
            mode = "ON" if context.state.auto_mode else "OFF"
            return ToolResult(handled=True, needs_render=True, message=f"Auto mode {mode}")

        return ToolResult.not_handled()

    def reset(self):
        self.is_painting = False
        self.last_paint_pos = None

    def run_active_rule(
        self, context: ToolContext, rect: tuple[int, int, int, int] | None = None
    ) -> ToolResult:
        """
        Run the active rule over `rect` (whole layer if None).

        The applied diff is pushed to the undo manager. Failures become error
        notifications and leave the layer untouched.
        """
        rule = context.get_active_rule()
        if rule is None:
            return ToolResult(handled=True, message="No auto-mapper rule selected")

        try:
            action = rule.run_on_layer(context.state.seed, context.layer, rect)
        except (AutoMapperError, ValueError) as e:
            context.notifications.error(f"{rule.name}: {e}")
            return ToolResult.handled()

        changed = action.changed_count()
        if changed == 0:
            return ToolResult(handled=True, message=f"{rule.name}: nothing to change")

        action.apply(context.layer)
        context.undo_manager.push(action)
        return ToolResult.modified(message=f"{rule.name}: {changed} tiles changed")

    def _paint_at(self, tile_pos, context):
        if tile_pos is None or tile_pos == self.last_paint_pos:
            return ToolResult.handled()
        self.last_paint_pos = tile_pos

        x, y = tile_pos
        if not context.layer.in_bounds(x, y):
            return ToolResult.handled()

        if self.paint_button == 3:
            new_tile = Tile()
        else:
            new_tile = Tile(context.state.selected_tile, context.state.selected_flags)

        old_tiles = context.layer.read_rect(x, y, 1, 1)
        if old_tiles[0] == new_tile:
            return ToolResult.handled()

        action = ReplaceTilesAction(old_tiles, [new_tile], x, y, 1, 1)
        action.apply(context.layer)
        context.undo_manager.push(action)

        if context.state.auto_mode:
            result = self.run_active_rule(context, (x, y, 1, 1))
            if result.layer_modified:
                return result

        return ToolResult.modified()
