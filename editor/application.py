"""
Tile Auto-Mapper - Editor Application

Preview editor: paint a tile layer and run auto-mapper rules on it.
"""
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, Tuple

import pygame
from pygame import Rect

from tilemap.core.tiles import Tile, TileFlags
from tilemap.formats.layer_data import TileLayerData

from .core.constants import *
from .core.pygame_rendering import TileSurfaces
from .controllers.editor_state import EditorState
from .controllers.notifications import NotificationLevel, Notifications
from .controllers.rule_library import RuleLibrary
from .controllers.undo_manager import UndoManager
from .tools.auto_mapper_tool import AutoMapperTool
from .tools.base_tool import ToolContext, ToolResult
from .ui.dialogs import (
    open_layer_dialog,
    open_rule_dialog,
    open_tileset_dialog,
    save_layer_dialog,
)


class EditorApplication:
    """Main editor application."""

    def __init__(self, tileset_path: Optional[str], rules_root):
        pygame.init()

        self.screen_width = 1200
        self.screen_height = 800
        self.screen = pygame.display.set_mode(
            (self.screen_width, self.screen_height),
            pygame.RESIZABLE
        )
        pygame.display.set_caption("Tile Auto-Mapper")

        self.font = pygame.font.SysFont("monospace", 14)

        self.state = EditorState()
        self.layer = TileLayerData(DEFAULT_LAYER_WIDTH, DEFAULT_LAYER_HEIGHT)
        self.undo_manager = UndoManager(MAX_UNDO_LEVELS)
        self.notifications = Notifications(MAX_NOTIFICATIONS, NOTIFICATION_SECONDS)
        self.rule_library = RuleLibrary(rules_root)
        self.surfaces = TileSurfaces()
        self.tool = AutoMapperTool()

        self.resource_key: Optional[str] = None
        self._resource_future: Optional[Future] = None
        if tileset_path:
            self.load_tileset(tileset_path)

        self.running = True
        self.clock = pygame.time.Clock()

    # -------------------------------------------------------------------------
    # Layout helpers
    # -------------------------------------------------------------------------

    def _get_canvas_rect(self) -> Rect:
        """Get the canvas drawing area."""
        return Rect(
            CANVAS_OFFSET_X,
            CANVAS_OFFSET_Y,
            self.screen_width - CANVAS_OFFSET_X,
            self.screen_height - CANVAS_OFFSET_Y - STATUS_HEIGHT
        )

    def _get_picker_rect(self) -> Rect:
        return Rect(0, TOOLBAR_HEIGHT, PICKER_WIDTH, self.screen_height - TOOLBAR_HEIGHT - STATUS_HEIGHT)

    def _picker_tile_size(self) -> int:
        return (PICKER_WIDTH - 16) // TILES_PER_ROW

    def _screen_to_tile(self, screen_pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        """Convert screen position to layer (x, y), or None outside the canvas."""
        canvas_rect = self._get_canvas_rect()
        if not canvas_rect.collidepoint(screen_pos):
            return None

        local_x = screen_pos[0] - canvas_rect.x + self.state.canvas_offset_x
        local_y = screen_pos[1] - canvas_rect.y + self.state.canvas_offset_y

        tile_size = TILE_SIZE * self.state.canvas_scale
        return (local_x // tile_size, local_y // tile_size)

    def _screen_to_picker_tile(self, screen_pos: Tuple[int, int]) -> Optional[int]:
        picker_rect = self._get_picker_rect()
        if not picker_rect.collidepoint(screen_pos):
            return None
        size = self._picker_tile_size()
        col = (screen_pos[0] - picker_rect.x - 8) // size
        row = (screen_pos[1] - picker_rect.y - 8) // size
        if 0 <= col < TILES_PER_ROW and 0 <= row < TILES_PER_ROW:
            return row * TILES_PER_ROW + col
        return None

    def _make_context(self) -> ToolContext:
        return ToolContext(
            self.layer,
            self.state,
            self.undo_manager,
            self.rule_library,
            self.notifications,
            self.resource_key,
        )

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def load_layer(self, path: str):
        """Load a layer from file path."""
        try:
            self.layer.load(path)
        except (OSError, ValueError, KeyError) as e:
            self.notifications.error(f"Failed to load layer {path}: {e}")
            return
        self.undo_manager.clear()
        self.state.reset_canvas_position()
        self.notifications.info(f"Loaded {Path(path).name}")

    def load_tileset(self, path: str):
        """Start loading a tile set and the rules stored for it."""
        self._resource_future = self.rule_library.load_resource_then_rule(path)

    def _on_open_tileset(self):
        path = open_tileset_dialog()
        if path:
            self.load_tileset(path)

    def _on_open(self):
        path = open_layer_dialog()
        if path:
            self.load_layer(path)

    def _on_save(self):
        """Save the current layer."""
        path = self.layer.filepath or save_layer_dialog()
        if not path:
            return
        try:
            self.layer.save(path)
        except OSError as e:
            self.notifications.error(f"Failed to save layer: {e}")
            return
        self.notifications.info(f"Saved {Path(path).name}")

    def _on_import_rule(self):
        if self.resource_key is None:
            self.notifications.warning("Load a tile set before importing rules")
            return
        path = open_rule_dialog()
        if path:
            self.rule_library.import_rule_for_resource(self.resource_key, path)

    def _on_undo(self):
        action = self.undo_manager.undo(self.layer)
        if action is not None:
            self.notifications.info(f"Undo: {action.undo_info()}")

    def _on_redo(self):
        action = self.undo_manager.redo(self.layer)
        if action is not None:
            self.notifications.info(f"Redo: {action.undo_info()}")

    def _apply_result(self, result: ToolResult):
        if result.message:
            self.notifications.info(result.message)

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def run(self):
        """Main loop."""
        try:
            while self.running:
                self._update()
                for event in pygame.event.get():
                    self._handle_event(event)
                self._render()
                self.clock.tick(60)
        finally:
            self.rule_library.shutdown()
            pygame.quit()

    def _update(self):
        """Per-tick background work."""
        self.rule_library.update(self.notifications)

        future = self._resource_future
        if future is not None and future.done():
            self._resource_future = None
            if future.exception() is None and future.result().key != self.resource_key:
                self.resource_key = future.result().key
                self.state.active_rule = None

        if self.resource_key and self.resource_key in self.rule_library.resources:
            resource = self.rule_library.resources[self.resource_key]
            if self.surfaces.tileset is not resource.tileset:
                self.surfaces.set_tileset(resource.tileset)
            if self.state.active_rule is None:
                self.state.cycle_rule(self.rule_library.rule_names(self.resource_key))

    def _handle_event(self, event: pygame.event.Event):
        if event.type == pygame.QUIT:
            self.running = False

        elif event.type == pygame.VIDEORESIZE:
            self.screen_width, self.screen_height = event.w, event.h
            self.screen = pygame.display.set_mode(
                (self.screen_width, self.screen_height), pygame.RESIZABLE
            )

        elif event.type == pygame.MOUSEBUTTONDOWN:
            if event.button in (4, 5):
                delta = 1 if event.button == 4 else -1
                self.state.canvas_scale = max(1, min(8, self.state.canvas_scale + delta))
                return
            picked = self._screen_to_picker_tile(event.pos)
            if picked is not None:
                self.state.select_tile(picked)
                return
            tile_pos = self._screen_to_tile(event.pos)
            if tile_pos is not None:
                self._apply_result(
                    self.tool.handle_mouse_down(
                        tile_pos, event.button, pygame.key.get_mods(), self._make_context()
                    )
                )

        elif event.type == pygame.MOUSEBUTTONUP:
            self._apply_result(self.tool.handle_mouse_up(event.button, self._make_context()))

        elif event.type == pygame.MOUSEMOTION:
            tile_pos = self._screen_to_tile(event.pos)
            if tile_pos is not None:
                self._apply_result(self.tool.handle_mouse_motion(tile_pos, self._make_context()))

        elif event.type == pygame.KEYDOWN:
            self._handle_key(event.key, event.mod)

    def _handle_key(self, key: int, mods: int):
        ctrl = mods & (pygame.KMOD_CTRL | pygame.KMOD_META)

        if ctrl and key == pygame.K_z:
            self._on_undo()
        elif ctrl and key == pygame.K_y:
            self._on_redo()
        elif ctrl and key == pygame.K_s:
            self._on_save()
        elif ctrl and key == pygame.K_o:
            self._on_open()
        elif ctrl and key == pygame.K_t:
            self._on_open_tileset()
        elif key == pygame.K_i:
            self._on_import_rule()
        elif key == pygame.K_g:
            self.state.toggle_grid()
        elif key == pygame.K_x:
            self.state.toggle_flag(TileFlags.XFLIP)
        elif key == pygame.K_y:
            self.state.toggle_flag(TileFlags.YFLIP)
        elif key == pygame.K_r:
            self.state.toggle_flag(TileFlags.ROTATE)
        elif key == pygame.K_LEFT:
            self.state.canvas_offset_x = max(0, self.state.canvas_offset_x - TILE_SIZE)
        elif key == pygame.K_RIGHT:
            self.state.canvas_offset_x += TILE_SIZE
        elif key == pygame.K_UP:
            self.state.canvas_offset_y = max(0, self.state.canvas_offset_y - TILE_SIZE)
        elif key == pygame.K_DOWN:
            self.state.canvas_offset_y += TILE_SIZE
        else:
            self._apply_result(self.tool.handle_key_down(key, mods, self._make_context()))

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def _render(self):
        """Render the editor."""
        self.screen.fill(COLOR_BG)
        self._render_toolbar()
        self._render_picker()
        self._render_canvas()
        self._render_status()
        pygame.display.flip()

    def _render_toolbar(self):
        pygame.draw.rect(self.screen, COLOR_TOOLBAR, (0, 0, self.screen_width, TOOLBAR_HEIGHT))
        parts = [
            f"Rule: {self.state.active_rule or '-'}",
            f"Auto: {'ON' if self.state.auto_mode else 'OFF'}",
            f"Seed: {self.state.seed}",
            "A run  Tab rule  M auto  I import  Ctrl+Z/Y undo/redo",
        ]
        text = self.font.render("  |  ".join(parts), True, COLOR_TEXT)
        self.screen.blit(text, (10, (TOOLBAR_HEIGHT - text.get_height()) // 2))

    def _render_picker(self):
        picker_rect = self._get_picker_rect()
        pygame.draw.rect(self.screen, COLOR_PICKER_BG, picker_rect)
        size = self._picker_tile_size()

        for index in range(NUM_TILES):
            col = index % TILES_PER_ROW
            row = index // TILES_PER_ROW
            x = picker_rect.x + 8 + col * size
            y = picker_rect.y + 8 + row * size
            self.screen.blit(self.surfaces.render_tile(Tile(index), size), (x, y))
            if index == self.state.selected_tile:
                pygame.draw.rect(self.screen, COLOR_SELECTION, (x, y, size, size), 1)

    def _render_canvas(self):
        """Render the layer."""
        canvas_rect = self._get_canvas_rect()
        pygame.draw.rect(self.screen, (0, 0, 0), canvas_rect)
        self.screen.set_clip(canvas_rect)

        tile_size = TILE_SIZE * self.state.canvas_scale
        for y in range(self.layer.height):
            for x in range(self.layer.width):
                screen_x = canvas_rect.x + x * tile_size - self.state.canvas_offset_x
                screen_y = canvas_rect.y + y * tile_size - self.state.canvas_offset_y
                if screen_x + tile_size < canvas_rect.x or screen_x > canvas_rect.right:
                    continue
                if screen_y + tile_size < canvas_rect.y or screen_y > canvas_rect.bottom:
                    continue
                tile = self.layer.tiles[y * self.layer.width + x]
                self.screen.blit(self.surfaces.render_tile(tile, tile_size), (screen_x, screen_y))
                if self.state.show_grid:
                    pygame.draw.rect(
                        self.screen, COLOR_GRID, (screen_x, screen_y, tile_size, tile_size), 1
                    )

        self.screen.set_clip(None)

    def _render_status(self):
        """Render status bar."""
        status_rect = Rect(0, self.screen_height - STATUS_HEIGHT, self.screen_width, STATUS_HEIGHT)
        pygame.draw.rect(self.screen, COLOR_STATUS, status_rect)

        notification = self.notifications.latest()
        if notification is not None:
            color = {
                NotificationLevel.ERROR: COLOR_ERROR,
                NotificationLevel.WARNING: COLOR_WARNING,
            }.get(notification.level, COLOR_TEXT)
            text_surf = self.font.render(notification.message, True, color)
        else:
            status_parts = [f"Tile: ${self.state.selected_tile:02X}"]
            if self.state.selected_flags:
                status_parts.append(f"Flags: {self.state.selected_flags!r}")
            tile_pos = self._screen_to_tile(pygame.mouse.get_pos())
            if tile_pos and self.layer.in_bounds(*tile_pos):
                tile = self.layer.get_tile(*tile_pos)
                status_parts.append(f"Pos: {tile_pos}  Value: ${tile.index:02X}")
            if self.layer.filepath:
                modified = "*" if self.layer.modified else ""
                status_parts.append(f"File: {Path(self.layer.filepath).name}{modified}")
            text_surf = self.font.render("  |  ".join(status_parts), True, COLOR_TEXT)

        self.screen.blit(text_surf, (10, self.screen_height - STATUS_HEIGHT + 8))
