"""Integration tests for undo/redo with editor components."""

import shutil

import pygame
import pytest

from editor.controllers.editor_state import EditorState
from editor.controllers.notifications import Notifications
from editor.controllers.rule_library import RuleLibrary
from editor.controllers.undo_manager import UndoManager
from editor.tools.auto_mapper_tool import AutoMapperTool
from editor.tools.base_tool import ToolContext
from tilemap.core.hashing import name_and_hash, resource_key
from tilemap.formats.layer_data import TileLayerData


@pytest.fixture
def editor_setup(tmp_path, samples_dir, tileset_png, tileset_png_bytes):
    """Editor components with the sample rules loaded for the test tile set."""
    key = resource_key(*name_and_hash("tiles", tileset_png_bytes))
    library = RuleLibrary(tmp_path / "rules", max_workers=2)
    rules_dir = library.resource_path(key)
    rules_dir.mkdir(parents=True)
    shutil.copy(samples_dir / "grass.editorrulejson", rules_dir)

    notifications = Notifications()
    library.load_resource_then_rule(tileset_png)
    library.drain(notifications)

    layer = TileLayerData()
    layer.load(str(samples_dir / "island.json"))

    context = ToolContext(
        layer=layer,
        state=EditorState(),
        undo_manager=UndoManager(),
        rule_library=library,
        notifications=notifications,
        resource_key=key,
    )
    yield context, AutoMapperTool()
    library.shutdown()


class TestUndoRedoIntegration:
    def test_auto_map_undo_redo(self, editor_setup):
        context, tool = editor_setup
        original = list(context.layer.tiles)
        context.state.active_rule = "grass"

        tool.handle_key_down(pygame.K_a, 0, context)
        mapped = list(context.layer.tiles)
        assert mapped != original

        context.undo_manager.undo(context.layer)
        assert context.layer.tiles == original

        context.undo_manager.redo(context.layer)
        assert context.layer.tiles == mapped

    def test_paint_with_auto_mode_undoes_in_two_steps(self, editor_setup):
        context, tool = editor_setup
        original = list(context.layer.tiles)
        context.state.active_rule = "grass"
        context.state.toggle_auto_mode()

        # Grass painted on the top row becomes the edge tile
        tool.handle_mouse_down((3, 0), 1, 0, context)
        tool.handle_mouse_up(1, context)
        assert context.layer.get_tile(3, 0).index == 16

        context.undo_manager.undo(context.layer)
        assert context.layer.get_tile(3, 0).index == 1

        context.undo_manager.undo(context.layer)
        assert context.layer.tiles == original

    def test_new_action_clears_redo(self, editor_setup):
        context, tool = editor_setup
        context.state.active_rule = "grass"

        tool.handle_key_down(pygame.K_a, 0, context)
        context.undo_manager.undo(context.layer)
        tool.handle_mouse_down((0, 5), 1, 0, context)

        assert not context.undo_manager.can_redo()
