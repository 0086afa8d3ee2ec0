"""Unit tests for running backends on layer sub-rectangles."""

import pytest

from editor.algorithms.auto_mapper_interface import (
    AutoMapperMode,
    DesignTileLayerOutput,
    RuleFormatError,
    TileCountMismatchError,
    UnsupportedModeError,
)
from editor.algorithms.auto_mapper_rules import EditorRule
from editor.algorithms.legacy_rules import LegacyRule
from editor.algorithms.script_rules import ScriptModule
from editor.controllers.auto_mapper import (
    AutoMapperRule,
    ReplaceTilesAction,
    compute_padded_rect,
    load_rule_file,
    rules_from_bytes,
    run_layer,
)
from tilemap.core.tiles import Tile
from tilemap.formats.layer_data import TileLayerData


class RecordingBackend:
    """Backend that remembers its input and fills the window with one tile."""

    def __init__(self, radius=None, index=9, modes=None):
        self.modes = modes if modes is not None else [AutoMapperMode(neighbouring_tiles=radius)]
        self.index = index
        self.inputs = []

    def supported_modes(self):
        return self.modes

    def run(self, seed, input):
        self.inputs.append(input)
        return DesignTileLayerOutput([Tile(self.index)] * len(input.tiles))


class ShortBackend(RecordingBackend):
    def run(self, seed, input):
        return DesignTileLayerOutput(list(input.tiles[:-1]))


class WrongKindBackend(RecordingBackend):
    def run(self, seed, input):
        return DesignTileLayerOutput(list(input.tiles), kind="sound_layer")


def blank_layer(width=10, height=10):
    return TileLayerData(width, height)


class TestComputePaddedRect:
    def test_interior(self):
        assert compute_padded_rect(40, 30, 10, 10, 2, 3, 3) == (7, 7, 8, 9)

    def test_clamped_at_origin(self):
        # The clamped origin keeps the full padded size
        assert compute_padded_rect(40, 30, 1, 0, 1, 1, 3) == (0, 0, 7, 7)

    def test_clamped_at_far_edge(self):
        assert compute_padded_rect(10, 10, 9, 9, 1, 1, 3) == (6, 6, 4, 4)

    def test_never_exceeds_layer(self):
        assert compute_padded_rect(5, 5, 0, 0, 5, 5, 3) == (0, 0, 5, 5)

    def test_no_radius_keeps_rect(self):
        assert compute_padded_rect(40, 30, 4, 5, 6, 7, None) == (4, 5, 6, 7)

    @pytest.mark.parametrize(
        "rect",
        [(0, 0, 0, 1), (0, 0, 1, 0), (-1, 0, 1, 1), (9, 0, 2, 1), (0, 10, 1, 1)],
    )
    def test_invalid_rect_rejected(self, rect):
        with pytest.raises(ValueError):
            compute_padded_rect(10, 10, *rect, 3)


class TestRunLayer:
    def test_window_is_padded_and_located(self):
        layer = blank_layer()
        backend = RecordingBackend(radius=2)

        action = run_layer(backend, 5, 10, 10, layer.tiles, 4, 4, 1, 1)

        window = backend.inputs[0]
        assert (window.width, window.height) == (5, 5)
        assert (window.off_x, window.off_y) == (2, 2)
        assert (window.full_width, window.full_height) == (10, 10)
        assert (action.x, action.y, action.w, action.h) == (2, 2, 5, 5)

    def test_diff_covers_padded_window(self):
        layer = blank_layer()
        layer.set_tile(3, 3, Tile(1))

        action = run_layer(RecordingBackend(radius=1), 0, 10, 10, layer.tiles, 4, 4, 1, 1)

        assert len(action.old_tiles) == len(action.new_tiles) == 9
        assert action.old_tiles[0] == Tile(1)
        assert all(t == Tile(9) for t in action.new_tiles)

    def test_layer_not_modified(self):
        layer = blank_layer()
        before = list(layer.tiles)
        run_layer(RecordingBackend(radius=3), 0, 10, 10, layer.tiles, 0, 0, 10, 10)
        assert layer.tiles == before

    def test_window_is_a_copy(self):
        layer = blank_layer()
        backend = RecordingBackend()
        run_layer(backend, 0, 10, 10, layer.tiles, 0, 0, 2, 2)
        assert backend.inputs[0].tiles is not layer.tiles

    def test_seed_passed_through(self):
        seen = []

        class SeedBackend(RecordingBackend):
            def run(self, seed, input):
                seen.append(seed)
                return super().run(seed, input)

        run_layer(SeedBackend(), 77, 10, 10, blank_layer().tiles, 0, 0, 1, 1)
        assert seen == [77]

    def test_tile_count_mismatch(self):
        with pytest.raises(TileCountMismatchError):
            run_layer(ShortBackend(), 0, 10, 10, blank_layer().tiles, 0, 0, 3, 3)

    def test_wrong_output_kind(self):
        with pytest.raises(UnsupportedModeError):
            run_layer(WrongKindBackend(), 0, 10, 10, blank_layer().tiles, 0, 0, 3, 3)

    def test_missing_mode(self):
        backend = RecordingBackend(modes=[AutoMapperMode("sound_layer", 1)])
        with pytest.raises(UnsupportedModeError):
            run_layer(backend, 0, 10, 10, blank_layer().tiles, 0, 0, 3, 3)
        assert backend.inputs == []

    def test_buffer_size_checked(self):
        with pytest.raises(ValueError):
            run_layer(RecordingBackend(), 0, 10, 10, [Tile()] * 5, 0, 0, 1, 1)

    def test_layer_info_recorded(self):
        action = run_layer(
            RecordingBackend(), 0, 10, 10, blank_layer().tiles, 0, 0, 2, 2,
            is_background=True, group_index=1, layer_index=3,
        )
        assert (action.is_background, action.group_index, action.layer_index) == (True, 1, 3)


class TestReplaceTilesAction:
    def make_action(self, **kwargs):
        return ReplaceTilesAction(
            old_tiles=[Tile(0), Tile(1)],
            new_tiles=[Tile(0), Tile(2)],
            x=3, y=4, w=2, h=1,
            **kwargs,
        )

    def test_apply_and_revert(self):
        layer = blank_layer()
        action = self.make_action()

        action.apply(layer)
        assert layer.get_tile(4, 4) == Tile(2)

        action.revert(layer)
        assert layer.get_tile(4, 4) == Tile(1)

    def test_changed_count(self):
        assert self.make_action().changed_count() == 1

    def test_undo_info_foreground(self):
        assert self.make_action(layer_index=2).undo_info() == (
            "Replace 2 tiles with 2 tiles @(3, 4)-(5, 5) from layer #2 in foreground"
        )

    def test_undo_info_background(self):
        assert self.make_action(is_background=True).undo_info().endswith("in background")


class TestAutoMapperRule:
    def test_run_on_whole_layer(self, island_layer, fill_rule):
        rule = AutoMapperRule("fill", fill_rule, ".editorrulejson")

        action = rule.run_on_layer(0, island_layer)

        assert (action.x, action.y, action.w, action.h) == (0, 0, 8, 6)
        assert all(t == Tile(7) for t in action.new_tiles)

    def test_radius_and_hash_delegate(self, fill_rule):
        rule = AutoMapperRule("fill", fill_rule, ".editorrulejson")
        assert rule.radius is None
        assert rule.rule_hash == fill_rule.rule_hash()


class TestRulesFromBytes:
    def test_editor_rule(self, samples_dir):
        data = (samples_dir / "grass.editorrulejson").read_bytes()
        rules = rules_from_bytes("grass", ".editorrulejson", data)
        assert list(rules) == ["grass"]
        assert isinstance(rules["grass"].backend, EditorRule)

    def test_legacy_file_yields_one_rule_per_configuration(self, samples_dir):
        rules = load_rule_file(samples_dir / "grass.rules")
        assert list(rules) == ["grass/Grass", "grass/Fill"]
        assert all(isinstance(r.backend, LegacyRule) for r in rules.values())

    def test_script_module(self, samples_dir, tmp_path):
        rules = load_rule_file(samples_dir / "grass_edges.automod", cache_dir=str(tmp_path))
        assert isinstance(rules["grass_edges"].backend, ScriptModule)
        assert rules["grass_edges"].radius == 2

    def test_bad_json(self):
        with pytest.raises(RuleFormatError):
            rules_from_bytes("bad", ".editorrulejson", b"{not json")

    def test_unknown_extension(self):
        with pytest.raises(ValueError, match="Unknown rule file extension"):
            rules_from_bytes("x", ".txt", b"")
