"""Unit tests for layer files and the compact JSON writer."""

import json

import pytest

from tilemap.core.tiles import Tile, TileFlags
from tilemap.formats import compact_json
from tilemap.formats.layer_data import TileLayerData, format_hex_row, parse_hex_row


class TestHexRows:
    def test_parse(self):
        assert parse_hex_row("00 1F A3") == [0, 31, 163]

    def test_format(self):
        assert format_hex_row([0, 31, 163]) == "00 1F A3"


class TestTileLayerData:
    def test_load_sample(self, island_layer):
        assert (island_layer.width, island_layer.height) == (8, 6)
        assert island_layer.name == "island"
        assert island_layer.get_tile(1, 1) == Tile(1)
        assert island_layer.modified is False

    def test_save_and_load_keeps_flags(self, tmp_path):
        layer = TileLayerData.from_indices([[1, 2], [3, 4]], name="tiny")
        layer.set_tile(1, 0, Tile(2, TileFlags.XFLIP | TileFlags.ROTATE))
        path = tmp_path / "tiny.json"

        layer.save(str(path))
        loaded = TileLayerData()
        loaded.load(str(path))

        assert loaded.tiles == layer.tiles
        assert loaded.filepath == str(path)

    def test_saved_rows_are_hex_strings(self, tmp_path):
        layer = TileLayerData.from_indices([[0, 255]])
        path = tmp_path / "row.json"
        layer.save(str(path))
        assert json.loads(path.read_text())["rows"] == ["00 FF"]

    def test_flags_optional(self, tmp_path):
        path = tmp_path / "plain.json"
        path.write_text(json.dumps({"width": 2, "height": 1, "rows": ["01 02"]}))
        layer = TileLayerData()
        layer.load(str(path))
        assert layer.tiles == [Tile(1), Tile(2)]

    def test_ragged_rows_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"width": 2, "height": 2, "rows": ["01 02", "01"]}))
        with pytest.raises(ValueError):
            TileLayerData().load(str(path))

    def test_save_without_path(self):
        with pytest.raises(ValueError):
            TileLayerData(1, 1).save()

    def test_set_tile_outside_ignored(self):
        layer = TileLayerData(2, 2)
        layer.set_tile(5, 5, Tile(1))
        assert layer.modified is False

    def test_get_tile_outside_raises(self):
        with pytest.raises(IndexError):
            TileLayerData(2, 2).get_tile(2, 0)

    def test_write_rect_marks_modified(self):
        layer = TileLayerData(3, 3)
        layer.write_rect(1, 1, 2, 1, [Tile(5), Tile(6)])
        assert layer.index_rows()[1] == [0, 5, 6]
        assert layer.modified is True

    def test_from_indices_checks_width(self):
        with pytest.raises(ValueError):
            TileLayerData.from_indices([[1, 2], [3]])


class TestCompactJson:
    def test_numeric_arrays_on_one_line(self):
        text = compact_json.dumps({"flags": [[0, 1], [2, 3]]})
        assert "[0, 1]" in text
        assert json.loads(text) == {"flags": [[0, 1], [2, 3]]}

    def test_nested_objects_indented(self):
        text = compact_json.dumps({"a": {"b": None}})
        assert "\n" in text
        assert compact_json.loads(text) == {"a": {"b": None}}
