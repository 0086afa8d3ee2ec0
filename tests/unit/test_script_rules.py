"""Unit tests for sandboxed script modules."""

import marshal
import sys
import textwrap

import pytest

from conftest import indices, window_from_rows
from editor.algorithms.auto_mapper_interface import (
    DESIGN_TILE_LAYER,
    AutoMapperMode,
    AutoMapperRunError,
    RuleFormatError,
    UnsupportedModeError,
)
from editor.algorithms.script_rules import (
    ScriptCompileError,
    ScriptModule,
    cache_path_for,
    compile_module,
    load_compiled,
)
from tilemap.core.tiles import Tile, TileFlags

IDENTITY = textwrap.dedent(
    """
    def supported_modes():
        return [("design_tile_layer", None)]

    def run(seed, tiles, width, height, off_x, off_y):
        return tiles
    """
).encode()

FILL_NINES = textwrap.dedent(
    """
    def supported_modes():
        return [("design_tile_layer", 1)]

    def run(seed, tiles, width, height, off_x, off_y):
        result = []
        for index, flags in tiles:
            result.append([9, XFLIP] if index == 0 else [index, flags])
        return result
    """
).encode()


def module_from(body: str) -> ScriptModule:
    return ScriptModule.from_source(textwrap.dedent(body).encode())


class TestValidation:
    @pytest.mark.parametrize(
        "body",
        [
            "import os\n",
            "from os import path\n",
            "class A:\n    pass\n",
            "def f():\n    global x\n",
            "def f():\n    try:\n        pass\n    except Exception:\n        pass\n",
            "def f(p):\n    with p:\n        pass\n",
            "x = open('f')\n",
            "x = __import__('os')\n",
            "x = ().__class__\n",
            "x = (1).real\n",
            "x = lambda: 1\n",
            "def f():\n    yield 1\n",
            "x = f'{1}'\n",
        ],
    )
    def test_forbidden_constructs(self, body):
        source = body.encode() + IDENTITY
        with pytest.raises(ScriptCompileError):
            compile_module(source)

    def test_missing_run(self):
        with pytest.raises(ScriptCompileError, match="run"):
            compile_module(b"def supported_modes():\n    return []\n")

    def test_syntax_error(self):
        with pytest.raises(ScriptCompileError):
            compile_module(b"def run(:\n")

    def test_not_utf8(self):
        with pytest.raises(ScriptCompileError):
            compile_module(b"\xff\xfe")

    def test_compile_error_is_format_error(self):
        with pytest.raises(RuleFormatError):
            compile_module(b"import sys\n")

    def test_helpers_and_own_functions_callable(self):
        source = textwrap.dedent(
            """
            def roll(seed, x):
                return hash_location(seed, 0, 0, x, 0) % 2

            def supported_modes():
                return [("design_tile_layer", None)]

            def run(seed, tiles, width, height, off_x, off_y):
                return [[roll(seed, i), 0] for i in range(len(tiles))]
            """
        ).encode()
        compile_module(source)

    def test_sample_module_compiles(self, samples_dir):
        compile_module((samples_dir / "grass_edges.automod").read_bytes())


class TestScriptModule:
    def test_supported_modes(self):
        assert ScriptModule.from_source(FILL_NINES).supported_modes() == [
            AutoMapperMode(DESIGN_TILE_LAYER, 1)
        ]

    def test_run_converts_pairs(self):
        module = ScriptModule.from_source(FILL_NINES)
        window = window_from_rows([[0, 3]])

        output = module.run(0, window)

        assert output.tiles == [Tile(9, TileFlags.XFLIP), Tile(3)]

    def test_identity(self):
        module = ScriptModule.from_source(IDENTITY)
        window = window_from_rows([[1, 2], [3, 4]])
        assert module.run(5, window).tiles == window.tiles

    def test_rule_hash_is_source_hash(self):
        a = ScriptModule.from_source(IDENTITY)
        b = ScriptModule.from_source(IDENTITY)
        c = ScriptModule.from_source(FILL_NINES)
        assert a.rule_hash() == b.rule_hash()
        assert a.rule_hash() != c.rule_hash()

    def test_runtime_error_wrapped(self):
        module = module_from(
            """
            def supported_modes():
                return [("design_tile_layer", None)]

            def run(seed, tiles, width, height, off_x, off_y):
                return tiles[len(tiles)]
            """
        )
        with pytest.raises(AutoMapperRunError):
            module.run(0, window_from_rows([[1]]))

    def test_invalid_output_wrapped(self):
        module = module_from(
            """
            def supported_modes():
                return [("design_tile_layer", None)]

            def run(seed, tiles, width, height, off_x, off_y):
                return [[999, 0] for t in tiles]
            """
        )
        with pytest.raises(AutoMapperRunError):
            module.run(0, window_from_rows([[1]]))

    def test_bad_modes_wrapped(self):
        module = module_from(
            """
            def supported_modes():
                return 5

            def run(seed, tiles, width, height, off_x, off_y):
                return tiles
            """
        )
        with pytest.raises(AutoMapperRunError):
            module.supported_modes()

    def test_top_level_failure_is_compile_error(self):
        with pytest.raises(ScriptCompileError):
            module_from(
                """
                x = 1 // 0

                def supported_modes():
                    return []

                def run(seed, tiles, width, height, off_x, off_y):
                    return tiles
                """
            )

    def test_unsupported_input_kind(self):
        module = ScriptModule.from_source(IDENTITY)
        window = window_from_rows([[1]])
        window.kind = "other"
        with pytest.raises(UnsupportedModeError):
            module.run(0, window)

    def test_grass_edges_sample(self, samples_dir, island_layer):
        module = ScriptModule.from_source((samples_dir / "grass_edges.automod").read_bytes())
        window = window_from_rows(island_layer.index_rows())

        result = indices(module.run(0, window).tiles, window.width)

        assert result[1][1] in (4, 32)
        assert result[1][6] == 33
        assert result[3][6] == 34
        assert result[3][1] == 35
        assert result[2][3] == 1


class TestCompileCache:
    def test_cache_written_and_reused(self, tmp_path):
        cache_dir = str(tmp_path / "cache")
        load_compiled(IDENTITY, cache_dir)
        cache_file = cache_path_for(IDENTITY, cache_dir)

        with open(cache_file, "rb") as f:
            assert f.read()
        code = load_compiled(IDENTITY, cache_dir)
        assert ScriptModule(IDENTITY, code).supported_modes()[0].kind == DESIGN_TILE_LAYER

    def test_cache_key_includes_interpreter_version(self, tmp_path, monkeypatch):
        first = cache_path_for(IDENTITY, str(tmp_path))
        monkeypatch.setattr(sys, "version", sys.version + " patched")
        assert cache_path_for(IDENTITY, str(tmp_path)) != first

    def test_corrupt_cache_recompiled(self, tmp_path, capsys):
        cache_dir = str(tmp_path)
        cache_file = cache_path_for(FILL_NINES, cache_dir)
        with open(cache_file, "wb") as f:
            f.write(b"\x00")

        module = ScriptModule(FILL_NINES, load_compiled(FILL_NINES, cache_dir))

        assert module.supported_modes()[0].neighbouring_tiles == 1
        assert "Warning:" in capsys.readouterr().out

    def test_cached_code_with_foreign_names_recompiled(self, tmp_path, capsys):
        cache_dir = str(tmp_path)
        planted = compile(
            "escape = ().__class__.__base__\n"
            "def supported_modes():\n"
            "    return [('design_tile_layer', 9)]\n"
            "def run(seed, tiles, width, height, off_x, off_y):\n"
            "    return tiles\n",
            "<planted>",
            "exec",
        )
        with open(cache_path_for(IDENTITY, cache_dir), "wb") as f:
            f.write(marshal.dumps(planted))

        module = ScriptModule(IDENTITY, load_compiled(IDENTITY, cache_dir))

        assert module.supported_modes() == [AutoMapperMode(DESIGN_TILE_LAYER, None)]
        assert "does not match source" in capsys.readouterr().out
        with open(cache_path_for(IDENTITY, cache_dir), "rb") as f:
            assert marshal.loads(f.read()).co_filename == "<automod>"

    def test_cached_entry_for_invalid_source_still_rejected(self, tmp_path):
        cache_dir = str(tmp_path)
        source = b"import os\n"
        with open(cache_path_for(source, cache_dir), "wb") as f:
            f.write(marshal.dumps(compile(IDENTITY, "<planted>", "exec")))

        with pytest.raises(ScriptCompileError):
            load_compiled(source, cache_dir)
