"""
Tile Auto-Mapper - Script Modules

Sandboxed auto-mapper backend written as a restricted Python module
(`.automod`). A module must define:

    def supported_modes():
        return [("design_tile_layer", 3)]

    def run(seed, tiles, width, height, off_x, off_y):
        # tiles is a row-major list of [index, flags] pairs
        return tiles

The source is validated against an AST allow-list before compilation and runs
with a whitelisted builtins namespace. Compiled code objects can be cached on
disk, keyed by the source hash and interpreter version.
"""

import ast
import marshal
import os
import sys
import types
from typing import Optional

from tilemap.core.hashing import generate_hash_for
from tilemap.core.tiles import Tile, TileFlags

from .auto_mapper_interface import (
    DESIGN_TILE_LAYER,
    AutoMapperMode,
    AutoMapperRunError,
    DesignTileLayerInput,
    DesignTileLayerOutput,
    RuleFormatError,
    UnsupportedModeError,
)
from .legacy_rules import HASH_MAX, hash_location

CACHE_SUFFIX = ".automod.cache"

# Names the compiler itself stores for module-level docstrings and annotations
COMPILER_NAMES = ("__doc__", "__annotations__")


class ScriptCompileError(RuleFormatError):
    """A script module failed validation or compilation."""


SAFE_BUILTINS = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "divmod": divmod,
    "enumerate": enumerate,
    "int": int,
    "len": len,
    "list": list,
    "max": max,
    "min": min,
    "range": range,
    "reversed": reversed,
    "set": set,
    "sorted": sorted,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
    "ValueError": ValueError,
}

HELPERS = {
    "hash_location": hash_location,
    "HASH_MAX": HASH_MAX,
    "XFLIP": int(TileFlags.XFLIP),
    "YFLIP": int(TileFlags.YFLIP),
    "OPAQUE": int(TileFlags.OPAQUE),
    "ROTATE": int(TileFlags.ROTATE),
}

# Methods of the plain containers a module works with
SAFE_ATTRIBUTES = {
    "append",
    "copy",
    "count",
    "extend",
    "get",
    "index",
    "insert",
    "items",
    "keys",
    "pop",
    "values",
}

ALLOWED_NODES = (
    ast.Module,
    ast.FunctionDef,
    ast.arguments,
    ast.arg,
    ast.Return,
    ast.Assign,
    ast.AugAssign,
    ast.For,
    ast.While,
    ast.If,
    ast.Break,
    ast.Continue,
    ast.Pass,
    ast.Raise,
    ast.Expr,
    ast.BinOp,
    ast.UnaryOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    ast.keyword,
    ast.Name,
    ast.Attribute,
    ast.Constant,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Set,
    ast.Subscript,
    ast.Slice,
    ast.Starred,
    ast.ListComp,
    ast.SetComp,
    ast.DictComp,
    ast.GeneratorExp,
    ast.comprehension,
    ast.expr_context,
    ast.operator,
    ast.unaryop,
    ast.cmpop,
    ast.boolop,
)

REQUIRED_FUNCTIONS = ("supported_modes", "run")


def _validate(tree: ast.Module) -> None:
    defined = {
        node.name for node in ast.walk(tree) if isinstance(node, ast.FunctionDef)
    }
    callable_names = set(SAFE_BUILTINS) | set(HELPERS) | defined

    for n in ast.walk(tree):
        if not isinstance(n, ALLOWED_NODES):
            raise ScriptCompileError(
                f"line {getattr(n, 'lineno', '?')}: {type(n).__name__} not allowed"
            )

        if isinstance(n, ast.FunctionDef) and n.decorator_list:
            raise ScriptCompileError(f"line {n.lineno}: decorators not allowed")

        if isinstance(n, ast.Name) and n.id.startswith("__"):
            raise ScriptCompileError(f"line {n.lineno}: name {n.id} not allowed")

        if isinstance(n, ast.Attribute) and n.attr not in SAFE_ATTRIBUTES:
            raise ScriptCompileError(f"line {n.lineno}: attribute {n.attr} not allowed")

        if isinstance(n, ast.Call):
            func = n.func
            if isinstance(func, ast.Name):
                if func.id not in callable_names:
                    raise ScriptCompileError(
                        f"line {n.lineno}: function {func.id} not allowed"
                    )
            elif not isinstance(func, ast.Attribute):
                raise ScriptCompileError(
                    f"line {n.lineno}: only direct function calls allowed"
                )

    for name in REQUIRED_FUNCTIONS:
        if name not in defined:
            raise ScriptCompileError(f"module must define {name}()")


def _parse(source: bytes, filename: str) -> ast.Module:
    try:
        text = source.decode("utf-8")
        return ast.parse(text, filename=filename, mode="exec")
    except (UnicodeDecodeError, SyntaxError, ValueError) as e:
        raise ScriptCompileError(str(e)) from None


def compile_module(source: bytes, filename: str = "<automod>"):
    """
    Validate and compile module source into a code object.

    Raises:
        ScriptCompileError: If the source is not valid or uses forbidden syntax
    """
    tree = _parse(source, filename)
    _validate(tree)
    return compile(tree, filename, "exec")


def _tree_names(tree: ast.Module) -> set[str]:
    """Identifiers a validated module can legitimately look up."""
    names = set(COMPILER_NAMES)
    for n in ast.walk(tree):
        if isinstance(n, ast.Name):
            names.add(n.id)
        elif isinstance(n, ast.Attribute):
            names.add(n.attr)
        elif isinstance(n, ast.FunctionDef):
            names.add(n.name)
        elif isinstance(n, ast.arg):
            names.add(n.arg)
    return names


def _code_names(code: types.CodeType) -> set[str]:
    """Global and attribute names used by a code object and its nested code."""
    names: set[str] = set()
    pending = [code]
    while pending:
        current = pending.pop()
        names.update(current.co_names)
        pending.extend(c for c in current.co_consts if isinstance(c, types.CodeType))
    return names


def cache_path_for(source: bytes, cache_dir: str) -> str:
    key = generate_hash_for(source + sys.version.encode("utf-8"))
    return os.path.join(cache_dir, key + CACHE_SUFFIX)


def load_compiled(source: bytes, cache_dir: Optional[str] = None, filename: str = "<automod>"):
    """
    Compile module source, reusing a cached code object when one exists.

    The source is validated on every call. A cached code object is only
    reused when it looks up no name the validated source does not contain;
    otherwise, or when the entry is corrupt, it is recompiled and overwritten.

    Raises:
        ScriptCompileError: If the source is not valid or uses forbidden syntax
    """
    tree = _parse(source, filename)
    _validate(tree)

    cache_file = cache_path_for(source, cache_dir) if cache_dir else None
    if cache_file and os.path.exists(cache_file):
        try:
            with open(cache_file, "rb") as f:
                cached = marshal.loads(f.read())
        except (EOFError, ValueError, TypeError) as e:
            print(f"Warning: Discarding module cache {cache_file}: {e}")
        else:
            if isinstance(cached, types.CodeType) and _code_names(cached) <= _tree_names(tree):
                return cached
            print(f"Warning: Discarding module cache {cache_file}: does not match source")

    code = compile(tree, filename, "exec")

    if cache_file:
        try:
            os.makedirs(cache_dir, exist_ok=True)
            with open(cache_file, "wb") as f:
                f.write(marshal.dumps(code))
        except OSError as e:
            print(f"Warning: Could not write module cache {cache_file}: {e}")

    return code


class ScriptModule:
    """Backend running a compiled `.automod`; implements AutoMapperInterface."""

    def __init__(self, source: bytes, code, name: str = ""):
        self.source = source
        self.name = name
        self._namespace = {"__builtins__": dict(SAFE_BUILTINS), **HELPERS}
        try:
            exec(code, self._namespace)  # noqa: S102
        except Exception as e:
            raise ScriptCompileError(f"module {name or '<automod>'} failed to load: {e}") from e

        for func_name in REQUIRED_FUNCTIONS:
            if not callable(self._namespace.get(func_name)):
                raise ScriptCompileError(f"module must define {func_name}()")

    @classmethod
    def from_source(cls, source: bytes, name: str = "", cache_dir: Optional[str] = None) -> "ScriptModule":
        code = load_compiled(source, cache_dir, f"<automod {name}>" if name else "<automod>")
        return cls(source, code, name)

    def rule_hash(self) -> str:
        """
        Content identity of the module.

        The `.automod` source is the module's compiled artifact: the code
        object is rebuilt from it and its marshal bytes change with the
        interpreter version, so the source bytes are hashed.
        """
        return generate_hash_for(self.source)

    def supported_modes(self) -> list[AutoMapperMode]:
        try:
            raw_modes = self._namespace["supported_modes"]()
            modes = []
            for kind, neighbouring_tiles in raw_modes:
                if not isinstance(kind, str):
                    raise ValueError(f"mode kind must be a string, got {kind!r}")
                if neighbouring_tiles is not None:
                    neighbouring_tiles = int(neighbouring_tiles)
                modes.append(AutoMapperMode(kind, neighbouring_tiles))
        except Exception as e:
            raise AutoMapperRunError(f"supported_modes() failed: {e}") from e
        return modes

    def run(self, seed: int, input: DesignTileLayerInput) -> DesignTileLayerOutput:
        if input.kind != DESIGN_TILE_LAYER:
            raise UnsupportedModeError(f"Script module cannot run in mode {input.kind}")

        pairs = [[tile.index, int(tile.flags)] for tile in input.tiles]
        try:
            result = self._namespace["run"](
                seed, pairs, input.width, input.height, input.off_x, input.off_y
            )
        except Exception as e:
            raise AutoMapperRunError(f"run() failed: {e}") from e

        try:
            tiles = [Tile(int(index), TileFlags(int(flags))) for index, flags in result]
        except (TypeError, ValueError) as e:
            raise AutoMapperRunError(f"run() returned invalid tiles: {e}") from e

        return DesignTileLayerOutput(tiles)
