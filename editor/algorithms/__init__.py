"""
Tile Auto-Mapper - Editor Algorithms

Auto-mapper backends: native editor rules, legacy `.rules` files and
sandboxed script modules.
"""

from .auto_mapper_interface import (
    DESIGN_TILE_LAYER,
    AutoMapperError,
    AutoMapperMode,
    AutoMapperRunError,
    DesignTileLayerInput,
    DesignTileLayerOutput,
    RuleFormatError,
    TileCountMismatchError,
    UnsupportedModeError,
)
from .auto_mapper_rules import EditorRule
from .legacy_rules import LegacyRule, load_legacy_rules
from .script_rules import ScriptCompileError, ScriptModule

__all__ = [
    "DESIGN_TILE_LAYER",
    "AutoMapperError",
    "AutoMapperMode",
    "AutoMapperRunError",
    "DesignTileLayerInput",
    "DesignTileLayerOutput",
    "EditorRule",
    "LegacyRule",
    "RuleFormatError",
    "ScriptCompileError",
    "ScriptModule",
    "TileCountMismatchError",
    "UnsupportedModeError",
    "load_legacy_rules",
]
