"""
Tile Auto-Mapper - UI Module

File dialogs for layers, tile sets and rule imports.
"""

from .dialogs import (
    open_file_dialog,
    open_layer_dialog,
    open_rule_dialog,
    open_tileset_dialog,
    save_file_dialog,
    save_layer_dialog,
)

__all__ = [
    "open_file_dialog",
    "open_layer_dialog",
    "open_rule_dialog",
    "open_tileset_dialog",
    "save_file_dialog",
    "save_layer_dialog",
]
