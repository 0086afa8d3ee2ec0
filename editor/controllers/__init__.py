"""
Tile Auto-Mapper - Controllers Module

Application state, the auto-mapper host adapter, undo history and the
background rule library.
"""

from .auto_mapper import AutoMapperRule, ReplaceTilesAction, compute_padded_rect, run_layer
from .editor_state import EditorState
from .notifications import Notifications
from .rule_library import RuleLibrary
from .undo_manager import UndoManager

__all__ = [
    'AutoMapperRule',
    'EditorState',
    'Notifications',
    'ReplaceTilesAction',
    'RuleLibrary',
    'UndoManager',
    'compute_padded_rect',
    'run_layer',
]
