"""
Tile Auto-Mapper - Undo Manager

Manages undo/redo history of tile replacements on a layer.
"""
from typing import Optional

from tilemap.formats.layer_data import TileLayerData

from .auto_mapper import ReplaceTilesAction


class UndoManager:
    """Manages undo/redo stacks of replace-tiles actions."""

    def __init__(self, max_undo_levels: int = 50):
        """
        Initialize undo manager.

        Args:
            max_undo_levels: Maximum number of undo levels to keep (default: 50)
        """
        self.undo_stack: list[ReplaceTilesAction] = []
        self.redo_stack: list[ReplaceTilesAction] = []
        self.max_undo_levels = max_undo_levels

    def push(self, action: ReplaceTilesAction):
        """
        Record an action that has already been applied.
        Clears redo stack when new action is taken.
        """
        self.undo_stack.append(action)

        if len(self.undo_stack) > self.max_undo_levels:
            self.undo_stack.pop(0)

        self.redo_stack.clear()

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self.undo_stack) > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self.redo_stack) > 0

    def undo(self, layer: TileLayerData) -> Optional[ReplaceTilesAction]:
        """
        Revert the last action on the layer.

        Returns:
            The reverted action, or None if no undo available
        """
        if not self.can_undo():
            return None

        action = self.undo_stack.pop()
        action.revert(layer)
        self.redo_stack.append(action)
        return action

    def redo(self, layer: TileLayerData) -> Optional[ReplaceTilesAction]:
        """
        Re-apply the last undone action on the layer.

        Returns:
            The re-applied action, or None if no redo available
        """
        if not self.can_redo():
            return None

        action = self.redo_stack.pop()
        action.apply(layer)
        self.undo_stack.append(action)
        return action

    def clear(self):
        """Clear all undo/redo history."""
        self.undo_stack.clear()
        self.redo_stack.clear()
