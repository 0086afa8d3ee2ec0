"""
Tile Auto-Mapper - File Dialogs

Native file dialogs for layers, tile sets and rule files. plyer is tried
first; tkinter is used where plyer has no backend.
"""

from plyer import filechooser

from editor.core.constants import (
    EDITOR_RULE_EXTENSION,
    LEGACY_RULES_EXTENSION,
    SCRIPT_MODULE_EXTENSION,
)

RULE_FILETYPES = [
    ("Editor rules", f"*{EDITOR_RULE_EXTENSION}"),
    ("Script modules", f"*{SCRIPT_MODULE_EXTENSION}"),
    ("Legacy rules", f"*{LEGACY_RULES_EXTENSION}"),
    ("All files", "*.*"),
]
LAYER_FILETYPES = [("Layer JSON", "*.json"), ("All files", "*.*")]
TILESET_FILETYPES = [("PNG images", "*.png"), ("All files", "*.*")]


def _tkinter_dialog(save: bool, title: str, filetypes, default_extension: str = "") -> str | None:
    """Tkinter fallback for open and save dialogs."""
    try:
        import tkinter as tk
        from tkinter import filedialog
    except ImportError:
        print("Warning: tkinter not available for file dialog")
        return None

    root = tk.Tk()
    root.withdraw()
    if save:
        path = filedialog.asksaveasfilename(
            title=title, defaultextension=default_extension, filetypes=filetypes
        )
    else:
        path = filedialog.askopenfilename(title=title, filetypes=filetypes)
    root.destroy()
    return path if path else None


def open_file_dialog(title: str, filetypes: list[tuple[str, str]]) -> str | None:
    """
    Display an 'Open File' dialog and return the selected path.

    Args:
        title: Dialog window title
        filetypes: List of (description, pattern) tuples, e.g. [("PNG images", "*.png")]

    Returns:
        Selected file path, or None if canceled
    """
    try:
        result = filechooser.open_file(title=title, filters=filetypes)
    except (OSError, NotImplementedError):
        return _tkinter_dialog(False, title, filetypes)
    return result[0] if result else None


def save_file_dialog(
    title: str, default_extension: str, filetypes: list[tuple[str, str]]
) -> str | None:
    """
    Display a 'Save File' dialog and return the selected path.

    The default extension is appended when the chosen name lacks it.
    """
    try:
        result = filechooser.save_file(title=title, filters=filetypes)
    except (OSError, NotImplementedError):
        return _tkinter_dialog(True, title, filetypes, default_extension)
    if not result:
        return None
    path = result[0]
    if default_extension and not path.endswith(default_extension):
        path += default_extension
    return path


def open_rule_dialog() -> str | None:
    return open_file_dialog("Import Auto-Mapper Rule", RULE_FILETYPES)


def open_layer_dialog() -> str | None:
    return open_file_dialog("Open Layer", LAYER_FILETYPES)


def save_layer_dialog() -> str | None:
    return save_file_dialog("Save Layer", ".json", LAYER_FILETYPES)


def open_tileset_dialog() -> str | None:
    return open_file_dialog("Open Tile Set", TILESET_FILETYPES)
