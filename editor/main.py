"""
Tile Auto-Mapper - Editor Main

Command-line entry point for the preview editor.

Usage:
    automapper-editor [tileset.png] [layer.json]

Rules are read from editor/rules unless AUTOMAPPER_RULES points elsewhere.
"""

import sys
from pathlib import Path

from .application import EditorApplication
from .resources import get_rules_root


def parse_arguments():
    """
    Parse command-line arguments.

    Returns:
        tuple[str | None, str | None]: (tileset_png, layer_json)

    Usage patterns:
        automapper-editor                         # empty layer, no rules
        automapper-editor layer.json              # layer, no rules
        automapper-editor tiles.png               # tile set and its rules
        automapper-editor tiles.png layer.json    # both
    """
    args = sys.argv[1:]
    tileset = None
    layer = None

    if len(args) > 2:
        print(f"Error: Too many arguments ({len(args)} provided)")
        print("")
        show_usage()
        sys.exit(1)

    for arg in args:
        if arg.endswith(".json") and layer is None:
            layer = arg
        elif arg.endswith(".png") and tileset is None:
            tileset = arg
        else:
            print(f"Error: Unexpected argument: {arg}")
            print("")
            show_usage()
            sys.exit(1)

    return tileset, layer


def show_usage():
    """Display usage information."""
    print("Usage: automapper-editor [tileset.png] [layer.json]")
    print("")
    print("Arguments:")
    print("  tileset.png    Tile set image (16x16 tiles); its rules are loaded too")
    print("  layer.json     Optional layer file to load on startup")
    print("")
    print("Environment:")
    print("  AUTOMAPPER_RULES    Directory holding per-tile-set rule folders")


def validate_file(path: str, label: str):
    """Validate file exists and is readable."""
    p = Path(path)
    if not p.exists():
        print(f"Error: {label} file not found: {path}")
        sys.exit(1)

    if not p.is_file():
        print(f"Error: {label} path is not a file: {path}")
        sys.exit(1)


def main():
    """Main entry point for the editor."""
    tileset, layer = parse_arguments()

    if tileset:
        validate_file(tileset, "Tile set")
    if layer:
        validate_file(layer, "Layer JSON")

    app = EditorApplication(tileset, get_rules_root())

    if layer:
        app.load_layer(layer)

    app.run()


if __name__ == "__main__":
    main()
