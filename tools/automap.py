#!/usr/bin/env python3
"""
Tile Auto-Mapper - Batch Auto-Mapper

Runs an auto-mapper rule file over a layer JSON file and writes the result,
optionally rendering it with a tile set.
"""

import argparse
import sys
from pathlib import Path

from editor.algorithms.auto_mapper_interface import AutoMapperError
from editor.controllers.auto_mapper import load_rule_file
from editor.core.constants import DEFAULT_SEED
from tilemap.core.tileset import TilesetData
from tilemap.formats.layer_data import TileLayerData
from tilemap.rendering.pil_renderer import render_layer_to_image


def select_rule(rules: dict, config: str | None):
    """Pick the rule to run from a loaded rule file."""
    if config is None:
        if len(rules) > 1:
            names = ", ".join(rules)
            raise ValueError(f"Rule file has several rules, pick one with --config: {names}")
        return next(iter(rules.values()))

    for name, rule in rules.items():
        if name == config or name.rsplit("/", 1)[-1] == config:
            return rule
    raise ValueError(f"No rule named {config!r}; available: {', '.join(rules)}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Run an auto-mapper rule over a tile layer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Auto-map a whole layer in place:
    automap layer.json grass.editorrulejson --seed 7

  Only re-evaluate a region and write to another file:
    automap layer.json grass.rules --config Grass --rect 4 4 8 8 -o out.json

  Render the result:
    automap layer.json grass.automod --tileset tiles.png --render out.png
        """,
    )
    parser.add_argument("layer", help="Path to layer JSON file")
    parser.add_argument("rule", help="Rule file (.editorrulejson, .automod or .rules)")
    parser.add_argument(
        "--seed", type=int, default=DEFAULT_SEED, help=f"Seed (default: {DEFAULT_SEED})"
    )
    parser.add_argument(
        "--rect",
        type=int,
        nargs=4,
        metavar=("X", "Y", "W", "H"),
        help="Sub-rectangle to re-evaluate (default: whole layer)",
    )
    parser.add_argument("--config", help="Configuration name inside a .rules file")
    parser.add_argument("--tileset", help="Tile set PNG used for --render")
    parser.add_argument("--render", help="Write a PNG preview of the result")
    parser.add_argument("-o", "--output", help="Output layer JSON (default: overwrite input)")

    args = parser.parse_args(argv)

    if args.render and not args.tileset:
        parser.error("--render requires --tileset")

    layer = TileLayerData()
    try:
        layer.load(args.layer)
    except (OSError, ValueError, KeyError) as e:
        print(f"Error: Failed to load layer {args.layer}: {e}")
        return 1

    try:
        rule = select_rule(load_rule_file(args.rule), args.config)
        action = rule.run_on_layer(args.seed, layer, tuple(args.rect) if args.rect else None)
    except (AutoMapperError, ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1

    action.apply(layer)
    print(f"{rule.name}: {action.changed_count()} tiles changed ({action.undo_info()})")

    output = args.output or args.layer
    layer.save(output)
    print(f"Saved: {output}")

    if args.render:
        try:
            tileset = TilesetData.load(args.tileset)
        except (OSError, ValueError) as e:
            print(f"Error: Failed to load tile set {args.tileset}: {e}")
            return 1
        img = render_layer_to_image(layer, tileset)
        Path(args.render).parent.mkdir(parents=True, exist_ok=True)
        img.save(args.render)
        print(f"Saved: {args.render} ({img.width}x{img.height})")

    return 0


if __name__ == "__main__":
    sys.exit(main())
