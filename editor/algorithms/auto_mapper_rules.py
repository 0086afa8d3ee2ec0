"""
Tile Auto-Mapper - Editor Rules

Declarative rule sets authored in the editor and their evaluator.

A rule set is an ordered list of runs. Each run is one full pass over the
window: cells are visited row by row, and every cell is tested against the
run's rule tiles in declared order. Writes happen in place, so later rule
tiles and later cells in the same pass see earlier writes, and every run sees
the committed result of all prior runs.

A rule tile places one tile where all of its check groups hold. Check groups
are keyed by a non-zero neighbour offset and are always AND-combined. Each
check group is a chain of tile tests against the same neighbour, combined
right to left with OR/AND:

    t0 op0 (t1 op1 (t2 ...))
"""

import random
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

from tilemap.core.hashing import canonical_json_hash
from tilemap.core.tiles import TILE_INDEX_MAX, Tile, TileFlags

from .auto_mapper_interface import (
    DESIGN_TILE_LAYER,
    AutoMapperMode,
    DesignTileLayerInput,
    DesignTileLayerOutput,
    RuleFormatError,
    UnsupportedModeError,
)

# Randomness is a numerator out of this maximum (inclusive)
PROBABILITY_MAX = 2**32 - 1

# Smallest padding requested by any rule set that checks neighbours
MIN_NEIGHBOURING_TILES = 3

# Longest check chain accepted for one offset. Chains persist as nested JSON
# objects, so this bounds the nesting depth of saved rule files.
MAX_CHAIN_LENGTH = 64

_OFFSET_STRUCT = struct.Struct("<ii")


# =============================================================================
# Value Types
# =============================================================================

@dataclass(frozen=True, order=True)
class TileOffset:
    """Relative neighbour position. Never (0, 0); the current tile is implicit."""

    x: int
    y: int

    def __post_init__(self):
        if self.x == 0 and self.y == 0:
            raise ValueError("Both components were 0")

    def to_text(self) -> str:
        return f"{self.x},{self.y}"

    @classmethod
    def from_text(cls, text: str) -> "TileOffset":
        """
        Parse the "dx,dy" text encoding.

        Raises:
            ValueError: If the text is malformed or both components are 0
        """
        x_str, sep, y_str = text.partition(",")
        if not sep:
            raise ValueError(f"couldn't split coordinates: {text!r}")
        try:
            x = int(x_str.strip())
        except ValueError:
            raise ValueError(f"couldn't parse x: {text!r}") from None
        try:
            y = int(y_str.strip())
        except ValueError:
            raise ValueError(f"couldn't parse y: {text!r}") from None
        return cls(x, y)

    def to_bytes(self) -> bytes:
        return _OFFSET_STRUCT.pack(self.x, self.y)

    @classmethod
    def from_bytes(cls, data: bytes) -> "TileOffset":
        x, y = _OFFSET_STRUCT.unpack(data)
        return cls(x, y)

    def reach(self) -> int:
        return max(abs(self.x), abs(self.y))


class Operator(Enum):
    OR = "Or"
    AND = "And"


class SpawnType(Enum):
    # can _only_ overwrite existing tiles
    DEFAULT = "Default"
    # can spawn new tiles (even if there was none before)
    SPAWNABLE = "Spawnable"
    # only spawns if there was no tile before, else does nothing
    SPAWN_ONLY = "SpawnOnly"


@dataclass(frozen=True)
class TileExpr:
    """Tile identity test. tile_flags=None skips the flag comparison."""

    tile_index: int
    tile_flags: Optional[TileFlags] = None

    def matches(self, tile: Tile) -> bool:
        return self.tile_index == tile.index and (
            self.tile_flags is None or self.tile_flags == tile.flags
        )


@dataclass
class CheckGroup:
    """One link of a check chain against a single neighbour offset."""

    tile: TileExpr
    negate: bool = False
    operation: Optional[tuple[Operator, "CheckGroup"]] = None

    def links(self) -> Iterator["CheckGroup"]:
        node: Optional[CheckGroup] = self
        while node is not None:
            yield node
            node = node.operation[1] if node.operation else None

    @classmethod
    def from_chain(
        cls, entries: list[tuple[bool, TileExpr, Optional[Operator]]]
    ) -> "CheckGroup":
        """
        Build a chain from (negate, test, operator-to-next) entries.

        The operator of the last entry is ignored.

        Raises:
            RuleFormatError: If the chain is longer than MAX_CHAIN_LENGTH
        """
        if not entries:
            raise ValueError("A check group needs at least one test")
        _check_chain_length(len(entries))
        node: Optional[CheckGroup] = None
        for i in range(len(entries) - 1, -1, -1):
            negate, test, op = entries[i]
            operation = (op or Operator.OR, node) if node is not None else None
            node = cls(tile=test, negate=negate, operation=operation)
        return node


@dataclass
class RuleTile:
    """A candidate tile placed where all check groups hold."""

    tile_index: int
    tile_flags: TileFlags = TileFlags.NONE
    tile_type: SpawnType = SpawnType.DEFAULT
    # None = always
    randomness: Optional[int] = None
    check_groups: dict[TileOffset, CheckGroup] = field(default_factory=dict)


@dataclass
class RuleRun:
    tiles: list[RuleTile] = field(default_factory=list)


# =============================================================================
# Evaluation
# =============================================================================

def eval_check_group(
    x: int,
    y: int,
    width: int,
    height: int,
    tiles: list[Tile],
    offset: TileOffset,
    group: CheckGroup,
) -> bool:
    """
    Evaluate a check chain for the cell (x, y).

    Every link is tested against the same neighbour. A neighbour outside the
    window never matches (so a negated test against it holds). All links are
    evaluated, then combined right to left.
    """
    real_x = x + offset.x
    real_y = y + offset.y
    neighbour = None
    if 0 <= real_x < width and 0 <= real_y < height:
        neighbour = tiles[real_y * width + real_x]

    results: list[bool] = []
    operators: list[Operator] = []
    for link in group.links():
        result = neighbour is not None and link.tile.matches(neighbour)
        results.append(result != link.negate)
        if link.operation:
            operators.append(link.operation[0])

    combined = results[-1]
    for i in range(len(operators) - 1, -1, -1):
        if operators[i] is Operator.OR:
            combined = results[i] or combined
        else:
            combined = results[i] and combined
    return combined


def check_groups_hold(
    x: int, y: int, width: int, height: int, tiles: list[Tile], rule_tile: RuleTile
) -> bool:
    """AND across all check groups. No check groups holds everywhere."""
    return all(
        eval_check_group(x, y, width, height, tiles, offset, group)
        for offset, group in rule_tile.check_groups.items()
    )


def spawn_allowed(tile_type: SpawnType, current: Tile) -> bool:
    """Whether a rule tile of this type may write over `current`."""
    can_spawn = tile_type is SpawnType.SPAWNABLE
    must_spawn = tile_type is SpawnType.SPAWN_ONLY
    occupied = current.index != 0
    return can_spawn or (must_spawn and not occupied) or (not must_spawn and occupied)


def passes_probability(seed: int, randomness: Optional[int]) -> bool:
    """
    Probability gate for a write.

    The generator is reseeded from the caller's seed at every check, so all
    draws within one call roll the same value.
    """
    rng = random.Random(seed)
    rand_val = rng.randint(1, PROBABILITY_MAX)
    return randomness is None or rand_val <= randomness


# =============================================================================
# Rule Set
# =============================================================================

class EditorRule:
    """A rule set authored in the editor; implements AutoMapperInterface."""

    def __init__(self, runs: list[RuleRun] | None = None):
        self.runs: list[RuleRun] = runs if runs is not None else [RuleRun()]

    def required_neighbouring_tiles(self) -> Optional[int]:
        """
        Padding this rule set needs around an edited region.

        Returns:
            max(3, 1 + largest offset component), or None if no rule tile
            checks any neighbour
        """
        reaches = [
            offset.reach()
            for run in self.runs
            for rule_tile in run.tiles
            for offset in rule_tile.check_groups
        ]
        if not reaches:
            return None
        return max(MIN_NEIGHBOURING_TILES, 1 + max(reaches))

    def supported_modes(self) -> list[AutoMapperMode]:
        return [AutoMapperMode(DESIGN_TILE_LAYER, self.required_neighbouring_tiles())]

    def run(self, seed: int, input: DesignTileLayerInput) -> DesignTileLayerOutput:
        if input.kind != DESIGN_TILE_LAYER:
            raise UnsupportedModeError(f"Editor rules cannot run in mode {input.kind}")

        width = input.width
        height = input.height
        tiles = list(input.tiles)

        for run in self.runs:
            for y in range(height):
                for x in range(width):
                    for rule_tile in run.tiles:
                        if not check_groups_hold(x, y, width, height, tiles, rule_tile):
                            continue
                        cell = y * width + x
                        if not spawn_allowed(rule_tile.tile_type, tiles[cell]):
                            continue
                        if passes_probability(seed, rule_tile.randomness):
                            tiles[cell] = Tile(rule_tile.tile_index, rule_tile.tile_flags)

        return DesignTileLayerOutput(tiles)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "runs": [
                {"tiles": [_rule_tile_to_dict(t) for t in run.tiles]}
                for run in self.runs
            ]
        }

    @classmethod
    def from_dict(cls, data: Any) -> "EditorRule":
        """
        Decode a rule set from its JSON tree.

        Raises:
            RuleFormatError: If the tree is malformed
        """
        _require(isinstance(data, dict), "rule must be an object")
        runs_data = data.get("runs")
        _require(isinstance(runs_data, list), "rule needs a 'runs' list")

        runs = []
        for run_idx, run_data in enumerate(runs_data):
            _require(
                isinstance(run_data, dict) and isinstance(run_data.get("tiles"), list),
                f"run {run_idx} needs a 'tiles' list",
            )
            runs.append(RuleRun([_rule_tile_from_dict(t) for t in run_data["tiles"]]))
        return cls(runs)

    def rule_hash(self) -> str:
        """Content identity of the serialized rule (cache/dedup only)."""
        return canonical_json_hash(self.to_dict())


def _require(condition: bool, message: str):
    if not condition:
        raise RuleFormatError(message)


def _check_chain_length(length: int):
    _require(
        length <= MAX_CHAIN_LENGTH,
        f"check chain has {length} links, at most {MAX_CHAIN_LENGTH} are allowed",
    )


def _tile_index(value: Any, what: str) -> int:
    _require(
        isinstance(value, int) and not isinstance(value, bool)
        and 0 <= value <= TILE_INDEX_MAX,
        f"{what} must be an integer 0-{TILE_INDEX_MAX}, got {value!r}",
    )
    return value


def _tile_flags(value: Any, what: str) -> TileFlags:
    _require(
        isinstance(value, int) and not isinstance(value, bool) and value >= 0,
        f"{what} must be a non-negative integer, got {value!r}",
    )
    return TileFlags(value)


def _check_group_to_dict(group: CheckGroup) -> dict[str, Any]:
    # Built from the tail forward so long chains never recurse
    links = list(group.links())
    _check_chain_length(len(links))
    result: Optional[dict[str, Any]] = None
    for link in reversed(links):
        flags = link.tile.tile_flags
        result = {
            "negate": link.negate,
            "tile": {
                "tile_index": link.tile.tile_index,
                "tile_flags": None if flags is None else int(flags),
            },
            "operation": [link.operation[0].value, result] if link.operation else None,
        }
    return result


def _check_group_from_dict(data: Any) -> CheckGroup:
    entries: list[tuple[bool, TileExpr, Optional[Operator]]] = []
    node = data
    while node is not None:
        _require(isinstance(node, dict), "check group must be an object")
        tile = node.get("tile")
        _require(isinstance(tile, dict), "check group needs a 'tile' object")
        flags = tile.get("tile_flags")
        expr = TileExpr(
            _tile_index(tile.get("tile_index"), "check tile index"),
            None if flags is None else _tile_flags(flags, "check tile flags"),
        )

        operation = node.get("operation")
        op = None
        next_node = None
        if operation is not None:
            _require(
                isinstance(operation, list) and len(operation) == 2,
                "operation must be [operator, check group]",
            )
            try:
                op = Operator(operation[0])
            except ValueError:
                raise RuleFormatError(f"unknown operator {operation[0]!r}") from None
            next_node = operation[1]
            _require(next_node is not None, "operation is missing its check group")

        negate = node.get("negate", False)
        _require(
            isinstance(negate, bool), f"negate must be true or false, got {negate!r}"
        )
        entries.append((negate, expr, op))
        _check_chain_length(len(entries))
        node = next_node

    return CheckGroup.from_chain(entries)


def _rule_tile_to_dict(rule_tile: RuleTile) -> dict[str, Any]:
    return {
        "tile_index": rule_tile.tile_index,
        "tile_flags": int(rule_tile.tile_flags),
        "tile_type": rule_tile.tile_type.value,
        "randomness": rule_tile.randomness,
        "check_groups": {
            offset.to_text(): _check_group_to_dict(rule_tile.check_groups[offset])
            for offset in sorted(rule_tile.check_groups)
        },
    }


def _rule_tile_from_dict(data: Any) -> RuleTile:
    _require(isinstance(data, dict), "rule tile must be an object")

    try:
        tile_type = SpawnType(data.get("tile_type", SpawnType.DEFAULT.value))
    except ValueError:
        raise RuleFormatError(f"unknown tile type {data.get('tile_type')!r}") from None

    randomness = data.get("randomness")
    if randomness is not None:
        _require(
            isinstance(randomness, int) and not isinstance(randomness, bool)
            and 1 <= randomness <= PROBABILITY_MAX,
            f"randomness must be 1-{PROBABILITY_MAX} or null, got {randomness!r}",
        )

    groups_data = data.get("check_groups", {})
    _require(isinstance(groups_data, dict), "check_groups must be an object")
    check_groups: dict[TileOffset, CheckGroup] = {}
    for key in sorted(groups_data, key=_offset_sort_key):
        try:
            offset = TileOffset.from_text(key)
        except ValueError as e:
            raise RuleFormatError(f"bad check group offset: {e}") from None
        check_groups[offset] = _check_group_from_dict(groups_data[key])

    return RuleTile(
        tile_index=_tile_index(data.get("tile_index"), "tile_index"),
        tile_flags=_tile_flags(data.get("tile_flags", 0), "tile_flags"),
        tile_type=tile_type,
        randomness=randomness,
        check_groups=check_groups,
    )


def _offset_sort_key(text: str) -> tuple:
    # Malformed keys sort last and are reported when parsed
    try:
        offset = TileOffset.from_text(text)
    except ValueError:
        return (1, 0, 0, text)
    return (0, offset.x, offset.y, text)
