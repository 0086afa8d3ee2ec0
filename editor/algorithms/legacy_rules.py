"""
Tile Auto-Mapper - Legacy Rules

Loader and evaluator for classic text `.rules` auto-mapper files:

    [Grass]
    Index 1
    Pos 0 -1 EMPTY
    Random 25%
    NewRun
    Index 2 XFLIP
    Pos -1 0 INDEX 1 OR 3 ROTATE
    Pos 1 0 NOTINDEX 0
    Modulo 2 1 0 0
    NoDefaultRule
    NoLayerCopy

Every `[Name]` section is an independent configuration and becomes its own
rule. Randomness is derived from a location hash instead of a generator, so a
tile's roll only depends on the seed, the run, the rule and its layer position.
"""

from dataclasses import dataclass, field
from enum import Enum

from tilemap.core.hashing import generate_hash_for
from tilemap.core.tiles import ORIENTATION_FLAGS, Tile, TileFlags

from .auto_mapper_interface import (
    DESIGN_TILE_LAYER,
    AutoMapperMode,
    DesignTileLayerInput,
    DesignTileLayerOutput,
    RuleFormatError,
    UnsupportedModeError,
)

HASH_MAX = 65536
NEIGHBOURS_EXTRA = 4

_U32 = 0xFFFFFFFF


# =============================================================================
# Location Hash
# =============================================================================

def hash_u32(num: int) -> int:
    """triple32inc integer hash (32-bit wrapping arithmetic)."""
    num = (num + 1) & _U32
    num ^= num >> 17
    num = (num * 0xED5AD4BB) & _U32
    num ^= num >> 11
    num = (num * 0xAC4C1B51) & _U32
    num ^= num >> 15
    num = (num * 0x31848BAB) & _U32
    num ^= num >> 14
    return num


def hash_location(seed: int, run: int, rule: int, x: int, y: int) -> int:
    """Deterministic roll in [0, HASH_MAX) for one rule at one position."""
    prime = 31
    h = 1
    for value in (seed, run, rule, x, y):
        h = (h * prime + hash_u32(value & _U32)) & _U32
    h = hash_u32((h * prime) & _U32)
    return h % HASH_MAX


# =============================================================================
# Configuration Model
# =============================================================================

class IndexType(Enum):
    NO_RULE = 0
    INDEX = 1
    NOT_INDEX = 2


@dataclass
class IndexInfo:
    id: int
    flags: TileFlags = TileFlags.NONE
    test_flags: bool = False

    def matches(self, index: int, flags: TileFlags) -> bool:
        return index == self.id and (not self.test_flags or flags == self.flags)


@dataclass
class PosRule:
    x: int
    y: int
    index_type: IndexType
    indices: list[IndexInfo]


@dataclass
class ModuloRule:
    mod_x: int
    mod_y: int
    offset_x: int
    offset_y: int


@dataclass
class IndexRule:
    id: int
    flags: TileFlags = TileFlags.NONE
    rules: list[PosRule] = field(default_factory=list)
    random_probability: float = 1.0
    modulo_rules: list[ModuloRule] = field(default_factory=list)
    default_rule: bool = True
    skip_empty: bool = False
    skip_full: bool = False


@dataclass
class LegacyRun:
    index_rules: list[IndexRule] = field(default_factory=list)
    automap_copy: bool = True


@dataclass
class Configuration:
    name: str
    runs: list[LegacyRun] = field(default_factory=lambda: [LegacyRun()])
    start_x: int = 0
    start_y: int = 0
    end_x: int = 0
    end_y: int = 0


# =============================================================================
# Parsing
# =============================================================================

def _check_index_flags(flags: TileFlags, name: str, check_for_none: bool) -> TileFlags:
    if name == "XFLIP":
        flags |= TileFlags.XFLIP
    elif name == "YFLIP":
        flags |= TileFlags.YFLIP
    elif name == "ROTATE":
        flags |= TileFlags.ROTATE
    elif name == "NONE" and check_for_none:
        flags = TileFlags.NONE
    return flags


def _parse_int(token: str, line: str, what: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise RuleFormatError(f'line "{line}" failed to find {what}') from None


def _parse_index_list(tokens: list[str], line: str) -> list[IndexInfo]:
    """
    Parse `id [FLAG [FLAG [FLAG]]] [OR id ...]` after INDEX/NOTINDEX.

    The first flag word may be NONE, which forces an exact "no flags" match.
    Further flag words only apply once a real flag was given; anything else
    ends the list.
    """
    indices: list[IndexInfo] = []
    i = 0
    while i < len(tokens):
        info = IndexInfo(_parse_int(tokens[i], line, "id"))
        i += 1

        continue_with_or = False
        for slot in range(4):
            if i >= len(tokens):
                break
            word = tokens[i]
            if word == "OR":
                i += 1
                continue_with_or = True
                break
            if slot == 0:
                info.flags = _check_index_flags(info.flags, word, True)
                info.test_flags = not (info.flags == TileFlags.NONE and word != "NONE")
                i += 1
            elif slot < 3 and info.flags != TileFlags.NONE:
                info.flags = _check_index_flags(info.flags, word, False)
                i += 1
            else:
                break

        indices.append(info)
        if not continue_with_or:
            break
    return indices


def _parse_pos(line: str, conf: Configuration, index_rule: IndexRule):
    tokens = line.split()
    if len(tokens) < 4:
        raise RuleFormatError(f'line "{line}" failed to find index type')
    x = _parse_int(tokens[1], line, "x")
    y = _parse_int(tokens[2], line, "y")
    type_str = tokens[3]

    if type_str == "EMPTY":
        index_type = IndexType.INDEX
        indices = [IndexInfo(0)]
    elif type_str == "FULL":
        index_type = IndexType.NOT_INDEX
        indices = [IndexInfo(0)]
    elif type_str in ("INDEX", "NOTINDEX"):
        index_type = IndexType.INDEX if type_str == "INDEX" else IndexType.NOT_INDEX
        indices = _parse_index_list(tokens[4:], line)
    else:
        return

    index_rule.rules.append(PosRule(x, y, index_type, indices))

    if x == 0 and y == 0:
        for index in indices:
            if index.id == 0 and index_type is IndexType.INDEX:
                # "Pos 0 0 INDEX 0" forces the tile to be empty
                index_rule.skip_full = True
            elif (index.id > 0 and index_type is IndexType.INDEX) or (
                index.id == 0 and index_type is IndexType.NOT_INDEX
            ):
                index_rule.skip_empty = True

    conf.start_x = min(conf.start_x, x)
    conf.start_y = min(conf.start_y, y)
    conf.end_x = max(conf.end_x, x)
    conf.end_y = max(conf.end_y, y)


def _parse_random(line: str) -> float:
    tokens = line.split()
    if len(tokens) < 2:
        raise RuleFormatError(f'line "{line}" failed to find value')
    raw = tokens[1]
    percent = raw.endswith("%") or (len(tokens) > 2 and tokens[2] == "%")
    try:
        value = float(raw.rstrip("%"))
    except ValueError:
        raise RuleFormatError(f'line "{line}" failed to find value') from None
    if percent:
        return value / 100.0
    if value == 0:
        raise RuleFormatError(f'line "{line}": Random value must not be 0')
    return 1.0 / value


def _add_default_rules(conf: Configuration):
    for run in conf.runs:
        for index_rule in run.index_rules:
            found = False
            # Only the first "Pos 0 0 INDEX" rule is inspected
            for rule in index_rule.rules:
                if rule.x == 0 and rule.y == 0 and rule.index_type is IndexType.INDEX:
                    found = any(index.id == 0 for index in rule.indices)
                    break

            if not found and index_rule.default_rule:
                index_rule.rules.append(PosRule(0, 0, IndexType.NOT_INDEX, [IndexInfo(0)]))
                index_rule.skip_empty = True
                index_rule.skip_full = False

            if index_rule.skip_empty and index_rule.skip_full:
                index_rule.skip_empty = False
                index_rule.skip_full = False


def parse_legacy_rules(text: str) -> dict[str, Configuration]:
    """
    Parse a `.rules` file into its configurations, in file order.

    Raises:
        RuleFormatError: If a recognized line is malformed
    """
    configs: dict[str, Configuration] = {}
    conf: Configuration | None = None
    run: LegacyRun | None = None
    index_rule: IndexRule | None = None

    for raw_line in text.splitlines():
        line = raw_line.rstrip("\r\n")
        # skip blank lines, comments and indented lines
        if not line or line.startswith("#") or line[0].isspace():
            continue

        if line.startswith("[") and line.endswith("]"):
            name = line[1:-1]
            unique = name
            suffix = 2
            while unique in configs:
                unique = f"{name} ({suffix})"
                suffix += 1
            conf = Configuration(unique)
            configs[unique] = conf
            run = conf.runs[0]
            index_rule = None
        elif conf is None:
            continue
        elif line.startswith("NewRun"):
            run = LegacyRun()
            conf.runs.append(run)
            index_rule = None
        elif line.startswith("Index"):
            tokens = line.split()
            if len(tokens) < 2:
                raise RuleFormatError(f'line "{line}" failed to find id')
            rule_id = _parse_int(tokens[1], line, "id")
            flags = TileFlags.NONE
            for word in tokens[2:5]:
                flags = _check_index_flags(flags, word, False)
            index_rule = IndexRule(rule_id, flags)
            run.index_rules.append(index_rule)
        elif index_rule is not None and line.startswith("Pos"):
            _parse_pos(line, conf, index_rule)
        elif index_rule is not None and line.startswith("Random"):
            index_rule.random_probability = _parse_random(line)
        elif index_rule is not None and line.startswith("Modulo"):
            tokens = line.split()
            if len(tokens) < 5:
                raise RuleFormatError(f'line "{line}" failed: expected 4 values')
            mod_x, mod_y, off_x, off_y = (
                _parse_int(t, line, "modulo value") for t in tokens[1:5]
            )
            index_rule.modulo_rules.append(
                ModuloRule(mod_x or 1, mod_y or 1, off_x, off_y)
            )
        elif index_rule is not None and line.startswith("NoDefaultRule"):
            index_rule.default_rule = False
        elif line.startswith("NoLayerCopy"):
            run.automap_copy = False

    for conf in configs.values():
        _add_default_rules(conf)

    return configs


# =============================================================================
# Evaluation
# =============================================================================

class LegacyRule:
    """One configuration of a `.rules` file; implements AutoMapperInterface."""

    def __init__(self, config: Configuration, source: bytes = b""):
        self.config = config
        self.source = source

    def expected_neighbours(self) -> int:
        size = max(
            self.config.end_x - self.config.start_x,
            self.config.end_y - self.config.start_y,
            1,
        )
        return size + NEIGHBOURS_EXTRA

    def supported_modes(self) -> list[AutoMapperMode]:
        return [AutoMapperMode(DESIGN_TILE_LAYER, self.expected_neighbours())]

    def rule_hash(self) -> str:
        return generate_hash_for(self.source + b"\0" + self.config.name.encode("utf-8"))

    def run(self, seed: int, input: DesignTileLayerInput) -> DesignTileLayerOutput:
        if input.kind != DESIGN_TILE_LAYER:
            raise UnsupportedModeError(f"Legacy rules cannot run in mode {input.kind}")

        width = input.width
        height = input.height
        tiles = list(input.tiles)
        prev_tiles = list(tiles)

        # The halo of a padded window is only read, never written back
        extra = NEIGHBOURS_EXTRA
        x_skip = 0 if input.off_x == 0 else extra
        y_skip = 0 if input.off_y == 0 else extra
        width_skip = 0 if input.full_width == input.off_x + width else extra
        height_skip = 0 if input.full_height == input.off_y + height else extra
        end_x = max(width - width_skip, 0)
        end_y = max(height - height_skip, 0)
        start_x = min(x_skip, end_x)
        start_y = min(y_skip, end_y)

        for run_idx, run in enumerate(self.config.runs):
            read_layer = list(tiles) if run.automap_copy else None

            for y in range(height):
                for x in range(width):
                    for rule_idx, index_rule in enumerate(run.index_rules):
                        self._apply_index_rule(
                            seed, run_idx, rule_idx, index_rule,
                            tiles, read_layer, x, y, width, height,
                            input.off_x, input.off_y,
                        )

        for y in range(height):
            for x in range(width):
                if x < start_x or x >= end_x or y < start_y or y >= end_y:
                    cell = y * width + x
                    tiles[cell] = prev_tiles[cell]

        return DesignTileLayerOutput(tiles)

    @staticmethod
    def _apply_index_rule(
        seed, run_idx, rule_idx, index_rule, tiles, read_layer,
        x, y, width, height, off_x, off_y,
    ):
        source = read_layer if read_layer is not None else tiles
        read_tile = source[y * width + x]

        if read_tile.index == 0 and index_rule.skip_empty:
            return
        if index_rule.skip_full and read_tile.index != 0:
            return

        for rule in index_rule.rules:
            check_x = x + rule.x
            check_y = y + rule.y
            if 0 <= check_x < width and 0 <= check_y < height:
                check_tile = source[check_y * width + check_x]
                check_index = check_tile.index
                check_flags = check_tile.flags & ORIENTATION_FLAGS
            else:
                check_index = -1
                check_flags = TileFlags.NONE

            matched = any(index.matches(check_index, check_flags) for index in rule.indices)
            if rule.index_type is IndexType.INDEX and not matched:
                return
            if rule.index_type is IndexType.NOT_INDEX and matched:
                return

        if index_rule.modulo_rules and not any(
            (x + off_x + m.offset_x) % m.mod_x == 0
            and (y + off_y + m.offset_y) % m.mod_y == 0
            for m in index_rule.modulo_rules
        ):
            return

        if index_rule.random_probability < 1.0:
            roll = hash_location(seed, run_idx, rule_idx, x + off_x, y + off_y)
            if roll >= HASH_MAX * index_rule.random_probability:
                return

        tiles[y * width + x] = Tile(index_rule.id & 0xFF, index_rule.flags)


def load_legacy_rules(data: bytes) -> dict[str, LegacyRule]:
    """
    Decode a `.rules` file into one rule per configuration.

    Raises:
        RuleFormatError: If the file is not valid text or a line is malformed
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise RuleFormatError(f"rules file is not valid UTF-8: {e}") from None
    return {
        name: LegacyRule(conf, data)
        for name, conf in parse_legacy_rules(text).items()
    }
