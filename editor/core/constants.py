"""
Tile Auto-Mapper - Editor Constants

All configuration constants for the editor including file extensions,
rule storage paths, dimensions, colors, and layout values.
"""

# Rule files
EDITOR_RULE_EXTENSION = ".editorrulejson"
SCRIPT_MODULE_EXTENSION = ".automod"
LEGACY_RULES_EXTENSION = ".rules"
RULE_EXTENSIONS = (EDITOR_RULE_EXTENSION, SCRIPT_MODULE_EXTENSION, LEGACY_RULES_EXTENSION)

RULES_DIR = "editor/rules"
MODULE_CACHE_DIR = ".cache"

# Auto mapper
DEFAULT_SEED = 0
TILES_PER_ROW = 16
NUM_TILES = TILES_PER_ROW * TILES_PER_ROW

# Background tasks
MAX_BACKGROUND_WORKERS = 4
MAX_NOTIFICATIONS = 50
NOTIFICATION_SECONDS = 4.0

# Display
TILE_SIZE = 16
DEFAULT_LAYER_WIDTH = 40
DEFAULT_LAYER_HEIGHT = 30
MAX_UNDO_LEVELS = 50

# UI Layout
PICKER_WIDTH = 272
TOOLBAR_HEIGHT = 40
STATUS_HEIGHT = 30
CANVAS_OFFSET_X = PICKER_WIDTH
CANVAS_OFFSET_Y = TOOLBAR_HEIGHT

# Colors
COLOR_BG = (48, 48, 48)
COLOR_TOOLBAR = (32, 32, 32)
COLOR_STATUS = (32, 32, 32)
COLOR_PICKER_BG = (40, 40, 40)
COLOR_GRID = (80, 80, 80)
COLOR_SELECTION = (255, 255, 0)
COLOR_TEXT = (255, 255, 255)
COLOR_WARNING = (255, 200, 80)
COLOR_ERROR = (255, 96, 96)
COLOR_EMPTY_TILE = (24, 24, 24)
