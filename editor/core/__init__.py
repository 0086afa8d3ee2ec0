"""
Tile Auto-Mapper - Core Module

Editor-wide constants.
"""

from . import constants

__all__ = ['constants']
