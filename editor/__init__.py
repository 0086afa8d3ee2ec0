"""
Tile Auto-Mapper - Editor Package

Auto-mapper rule engines plus a Pygame-based preview editor.
"""
