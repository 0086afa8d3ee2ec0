"""
Tile Auto-Mapper - Tile Map Package

Tiles, tile layers, tile sets and their file formats.
"""
