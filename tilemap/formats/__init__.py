"""Tile layer file formats."""

from .layer_data import TileLayerData

__all__ = ["TileLayerData"]
