"""PIL-based rendering of tile layers."""
