"""Hex terrain generation with Wave Function Collapse."""

__version__ = "0.1.0"
