"""Styling module for the Zone competition window."""

from .color_palette import ColorPalette, Theme

__all__ = ["ColorPalette", "Theme"]
