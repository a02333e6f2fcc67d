"""Light and dark color roles used by the participant window."""

from __future__ import annotations

from enum import Enum


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


# role -> (light, dark)
_ROLES: dict[str, tuple[str, str]] = {
    "text": ("#000000", "#F5F5F5"),
    "text_muted": ("#666666", "#AAAAAA"),
    "background": ("#FFFFFF", "#1E1E1E"),
    "panel": ("#F5F5F5", "#2D2D2D"),
    "border": ("#D1D1D1", "#555555"),
    "accent": ("#0078D4", "#4A9EFF"),
    "on_accent": ("#FFFFFF", "#000000"),
    "button": ("#F5F5F5", "#3A3A3A"),
    "button_hover": ("#E8E8E8", "#505050"),
    "success": ("#107C10", "#6FCF6F"),
    "warning": ("#FFB900", "#FFC83D"),
    "error": ("#D13438", "#FF6B6B"),
}


class ColorPalette:
    """Resolves a color role for a theme."""

    @staticmethod
    def get(role: str, theme: Theme = Theme.LIGHT) -> str:
        light, dark = _ROLES[role]
        return dark if theme is Theme.DARK else light
