"""Qt stylesheets for the participant window."""

from .color_palette import ColorPalette, Theme

# Seconds left at which the countdown turns to the warning color.
COUNTDOWN_WARNING_SECONDS = 5


class Styles:
    """Stylesheet builders keyed on the current theme."""

    @staticmethod
    def get_main_window_style(theme: Theme = Theme.LIGHT) -> str:
        def c(role: str) -> str:
            return ColorPalette.get(role, theme)

        return f"""
            QMainWindow, QWidget {{ background: {c("background")}; color: {c("text")}; font-size: 14px; }}
            QPushButton {{
                background: {c("button")}; border: 1px solid {c("border")}; border-radius: 8px;
                min-height: 40px; font-weight: bold;
            }}
            QPushButton:hover:enabled {{ background: {c("button_hover")}; }}
            QPushButton:checked {{ background: {c("accent")}; color: {c("on_accent")}; }}
            QPushButton:disabled {{ color: {c("text_muted")}; }}
            QGroupBox {{ background: {c("panel")}; border: 1px solid {c("border")}; border-radius: 6px; margin-top: 12px; }}
            QGroupBox::title {{ subcontrol-origin: margin; left: 8px; font-weight: bold; }}
            QListWidget {{ background: {c("panel")}; border: none; }}
            QProgressBar {{ border: 1px solid {c("border")}; border-radius: 4px; max-height: 10px; }}
            QProgressBar::chunk {{ background: {c("accent")}; }}
        """

    @staticmethod
    def get_header_label_style() -> str:
        return "font-size: 16pt; font-weight: bold;"

    @staticmethod
    def get_countdown_style(remaining_seconds: int, theme: Theme = Theme.LIGHT) -> str:
        if remaining_seconds <= 0:
            role = "error"
        elif remaining_seconds <= COUNTDOWN_WARNING_SECONDS:
            role = "warning"
        else:
            role = "accent"
        return f"color: {ColorPalette.get(role, theme)}; font-weight: bold; padding: 2px 6px;"

    @staticmethod
    def get_outcome_style(is_correct: bool | None, theme: Theme = Theme.LIGHT) -> str:
        """Green for a correct answer, red for a wrong one, muted while undecided."""
        if is_correct is None:
            return f"color: {ColorPalette.get('text_muted', theme)};"
        role = "success" if is_correct else "error"
        return f"color: {ColorPalette.get(role, theme)}; font-weight: bold;"
