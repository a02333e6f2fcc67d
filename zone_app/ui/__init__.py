"""Qt UI components for the participant application.

``ParticipantMainWindow`` lives in ``zone_app.ui.participant_window`` and is
imported from there so the timers can be used without QtWebEngine.
"""

from .dialog_helpers import show_info, show_warning
from .question_renderer import render_question_with_options
from .session_timers import SessionTimers

__all__ = [
    "SessionTimers",
    "show_info",
    "show_warning",
    "render_question_with_options",
]
