"""Question rendering utilities for the participant window."""

from __future__ import annotations

from typing import Sequence

from zone_app.constants.ui_constants import OPTION_LETTERS, WINDOW_TITLE
from zone_app.core.markdown_math_renderer import renderer


def render_question_with_options(
    prompt: str,
    options: Sequence[str],
    font_size: int = 14,
    correct_index: int | None = None,
    selected_index: int | None = None,
) -> str:
    """Render a prompt and its lettered options as one HTML page.

    The user's pick is outlined; once revealed, the correct option is highlighted.
    """
    parts = [f'<div class="prompt">{renderer.render_fragment(prompt)}</div>']
    for idx, option in enumerate(options):
        parts.append(
            renderer.render_option(
                OPTION_LETTERS[idx],
                option,
                correct=idx == correct_index,
                selected=idx == selected_index,
            )
        )
    return renderer.render_page("\n".join(parts), title=WINDOW_TITLE, font_size=font_size)
