"""Markdown + LaTeX rendering of question prompts and answer options.

Prompts are rendered to HTML on the host (``question_html`` in the API) and
in the participant window; MathJax typesets ``$...$`` at display time, so
both show the same markup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from html import escape

from markdown_it import MarkdownIt

MATHJAX_URL = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"
EMPTY_PROMPT_HTML = "<p><em>No question text.</em></p>"

_PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
  body {{ font-family: 'Segoe UI', system-ui, sans-serif; margin: 0; padding: 0.75rem 1rem;
         font-size: {font_size}pt; line-height: 1.45; }}
  .prompt {{ margin-bottom: 0.75rem; }}
  .option {{ display: flex; gap: 0.5rem; padding: 0.25rem 0.5rem; border-radius: 6px; }}
  .option .letter {{ font-weight: bold; min-width: 1.5em; }}
  .option.correct {{ background: #dcfce7; color: #166534; font-weight: bold; }}
  .option.selected {{ outline: 2px solid #0078d4; }}
</style>
<script>
  window.MathJax = {{ tex: {{ inlineMath: [['$', '$']], displayMath: [['$$', '$$']] }} }};
</script>
<script defer src="{mathjax_url}"></script>
</head>
<body>
{body}
</body>
</html>"""


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Renders question markup; raw HTML in the source is escaped unless allowed."""

    allow_raw_html: bool = False
    _md: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"html": self.allow_raw_html}).enable(["table", "strikethrough"])

    def render_fragment(self, markdown_text: str) -> str:
        text = markdown_text.strip()
        return self._md.render(text) if text else EMPTY_PROMPT_HTML

    def render_option(self, letter: str, text: str, *, correct: bool = False, selected: bool = False) -> str:
        classes = "option"
        if correct:
            classes += " correct"
        if selected:
            classes += " selected"
        body = self._md.renderInline(text.strip()) or "(empty)"
        return f'<div class="{classes}"><span class="letter">{escape(letter)}.</span><span>{body}</span></div>'

    def render_page(self, body_html: str, title: str = "Zone", font_size: int = 14) -> str:
        return _PAGE_TEMPLATE.format(
            title=escape(title),
            font_size=font_size,
            mathjax_url=MATHJAX_URL,
            body=body_html,
        )


# Shared by the API threads and the Qt thread; rendering does not mutate it.
renderer = MarkdownMathRenderer()
