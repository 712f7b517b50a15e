from __future__ import annotations

import markdown as md
from markupsafe import Markup
from pygments import highlight as pyg_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.util import ClassNotFound

MARKDOWN_EXTENSIONS = ["extra", "codehilite", "nl2br", "sane_lists", "smarty", "toc"]

_formatter = HtmlFormatter(nowrap=True)


def highlight(code: str | None, language: str = "") -> Markup:
    """Syntax highlight ``code`` and wrap it in <pre>.

    An unknown or empty language falls back to Pygments' guess.
    """
    code = code or ""
    try:
        lexer = get_lexer_by_name(language) if language else guess_lexer(code)
    except ClassNotFound:
        lexer = get_lexer_by_name("text")
    highlighted = pyg_highlight(code, lexer, _formatter)
    return Markup("<pre>" + highlighted.rstrip("\n") + "</pre>")


def markdown(text: str | None) -> Markup:
    # Raw HTML in the source is kept on purpose; content is authored by the kit team
    return Markup(md.markdown(text or "", extensions=MARKDOWN_EXTENSIONS))


def register(app) -> None:
    app.jinja_env.filters["highlight"] = highlight
    app.jinja_env.filters["markdown"] = markdown
