"""
Console highlighting for rendered log lines.

Highlighting only runs where a line is written to a console; it never touches
the record. Markup expansion is lossy by nature: literal text that looks like a
``[tag]`` is consumed as markup, and unbalanced closing tags fall back to the
plain text.
"""

from __future__ import annotations

from collections.abc import Mapping

from rich.errors import MarkupError
from rich.highlighter import RegexHighlighter
from rich.text import Span, Text


class RunLogHighlighter(RegexHighlighter):
    base_style = "log."
    highlights = [
        r"(?P<debug_level>DEBUG)|(?P<info_level>INFO)|(?P<warning_level>WARNING)"
        r"|(?P<error_level>ERROR)|(?P<critical_level>CRITICAL)",
        r"(?P<web_url>https?://[^\s'\"]+)",
        r"(?P<local_url>file://[^\s'\"]+)",
        r"Flow run '(?P<flow_run_name>[^']+)'",
        r"Task run '(?P<task_run_name>[^']+)'",
        r"for flow '(?P<flow_name>[^']+)'",
        r"(?P<completed_state>Completed)|(?P<cancelled_state>Cancelled)"
        r"|(?P<failed_state>Failed)|(?P<crashed_state>Crashed)",
    ]


def highlight(text: str | Text, style_rules: Mapping[str, str]) -> Text:
    """
    Return a styled copy of ``text``.

    ``style_rules`` maps highlighter style names (``log.info_level``) to rich
    style definitions; names without a rule stay unstyled.
    """
    styled = text.copy() if isinstance(text, Text) else Text(text)
    RunLogHighlighter().highlight(styled)
    spans = []
    for span in styled.spans:
        if isinstance(span.style, str) and span.style.startswith(RunLogHighlighter.base_style):
            resolved = style_rules.get(span.style)
            if resolved:
                spans.append(Span(span.start, span.end, resolved))
        else:
            spans.append(span)
    return Text(
        styled.plain,
        style=styled.style,
        spans=spans,
        end=styled.end,
    )


def expand_markup(text: str) -> Text:
    """Parse ``[style]...[/]`` tags; malformed markup renders as plain text."""
    try:
        return Text.from_markup(text)
    except MarkupError:
        return Text(text)
