import io
import logging

from rich.text import Text

from runlog.handlers import ConsoleHandler
from runlog.highlighting import expand_markup, highlight
from runlog.settings import DEFAULT_CONSOLE_STYLES

LINE = "12:00:00.000 | INFO    | Flow run 'gray-dingo' - Finished in state Completed()"


def _styled(text: Text) -> dict[str, str]:
    return {text.plain[span.start : span.end]: str(span.style) for span in text.spans}


def test_highlight_maps_matches_through_style_rules():
    styled = _styled(highlight(LINE, DEFAULT_CONSOLE_STYLES))

    assert styled["INFO"] == "cyan"
    assert styled["gray-dingo"] == "magenta"
    assert styled["Completed"] == "green"


def test_highlight_drops_names_without_rule():
    styled = highlight(LINE, {"log.info_level": "cyan"})

    assert _styled(styled) == {"INFO": "cyan"}


def test_highlight_does_not_mutate_input():
    original = Text(LINE)

    styled = highlight(original, DEFAULT_CONSOLE_STYLES)

    assert original.spans == []
    assert styled.plain == original.plain
    assert styled.spans


def test_highlight_matches_urls_and_task_names():
    text = "Task run 'hello-task' - see https://example.com/runs/1 for details"

    styled = _styled(highlight(text, DEFAULT_CONSOLE_STYLES))

    assert styled["hello-task"] == "cyan"
    assert styled["https://example.com/runs/1"] == "bright_blue"


def test_expand_markup():
    assert expand_markup("[bold]loud[/bold] quiet").plain == "loud quiet"
    assert expand_markup("[/oops] left alone").plain == "[/oops] left alone"


def _record(msg: str) -> logging.LogRecord:
    return logging.LogRecord("runlog.test", logging.INFO, __file__, 1, msg, (), None)


def test_console_handler_writes_plain_lines_without_colors():
    stream = io.StringIO()
    handler = ConsoleHandler(stream, styles=DEFAULT_CONSOLE_STYLES, colors=False)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    handler.handle(_record("Flow run 'gray-dingo' - [bold]hi[/bold]"))

    assert stream.getvalue() == "INFO Flow run 'gray-dingo' - [bold]hi[/bold]\n"


def test_console_handler_render_applies_markup_and_styles():
    handler = ConsoleHandler(
        io.StringIO(), styles=DEFAULT_CONSOLE_STYLES, colors=True, markup=True
    )
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    text = handler.render(_record("[bold]hi[/bold]"))

    assert text.plain == "INFO hi"
    assert _styled(text)["INFO"] == "cyan"
    assert _styled(text)["hi"] == "bold"


def test_console_handler_render_without_colors_has_no_spans():
    handler = ConsoleHandler(io.StringIO(), styles=DEFAULT_CONSOLE_STYLES, colors=False)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))

    assert handler.render(_record("hi")).spans == []
