import json
import logging
import sys

import pytest

from runlog.exceptions import TemplateError
from runlog.formatting import (
    DEFAULT_FLOW_RUN_FORMAT,
    DEFAULT_TASK_RUN_FORMAT,
    JsonFormatter,
    RunLogFormatter,
    compile_template,
)


def _record(msg: str = "hello", *, level: int = logging.INFO, **fields) -> logging.LogRecord:
    record = logging.LogRecord(
        name="runlog.flow_runs",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in fields.items():
        setattr(record, key, value)
    return record


FLOW_FIELDS = {"flow_run_id": "fr-1", "flow_run_name": "gray-dingo", "flow_name": "hello"}
TASK_FIELDS = {
    **FLOW_FIELDS,
    "task_run_id": "tr-1",
    "task_run_name": "hello-task",
    "task_name": "hello_task",
}


def test_compile_rejects_unknown_fields():
    with pytest.raises(TemplateError, match="unknown field 'flow_run_nmae'"):
        compile_template("%(flow_run_nmae)s - %(message)s")


@pytest.mark.parametrize("template", ["", "100% done %(message)s", "%(message)s %"])
def test_compile_rejects_empty_and_bare_percent(template):
    with pytest.raises(TemplateError):
        compile_template(template)


def test_compile_accepts_escaped_percent_and_collects_fields():
    template = compile_template("%(levelname)-7s 100%% %(message)s %(message)s")

    assert template.fields == ("levelname", "message")
    assert not template.uses_time
    assert template.render({"levelname": "INFO", "message": "x"}) == "INFO    100% x x"


def test_formatter_selects_template_by_run_fields():
    formatter = RunLogFormatter(
        format="%(name)s - %(message)s",
        flow_run_format="Flow run %(flow_run_name)r - %(message)s",
        task_run_format="Task run %(task_run_name)r - %(message)s",
    )

    assert formatter.format(_record()) == "runlog.flow_runs - hello"
    assert formatter.format(_record(**FLOW_FIELDS)) == "Flow run 'gray-dingo' - hello"
    assert formatter.format(_record(**TASK_FIELDS)) == "Task run 'hello-task' - hello"


def test_task_records_fall_back_to_flow_template():
    formatter = RunLogFormatter(
        format="%(message)s", flow_run_format="[%(flow_run_name)s] %(message)s"
    )

    assert formatter.format(_record(**TASK_FIELDS)) == "[gray-dingo] hello"


def test_run_fields_render_empty_outside_a_run():
    formatter = RunLogFormatter(format="<%(flow_run_name)s> %(message)s")

    assert formatter.format(_record()) == "<> hello"


def test_default_templates_render_and_parse_back():
    formatter = RunLogFormatter(
        flow_run_format=DEFAULT_FLOW_RUN_FORMAT,
        task_run_format=DEFAULT_TASK_RUN_FORMAT,
    )
    record = _record("Hello from a task!", **TASK_FIELDS)

    line = formatter.format(record)
    parsed = compile_template(DEFAULT_TASK_RUN_FORMAT).parse(line)

    assert " | INFO    | Task run 'hello-task' - Hello from a task!" in line
    assert parsed["levelname"] == "INFO"
    assert parsed["task_run_name"] == "hello-task"
    assert parsed["message"] == "Hello from a task!"
    assert parsed["msecs"] == int(record.msecs)


def test_parse_rejects_text_from_another_template():
    template = compile_template("Flow run %(flow_run_name)r - %(message)s")

    with pytest.raises(ValueError):
        template.parse("Task run 'hello-task' - hi")


def test_exception_text_is_appended():
    formatter = RunLogFormatter(format="%(levelname)s %(message)s")
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record("failed", level=logging.ERROR)
        record.exc_info = sys.exc_info()

    text = formatter.format(record)

    assert text.startswith("ERROR failed\nTraceback")
    assert text.rstrip().endswith("ValueError: boom")


def test_json_formatter_includes_run_fields():
    payload = json.loads(JsonFormatter().format(_record("done", **TASK_FIELDS)))

    assert payload["message"] == "done"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "runlog.flow_runs"
    assert payload["flow_run_name"] == "gray-dingo"
    assert payload["task_run_name"] == "hello-task"

    bare = json.loads(JsonFormatter().format(_record("plain")))
    assert "flow_run_id" not in bare


@pytest.mark.parametrize(
    "template",
    ["%(levelname)d %(message)s", "%(flow_run_name)f", "%(message)x", "%(msecs)x"],
)
def test_compile_rejects_numeric_conversions_of_mismatched_fields(template):
    with pytest.raises(TemplateError, match="formats (str|float) field"):
        compile_template(template)


@pytest.mark.parametrize(
    "template",
    ["%(levelno)d", "%(msecs)03d", "%(lineno)x", "%(created).3f", "%(levelno)s %(process)r"],
)
def test_compile_accepts_numeric_conversions_of_numeric_fields(template):
    assert compile_template(template).source == template


def test_json_timestamp_is_utc():
    record = _record("done")
    record.created = 0.0

    payload = json.loads(JsonFormatter().format(record))

    assert payload["timestamp"] == "1970-01-01T00:00:00+00:00"
