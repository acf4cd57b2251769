"""
Template formatting for run log records.

Templates use the ``%(field)s`` syntax of the stdlib formatter, but every field
reference is checked against a fixed lookup table when the template is
compiled. Settings validation compiles all templates, so a typo in a format
string stops configuration loading instead of breaking each log call.
"""

from __future__ import annotations

import ast
import json
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from runlog.contracts.run_context import RUN_FIELDS
from runlog.exceptions import TemplateError

DEFAULT_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s - %(message)s"
DEFAULT_FLOW_RUN_FORMAT = (
    "%(asctime)s.%(msecs)03d | %(levelname)-7s | Flow run %(flow_run_name)r - %(message)s"
)
DEFAULT_TASK_RUN_FORMAT = (
    "%(asctime)s.%(msecs)03d | %(levelname)-7s | Task run %(task_run_name)r - %(message)s"
)
DEFAULT_DATEFMT = "%H:%M:%S"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Value type and accessor of one template field."""

    value_type: type
    getter: Callable[[logging.LogRecord], Any]


def _attr(name: str, value_type: type) -> FieldSpec:
    return FieldSpec(value_type, lambda record: getattr(record, name))


_RECORD_FIELDS: dict[str, FieldSpec] = {
    "message": _attr("message", str),
    "asctime": _attr("asctime", str),
    "name": _attr("name", str),
    "levelname": _attr("levelname", str),
    "levelno": _attr("levelno", int),
    "created": _attr("created", float),
    "msecs": _attr("msecs", float),
    "relativeCreated": _attr("relativeCreated", float),
    "pathname": _attr("pathname", str),
    "filename": _attr("filename", str),
    "module": _attr("module", str),
    "funcName": _attr("funcName", str),
    "lineno": _attr("lineno", int),
    "process": _attr("process", int),
    "processName": _attr("processName", str),
    "thread": _attr("thread", int),
    "threadName": _attr("threadName", str),
}

FIELD_LOOKUP: dict[str, FieldSpec] = {
    **_RECORD_FIELDS,
    **{
        name: FieldSpec(str, lambda record, _name=name: getattr(record, _name, ""))
        for name in RUN_FIELDS
    },
}

# Conversions that need a number; the second set also rejects floats.
_NUMERIC_CONVERSIONS = frozenset("diouxXeEfFgG")
_INTEGER_CONVERSIONS = frozenset("oxX")

_PLACEHOLDER = re.compile(
    r"%%|%\((?P<name>[^)]*)\)(?P<flags>[#0\- +]*\d*(?:\.\d+)?)(?P<conv>[diouxXeEfFgGrsa])|%"
)


@dataclass(frozen=True, slots=True)
class _Field:
    name: str
    flags: str
    conversion: str


@dataclass(frozen=True, slots=True)
class CompiledTemplate:
    """A validated template: literal chunks interleaved with known fields."""

    source: str
    parts: tuple[str | _Field, ...]

    @property
    def fields(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for part in self.parts:
            if isinstance(part, _Field):
                seen.setdefault(part.name, None)
        return tuple(seen)

    @property
    def uses_time(self) -> bool:
        return "asctime" in self.fields

    def render(self, values: Mapping[str, Any]) -> str:
        return self.source % values

    def parse(self, text: str) -> dict[str, Any]:
        """
        Recover field values from text rendered with this template.

        Works for templates whose literal separators do not also occur inside
        the field values; raises ValueError when the text does not match.
        """
        match = self._pattern().match(text)
        if match is None:
            raise ValueError(f"Text does not match template {self.source!r}")

        values: dict[str, Any] = {}
        for part in self.parts:
            if isinstance(part, _Field) and part.name not in values:
                values[part.name] = _convert(match.group(part.name), part)
        return values

    def _pattern(self) -> re.Pattern[str]:
        chunks: list[str] = []
        seen: set[str] = set()
        for part in self.parts:
            if isinstance(part, str):
                chunks.append(re.escape(part))
            elif part.name in seen:
                chunks.append(f"(?P={part.name})")
            else:
                seen.add(part.name)
                chunks.append(f"(?P<{part.name}>{_value_pattern(part.conversion)})")
        return re.compile("".join(chunks) + r"\Z", re.DOTALL)


def compile_template(template: str) -> CompiledTemplate:
    """Validate a template against the field lookup table."""
    if not isinstance(template, str) or not template:
        raise TemplateError("Template must be a non-empty string")

    parts: list[str | _Field] = []
    literal: list[str] = []
    position = 0
    for match in _PLACEHOLDER.finditer(template):
        literal.append(template[position : match.start()])
        position = match.end()
        token = match.group(0)
        if token == "%%":
            literal.append("%")
            continue
        if token == "%":
            raise TemplateError(
                f"Template {template!r} has a bare '%' at offset {match.start()}; "
                "use %(field)s placeholders or '%%'"
            )
        name = match.group("name")
        if name not in FIELD_LOOKUP:
            raise TemplateError(
                f"Template {template!r} references unknown field {name!r}; "
                f"known fields: {', '.join(sorted(FIELD_LOOKUP))}"
            )
        _check_conversion(template, name, match.group("conv"))
        if "".join(literal):
            parts.append("".join(literal))
        literal = []
        parts.append(_Field(name=name, flags=match.group("flags"), conversion=match.group("conv")))
    literal.append(template[position:])
    if "".join(literal):
        parts.append("".join(literal))
    return CompiledTemplate(source=template, parts=tuple(parts))


def _check_conversion(template: str, name: str, conversion: str) -> None:
    value_type = FIELD_LOOKUP[name].value_type
    if conversion not in _NUMERIC_CONVERSIONS:
        return
    if value_type is str or (value_type is float and conversion in _INTEGER_CONVERSIONS):
        raise TemplateError(
            f"Template {template!r} formats {value_type.__name__} field {name!r} "
            f"with '%{conversion}'"
        )


def record_values(record: logging.LogRecord, fields: tuple[str, ...]) -> dict[str, Any]:
    return {name: FIELD_LOOKUP[name].getter(record) for name in fields}


def run_fields(record: logging.LogRecord) -> dict[str, str]:
    """Return the contextual run fields present on a record."""
    return {
        name: getattr(record, name) for name in RUN_FIELDS if getattr(record, name, None)
    }


class RunLogFormatter(logging.Formatter):
    """
    Formatter choosing a template by the run fields present on the record.

    Task-run records use ``task_run_format``, flow-run records use
    ``flow_run_format`` and everything else uses ``format``. Records emitted
    outside a run render run fields as empty strings.
    """

    def __init__(
        self,
        format: str = DEFAULT_FORMAT,
        datefmt: str | None = DEFAULT_DATEFMT,
        flow_run_format: str | None = None,
        task_run_format: str | None = None,
    ) -> None:
        super().__init__(datefmt=datefmt)
        self._template = compile_template(format)
        self._flow_run_template = (
            compile_template(flow_run_format) if flow_run_format else self._template
        )
        self._task_run_template = (
            compile_template(task_run_format) if task_run_format else self._flow_run_template
        )

    def select_template(self, record: logging.LogRecord) -> CompiledTemplate:
        if getattr(record, "task_run_id", None):
            return self._task_run_template
        if getattr(record, "flow_run_id", None):
            return self._flow_run_template
        return self._template

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        template = self.select_template(record)
        if template.uses_time:
            record.asctime = self.formatTime(record, self.datefmt)
        text = template.render(record_values(record, template.fields))

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            text = f"{text}\n{record.exc_text}"
        if record.stack_info:
            text = f"{text}\n{self.formatStack(record.stack_info)}"
        return text


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured sinks."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(run_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, separators=(",", ":"), default=str)


def _value_pattern(conversion: str) -> str:
    if conversion == "r":
        return r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\""
    if conversion in "diouxX":
        return r"\s*[-+]?\d+\s*"
    if conversion in "eEfFgG":
        return r"\s*[-+]?(?:\d+\.?\d*(?:[eE][-+]?\d+)?|inf|nan)\s*"
    return r".*?"


def _convert(raw: str, field: _Field) -> Any:
    if field.conversion == "r":
        return ast.literal_eval(raw)
    if field.conversion in "diouxX":
        return int(raw.strip())
    if field.conversion in "eEfFgG":
        return float(raw.strip())
    if any(char.isdigit() for char in field.flags):
        return raw.strip()
    return raw
