"""Exception hierarchy for runlog."""


class RunlogError(Exception):
    """Base exception for all runlog errors."""

    pass


class NoActiveRunError(RunlogError, RuntimeError):
    """Raised when contextual logging is requested outside any flow or task run."""

    pass


class ConfigError(RunlogError, ValueError):
    """Raised when logging settings are invalid."""

    pass


class TemplateError(ConfigError):
    """Raised when a formatter template references unknown fields or is malformed."""

    pass
