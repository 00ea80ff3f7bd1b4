"""Live Claude Code task activity from session logs."""

__version__ = "0.1.0"
