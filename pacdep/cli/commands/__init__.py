"""CLI command handlers for pacdep."""

from .report import cmd_report, options_from_args

__all__ = ['cmd_report', 'options_from_args']
