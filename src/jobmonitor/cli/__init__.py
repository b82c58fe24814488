"""
CLI layer for job-monitor.

Provides a Typer application whose sub-commands delegate to
``jobmonitor.scheduling`` and ``jobmonitor.execution``.  This package
handles only terminal transport: argument parsing, coloured output, and
table formatting.

Entry point::

    jobmonitor --help
"""

from jobmonitor.cli.app import app

__all__ = ["app"]
