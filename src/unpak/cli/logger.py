"""Logging setup for the unpak commands."""

from __future__ import annotations

import logging
import os
import sys

import colorlog

_FORMAT = "[%(asctime)s] <%(name)s> %(levelname)s: %(message)s"
_COLOR_FORMAT = "%(log_color)s[%(asctime)s] <%(name)s> %(levelname)s:%(reset)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red,bg_white",
}


def wants_color(stream=None) -> bool:
    """Return whether log lines written to stream should be colored.

    Honors the NO_COLOR convention and never colors non-terminals.
    """
    stream = sys.stderr if stream is None else stream
    return os.getenv("NO_COLOR") is None and stream.isatty()


def resolve_level(verbose: bool, level_name: str = "INFO") -> int:
    """Return the logging level to use, where verbose means DEBUG."""
    if verbose:
        return logging.DEBUG
    return getattr(logging, level_name.upper(), logging.INFO)


def make_formatter(color: bool) -> logging.Formatter:
    """Return the formatter used by the stderr handler."""
    if color:
        return colorlog.ColoredFormatter(_COLOR_FORMAT, datefmt=_DATEFMT, log_colors=LEVEL_COLORS)
    return logging.Formatter(_FORMAT, datefmt=_DATEFMT)


def configure_logging(verbose: bool, level_name: str = "INFO") -> None:
    """Route every unpak logger to stderr, replacing previous handlers."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(make_formatter(wants_color(sys.stderr)))
    logging.basicConfig(level=resolve_level(verbose, level_name), handlers=[handler], force=True)
