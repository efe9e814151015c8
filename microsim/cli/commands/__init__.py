"""CLI commands for microsim."""

from . import (
    adjust,
    config_cmd,
    run,
    weights,
)

__all__ = [
    "adjust",
    "config_cmd",
    "run",
    "weights",
]
