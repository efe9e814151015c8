"""Typed callback protocols for change notification and user messages.

Observers and table listeners are plain callables; any function or bound
method with a matching signature can be registered.
"""

from typing import Any, Protocol


class ParameterSetObserver(Protocol):
    """Callback invoked once per validated change to a parameter set.

    Args:
        parameter_set: The parameter set that changed
    """

    def __call__(self, parameter_set: Any) -> None: ...


class TableListener(Protocol):
    """Callback invoked when the data behind a tabular view changed.

    Args:
        table: The view whose data changed
    """

    def __call__(self, table: Any) -> None: ...


class MessageDisplay(Protocol):
    """User-facing collaborator that shows recoverable problems."""

    def show_message(self, message: str) -> None: ...
