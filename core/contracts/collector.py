from typing import Any, Mapping, Protocol


class Collector(Protocol):
    """Gathers one slice of repository state (diff, history, last commit)."""

    def collect(self) -> Mapping[str, Any]:
        """
        Returns:
            A mapping merged into the command's commit context.

        Raises:
            CollectorError: If git fails in a way the command cannot ignore.
        """
        ...
