"""Target universe entries."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TableInfo:
    """A table addressed by its namespace path and name."""

    namespace: tuple[str, ...]
    name: str

    @property
    def namespace_path(self) -> str:
        return ".".join(self.namespace)

    def label(self, catalog: str) -> str:
        """Identifier recorded on operations: `<catalog>/<ns.path>/<name>`."""
        return f"{catalog}/{self.namespace_path}/{self.name}"
