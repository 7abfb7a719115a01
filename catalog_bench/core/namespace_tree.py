"""
Namespace tree target universe.

Enumerates the tables of an N-ary namespace tree: `namespace_width` children
per namespace, `namespace_depth` levels, and `tables_per_ns` tables in every
leaf namespace. Enumeration is depth-first and deterministic, so repeated calls
return the same order and sampled indices are reproducible.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence, runtime_checkable

from catalog_bench.models.benchmark import TreeConfig
from catalog_bench.models.target import TableInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class TargetProvider(Protocol):
    def total_tables(self) -> int: ...

    def all_tables(self) -> Sequence[TableInfo]: ...


class NamespaceTree:
    """Deterministic N-ary namespace/table tree."""

    def __init__(self, config: TreeConfig) -> None:
        self.config = config
        self._tables: tuple[TableInfo, ...] | None = None

    @staticmethod
    def namespace_name(parent: tuple[str, ...], index: int) -> str:
        """`ns_0` at the root level, `ns_0_1` below it, and so on."""
        if not parent:
            return f"ns_{index}"
        return f"{parent[-1]}_{index}"

    @staticmethod
    def table_name(index: int) -> str:
        return f"tbl_{index}"

    def leaf_namespaces(self) -> list[tuple[str, ...]]:
        level: list[tuple[str, ...]] = [()]
        for _ in range(self.config.namespace_depth):
            level = [
                parent + (self.namespace_name(parent, i),)
                for parent in level
                for i in range(self.config.namespace_width)
            ]
        return level

    def total_tables(self) -> int:
        cfg = self.config
        return (cfg.namespace_width**cfg.namespace_depth) * cfg.tables_per_ns

    def all_tables(self) -> tuple[TableInfo, ...]:
        if self._tables is None:
            self._tables = tuple(
                TableInfo(namespace=ns, name=self.table_name(t))
                for ns in self.leaf_namespaces()
                for t in range(self.config.tables_per_ns)
            )
            logger.debug("Enumerated %d tables", len(self._tables))
        return self._tables
