"""
Graph persistence contract shared by every store backend.

A store hands out sessions. Each repository operation runs inside exactly one
session, which is committed when the block exits cleanly and rolled back and
released on any exception.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..models.core import Direction


@dataclass
class NodeRecord:
    """Raw node as held by the store."""
    id: str
    label: str
    props: Dict[str, Any]


@dataclass
class EdgeRecord:
    """Raw directed edge as held by the store."""
    id: str
    type: str
    source_id: str
    target_id: str
    props: Dict[str, Any]


class GraphSession(ABC):
    """Primitive operations available inside one store session."""

    @abstractmethod
    def add_node(self, label: str, node_id: str, props: Dict[str, Any]) -> None:
        """Create a node. Raises ConflictingWrite if node_id is taken."""

    @abstractmethod
    def get_node(self, node_id: str) -> Optional[NodeRecord]:
        pass

    @abstractmethod
    def update_node(self, node_id: str, props: Dict[str, Any]) -> bool:
        """Overwrite the given properties. Returns False if the node is absent."""

    @abstractmethod
    def delete_node(self, node_id: str) -> int:
        """Remove a node and its incident edges. Returns the number of edges removed, -1 if absent."""

    @abstractmethod
    def find_nodes(self,
                   label: Optional[str] = None,
                   categories: Optional[Sequence[str]] = None,
                   min_importance: Optional[float] = None) -> List[NodeRecord]:
        pass

    @abstractmethod
    def add_edge(self, edge_type: str, edge_id: str, source_id: str, target_id: str, props: Dict[str, Any]) -> bool:
        """Create an edge. Returns False if either endpoint is absent."""

    @abstractmethod
    def get_edge(self, edge_id: str) -> Optional[EdgeRecord]:
        pass

    @abstractmethod
    def delete_edge(self, edge_id: str) -> bool:
        pass

    @abstractmethod
    def edges_of(self, node_id: str, direction: Direction = Direction.BOTH) -> List[EdgeRecord]:
        pass

    @abstractmethod
    def count_nodes(self) -> int:
        pass

    @abstractmethod
    def count_edges(self) -> int:
        pass

    @abstractmethod
    def labels(self) -> List[str]:
        pass

    @abstractmethod
    def relationship_types(self) -> List[str]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class GraphStore(ABC):
    """Connection owner for one logical graph."""

    @abstractmethod
    @contextmanager
    def session(self, write: bool = False) -> Iterator[GraphSession]:
        """Acquire a scoped session; released on every exit path."""

    @abstractmethod
    def initialize(self) -> None:
        """Ensure indexes/constraints exist. Safe to call repeatedly."""

    @abstractmethod
    def health_check(self) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_graph_store(store_config) -> GraphStore:
    """Build the store backend named by store_config.backend."""
    backend = store_config.backend.lower()
    if backend == 'gremlin':
        from .gremlin_store import GremlinGraphStore
        return GremlinGraphStore(store_config.gremlin, timeout_ms=store_config.timeout_ms)
    if backend == 'networkx':
        from .networkx_store import NetworkXGraphStore
        return NetworkXGraphStore(path=store_config.networkx.path, timeout_ms=store_config.timeout_ms)
    raise ValueError(f'Unknown graph backend: {store_config.backend}')
