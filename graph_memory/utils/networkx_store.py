"""
Embedded graph store backed by a networkx MultiDiGraph.

Used for local runs and tests. Sessions serialize on one re-entrant lock; write
sessions snapshot the graph so a failing block leaves it untouched.
"""

import copy
import json
import os
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import networkx as nx

from ..models.core import Direction
from ..models.errors import ConflictingWrite, StoreUnavailable
from .graph_store import EdgeRecord, GraphSession, GraphStore, NodeRecord
from .logging_config import get_logger

logger = get_logger(__name__)


class NetworkXSession(GraphSession):
    """Session over the store's live graph. Only valid while the store lock is held."""

    def __init__(self, graph: nx.MultiDiGraph, edge_index: Dict[str, Tuple[str, str]]):
        self._graph = graph
        self._edges = edge_index
        self.dirty = False

    def _node_record(self, node_id: str) -> NodeRecord:
        data = self._graph.nodes[node_id]
        return NodeRecord(id=node_id, label=data['label'], props=copy.deepcopy(data['props']))

    def _edge_record(self, edge_id: str) -> EdgeRecord:
        source_id, target_id = self._edges[edge_id]
        data = self._graph.edges[source_id, target_id, edge_id]
        return EdgeRecord(id=edge_id,
                          type=data['type'],
                          source_id=source_id,
                          target_id=target_id,
                          props=copy.deepcopy(data['props']))

    def add_node(self, label: str, node_id: str, props: Dict[str, Any]) -> None:
        if self._graph.has_node(node_id):
            raise ConflictingWrite(f'Node already exists: {node_id}')
        self._graph.add_node(node_id, label=label, props=copy.deepcopy(props))
        self.dirty = True

    def get_node(self, node_id: str) -> Optional[NodeRecord]:
        if not self._graph.has_node(node_id):
            return None
        return self._node_record(node_id)

    def update_node(self, node_id: str, props: Dict[str, Any]) -> bool:
        if not self._graph.has_node(node_id):
            return False
        data = self._graph.nodes[node_id]
        # replace rather than mutate so a write snapshot keeps the old map
        data['props'] = {**data['props'], **copy.deepcopy(props)}
        self.dirty = True
        return True

    def delete_node(self, node_id: str) -> int:
        if not self._graph.has_node(node_id):
            return -1
        incident = [key for _, _, key in self._graph.in_edges(node_id, keys=True)]
        incident += [key for _, _, key in self._graph.out_edges(node_id, keys=True)]
        # self-loops show up on both sides
        incident = set(incident)
        for edge_id in incident:
            del self._edges[edge_id]
        self._graph.remove_node(node_id)
        self.dirty = True
        return len(incident)

    def find_nodes(self,
                   label: Optional[str] = None,
                   categories: Optional[Sequence[str]] = None,
                   min_importance: Optional[float] = None) -> List[NodeRecord]:
        wanted = set(categories) if categories else None
        records = []
        for node_id, data in self._graph.nodes(data=True):
            props = data['props']
            if label is not None and data['label'] != label:
                continue
            if wanted is not None and props.get('category') not in wanted:
                continue
            if min_importance is not None and float(props.get('importance', 0.0)) < min_importance:
                continue
            records.append(self._node_record(node_id))
        return records

    def add_edge(self, edge_type: str, edge_id: str, source_id: str, target_id: str, props: Dict[str, Any]) -> bool:
        if not (self._graph.has_node(source_id) and self._graph.has_node(target_id)):
            return False
        if edge_id in self._edges:
            raise ConflictingWrite(f'Edge already exists: {edge_id}')
        self._graph.add_edge(source_id, target_id, key=edge_id, type=edge_type, props=copy.deepcopy(props))
        self._edges[edge_id] = (source_id, target_id)
        self.dirty = True
        return True

    def get_edge(self, edge_id: str) -> Optional[EdgeRecord]:
        if edge_id not in self._edges:
            return None
        return self._edge_record(edge_id)

    def delete_edge(self, edge_id: str) -> bool:
        if edge_id not in self._edges:
            return False
        source_id, target_id = self._edges.pop(edge_id)
        self._graph.remove_edge(source_id, target_id, key=edge_id)
        self.dirty = True
        return True

    def edges_of(self, node_id: str, direction: Direction = Direction.BOTH) -> List[EdgeRecord]:
        if not self._graph.has_node(node_id):
            return []
        keys = []
        if direction in (Direction.OUTGOING, Direction.BOTH):
            keys.extend(key for _, _, key in self._graph.out_edges(node_id, keys=True))
        if direction in (Direction.INCOMING, Direction.BOTH):
            keys.extend(key for _, _, key in self._graph.in_edges(node_id, keys=True) if key not in keys)
        return [self._edge_record(key) for key in keys]

    def count_nodes(self) -> int:
        return self._graph.number_of_nodes()

    def count_edges(self) -> int:
        return self._graph.number_of_edges()

    def labels(self) -> List[str]:
        return sorted({data['label'] for _, data in self._graph.nodes(data=True)})

    def relationship_types(self) -> List[str]:
        return sorted({data['type'] for _, _, data in self._graph.edges(data=True)})

    def clear(self) -> None:
        self._graph.clear()
        self._edges.clear()
        self.dirty = True


class NetworkXGraphStore(GraphStore):
    """In-process graph with optional JSON file persistence."""

    def __init__(self, path: Optional[str] = None, timeout_ms: int = 10000):
        """
        Initialize the embedded store.

        Args:
            path: JSON file to load from and save to after each committed write (optional)
            timeout_ms: How long a session waits for the store lock
        """
        self.path = path
        self.timeout = timeout_ms / 1000.0
        self._lock = threading.RLock()
        self._graph = nx.MultiDiGraph()
        self._edges: Dict[str, Tuple[str, str]] = {}

        if path and os.path.exists(path):
            self._load()

        logger.info(f'Initialized NetworkX graph store (path={path})')

    @contextmanager
    def session(self, write: bool = False) -> Iterator[NetworkXSession]:
        if not self._lock.acquire(timeout=self.timeout):
            raise StoreUnavailable(f'Timed out after {self.timeout}s waiting for the graph store')
        try:
            snapshot = (self._graph.copy(), dict(self._edges)) if write else None
            session = NetworkXSession(self._graph, self._edges)
            try:
                yield session
                if session.dirty and self.path:
                    self._save()
            except BaseException:
                if snapshot is not None:
                    self._graph, self._edges = snapshot
                raise
        finally:
            self._lock.release()

    def initialize(self) -> None:
        # Node ids are the graph keys, so uniqueness needs no index
        logger.info('NetworkX graph store ready')

    def health_check(self) -> bool:
        return True

    def close(self) -> None:
        if self.path:
            with self._lock:
                self._save()

    def _save(self) -> None:
        data = {
            'nodes': [{
                'id': node_id,
                'label': attrs['label'],
                'props': attrs['props']
            } for node_id, attrs in self._graph.nodes(data=True)],
            'edges': [{
                'id': key,
                'type': attrs['type'],
                'source_id': source_id,
                'target_id': target_id,
                'props': attrs['props']
            } for source_id, target_id, key, attrs in self._graph.edges(keys=True, data=True)],
        }
        tmp_path = f'{self.path}.tmp'
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, default=str)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f'Failed to save graph to {self.path}: {e}')
            raise StoreUnavailable(f'Could not save graph to {self.path}: {e}')
        logger.debug(f'Saved graph to {self.path}')

    def _load(self) -> None:
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        for node in data.get('nodes', []):
            self._graph.add_node(node['id'], label=node['label'], props=node['props'])
        for edge in data.get('edges', []):
            self._graph.add_edge(edge['source_id'], edge['target_id'], key=edge['id'], type=edge['type'], props=edge['props'])
            self._edges[edge['id']] = (edge['source_id'], edge['target_id'])
        logger.info(f'Loaded {len(self._graph)} nodes and {len(self._edges)} edges from {self.path}')
