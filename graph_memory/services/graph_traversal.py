"""
Graph Traversal for neighborhood search and path finding.
"""

import heapq
from typing import Callable, Dict, List, Optional

from ..models.core import Direction, MemoryNode, PathResult, SearchResult
from ..models.errors import InvalidMemory, NotFound
from ..utils.config import SearchConfig
from ..utils.graph_store import EdgeRecord, GraphStore
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import utc_now
from .memory_repository import node_from_record
from .relationship_repository import as_direction, relationship_from_record
from .search_ranker import SearchRanker

logger = get_logger(__name__)


def _depth(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidMemory(name, f'must be a non-negative integer, got {value!r}')
    return value


def _other_end(edge: EdgeRecord, node_id: str) -> str:
    return edge.target_id if edge.source_id == node_id else edge.source_id


class GraphTraversal:
    """Stateless bounded-depth traversal; every call runs in one read session."""

    def __init__(self,
                 store: GraphStore,
                 ranker: SearchRanker,
                 config: Optional[SearchConfig] = None,
                 clock: Callable = utc_now):
        self.store = store
        self.ranker = ranker
        self.config = config or SearchConfig()
        self.clock = clock

    def graph_search(self, query_text: str, max_depth: Optional[int] = None, limit: Optional[int] = None) -> List[SearchResult]:
        """Expand the text-search seeds over edges in both directions and re-rank.

        Args:
            query_text: Free-text query used for seeding and ranking
            max_depth: Hops to expand from the seeds (0 returns the seeds)
            limit: Maximum number of results

        Returns:
            Results ordered by relevance minus a per-hop depth penalty
        """
        max_depth = _depth('max_depth', self.config.default_max_depth if max_depth is None else max_depth)
        limit = self.config.default_limit if limit is None else limit

        seeds = self.ranker.search_memories(query_text, limit=self.config.seed_limit)
        if not seeds or limit <= 0:
            return []

        depths: Dict[str, int] = {seed.node.id: 0 for seed in seeds}
        nodes: Dict[str, MemoryNode] = {seed.node.id: seed.node for seed in seeds}
        frontier = [seed.node.id for seed in seeds]

        with self.store.session() as session:
            for depth in range(1, max_depth + 1):
                next_frontier = []
                for node_id in frontier:
                    for edge in session.edges_of(node_id, Direction.BOTH):
                        neighbor_id = _other_end(edge, node_id)
                        if neighbor_id in depths:
                            continue
                        record = session.get_node(neighbor_id)
                        if record is None:
                            continue
                        depths[neighbor_id] = depth
                        nodes[neighbor_id] = node_from_record(record)
                        next_frontier.append(neighbor_id)
                if not next_frontier:
                    break
                frontier = next_frontier

        now = self.clock()
        penalty = self.config.depth_penalty
        results = []
        for node_id, node in nodes.items():
            depth = depths[node_id]
            score = max(0.0, self.ranker.score(node, query_text, now) - penalty * depth)
            results.append(SearchResult(node=node, relevance_score=score, depth=depth))
        results.sort(key=lambda r: (-r.relevance_score, r.depth, -r.node.last_accessed.timestamp(), r.node.id))

        logger.debug(f"Graph search '{query_text}' expanded {len(seeds)} seeds to {len(results)} memories")
        return results[:limit]

    def find_path(self,
                  from_id: str,
                  to_id: str,
                  max_depth: Optional[int] = None,
                  direction=Direction.OUTGOING) -> Optional[PathResult]:
        """Shortest path by hop count, ties broken by lower cumulative edge weight, then by id sequence.

        Edges are followed source -> target unless direction says otherwise.

        Returns:
            The path, or None if none exists within max_depth hops

        Raises:
            NotFound: If either endpoint does not exist
        """
        max_depth = _depth('max_depth', self.config.default_path_depth if max_depth is None else max_depth)
        direction = as_direction(direction)

        with self.store.session() as session:
            start = session.get_node(from_id)
            if start is None:
                raise NotFound('memory', from_id)
            if session.get_node(to_id) is None:
                raise NotFound('memory', to_id)
            if from_id == to_id:
                return PathResult(nodes=[node_from_record(start)], relationships=[], total_weight=0.0)

            edges: Dict[str, EdgeRecord] = {}
            best = {from_id: (0, 0.0, (from_id, ))}
            heap = [(0, 0.0, (from_id, ), ())]
            while heap:
                hops, weight, path, edge_path = heapq.heappop(heap)
                node_id = path[-1]
                if node_id == to_id:
                    records = [session.get_node(path_id) for path_id in path]
                    result = PathResult(nodes=[node_from_record(record) for record in records],
                                        relationships=[relationship_from_record(edges[edge_id]) for edge_id in edge_path],
                                        total_weight=weight)
                    logger.debug(f'Found {hops}-hop path {from_id} -> {to_id}')
                    return result
                if best[node_id] < (hops, weight, path) or hops >= max_depth:
                    continue
                for edge in session.edges_of(node_id, direction):
                    neighbor_id = _other_end(edge, node_id)
                    if neighbor_id in path:
                        continue
                    cost = (hops + 1, weight + float(edge.props.get('weight', 1.0)), path + (neighbor_id, ))
                    if neighbor_id in best and best[neighbor_id] <= cost:
                        continue
                    best[neighbor_id] = cost
                    edges[edge.id] = edge
                    heapq.heappush(heap, cost + (edge_path + (edge.id, ), ))

        logger.debug(f'No path {from_id} -> {to_id} within {max_depth} hops')
        return None
