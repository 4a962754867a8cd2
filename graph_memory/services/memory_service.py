"""
Memory Service: the single entry point the agent tool layer calls.
"""

import random
import time
import uuid
from typing import Callable, List, Optional, Sequence

from ..models.core import Direction, MemoryNode, MemoryStats, PathResult, Relationship, SearchResult
from ..models.errors import ConflictingWrite, StoreUnavailable
from ..utils.config import AppConfig, config as default_config
from ..utils.graph_store import GraphStore, create_graph_store
from ..utils.logging_config import get_logger
from ..utils.schema_guard import SchemaGuard
from ..utils.timestamp_utils import utc_now
from .graph_traversal import GraphTraversal
from .memory_repository import MemoryRepository
from .relationship_repository import RelationshipRepository
from .search_ranker import SearchRanker
from .stats_aggregator import StatsAggregator

logger = get_logger(__name__)


class MemoryService:
    """Wires the repositories, ranker, traversal and stats over one graph store."""

    def __init__(self,
                 store: Optional[GraphStore] = None,
                 app_config: Optional[AppConfig] = None,
                 clock: Callable = utc_now,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize the memory service.

        Args:
            store: Graph store to use (built from config if None)
            app_config: AppConfig instance, uses default if None
            clock: Source of the current UTC time
            sleep: Used between retries
        """
        self.config = app_config or default_config
        self.store = store or create_graph_store(self.config.store)
        self.sleep = sleep

        self.schema_guard = SchemaGuard(self.config.memory.default_label, self.config.memory.default_relationship_type)
        self.memories = MemoryRepository(self.store, self.schema_guard, self.config.memory, clock)
        self.relationships = RelationshipRepository(self.store, self.schema_guard, self.config.memory, clock)
        self.ranker = SearchRanker(self.memories, self.config.search, clock)
        self.traversal = GraphTraversal(self.store, self.ranker, self.config.search, clock)
        self.stats = StatsAggregator(self.store)

        logger.info('Initialized MemoryService')

    def _with_retry(self, name: str, func: Callable, *args, resolve_conflict: Optional[Callable] = None, **kwargs):
        """Run func, retrying StoreUnavailable with exponential backoff and jitter.

        A write interrupted by StoreUnavailable may have committed anyway. When the
        retry then hits ConflictingWrite, resolve_conflict decides whether the
        earlier attempt landed and returns its result.
        """
        attempts = max(1, self.config.store.retry_attempts)
        delay = self.config.store.retry_delay
        interrupted = False

        for attempt in range(attempts):
            try:
                return func(*args, **kwargs)
            except ConflictingWrite:
                if interrupted and resolve_conflict is not None:
                    resolved = resolve_conflict()
                    if resolved is not None:
                        logger.info(f'{name} had committed before the retry')
                        return resolved
                raise
            except StoreUnavailable as e:
                interrupted = True
                logger.warning(f'{name} attempt {attempt + 1}/{attempts} failed: {e}')
                if attempt < attempts - 1:
                    self.sleep(delay * (2**attempt) + random.uniform(0, delay))
                else:
                    logger.error(f'{name} failed after {attempts} attempts')
                    raise

    def initialize(self) -> None:
        """Prepare the store. Idempotent."""
        self._with_retry('initialize', self.store.initialize)

    def health_check(self) -> bool:
        return self.store.health_check()

    def close(self) -> None:
        self.store.close()

    # Memories

    def store_memory(self, content: str, memory_id: Optional[str] = None, **fields) -> str:
        """Store a memory and return its id. See MemoryRepository.store_memory for fields."""
        caller_id = memory_id is not None
        memory_id = memory_id or f'mem_{uuid.uuid4().hex}'

        def landed():
            if caller_id:
                return None
            node = self.memories.get_memory(memory_id)
            return memory_id if node is not None and node.content == content else None

        return self._with_retry('store_memory',
                                self.memories.store_memory,
                                content,
                                memory_id=memory_id,
                                resolve_conflict=landed,
                                **fields)

    def get_memory(self, memory_id: str) -> Optional[MemoryNode]:
        return self._with_retry('get_memory', self.memories.get_memory, memory_id)

    def update_memory(self, memory_id: str, **fields) -> MemoryNode:
        return self._with_retry('update_memory', self.memories.update_memory, memory_id, **fields)

    def update_memory_access(self, memory_id: str) -> MemoryNode:
        # Not retried: an increment that committed before a failure would be applied twice
        return self.memories.update_memory_access(memory_id)

    def delete_memory(self, memory_id: str) -> int:
        return self._with_retry('delete_memory', self.memories.delete_memory, memory_id)

    # Relationships

    def create_relationship(self, source_id: str, target_id: str, relationship_id: Optional[str] = None, **fields) -> str:
        caller_id = relationship_id is not None
        relationship_id = relationship_id or f'rel_{uuid.uuid4().hex}'

        def landed():
            if caller_id:
                return None
            rel = self.relationships.get_relationship(relationship_id)
            return relationship_id if rel is not None else None

        return self._with_retry('create_relationship',
                                self.relationships.create_relationship,
                                source_id,
                                target_id,
                                relationship_id=relationship_id,
                                resolve_conflict=landed,
                                **fields)

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        return self._with_retry('get_relationship', self.relationships.get_relationship, relationship_id)

    def delete_relationship(self, relationship_id: str) -> None:
        return self._with_retry('delete_relationship', self.relationships.delete_relationship, relationship_id)

    def get_relationships_of(self, node_id: str, direction=Direction.BOTH) -> List[Relationship]:
        return self._with_retry('get_relationships_of', self.relationships.get_relationships_of, node_id, direction)

    # Queries

    def search_memories(self,
                        query_text: str,
                        limit: Optional[int] = None,
                        min_importance: float = 0.0,
                        categories: Optional[Sequence[str]] = None,
                        label: Optional[str] = None) -> List[SearchResult]:
        return self._with_retry('search_memories',
                                self.ranker.search_memories,
                                query_text,
                                limit=limit,
                                min_importance=min_importance,
                                categories=categories,
                                label=label)

    def graph_search(self, query_text: str, max_depth: Optional[int] = None, limit: Optional[int] = None) -> List[SearchResult]:
        return self._with_retry('graph_search', self.traversal.graph_search, query_text, max_depth=max_depth, limit=limit)

    def find_path(self,
                  from_id: str,
                  to_id: str,
                  max_depth: Optional[int] = None,
                  direction=Direction.OUTGOING) -> Optional[PathResult]:
        return self._with_retry('find_path', self.traversal.find_path, from_id, to_id, max_depth=max_depth, direction=direction)

    def get_memory_stats(self) -> MemoryStats:
        return self._with_retry('get_memory_stats', self.stats.get_memory_stats)

    def list_labels(self) -> List[str]:
        return self._with_retry('list_labels', self.stats.list_labels)

    def list_relationship_types(self) -> List[str]:
        return self._with_retry('list_relationship_types', self.stats.list_relationship_types)

    def clear(self) -> None:
        """Remove every memory and relationship."""
        with self.store.session(write=True) as session:
            session.clear()
        logger.warning('Cleared all memories and relationships')
