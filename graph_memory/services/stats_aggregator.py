"""
Aggregate statistics and schema introspection across the graph.
"""

from collections import Counter
from typing import List

from ..models.core import MemoryStats
from ..utils.graph_store import GraphStore
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


class StatsAggregator:
    """Read-only aggregates, each computed in a single session."""

    def __init__(self, store: GraphStore):
        self.store = store

    def get_memory_stats(self) -> MemoryStats:
        """Counts, category histogram and mean importance. An empty graph yields zeros."""
        with self.store.session() as session:
            records = session.find_nodes()
            total_relationships = session.count_edges()
            labels = session.labels()
            relationship_types = session.relationship_types()

        categories = Counter(record.props.get('category', '') for record in records)
        importances = [float(record.props.get('importance', 0.0)) for record in records]
        average = sum(importances) / len(importances) if importances else 0.0

        stats = MemoryStats(total_memories=len(records),
                            total_relationships=total_relationships,
                            categories=dict(categories),
                            average_importance=average,
                            labels=labels,
                            relationship_types=relationship_types)
        logger.debug(f'Stats: {stats.total_memories} memories, {stats.total_relationships} relationships')
        return stats

    def list_labels(self) -> List[str]:
        with self.store.session() as session:
            return session.labels()

    def list_relationship_types(self) -> List[str]:
        with self.store.session() as session:
            return session.relationship_types()
