"""
Core data models for the graph memory engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from ..utils.timestamp_utils import to_iso


class Direction(str, Enum):
    """Which side of a node an edge is attached to."""
    OUTGOING = 'outgoing'
    INCOMING = 'incoming'
    BOTH = 'both'


@dataclass
class MemoryNode:
    """A persisted fact or preference with importance, confidence and usage metadata."""
    id: str
    label: str
    content: str
    category: str
    importance: float
    confidence: float
    tags: List[str]
    context: str
    properties: Dict[str, Any]
    access_count: int
    last_accessed: datetime
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'label': self.label,
            'content': self.content,
            'category': self.category,
            'importance': self.importance,
            'confidence': self.confidence,
            'tags': list(self.tags),
            'context': self.context,
            'properties': dict(self.properties),
            'access_count': self.access_count,
            'last_accessed': to_iso(self.last_accessed),
            'created_at': to_iso(self.created_at),
        }


@dataclass
class Relationship:
    """A directed, typed, weighted edge between two memory nodes."""
    id: str
    source_id: str
    target_id: str
    type: str
    weight: float
    context: str
    confidence: float
    properties: Dict[str, Any]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'source_id': self.source_id,
            'target_id': self.target_id,
            'type': self.type,
            'weight': self.weight,
            'context': self.context,
            'confidence': self.confidence,
            'properties': dict(self.properties),
            'created_at': to_iso(self.created_at),
        }


@dataclass
class SearchResult:
    """A ranked memory. depth is the hop distance from the nearest seed (0 for text search)."""
    node: MemoryNode
    relevance_score: float
    depth: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {'node': self.node.to_dict(), 'relevance_score': round(self.relevance_score, 2), 'depth': self.depth}


@dataclass
class PathResult:
    """Shortest relational path between two memories."""
    nodes: List[MemoryNode]
    relationships: List[Relationship]
    total_weight: float

    @property
    def hops(self) -> int:
        return len(self.relationships)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [node.to_dict() for node in self.nodes],
            'relationships': [rel.to_dict() for rel in self.relationships],
            'hops': self.hops,
            'total_weight': self.total_weight,
        }


@dataclass
class MemoryStats:
    """Aggregate counts across the graph."""
    total_memories: int = 0
    total_relationships: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    average_importance: float = 0.0
    labels: List[str] = field(default_factory=list)
    relationship_types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_memories': self.total_memories,
            'total_relationships': self.total_relationships,
            'categories': dict(self.categories),
            'average_importance': self.average_importance,
            'labels': list(self.labels),
            'relationship_types': list(self.relationship_types),
        }
