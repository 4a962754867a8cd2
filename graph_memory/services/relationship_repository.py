"""
Relationship Repository for typed, weighted edges between memories.
"""

import math
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..models.core import Direction, Relationship
from ..models.errors import InvalidMemory, NotFound
from ..utils.config import MemoryConfig
from ..utils.graph_store import EdgeRecord, GraphStore
from ..utils.logging_config import get_logger
from ..utils.schema_guard import SchemaGuard
from ..utils.timestamp_utils import from_iso, to_iso, utc_now
from .memory_repository import unit_interval

logger = get_logger(__name__)


def relationship_from_record(record: EdgeRecord) -> Relationship:
    """Build a Relationship from a raw store record."""
    props = record.props
    return Relationship(id=record.id,
                        source_id=record.source_id,
                        target_id=record.target_id,
                        type=record.type,
                        weight=float(props.get('weight', 1.0)),
                        context=props.get('context', ''),
                        confidence=float(props.get('confidence', 1.0)),
                        properties=dict(props.get('properties') or {}),
                        created_at=from_iso(props['created_at']))


def _weight(value) -> float:
    if isinstance(value, bool):
        raise InvalidMemory('weight', 'must be a number')
    try:
        weight = float(value)
    except (TypeError, ValueError):
        raise InvalidMemory('weight', f'must be a number, got {value!r}')
    if not math.isfinite(weight):
        raise InvalidMemory('weight', f'must be finite, got {value!r}')
    return weight


def as_direction(direction) -> Direction:
    try:
        return Direction(direction)
    except ValueError:
        raise InvalidMemory('direction', f'must be one of {[d.value for d in Direction]}, got {direction!r}')


class RelationshipRepository:
    """Create, read and delete relationships."""

    def __init__(self,
                 store: GraphStore,
                 schema_guard: SchemaGuard,
                 config: Optional[MemoryConfig] = None,
                 clock: Callable = utc_now):
        self.store = store
        self.schema_guard = schema_guard
        self.config = config or MemoryConfig()
        self.clock = clock

    def create_relationship(self,
                            source_id: str,
                            target_id: str,
                            type: Optional[str] = None,
                            weight=None,
                            context: Optional[str] = None,
                            confidence=None,
                            properties: Optional[Dict[str, Any]] = None,
                            relationship_id: Optional[str] = None,
                            strict_type: bool = False) -> str:
        """Create a directed edge source -> target.

        Raises:
            InvalidMemory: If weight, confidence or properties are invalid
            NotFound: If either endpoint does not exist
        """
        rel_type = self.schema_guard.normalize_relationship_type(type, strict=strict_type)
        weight = _weight(self.config.default_weight if weight is None else weight)
        confidence = unit_interval('confidence', self.config.default_confidence if confidence is None else confidence)
        if properties is not None and not isinstance(properties, dict):
            raise InvalidMemory('properties', 'must be a key-value map')
        relationship_id = relationship_id or f'rel_{uuid.uuid4().hex}'

        props = {
            'weight': weight,
            'context': context or '',
            'confidence': confidence,
            'properties': dict(properties or {}),
            'created_at': to_iso(self.clock()),
        }

        with self.store.session(write=True) as session:
            for endpoint in (source_id, target_id):
                if session.get_node(endpoint) is None:
                    raise NotFound('memory', endpoint)
            # re-checked by the store at insert time
            if not session.add_edge(rel_type, relationship_id, source_id, target_id, props):
                missing = source_id if session.get_node(source_id) is None else target_id
                raise NotFound('memory', missing)

        logger.debug(f'Created {rel_type} relationship {relationship_id}: {source_id} -> {target_id}')
        return relationship_id

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        with self.store.session() as session:
            record = session.get_edge(relationship_id)
        return relationship_from_record(record) if record else None

    def delete_relationship(self, relationship_id: str) -> None:
        with self.store.session(write=True) as session:
            if not session.delete_edge(relationship_id):
                raise NotFound('relationship', relationship_id)
        logger.debug(f'Deleted relationship: {relationship_id}')

    def get_relationships_of(self, node_id: str, direction=Direction.BOTH) -> List[Relationship]:
        """Edges touching node_id. An unknown node simply has none."""
        direction = as_direction(direction)
        with self.store.session() as session:
            records = session.edges_of(node_id, direction)
        return [relationship_from_record(record) for record in records]
