"""
Memory Repository for node lifecycle and access tracking.
"""

import math
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.core import MemoryNode
from ..models.errors import ConflictingWrite, InvalidMemory, NotFound
from ..utils.config import MemoryConfig
from ..utils.graph_store import GraphStore, NodeRecord
from ..utils.logging_config import get_logger
from ..utils.schema_guard import SchemaGuard
from ..utils.timestamp_utils import from_iso, to_iso, utc_now

logger = get_logger(__name__)

UPDATABLE_FIELDS = ('content', 'category', 'importance', 'confidence', 'tags', 'context', 'properties')
IMMUTABLE_FIELDS = ('id', 'label', 'created_at', 'access_count', 'last_accessed')

DELETE_POLICIES = ('detach', 'reject')


def unit_interval(field: str, value) -> float:
    """Clamp a numeric value into [0, 1]. Non-numeric or non-finite values are rejected."""
    if isinstance(value, bool):
        raise InvalidMemory(field, 'must be a number')
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidMemory(field, f'must be a number, got {value!r}')
    if not math.isfinite(number):
        raise InvalidMemory(field, f'must be finite, got {value!r}')
    return min(1.0, max(0.0, number))


def _validate_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InvalidMemory('content', 'must be a non-empty string')
    return content


def _validate_tags(tags) -> List[str]:
    if tags is None:
        return []
    if isinstance(tags, str) or not isinstance(tags, (list, tuple)):
        raise InvalidMemory('tags', 'must be a list of strings')
    return [str(tag) for tag in tags]


def _validate_properties(properties) -> Dict[str, Any]:
    if properties is None:
        return {}
    if not isinstance(properties, dict):
        raise InvalidMemory('properties', 'must be a key-value map')
    return dict(properties)


def node_from_record(record: NodeRecord) -> MemoryNode:
    """Build a MemoryNode from a raw store record."""
    props = record.props
    return MemoryNode(id=record.id,
                      label=record.label,
                      content=props.get('content', ''),
                      category=props.get('category', ''),
                      importance=float(props.get('importance', 0.0)),
                      confidence=float(props.get('confidence', 0.0)),
                      tags=list(props.get('tags') or []),
                      context=props.get('context', ''),
                      properties=dict(props.get('properties') or {}),
                      access_count=int(props.get('access_count', 0)),
                      last_accessed=from_iso(props['last_accessed']),
                      created_at=from_iso(props['created_at']))


class MemoryRepository:
    """Create, read, update and delete memory nodes."""

    def __init__(self,
                 store: GraphStore,
                 schema_guard: SchemaGuard,
                 config: Optional[MemoryConfig] = None,
                 clock: Callable = utc_now):
        self.store = store
        self.schema_guard = schema_guard
        self.config = config or MemoryConfig()
        self.clock = clock
        if self.config.delete_policy not in DELETE_POLICIES:
            raise ValueError(f'Unknown delete policy: {self.config.delete_policy}')

    def store_memory(self,
                     content: str,
                     category: Optional[str] = None,
                     importance=None,
                     confidence=None,
                     tags: Optional[List[str]] = None,
                     context: Optional[str] = None,
                     properties: Optional[Dict[str, Any]] = None,
                     label: Optional[str] = None,
                     memory_id: Optional[str] = None,
                     strict_label: bool = False) -> str:
        """Validate and persist a new memory node.

        Args:
            content: The factual payload, must be non-empty
            category: Free-text classification (default from config)
            importance: Significance, clamped to [0, 1]
            confidence: Certainty, clamped to [0, 1]
            tags: Ordered list of tags
            context: Provenance or situation
            properties: Open map of caller-defined attributes
            label: Schema tag, normalized by the schema guard
            memory_id: Caller-supplied id (generated if None)
            strict_label: Reject an unsafe label instead of defaulting it

        Returns:
            The id of the stored memory

        Raises:
            InvalidMemory: If a field is missing or invalid
            InvalidSchemaIdentifier: If strict_label and label is unsafe
            ConflictingWrite: If memory_id is already taken
        """
        content = _validate_content(content)
        importance = unit_interval('importance',
                                   self.config.default_importance if importance is None else importance)
        confidence = unit_interval('confidence',
                                   self.config.default_confidence if confidence is None else confidence)
        tags = _validate_tags(tags)
        properties = _validate_properties(properties)
        label = self.schema_guard.normalize_label(label, strict=strict_label)
        if memory_id is not None and (not isinstance(memory_id, str) or not memory_id.strip()):
            raise InvalidMemory('id', 'must be a non-empty string')
        memory_id = memory_id or f'mem_{uuid.uuid4().hex}'

        now = to_iso(self.clock())
        props = {
            'content': content,
            'category': category or self.config.default_category,
            'importance': importance,
            'confidence': confidence,
            'tags': tags,
            'context': context or '',
            'properties': properties,
            # creation counts as the first access
            'access_count': 1,
            'last_accessed': now,
            'created_at': now,
        }

        with self.store.session(write=True) as session:
            session.add_node(label, memory_id, props)

        logger.debug(f'Stored {label} memory: {memory_id}')
        return memory_id

    def get_memory(self, memory_id: str) -> Optional[MemoryNode]:
        """Read a memory without touching its access metadata. Returns None if absent."""
        with self.store.session() as session:
            record = session.get_node(memory_id)
        return node_from_record(record) if record else None

    def list_memories(self,
                      label: Optional[str] = None,
                      categories: Optional[Sequence[str]] = None,
                      min_importance: Optional[float] = None) -> List[MemoryNode]:
        """All memories matching the optional filters, in store order."""
        if label is not None:
            label = self.schema_guard.normalize_label(label)
        with self.store.session() as session:
            records = session.find_nodes(label=label, categories=categories, min_importance=min_importance)
        return [node_from_record(record) for record in records]

    def update_memory(self, memory_id: str, **fields) -> MemoryNode:
        """Merge the given fields into an existing memory.

        Raises:
            InvalidMemory: If a field is immutable, unknown or invalid
            NotFound: If the memory does not exist
        """
        changes = {}
        for name, value in fields.items():
            if name in IMMUTABLE_FIELDS:
                raise InvalidMemory(name, 'cannot be changed')
            if name not in UPDATABLE_FIELDS:
                raise InvalidMemory(name, 'unknown field')
            if name == 'content':
                changes[name] = _validate_content(value)
            elif name in ('importance', 'confidence'):
                changes[name] = unit_interval(name, value)
            elif name == 'tags':
                changes[name] = _validate_tags(value)
            elif name == 'properties':
                changes[name] = _validate_properties(value)
            else:
                changes[name] = '' if value is None else str(value)

        with self.store.session(write=True) as session:
            if changes and not session.update_node(memory_id, changes):
                raise NotFound('memory', memory_id)
            record = session.get_node(memory_id)
            if record is None:
                raise NotFound('memory', memory_id)

        logger.debug(f'Updated memory {memory_id}: {sorted(changes)}')
        return node_from_record(record)

    def update_memory_access(self, memory_id: str) -> MemoryNode:
        """Record one access: increment access_count and move last_accessed forward."""
        with self.store.session(write=True) as session:
            record = session.get_node(memory_id)
            if record is None:
                raise NotFound('memory', memory_id)
            previous = from_iso(record.props['last_accessed'])
            now = max(self.clock(), previous)
            changes = {'access_count': int(record.props.get('access_count', 0)) + 1, 'last_accessed': to_iso(now)}
            session.update_node(memory_id, changes)
            record.props.update(changes)

        return node_from_record(record)

    def delete_memory(self, memory_id: str) -> int:
        """Delete a memory following the configured policy.

        Returns:
            Number of relationships removed with the node

        Raises:
            NotFound: If the memory does not exist
            ConflictingWrite: Under the reject policy, if relationships remain
        """
        with self.store.session(write=True) as session:
            if self.config.delete_policy == 'reject':
                if session.get_node(memory_id) is None:
                    raise NotFound('memory', memory_id)
                remaining = len(session.edges_of(memory_id))
                if remaining:
                    raise ConflictingWrite(f'Memory {memory_id} still has {remaining} relationships')
            removed = session.delete_node(memory_id)
            if removed < 0:
                raise NotFound('memory', memory_id)

        logger.debug(f'Deleted memory {memory_id} with {removed} relationships')
        return removed
