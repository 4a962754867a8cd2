"""
MCP Interface Layer using fastmcp for agent memory tools.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from .models.errors import (ConflictingWrite, GraphMemoryError, InvalidMemory, InvalidSchemaIdentifier, NotFound,
                            StoreUnavailable)
from .services.memory_service import MemoryService
from .utils.config import config
from .utils.health_check import get_system_info
from .utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Graph Memory')

_memory_service: Optional[MemoryService] = None


def get_memory_service() -> MemoryService:
    """Build the service on first use so importing this module never touches the store."""
    global _memory_service
    if _memory_service is None:
        _memory_service = MemoryService()
        _memory_service.initialize()
    return _memory_service


def set_memory_service(service: Optional[MemoryService]) -> None:
    global _memory_service
    _memory_service = service


def call_tool(action: str, func, *args, **kwargs):
    """Run a service call and turn engine errors into messages the agent can act on."""
    try:
        return func(*args, **kwargs)
    except NotFound as e:
        logger.debug(f'{action}: {e}')
        raise ToolError(f'No such {e.kind}: {e.item_id}')
    except InvalidMemory as e:
        logger.debug(f'{action}: {e}')
        raise ToolError(f'Invalid {e.field}: {e}')
    except InvalidSchemaIdentifier as e:
        raise ToolError(f'Invalid label or relationship type: {e.value!r}')
    except ConflictingWrite as e:
        logger.warning(f'{action} conflicted: {e}')
        raise ToolError(f'{action} conflicted with existing data: {e}')
    except StoreUnavailable as e:
        logger.error(f'Memory store unavailable during {action}: {e}')
        raise ToolError('The memory store is temporarily unavailable. Please retry shortly.')
    except GraphMemoryError as e:
        logger.error(f'{action} failed: {e}')
        raise ToolError(f'{action} failed: {e}')


@mcp.tool()
def store_memory(content: str,
                 category: str = 'fact',
                 importance: float = 0.5,
                 confidence: float = 1.0,
                 tags: Optional[List[str]] = None,
                 context: str = '',
                 properties: Optional[Dict[str, Any]] = None,
                 label: Optional[str] = None) -> Dict[str, str]:
    """Store important information about the user or conversation.

    Args:
        content: The fact or preference to remember
        category: Classification such as 'fact' or 'user_preference'
        importance: Significance from 0 to 1
        confidence: Certainty from 0 to 1
        tags: Keywords for retrieval
        context: Where or why this was learned
        properties: Extra attributes
        label: Node label such as 'Person' or 'Preference' (default 'Memory')

    Returns:
        The new memory id
    """
    service = get_memory_service()
    memory_id = call_tool('store_memory',
                          service.store_memory,
                          content,
                          category=category,
                          importance=importance,
                          confidence=confidence,
                          tags=tags,
                          context=context,
                          properties=properties,
                          label=label)
    return {'id': memory_id}


@mcp.tool()
def retrieve_memory(query: str,
                    limit: int = 5,
                    min_importance: float = 0.0,
                    categories: Optional[List[str]] = None,
                    label: Optional[str] = None) -> List[Dict[str, Any]]:
    """Search memories by text relevance.

    Args:
        query: Natural language query
        limit: Maximum number of results to return (default: 5)
        min_importance: Ignore memories below this importance
        categories: Only these categories
        label: Only this node label

    Returns:
        Ranked memories with relevance scores
    """
    service = get_memory_service()
    results = call_tool('retrieve_memory',
                        service.search_memories,
                        query,
                        limit=limit,
                        min_importance=min_importance,
                        categories=categories,
                        label=label)
    logger.debug(f'MCP search returned {len(results)} memories')
    return [result.to_dict() for result in results]


@mcp.tool()
def graph_search(query: str, max_depth: int = 2, limit: int = 10) -> List[Dict[str, Any]]:
    """Find memories connected to a concept within max_depth hops."""
    service = get_memory_service()
    results = call_tool('graph_search', service.graph_search, query, max_depth=max_depth, limit=limit)
    return [result.to_dict() for result in results]


@mcp.tool()
def find_path(from_id: str, to_id: str, max_depth: int = 3, direction: str = 'outgoing') -> Optional[Dict[str, Any]]:
    """Find the shortest relational path between two memories. Returns null if none exists."""
    service = get_memory_service()
    path = call_tool('find_path', service.find_path, from_id, to_id, max_depth=max_depth, direction=direction)
    return path.to_dict() if path else None


@mcp.tool()
def analyze_graph() -> Dict[str, Any]:
    """Summarize the knowledge graph: counts, categories, labels and relationship types."""
    service = get_memory_service()
    return call_tool('analyze_graph', service.get_memory_stats).to_dict()


@mcp.tool()
def get_memory(memory_id: str, record_access: bool = True) -> Dict[str, Any]:
    """Fetch one memory, recording the access unless record_access is false."""
    service = get_memory_service()
    if record_access:
        return call_tool('get_memory', service.update_memory_access, memory_id).to_dict()
    node = call_tool('get_memory', service.get_memory, memory_id)
    if node is None:
        raise ToolError(f'No such memory: {memory_id}')
    return node.to_dict()


@mcp.tool()
def update_memory(memory_id: str,
                  content: Optional[str] = None,
                  category: Optional[str] = None,
                  importance: Optional[float] = None,
                  confidence: Optional[float] = None,
                  tags: Optional[List[str]] = None,
                  context: Optional[str] = None,
                  properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Update fields of an existing memory. Omitted fields are left unchanged."""
    fields = {
        'content': content,
        'category': category,
        'importance': importance,
        'confidence': confidence,
        'tags': tags,
        'context': context,
        'properties': properties,
    }
    fields = {name: value for name, value in fields.items() if value is not None}
    service = get_memory_service()
    return call_tool('update_memory', service.update_memory, memory_id, **fields).to_dict()


@mcp.tool()
def forget_memory(memory_id: str) -> Dict[str, Any]:
    """Remove an outdated memory together with its relationships."""
    service = get_memory_service()
    removed = call_tool('forget_memory', service.delete_memory, memory_id)
    return {'id': memory_id, 'relationships_removed': removed}


@mcp.tool()
def create_relationship(source_id: str,
                        target_id: str,
                        type: str = 'RELATED_TO',
                        weight: float = 1.0,
                        context: str = '',
                        confidence: float = 1.0,
                        properties: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Link two memories with a directed, typed relationship."""
    service = get_memory_service()
    relationship_id = call_tool('create_relationship',
                                service.create_relationship,
                                source_id,
                                target_id,
                                type=type,
                                weight=weight,
                                context=context,
                                confidence=confidence,
                                properties=properties)
    return {'id': relationship_id}


@mcp.tool()
def delete_relationship(relationship_id: str) -> Dict[str, str]:
    """Remove a relationship."""
    service = get_memory_service()
    call_tool('delete_relationship', service.delete_relationship, relationship_id)
    return {'id': relationship_id}


@mcp.tool()
def get_relationships(memory_id: str, direction: str = 'both') -> List[Dict[str, Any]]:
    """List relationships of a memory: 'outgoing', 'incoming' or 'both'."""
    service = get_memory_service()
    relationships = call_tool('get_relationships', service.get_relationships_of, memory_id, direction)
    return [rel.to_dict() for rel in relationships]


@mcp.tool()
def list_labels() -> List[str]:
    """List node labels in use."""
    return call_tool('list_labels', get_memory_service().list_labels)


@mcp.tool()
def list_relationship_types() -> List[str]:
    """List relationship types in use."""
    return call_tool('list_relationship_types', get_memory_service().list_relationship_types)


@mcp.tool()
def health() -> Dict[str, Any]:
    """Report store health and the active configuration."""
    return get_system_info(get_memory_service().store)


if __name__ == '__main__':
    transport = config.mcp.transport
    host = config.mcp.host
    port = config.mcp.port
    mcp.run(transport=transport, host=host, port=port)
