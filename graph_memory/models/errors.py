"""
Error kinds surfaced by the graph memory engine.
"""


class GraphMemoryError(Exception):
    """Base exception for graph memory errors."""
    retryable = False


class InvalidMemory(GraphMemoryError):
    """A required field is missing or a value cannot be safely clamped."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f'{field}: {message}')


class InvalidSchemaIdentifier(GraphMemoryError):
    """A label or relationship type is not a safe identifier (strict mode only)."""

    def __init__(self, value):
        self.value = value
        super().__init__(f'Invalid schema identifier: {value!r}')


class NotFound(GraphMemoryError):
    """A referenced memory or relationship does not exist."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f'No such {kind}: {item_id}')


class StoreUnavailable(GraphMemoryError):
    """The graph store is unreachable or timed out. Safe to retry with backoff."""
    retryable = True


class ConflictingWrite(GraphMemoryError):
    """A write collided with existing data or a concurrent change."""
    pass
