"""
Validation for caller-supplied labels and relationship types.

Graph query languages cannot parameterize schema identifiers, so any label or
edge type that shapes a query passes through here first.
"""

import re

from ..models.errors import InvalidSchemaIdentifier
from .logging_config import get_logger

logger = get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')

DEFAULT_LABEL = 'Memory'
DEFAULT_RELATIONSHIP_TYPE = 'RELATED_TO'


def is_safe_identifier(value) -> bool:
    return isinstance(value, str) and IDENTIFIER_PATTERN.fullmatch(value) is not None


class SchemaGuard:
    """Allow-list normalization of dynamic schema identifiers."""

    def __init__(self, default_label: str = DEFAULT_LABEL, default_relationship_type: str = DEFAULT_RELATIONSHIP_TYPE):
        if not is_safe_identifier(default_label) or not is_safe_identifier(default_relationship_type):
            raise ValueError('Schema defaults must themselves be safe identifiers')
        self.default_label = default_label
        self.default_relationship_type = default_relationship_type

    def normalize_label(self, label, strict: bool = False) -> str:
        """Return label if it is a safe identifier, else the default label.

        Args:
            label: Caller-supplied node label
            strict: Raise instead of substituting the default

        Returns:
            A label safe to place in query structure

        Raises:
            InvalidSchemaIdentifier: In strict mode, if label is not safe
        """
        return self._normalize(label, self.default_label, strict)

    def normalize_relationship_type(self, rel_type, strict: bool = False) -> str:
        """Same rule as normalize_label, defaulting to the default relationship type."""
        return self._normalize(rel_type, self.default_relationship_type, strict)

    def _normalize(self, value, default: str, strict: bool) -> str:
        if is_safe_identifier(value):
            return value
        if strict:
            raise InvalidSchemaIdentifier(value)
        if value:
            logger.debug(f'Replacing unsafe schema identifier {value!r} with {default!r}')
        return default
