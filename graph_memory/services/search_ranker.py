"""
Text relevance search over memory nodes.

Scoring is deterministic and explainable: a weighted sum of text match,
importance, confidence and recency, each in [0, 1].
"""

import re
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..models.core import MemoryNode, SearchResult
from ..utils.config import SearchConfig, SearchWeights
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import days_between, utc_now
from .memory_repository import MemoryRepository

logger = get_logger(__name__)

TOKEN_PATTERN = re.compile(r'\w+')


def tokenize(text: str) -> List[str]:
    return TOKEN_PATTERN.findall(text.lower())


def is_candidate(node: MemoryNode, query: str, tokens: Sequence[str]) -> bool:
    """Cheap superset pass: the query or any of its tokens appears in content, tags, category or context."""
    haystacks = [node.content.lower(), node.category.lower(), node.context.lower()]
    haystacks.extend(tag.lower() for tag in node.tags)
    needles = [query] + list(tokens)
    return any(needle in haystack for haystack in haystacks for needle in needles)


def text_match(node: MemoryNode, query: str, tokens: Sequence[str]) -> float:
    """1.0 for a full substring match in content, otherwise the fraction of tokens found in content or tags."""
    content = node.content.lower()
    if query in content:
        return 1.0
    if not tokens:
        return 0.0
    tags = [tag.lower() for tag in node.tags]
    found = sum(1 for token in tokens if token in content or any(token in tag for tag in tags))
    return found / len(tokens)


def recency(last_accessed: datetime, now: datetime) -> float:
    return 1.0 / (1.0 + days_between(last_accessed, now))


def ranking_key(result: SearchResult):
    """Score descending, then more recent access, then id."""
    return (-result.relevance_score, -result.node.last_accessed.timestamp(), result.node.id)


class SearchRanker:
    """Rank memories against a free-text query."""

    def __init__(self, memories: MemoryRepository, config: Optional[SearchConfig] = None, clock: Callable = utc_now):
        self.memories = memories
        self.config = config or SearchConfig()
        self.clock = clock

    @property
    def weights(self) -> SearchWeights:
        return self.config.weights

    def score(self, node: MemoryNode, query_text: str, now: Optional[datetime] = None) -> float:
        """Relevance of node to query_text in [0, 1]."""
        query = query_text.strip().lower()
        now = now or self.clock()
        w = self.weights
        return (w.text_match * text_match(node, query, tokenize(query)) +
                w.importance * node.importance +
                w.confidence * node.confidence +
                w.recency * recency(node.last_accessed, now))

    def search_memories(self,
                        query_text: str,
                        limit: Optional[int] = None,
                        min_importance: float = 0.0,
                        categories: Optional[Sequence[str]] = None,
                        label: Optional[str] = None) -> List[SearchResult]:
        """Search memories by text relevance.

        Does not record access; callers touch the results they act on.

        Args:
            query_text: Free-text query
            limit: Maximum number of results (default from config)
            min_importance: Drop memories below this importance
            categories: Keep only these categories (optional)
            label: Keep only this label (optional)

        Returns:
            Results ordered by relevance
        """
        limit = self.config.default_limit if limit is None else limit
        query = (query_text or '').strip().lower()
        if not query or limit <= 0:
            return []

        tokens = tokenize(query)
        now = self.clock()
        nodes = self.memories.list_memories(label=label,
                                            categories=list(categories) if categories else None,
                                            min_importance=min_importance or None)

        results = [
            SearchResult(node=node, relevance_score=self.score(node, query, now)) for node in nodes
            if is_candidate(node, query, tokens)
        ]
        results.sort(key=ranking_key)

        logger.debug(f"Search '{query_text}' matched {len(results)} of {len(nodes)} memories")
        return results[:limit]
