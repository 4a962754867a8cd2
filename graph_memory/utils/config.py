"""
Configuration management for the graph store and memory engine settings.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class GremlinConfig:
    """Configuration for a Gremlin endpoint (Amazon Neptune or Gremlin Server)."""
    endpoint: str
    port: int
    region: str
    use_ssl: bool
    iam_auth: bool
    traversal_source: str
    pool_size: int
    use_transactions: bool


@dataclass
class NetworkXConfig:
    """Configuration for the embedded networkx graph."""
    path: Optional[str]


@dataclass
class StoreConfig:
    """Configuration shared by every graph store backend."""
    backend: str
    timeout_ms: int
    retry_attempts: int
    retry_delay: float
    gremlin: GremlinConfig
    networkx: NetworkXConfig


@dataclass
class MemoryConfig:
    """Configuration for memory and relationship defaults."""
    default_label: str = 'Memory'
    default_relationship_type: str = 'RELATED_TO'
    default_category: str = 'fact'
    default_importance: float = 0.5
    default_confidence: float = 1.0
    default_weight: float = 1.0
    delete_policy: str = 'detach'


@dataclass
class SearchWeights:
    """Relevance score weights. They must sum to 1.0."""
    text_match: float = 0.5
    importance: float = 0.2
    confidence: float = 0.15
    recency: float = 0.15

    def __post_init__(self):
        total = self.text_match + self.importance + self.confidence + self.recency
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f'Search weights must sum to 1.0, got {total}')


@dataclass
class SearchConfig:
    """Configuration for text relevance search and graph traversal."""
    weights: SearchWeights = field(default_factory=SearchWeights)
    default_limit: int = 10
    seed_limit: int = 10
    depth_penalty: float = 0.05
    default_max_depth: int = 2
    default_path_depth: int = 3


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    store: StoreConfig
    memory: MemoryConfig
    search: SearchConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Gremlin / Neptune configuration
    gremlin_config = GremlinConfig(endpoint=os.getenv('GREMLIN_ENDPOINT', 'localhost'),
                                   port=int(os.getenv('GREMLIN_PORT', '8182')),
                                   region=os.getenv('GREMLIN_AWS_REGION', 'us-east-1'),
                                   use_ssl=_env_bool('GREMLIN_USE_SSL', 'true'),
                                   iam_auth=_env_bool('GREMLIN_IAM_AUTH', 'true'),
                                   traversal_source=os.getenv('GREMLIN_TRAVERSAL_SOURCE', 'g'),
                                   pool_size=int(os.getenv('GREMLIN_POOL_SIZE', '4')),
                                   use_transactions=_env_bool('GREMLIN_USE_TRANSACTIONS', 'true'))

    networkx_config = NetworkXConfig(path=os.getenv('NETWORKX_GRAPH_PATH') or None)

    store_config = StoreConfig(backend=os.getenv('GRAPH_BACKEND', 'gremlin'),
                               timeout_ms=int(os.getenv('STORE_TIMEOUT_MS', '10000')),
                               retry_attempts=int(os.getenv('STORE_RETRY_ATTEMPTS', '3')),
                               retry_delay=float(os.getenv('STORE_RETRY_DELAY', '0.5')),
                               gremlin=gremlin_config,
                               networkx=networkx_config)

    # Memory configuration
    memory_config = MemoryConfig(default_category=os.getenv('MEMORY_DEFAULT_CATEGORY', 'fact'),
                                 default_importance=float(os.getenv('MEMORY_DEFAULT_IMPORTANCE', '0.5')),
                                 default_confidence=float(os.getenv('MEMORY_DEFAULT_CONFIDENCE', '1.0')),
                                 default_weight=float(os.getenv('RELATIONSHIP_DEFAULT_WEIGHT', '1.0')),
                                 delete_policy=os.getenv('MEMORY_DELETE_POLICY', 'detach'))

    # Search configuration
    weights = SearchWeights(text_match=float(os.getenv('SEARCH_WEIGHT_TEXT', '0.5')),
                            importance=float(os.getenv('SEARCH_WEIGHT_IMPORTANCE', '0.2')),
                            confidence=float(os.getenv('SEARCH_WEIGHT_CONFIDENCE', '0.15')),
                            recency=float(os.getenv('SEARCH_WEIGHT_RECENCY', '0.15')))
    search_config = SearchConfig(weights=weights,
                                 default_limit=int(os.getenv('SEARCH_DEFAULT_LIMIT', '10')),
                                 seed_limit=int(os.getenv('GRAPH_SEARCH_SEED_LIMIT', '10')),
                                 depth_penalty=float(os.getenv('GRAPH_SEARCH_DEPTH_PENALTY', '0.05')),
                                 default_max_depth=int(os.getenv('GRAPH_SEARCH_MAX_DEPTH', '2')),
                                 default_path_depth=int(os.getenv('FIND_PATH_MAX_DEPTH', '3')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     store=store_config,
                     memory=memory_config,
                     search=search_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
