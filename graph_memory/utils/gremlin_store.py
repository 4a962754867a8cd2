"""
Gremlin graph store for Amazon Neptune or Gremlin Server, with optional AWS SigV4 authentication.
"""

import asyncio
from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, Iterator, List, Optional, Sequence

from boto3 import Session
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from gremlin_python.driver.aiohttp.transport import AiohttpTransport
from gremlin_python.driver.driver_remote_connection import DriverRemoteConnection
from gremlin_python.driver.protocol import GremlinServerError
from gremlin_python.process.anonymous_traversal import traversal
from gremlin_python.process.traversal import Cardinality, Direction as GremlinDirection, P, T

from ..models.core import Direction
from ..models.errors import ConflictingWrite, GraphMemoryError, StoreUnavailable
from .config import GremlinConfig
from .graph_store import EdgeRecord, GraphSession, GraphStore, NodeRecord
from .json_utils import decode_properties, encode_properties
from .logging_config import get_logger

logger = get_logger(__name__)

# Neptune holds scalar properties only
JSON_KEYS = ('tags', 'properties')

_CONFLICT_MARKERS = ('concurrentmodification', 'constraintviolation', 'already exists')
_TIMEOUT_MARKERS = ('timelimitexceeded', 'timed out', 'timeout')


def translate_store_errors(func):
    """Decorator mapping driver failures to StoreUnavailable / ConflictingWrite."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except GraphMemoryError:
            raise
        except GremlinServerError as e:
            message = str(e).lower()
            if any(marker in message for marker in _CONFLICT_MARKERS):
                logger.warning(f'Conflicting write in {func.__name__}: {e}')
                raise ConflictingWrite(f'Failed to {func.__name__}: {e}')
            if any(marker in message for marker in _TIMEOUT_MARKERS):
                logger.warning(f'Timeout in {func.__name__}: {e}')
                raise StoreUnavailable(f'Failed to {func.__name__}: {e}')
            logger.error(f'Error in {func.__name__}: {e}')
            raise GraphMemoryError(f'Failed to {func.__name__}: {e}')
        except (OSError, asyncio.TimeoutError, RuntimeError) as e:
            # aiohttp reports a dropped socket as 'cannot write to closing transport'
            if 'closing transport' in str(e).lower():
                self.store.reset_connection()
            logger.warning(f'Connection error in {func.__name__}: {e}')
            raise StoreUnavailable(f'Failed to {func.__name__}: {e}')

    return wrapper


def _node_from_element_map(data: Dict[Any, Any]) -> NodeRecord:
    props = {key: value for key, value in data.items() if isinstance(key, str)}
    return NodeRecord(id=str(data[T.id]), label=data[T.label], props=decode_properties(props, JSON_KEYS))


def _edge_from_element_map(data: Dict[Any, Any]) -> EdgeRecord:
    props = {key: value for key, value in data.items() if isinstance(key, str)}
    return EdgeRecord(id=str(data[T.id]),
                      type=data[T.label],
                      source_id=str(data[GremlinDirection.OUT][T.id]),
                      target_id=str(data[GremlinDirection.IN][T.id]),
                      props=decode_properties(props, JSON_KEYS))


class GremlinSession(GraphSession):
    """Session bound to one traversal source (transactional when the store supports it)."""

    def __init__(self, store: 'GremlinGraphStore', g):
        self.store = store
        self.g = g

    @translate_store_errors
    def add_node(self, label: str, node_id: str, props: Dict[str, Any]) -> None:
        if self.g.V(node_id).limit(1).count().next() > 0:
            raise ConflictingWrite(f'Node already exists: {node_id}')

        traversal = self.g.add_v(label).property(T.id, node_id)
        for key, value in encode_properties(props, JSON_KEYS).items():
            traversal = traversal.property(Cardinality.single, key, value)
        traversal.iterate()
        logger.debug(f'Created {label} vertex: {node_id}')

    @translate_store_errors
    def get_node(self, node_id: str) -> Optional[NodeRecord]:
        found = self.g.V(node_id).element_map().to_list()
        return _node_from_element_map(found[0]) if found else None

    @translate_store_errors
    def update_node(self, node_id: str, props: Dict[str, Any]) -> bool:
        traversal = self.g.V(node_id)
        for key, value in encode_properties(props, JSON_KEYS).items():
            traversal = traversal.property(Cardinality.single, key, value)
        return bool(traversal.id_().to_list())

    @translate_store_errors
    def delete_node(self, node_id: str) -> int:
        if not self.g.V(node_id).id_().to_list():
            return -1
        edge_count = self.g.V(node_id).both_e().dedup().count().next()
        # dropping a vertex drops its incident edges
        self.g.V(node_id).drop().iterate()
        logger.debug(f'Deleted vertex {node_id} and {edge_count} edges')
        return int(edge_count)

    @translate_store_errors
    def find_nodes(self,
                   label: Optional[str] = None,
                   categories: Optional[Sequence[str]] = None,
                   min_importance: Optional[float] = None) -> List[NodeRecord]:
        traversal = self.g.V()
        if label is not None:
            traversal = traversal.has_label(label)
        if categories:
            traversal = traversal.has('category', P.within(*categories))
        if min_importance is not None:
            traversal = traversal.has('importance', P.gte(min_importance))
        return [_node_from_element_map(data) for data in traversal.element_map().to_list()]

    @translate_store_errors
    def add_edge(self, edge_type: str, edge_id: str, source_id: str, target_id: str, props: Dict[str, Any]) -> bool:
        # Both endpoints resolve inside the same traversal, so a missing one yields no edge
        traversal = self.g.V(source_id).as_('source').V(target_id)\
            .add_e(edge_type).from_('source').property(T.id, edge_id)
        for key, value in encode_properties(props, JSON_KEYS).items():
            traversal = traversal.property(key, value)
        created = traversal.id_().to_list()
        if created:
            logger.debug(f'Created {edge_type} edge {edge_id}: {source_id} -> {target_id}')
        return bool(created)

    @translate_store_errors
    def get_edge(self, edge_id: str) -> Optional[EdgeRecord]:
        found = self.g.E(edge_id).element_map().to_list()
        return _edge_from_element_map(found[0]) if found else None

    @translate_store_errors
    def delete_edge(self, edge_id: str) -> bool:
        if not self.g.E(edge_id).id_().to_list():
            return False
        self.g.E(edge_id).drop().iterate()
        logger.debug(f'Deleted edge: {edge_id}')
        return True

    @translate_store_errors
    def edges_of(self, node_id: str, direction: Direction = Direction.BOTH) -> List[EdgeRecord]:
        traversal = self.g.V(node_id)
        if direction == Direction.OUTGOING:
            traversal = traversal.out_e()
        elif direction == Direction.INCOMING:
            traversal = traversal.in_e()
        else:
            traversal = traversal.both_e().dedup()
        return [_edge_from_element_map(data) for data in traversal.element_map().to_list()]

    @translate_store_errors
    def count_nodes(self) -> int:
        return int(self.g.V().count().next())

    @translate_store_errors
    def count_edges(self) -> int:
        return int(self.g.E().count().next())

    @translate_store_errors
    def labels(self) -> List[str]:
        return sorted(self.g.V().label().dedup().to_list())

    @translate_store_errors
    def relationship_types(self) -> List[str]:
        return sorted(self.g.E().label().dedup().to_list())

    @translate_store_errors
    def clear(self) -> None:
        logger.info('Deleting all edges and vertices...')
        self.g.E().drop().iterate()
        self.g.V().drop().iterate()


class GremlinGraphStore(GraphStore):
    """Gremlin store using the Gremlin Python driver; one remote connection pool per store."""

    def __init__(self, config: GremlinConfig, timeout_ms: int = 10000):
        """
        Initialize the store. The connection is opened lazily on first use.

        Args:
            config: GremlinConfig instance with connection parameters
            timeout_ms: Server-side evaluation timeout applied to every traversal
        """
        self.config = config
        self.timeout_ms = timeout_ms
        self.connection = None
        self.g = None

    @property
    def url(self) -> str:
        scheme = 'wss' if self.config.use_ssl else 'ws'
        return f'{scheme}://{self.config.endpoint}:{self.config.port}/gremlin'

    def _signed_headers(self) -> Dict[str, str]:
        """SigV4 headers for the WebSocket handshake."""
        credentials = Session().get_credentials()
        if credentials is None:
            raise StoreUnavailable('No AWS credentials found')
        creds = credentials.get_frozen_credentials()

        region = self.config.region or Session().region_name or 'us-east-1'

        request = AWSRequest(method='GET', url=self.url, data=None)
        SigV4Auth(creds, 'neptune-db', region).add_auth(request)
        return dict(request.headers.items())

    def _connect(self):
        """Establish the remote connection pool."""
        headers = self._signed_headers() if self.config.iam_auth else None
        try:
            self.connection = DriverRemoteConnection(self.url,
                                                     self.config.traversal_source,
                                                     headers=headers,
                                                     pool_size=self.config.pool_size,
                                                     transport_factory=lambda: AiohttpTransport(call_from_event_loop=True))
        except (OSError, asyncio.TimeoutError) as e:
            raise StoreUnavailable(f'Could not connect to {self.url}: {e}')
        self.g = traversal().with_remote(self.connection)
        logger.info(f'Connected to Gremlin endpoint at {self.config.endpoint}')

    def reset_connection(self):
        """Drop the pool so the next session reconnects."""
        self.close()
        self.connection = None
        self.g = None

    def traversal_source(self):
        if self.g is None:
            self._connect()
        return self.g.with_('evaluationTimeout', self.timeout_ms)

    @contextmanager
    def session(self, write: bool = False) -> Iterator[GremlinSession]:
        g = self.traversal_source()
        if not self.config.use_transactions:
            yield GremlinSession(self, g)
            return

        tx = g.tx()
        try:
            gtx = tx.begin()
        except (OSError, asyncio.TimeoutError, RuntimeError) as e:
            raise StoreUnavailable(f'Could not open transaction: {e}')
        try:
            yield GremlinSession(self, gtx)
        except BaseException:
            if tx.is_open():
                try:
                    tx.rollback()
                except Exception as e:
                    logger.warning(f'Rollback failed: {e}')
            raise
        try:
            tx.commit()
        except GremlinServerError as e:
            if any(marker in str(e).lower() for marker in _CONFLICT_MARKERS):
                raise ConflictingWrite(f'Commit failed: {e}')
            raise StoreUnavailable(f'Commit failed: {e}')
        except (OSError, asyncio.TimeoutError, RuntimeError) as e:
            raise StoreUnavailable(f'Commit failed: {e}')

    def initialize(self) -> None:
        # Neptune indexes vertex and edge ids itself; only connectivity is checked
        if not self.health_check():
            raise StoreUnavailable(f'Gremlin endpoint {self.url} is not reachable')
        logger.info('Gremlin graph store ready')

    def health_check(self) -> bool:
        """
        Perform a health check on the Gremlin endpoint.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            self.traversal_source().V().limit(1).count().next()
            return True
        except Exception as e:
            logger.error(f'Gremlin health check failed: {e}')
            return False

    def close(self):
        """Close the remote connection pool."""
        if self.connection is not None:
            self.connection.close()
