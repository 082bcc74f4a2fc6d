"""
Amazon Neptune client for memory vertices and connection edges, using the
Gremlin Python driver with AWS SigV4 authentication.
"""

from functools import wraps
from typing import Any, Dict, Iterable, List, Optional, Set

from boto3 import Session
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from gremlin_python.driver.aiohttp.transport import AiohttpTransport
from gremlin_python.driver.driver_remote_connection import DriverRemoteConnection
from gremlin_python.process.anonymous_traversal import traversal
from gremlin_python.process.graph_traversal import __
from gremlin_python.process.traversal import P

from ..models.core import Connection, ScoreBreakdown, stored_timestamp
from .config import NeptuneConfig
from .logging_config import get_logger
from .timestamp_utils import to_iso

logger = get_logger(__name__)

MEMORY_LABEL = 'Memory'
CONNECTION_LABEL = 'Connection'


class NeptuneError(Exception):
    """Custom exception for Neptune errors."""
    pass


def retry_on_connection_error(func):
    """Decorator to retry Neptune operations once after a dropped transport."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except Exception as e:
            if 'cannot write to closing transport' in str(e).lower():
                logger.warning(f'Connection error detected: {e}. Reconnecting...')
                self.close()
                self._connect()
                try:
                    return func(self, *args, **kwargs)
                except Exception as retry_e:
                    logger.error(f'Error in {func.__name__}: {retry_e}')
                    raise NeptuneError(f'Failed to {func.__name__}: {retry_e}')
            else:
                logger.error(f'Error in {func.__name__}: {e}')
                raise NeptuneError(f'Failed to {func.__name__}: {e}')

    return wrapper


def _value(data: Dict[Any, Any], key: str, default: Any = None) -> Any:
    """Read a property from a value_map row; vertex properties come back as lists."""
    value = data.get(key, default)
    if isinstance(value, list):
        return value[0] if value else default
    return value


def connection_from_value_map(data: Dict[Any, Any]) -> Connection:
    """Build a Connection from an edge value_map row."""
    breakdown = None
    if _value(data, 'semantic') is not None:
        breakdown = ScoreBreakdown(semantic=float(_value(data, 'semantic', 0.0)),
                                   tag=float(_value(data, 'tag', 0.0)),
                                   temporal=float(_value(data, 'temporal', 0.0)))

    return Connection(source_id=_value(data, 'source_id', ''),
                      target_id=_value(data, 'target_id', ''),
                      user_id=_value(data, 'user_id', ''),
                      connection_type=_value(data, 'connection_type', 'combined'),
                      strength=float(_value(data, 'strength', 0.0)),
                      breakdown=breakdown,
                      created_at=stored_timestamp(_value(data, 'created_at')))


class NeptuneClient:
    """Amazon Neptune client holding the connection graph."""

    def __init__(self, config: NeptuneConfig):
        """
        Initialize Neptune client with Gremlin driver.

        Args:
            config: NeptuneConfig instance with connection parameters
        """
        self.config = config
        self.connection = None
        self.g = None
        self._connect()

        logger.info(f'Connected to Neptune at {config.endpoint}')

    def _connect(self):
        """Establish connection to Neptune."""
        conn_string = f'wss://{self.config.endpoint}:{self.config.port}/gremlin'

        credentials = Session().get_credentials()
        if credentials is None:
            raise NeptuneError('No AWS credentials found')
        creds = credentials.get_frozen_credentials()

        region = self.config.region or Session().region_name or 'us-east-1'

        # Sign the WebSocket upgrade request
        request = AWSRequest(method='GET', url=conn_string, data=None)
        SigV4Auth(creds, 'neptune-db', region).add_auth(request)

        self.connection = DriverRemoteConnection(conn_string,
                                                 'g',
                                                 headers=request.headers.items(),
                                                 transport_factory=lambda: AiohttpTransport(call_from_event_loop=True))
        self.g = traversal().with_remote(self.connection)

    def close(self):
        """Close the Neptune connection."""
        if self.connection is not None:
            self.connection.close()

    @retry_on_connection_error
    def create_memory_vertex(self, memory_id: str, user_id: str, content_type: str, created_at: Optional[str] = None) -> bool:
        """
        Create the vertex a memory's connections attach to.

        Args:
            memory_id: Memory identifier
            user_id: User ID for isolation
            content_type: Memory content type
            created_at: Creation timestamp (ISO-8601)

        Returns:
            True once the vertex exists
        """
        existing = self.g.V().has(MEMORY_LABEL, 'id', memory_id).to_list()
        if existing:
            logger.debug(f'Memory vertex already exists: {memory_id}')
            return True

        vertex = self.g.addV(MEMORY_LABEL).property('id', memory_id)\
            .property('user_id', user_id)\
            .property('content_type', content_type)
        if created_at:
            vertex = vertex.property('created_at', created_at)

        vertex.next()
        logger.debug(f'Created memory vertex: {memory_id}')
        return True

    @retry_on_connection_error
    def delete_memory_vertex(self, memory_id: str, user_id: str) -> int:
        """
        Delete a memory vertex together with every connection touching it.

        Args:
            memory_id: Memory ID to delete
            user_id: User ID for security check

        Returns:
            Number of connections removed
        """
        vertex = self.g.V().has(MEMORY_LABEL, 'id', memory_id).has('user_id', user_id)
        removed = vertex.both_e(CONNECTION_LABEL).count().next()

        self.g.V().has(MEMORY_LABEL, 'id', memory_id).has('user_id', user_id)\
            .both_e(CONNECTION_LABEL).drop().iterate()
        self.g.V().has(MEMORY_LABEL, 'id', memory_id).has('user_id', user_id).drop().iterate()

        logger.debug(f'Deleted memory vertex {memory_id} and {removed} connections')
        return int(removed)

    @retry_on_connection_error
    def get_pair_keys(self, user_id: str) -> Set[str]:
        """
        Get the pair keys of every persisted connection for a user.

        Args:
            user_id: User ID to filter by

        Returns:
            Set of sorted ``id:id`` pair keys
        """
        keys = self.g.E().has_label(CONNECTION_LABEL).has('user_id', user_id).values('pair_key').to_list()
        return set(keys)

    @retry_on_connection_error
    def get_connections(self, user_id: str, memory_ids: Optional[Iterable[str]] = None) -> List[Connection]:
        """
        Get persisted connections for a user.

        Args:
            user_id: User ID to filter by
            memory_ids: If given, only connections touching one of these memories

        Returns:
            List of Connection objects
        """
        edges = self.g.E().has_label(CONNECTION_LABEL).has('user_id', user_id)
        if memory_ids is not None:
            memory_ids = list(memory_ids)
            if not memory_ids:
                return []
            edges = edges.or_(__.has('source_id', P.within(memory_ids)), __.has('target_id', P.within(memory_ids)))

        rows = edges.value_map().to_list()
        connections = [connection_from_value_map(row) for row in rows]

        logger.debug(f'Found {len(connections)} connections for user {user_id}')
        return connections

    @retry_on_connection_error
    def insert_connections(self, connections: List[Connection]) -> List[str]:
        """
        Insert a batch of connections in a single traversal.

        Neptune applies one traversal atomically, so either the whole batch is
        written or none of it is. An edge whose pair key already exists is left
        untouched, which keeps concurrent detection runs from duplicating pairs.
        A connection whose memory vertex is missing is skipped.

        Args:
            connections: Connections to insert

        Returns:
            Pair keys of the edges this traversal created
        """
        if not connections:
            return []

        branches = []
        for connection in connections:
            add_edge = __.add_e(CONNECTION_LABEL).from_('source')\
                .property('pair_key', connection.pair_key)\
                .property('user_id', connection.user_id)\
                .property('source_id', connection.source_id)\
                .property('target_id', connection.target_id)\
                .property('connection_type', connection.connection_type)\
                .property('strength', connection.strength)
            if connection.breakdown is not None:
                add_edge = add_edge.property('semantic', connection.breakdown.semantic)\
                    .property('tag', connection.breakdown.tag)\
                    .property('temporal', connection.breakdown.temporal)
            if connection.created_at is not None:
                add_edge = add_edge.property('created_at', to_iso(connection.created_at))

            # existing pair yields '', a new edge yields its pair key
            branches.append(
                __.V().has(MEMORY_LABEL, 'id', connection.source_id).as_('source')
                .V().has(MEMORY_LABEL, 'id', connection.target_id)
                .coalesce(__.both_e(CONNECTION_LABEL).has('pair_key', connection.pair_key).constant(''),
                          add_edge.values('pair_key')))

        keys = self.g.inject(0).union(*branches).to_list()
        created = [key for key in keys if key]
        logger.debug(f'Inserted {len(created)} of {len(connections)} connections in batch')
        return created

    @retry_on_connection_error
    def health_check(self) -> bool:
        """
        Perform a health check on the Neptune service.

        Returns:
            True if service is healthy
        """
        self.g.V().limit(1).count().next()
        return True
