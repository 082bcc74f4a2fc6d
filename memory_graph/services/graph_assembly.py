"""
Graph assembly: turns a user's memories and connections into nodes and links.
"""

from typing import Any, Dict, List, Optional, Sequence, Set

from ..models.core import Connection, GraphView, Memory, pair_key
from ..models.requests import GraphFilters
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient
from ..utils.opensearch_client import OpenSearchClient
from ..utils.timestamp_utils import to_iso

logger = get_logger(__name__)

LABEL_LENGTH = 50
NODE_SIZE = 10
TAG_EDGE_TYPE = 'tag-based'

DEFAULT_COLOR = '#6b7280'
COLOR_MAP = {
    'research': '#3b82f6',
    'video': '#ef4444',
    'creative': '#a855f7',
    'conversation': '#10b981',
    'panel': '#10b981',
    'consensus': '#10b981',
    'debate': '#10b981',
    'code': '#f59e0b',
    'settings': DEFAULT_COLOR,
    'manual': DEFAULT_COLOR
}


def color_for(content_type: Optional[str]) -> str:
    return COLOR_MAP.get(content_type, DEFAULT_COLOR)


def make_label(content: str) -> str:
    if len(content) > LABEL_LENGTH:
        return content[:LABEL_LENGTH] + '...'
    return content


def memory_to_node(memory: Memory) -> Dict[str, Any]:
    return {
        'id': memory.id,
        'label': make_label(memory.content),
        'fullContent': memory.content,
        'type': memory.content_type,
        'tags': list(memory.tags),
        'color': color_for(memory.content_type),
        'colorKey': memory.content_type,
        'createdAt': to_iso(memory.created_at),
        'size': NODE_SIZE,
        'metadata': memory.metadata
    }


def tag_edges(memories: Sequence[Memory]) -> List[Dict[str, Any]]:
    """Edges for every pair of memories sharing at least one tag.

    Strength is the number of shared tags over the larger tag set.
    """
    edges = []
    for i, first in enumerate(memories):
        first_tags = set(first.tags)
        if not first_tags:
            continue
        for second in memories[i + 1:]:
            second_tags = set(second.tags)
            shared = [tag for tag in first.tags if tag in second_tags]
            if not shared:
                continue
            edges.append({
                'source': first.id,
                'target': second.id,
                'strength': len(shared) / max(len(first_tags), len(second_tags)),
                'sharedTags': shared,
                'type': TAG_EDGE_TYPE
            })
    return edges


def merge_connections(edges: List[Dict[str, Any]], connections: Sequence[Connection]) -> List[Dict[str, Any]]:
    """Append persisted connections whose pair has no edge yet."""
    covered: Set[str] = {pair_key(edge['source'], edge['target']) for edge in edges}
    merged = list(edges)
    for connection in connections:
        key = connection.pair_key
        if key in covered:
            continue
        covered.add(key)
        merged.append({
            'source': connection.source_id,
            'target': connection.target_id,
            'strength': connection.strength,
            'type': connection.connection_type
        })
    return merged


def distinct_content_types(memories: Sequence[Memory]) -> List[str]:
    content_types = []
    for memory in memories:
        if memory.content_type not in content_types:
            content_types.append(memory.content_type)
    return content_types


def build_graph(memories: Sequence[Memory], connections: Sequence[Connection]) -> GraphView:
    """Assemble nodes and links from already-fetched data."""
    edges = merge_connections(tag_edges(memories), connections)
    return GraphView(nodes=[memory_to_node(memory) for memory in memories],
                     edges=edges,
                     content_types=distinct_content_types(memories))


class GraphAssembler:
    """Fetches a filtered page of memories and assembles the graph view."""

    def __init__(self, memory_store: OpenSearchClient, connection_store: NeptuneClient, page_size: Optional[int] = None):
        self.memory_store = memory_store
        self.connection_store = connection_store
        self.page_size = page_size or config.graph.page_size

    def assemble(self, user_id: str, filters: Optional[GraphFilters] = None) -> GraphView:
        """
        Build the graph for a user.

        Args:
            user_id: Owner of the memories
            filters: Optional content type and date range filters

        Returns:
            GraphView with nodes, links and stats
        """
        filters = filters or GraphFilters()
        memories = self.memory_store.list_memories(user_id,
                                                   content_types=filters.content_types,
                                                   date_from=filters.date_from,
                                                   date_to=filters.date_to,
                                                   limit=self.page_size)
        logger.debug(f'Graph for user {user_id}: {len(memories)} memories')

        connections = []
        if memories:
            connections = self.connection_store.get_connections(user_id, [memory.id for memory in memories])

        graph = build_graph(memories, connections)
        logger.info(f'Assembled graph for user {user_id} with {len(graph.nodes)} nodes and {len(graph.edges)} links')
        return graph
