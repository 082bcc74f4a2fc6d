"""
Core data models for the memory connection engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..utils.timestamp_utils import to_datetime, to_iso


class ContentType(str, Enum):
    """Kinds of content a memory can hold."""
    RESEARCH = 'research'
    VIDEO = 'video'
    CREATIVE = 'creative'
    CONVERSATION = 'conversation'
    MANUAL = 'manual'


class ConnectionType(str, Enum):
    """Dominant signal that justified a connection."""
    SEMANTIC = 'semantic'
    TAG = 'tag'
    TEMPORAL = 'temporal'
    COMBINED = 'combined'


DEFAULT_CONTENT_TYPE = ContentType.MANUAL.value


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order."""
    normalized = []
    seen = set()
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        tag = tag.strip().lower()
        if tag and tag not in seen:
            seen.add(tag)
            normalized.append(tag)
    return normalized


def pair_key(first_id: str, second_id: str) -> str:
    """Order-independent key for an unordered pair of memory ids."""
    return ':'.join(sorted((first_id, second_id)))


def stored_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; an unreadable value counts as missing."""
    try:
        return to_datetime(value)
    except (TypeError, ValueError, AttributeError, OverflowError, OSError):
        return None


@dataclass
class Memory:
    """A stored content unit owned by a single user.

    The core never mutates a memory; it only reads it for scoring, graph
    assembly and analytics.
    """
    id: str
    user_id: str
    content: str
    content_type: str = DEFAULT_CONTENT_TYPE
    tags: List[str] = field(default_factory=list)
    embedding: Optional[List[float]] = None
    created_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.tags = normalize_tags(self.tags)
        self.created_at = to_datetime(self.created_at)
        if not self.embedding:
            self.embedding = None
        if self.metadata is None:
            self.metadata = {}

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> 'Memory':
        """Build a Memory from an index document."""
        return cls(id=document.get('id', ''),
                   user_id=document.get('user_id', ''),
                   content=document.get('content') or '',
                   content_type=document.get('content_type') or DEFAULT_CONTENT_TYPE,
                   tags=document.get('tags') or [],
                   embedding=document.get('embedding'),
                   created_at=stored_timestamp(document.get('created_at')),
                   metadata=document.get('metadata') or {})

    def to_document(self) -> Dict[str, Any]:
        """Index document for this memory."""
        document = {
            'id': self.id,
            'user_id': self.user_id,
            'content': self.content,
            'content_type': self.content_type,
            'tags': list(self.tags),
            'created_at': to_iso(self.created_at),
            'metadata': self.metadata,
        }
        if self.embedding:
            document['embedding'] = list(self.embedding)
        return document


@dataclass
class ScoreBreakdown:
    """The three similarity signals for one memory pair."""
    semantic: float
    tag: float
    temporal: float

    def rounded(self) -> 'ScoreBreakdown':
        return ScoreBreakdown(semantic=round(self.semantic, 2), tag=round(self.tag, 2), temporal=round(self.temporal, 2))

    def to_dict(self) -> Dict[str, float]:
        return {'semantic': self.semantic, 'tag': self.tag, 'temporal': self.temporal}


@dataclass
class Connection:
    """A weighted, symmetric edge between two memories of the same user."""
    source_id: str
    target_id: str
    user_id: str
    connection_type: str
    strength: float
    breakdown: Optional[ScoreBreakdown] = None
    created_at: Optional[datetime] = None

    @property
    def pair_key(self) -> str:
        return pair_key(self.source_id, self.target_id)

    def to_summary(self) -> Dict[str, Any]:
        """Shape returned by the auto-connect operation."""
        return {'sourceId': self.source_id, 'targetId': self.target_id, 'strength': self.strength, 'type': self.connection_type}


@dataclass
class DetectionResult:
    """Outcome of one connection detection run."""
    connections_created: int
    connections: List[Connection] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'connectionsCreated': self.connections_created,
            'connections': [connection.to_summary() for connection in self.connections]
        }


@dataclass
class GraphView:
    """Node/edge view of a user's memories ready for rendering."""
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    content_types: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': self.nodes,
            'links': self.edges,
            'stats': {
                'nodeCount': len(self.nodes),
                'linkCount': len(self.edges),
                'contentTypes': self.content_types
            }
        }


@dataclass
class SearchResult:
    """One ranked search hit."""
    id: str
    content: str
    content_type: str
    tags: List[str]
    similarity: float
    created_at: Optional[datetime]
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'content': self.content,
            'contentType': self.content_type,
            'tags': self.tags,
            'similarity': self.similarity,
            'createdAt': to_iso(self.created_at),
            'metadata': self.metadata
        }


@dataclass
class Analytics:
    """Distributional statistics over a user's memories and connections."""
    total_memories: int
    total_connections: int
    unique_tags: int
    days_active: int
    type_distribution: Dict[str, int]
    top_tags: List[Dict[str, Any]]
    timeline: List[Dict[str, Any]]
    avg_connections_per_memory: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalMemories': self.total_memories,
            'totalConnections': self.total_connections,
            'uniqueTags': self.unique_tags,
            'daysActive': self.days_active,
            'typeDistribution': self.type_distribution,
            'topTags': self.top_tags,
            'timeline': self.timeline,
            'avgConnectionsPerMemory': self.avg_connections_per_memory
        }
