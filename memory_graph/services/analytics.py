"""
Usage statistics over a user's memories and connections.
"""

import math
from collections import Counter
from typing import Sequence

from ..models.core import DEFAULT_CONTENT_TYPE, Analytics, Connection, Memory
from ..utils.timestamp_utils import SECONDS_PER_DAY, month_key

TOP_TAG_COUNT = 10


def days_active(memories: Sequence[Memory]) -> int:
    """Inclusive day span between the first and last memory, at least 1."""
    dates = [memory.created_at for memory in memories if memory.created_at is not None]
    if not dates:
        return 1
    span = (max(dates) - min(dates)).total_seconds() / SECONDS_PER_DAY
    return max(1, math.ceil(span) + 1)


def aggregate(memories: Sequence[Memory], connections: Sequence[Connection]) -> Analytics:
    """Compute type, tag, timeline and connection density statistics.

    Args:
        memories: All of a user's memories
        connections: Connections touching those memories

    Returns:
        Analytics record
    """
    total_memories = len(memories)
    total_connections = len(connections)

    type_distribution = Counter()
    tag_frequency = Counter()
    months = Counter()
    for memory in memories:
        type_distribution[memory.content_type or DEFAULT_CONTENT_TYPE] += 1
        tag_frequency.update(memory.tags)
        if memory.created_at is not None:
            months[month_key(memory.created_at)] += 1

    avg = round(total_connections / total_memories, 2) if total_memories else 0

    return Analytics(total_memories=total_memories,
                     total_connections=total_connections,
                     unique_tags=len(tag_frequency),
                     days_active=days_active(memories),
                     type_distribution=dict(type_distribution),
                     top_tags=[{'tag': tag, 'count': count} for tag, count in tag_frequency.most_common(TOP_TAG_COUNT)],
                     timeline=[{'month': month, 'count': months[month]} for month in sorted(months)],
                     avg_connections_per_memory=avg)
