"""
Connection detection between a user's memories.
"""

from typing import List, Optional, Sequence, Set

from ..models.core import Connection, ConnectionType, DetectionResult, Memory, ScoreBreakdown, pair_key
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient, NeptuneError
from ..utils.timestamp_utils import now_utc
from .similarity import combined_score, score_pair

logger = get_logger(__name__)

SEMANTIC_THRESHOLD = 0.75
TAG_THRESHOLD = 0.3
TEMPORAL_THRESHOLD = 0.1
COMBINED_THRESHOLD = 0.5


class ConnectionDetectionError(Exception):
    """Custom exception for connection detection errors."""
    pass


class ConnectionInsertError(ConnectionDetectionError):
    """Raised when a batch insert fails part way through a run.

    ``created`` holds the number of connections stored by the batches that
    succeeded before the failure.
    """

    def __init__(self, message: str, created: int = 0):
        super().__init__(message)
        self.created = created


def classify(breakdown: ScoreBreakdown) -> str:
    """Pick the dominant signal; semantic beats tag, tag beats temporal."""
    if breakdown.semantic >= SEMANTIC_THRESHOLD:
        return ConnectionType.SEMANTIC.value
    if breakdown.tag >= TAG_THRESHOLD:
        return ConnectionType.TAG.value
    if breakdown.temporal >= TEMPORAL_THRESHOLD:
        return ConnectionType.TEMPORAL.value
    return ConnectionType.COMBINED.value


def evaluate_pair(user_id: str, source: Memory, target: Memory) -> Optional[Connection]:
    """Score one pair and build the connection if it clears the threshold."""
    breakdown = score_pair(source, target)
    combined = combined_score(breakdown)
    if combined < COMBINED_THRESHOLD:
        return None

    return Connection(source_id=source.id,
                      target_id=target.id,
                      user_id=user_id,
                      connection_type=classify(breakdown),
                      strength=round(combined, 2),
                      breakdown=breakdown.rounded(),
                      created_at=now_utc())


class ConnectionDetector:
    """Finds new connections between target memories and the rest of a user's memories."""

    def __init__(self, connection_store: NeptuneClient, batch_size: Optional[int] = None):
        """
        Initialize the detector.

        Args:
            connection_store: Store holding persisted connections
            batch_size: Connections per insert batch (uses config default if None)
        """
        self.connection_store = connection_store
        self.batch_size = batch_size or config.detection.insert_batch_size

    def find_candidates(self, user_id: str, targets: Sequence[Memory], memories: Sequence[Memory],
                        existing_pairs: Set[str]) -> List[Connection]:
        """Score every unseen (target, other) pair without touching the store."""
        candidates = []
        seen_pairs = set()

        for source in targets:
            for other in memories:
                if source.id == other.id:
                    continue

                key = pair_key(source.id, other.id)
                if key in existing_pairs or key in seen_pairs:
                    continue
                seen_pairs.add(key)

                connection = evaluate_pair(user_id, source, other)
                if connection is not None:
                    candidates.append(connection)

        logger.debug(f'Scored {len(seen_pairs)} pairs, {len(candidates)} above threshold for user {user_id}')
        return candidates

    def detect(self, user_id: str, targets: Sequence[Memory], memories: Sequence[Memory]) -> DetectionResult:
        """Detect and persist new connections.

        Args:
            user_id: Owner of every memory involved
            targets: Memories to (re)check
            memories: All of the user's memories

        Returns:
            DetectionResult with the connections that were stored

        Raises:
            ConnectionDetectionError: If existing connections cannot be read
            ConnectionInsertError: If a batch insert fails
        """
        if not targets:
            logger.info(f'No target memories for user {user_id}, nothing to connect')
            return DetectionResult(connections_created=0)

        try:
            existing_pairs = self.connection_store.get_pair_keys(user_id)
        except NeptuneError as e:
            logger.error(f'Failed to load existing connections for user {user_id}: {e}')
            raise ConnectionDetectionError(f'Failed to load existing connections: {e}')

        candidates = self.find_candidates(user_id, targets, memories, existing_pairs)
        if not candidates:
            return DetectionResult(connections_created=0)

        stored = []
        for start in range(0, len(candidates), self.batch_size):
            batch = candidates[start:start + self.batch_size]
            try:
                written = set(self.connection_store.insert_connections(batch))
            except NeptuneError as e:
                logger.error(f'Connection batch insert failed after {len(stored)} connections for user {user_id}: {e}')
                raise ConnectionInsertError(f'Connection insert failed after {len(stored)} of {len(candidates)}: {e}',
                                            created=len(stored))
            stored.extend(connection for connection in batch if connection.pair_key in written)
            if len(written) < len(batch):
                logger.warning(f'{len(batch) - len(written)} connections in batch were not written for user {user_id}')

        logger.info(f'Created {len(stored)} new connections for user {user_id}')
        return DetectionResult(connections_created=len(stored), connections=stored)
