"""
Memory Management Service: one entry point for saving memories, detecting
connections, assembling the graph, searching and computing analytics.
"""

import uuid
from typing import List, Optional

from ..models.core import Analytics, DetectionResult, GraphView, Memory, SearchResult
from ..models.requests import (AnalyticsRequest, AutoConnectRequest, GraphRequest, SaveMemoryRequest, SearchRequest,
                               ValidationError)
from ..utils.bedrock_embed import BedrockEmbed, BedrockEmbedError
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.neptune_client import NeptuneClient, NeptuneError
from ..utils.opensearch_client import OpenSearchClient, OpenSearchError
from ..utils.timestamp_utils import now_utc, to_iso
from .analytics import aggregate
from .connection_detection import ConnectionDetectionError, ConnectionDetector, ConnectionInsertError
from .graph_assembly import GraphAssembler
from .search_ranking import SearchRanker

logger = get_logger(__name__)

TITLE_LENGTH = 100

STORE_ERRORS = (OpenSearchError, NeptuneError, BedrockEmbedError)


class MemoryManagementError(Exception):
    """Custom exception for memory management errors."""
    pass


class MemoryManagementService:
    """Unified service over the memory index, the connection graph and the embedding model."""

    def __init__(self,
                 opensearch: Optional[OpenSearchClient] = None,
                 neptune: Optional[NeptuneClient] = None,
                 embed: Optional[BedrockEmbed] = None):
        """Initialize the service, connecting to any collaborator not supplied."""
        self.opensearch = opensearch or OpenSearchClient(config.opensearch)
        self.neptune = neptune or NeptuneClient(config.neptune)
        self.embed = embed or BedrockEmbed(config.bedrock_embed)

        self.detector = ConnectionDetector(self.neptune)
        self.graph_assembler = GraphAssembler(self.opensearch, self.neptune)
        self.search_ranker = SearchRanker(self.opensearch)

        if opensearch is None:
            try:
                self.opensearch.create_index_if_not_exists()
            except OpenSearchError as e:
                logger.warning(f'Failed to create OpenSearch index: {e}')

        logger.info('Initialized MemoryManagementService')

    def save_memory(self, request: SaveMemoryRequest) -> Memory:
        """Embed and store a new memory.

        Args:
            request: Validated save request

        Returns:
            The stored Memory

        Raises:
            MemoryManagementError: If embedding or storage fails
        """
        metadata = dict(request.metadata)
        metadata['title'] = request.title or request.content[:TITLE_LENGTH]

        try:
            embedding = self.embed.embed_document(request.content)
            memory = Memory(id=str(uuid.uuid4()),
                            user_id=request.user_id,
                            content=request.content,
                            content_type=request.content_type,
                            tags=request.tags,
                            embedding=embedding,
                            created_at=now_utc(),
                            metadata=metadata)

            self.opensearch.index_memory(memory)

        except STORE_ERRORS as e:
            logger.error(f'Service error saving memory for user {request.user_id}: {e}')
            raise MemoryManagementError(f'Memory save failed: {e}')

        try:
            self.neptune.create_memory_vertex(memory.id, memory.user_id, memory.content_type, to_iso(memory.created_at))
        except NeptuneError as e:
            logger.error(f'Failed to create graph vertex for memory {memory.id}, removing document: {e}')
            try:
                self.opensearch.delete_memory(memory.id)
            except OpenSearchError as cleanup_error:
                logger.error(f'Failed to remove document for memory {memory.id}: {cleanup_error}')
            raise MemoryManagementError(f'Memory save failed: {e}')

        logger.info(f'Saved memory {memory.id} for user {request.user_id}')
        return memory

    def delete_memory(self, user_id: str, memory_id: str) -> bool:
        """Delete a memory and every connection touching it.

        Args:
            user_id: Owner of the memory
            memory_id: Memory to delete

        Returns:
            True if the memory document existed

        Raises:
            ValidationError: If an id is missing
            MemoryManagementError: If either store fails
        """
        if not user_id or not user_id.strip():
            raise ValidationError('userId is required')
        if not memory_id or not memory_id.strip():
            raise ValidationError('memoryId is required')

        try:
            removed = self.neptune.delete_memory_vertex(memory_id, user_id)
            deleted = self.opensearch.delete_memory(memory_id)
        except STORE_ERRORS as e:
            logger.error(f'Service error deleting memory {memory_id}: {e}')
            raise MemoryManagementError(f'Memory deletion failed: {e}')

        logger.debug(f'Deleted memory {memory_id} and {removed} connections')
        return deleted

    def auto_connect(self, request: AutoConnectRequest) -> DetectionResult:
        """Detect and store new connections for a user's memories.

        Args:
            request: Auto-connect request; without memory ids every memory is a target

        Returns:
            DetectionResult

        Raises:
            MemoryManagementError: If a store fails; a partial insert keeps its count in the message
        """
        logger.info(f'Auto-connect starting for user: {request.user_id}')

        try:
            memories = self.opensearch.list_memories(request.user_id, include_embedding=True)
            logger.debug(f'Found {len(memories)} memories for user {request.user_id}')

            if request.memory_ids is None:
                targets = memories
            else:
                wanted = set(request.memory_ids)
                targets = [memory for memory in memories if memory.id in wanted]

            return self.detector.detect(request.user_id, targets, memories)

        except ConnectionInsertError as e:
            logger.error(f'Partial auto-connect for user {request.user_id}: {e.created} connections stored')
            raise MemoryManagementError(f'Auto-connect failed, {e.created} connections were stored: {e}')
        except (ConnectionDetectionError, OpenSearchError, NeptuneError) as e:
            logger.error(f'Service error during auto-connect: {e}')
            raise MemoryManagementError(f'Auto-connect failed: {e}')

    def graph(self, request: GraphRequest) -> GraphView:
        """Assemble the memory graph for a user."""
        try:
            return self.graph_assembler.assemble(request.user_id, request.filters)
        except STORE_ERRORS as e:
            logger.error(f'Service error building memory graph: {e}')
            raise MemoryManagementError(f'Memory graph failed: {e}')

    def search(self, request: SearchRequest) -> List[SearchResult]:
        """Embed the query and return ranked memories.

        Returns:
            List of SearchResult

        Raises:
            ValidationError: If the request is invalid
            MemoryManagementError: If embedding or search fails
        """
        request.validate()
        logger.debug(f'Memory search for user {request.user_id}: {request.query}')

        try:
            query_vector = self.embed.embed_query(request.query)
            return self.search_ranker.search(request, query_vector)
        except STORE_ERRORS as e:
            logger.error(f'Service error during memory search: {e}')
            raise MemoryManagementError(f'Memory search failed: {e}')

    def analytics(self, request: AnalyticsRequest) -> Analytics:
        """Compute usage statistics for a user."""
        try:
            memories = self.opensearch.list_memories(request.user_id)
            connections = []
            if memories:
                connections = self.neptune.get_connections(request.user_id, [memory.id for memory in memories])
        except STORE_ERRORS as e:
            logger.error(f'Service error computing analytics: {e}')
            raise MemoryManagementError(f'Analytics failed: {e}')

        analytics = aggregate(memories, connections)
        logger.info(f'Analytics for user {request.user_id}: {analytics.total_memories} memories, '
                    f'{analytics.total_connections} connections, {analytics.unique_tags} tags')
        return analytics
