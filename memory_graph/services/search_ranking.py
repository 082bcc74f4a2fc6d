"""
Search over a user's memories, delegating ranking to the store's hybrid
vector+keyword primitive.
"""

from typing import Any, Dict, List, Optional

from ..models.core import DEFAULT_CONTENT_TYPE, SearchResult, normalize_tags, stored_timestamp
from ..models.requests import SearchRequest, ValidationError
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def to_search_result(hit: Dict[str, Any]) -> SearchResult:
    document = hit['document']
    return SearchResult(id=document.get('id') or hit['id'],
                        content=document.get('content') or '',
                        content_type=document.get('content_type') or DEFAULT_CONTENT_TYPE,
                        tags=normalize_tags(document.get('tags')),
                        similarity=hit['similarity'],
                        created_at=stored_timestamp(document.get('created_at')),
                        metadata=document.get('metadata') or {})


class SearchRanker:
    """Validates search requests and shapes the store's ranked hits."""

    def __init__(self, memory_store: OpenSearchClient, vector_weight: Optional[float] = None,
                 candidate_multiplier: Optional[int] = None):
        self.memory_store = memory_store
        self.vector_weight = config.search.vector_weight if vector_weight is None else vector_weight
        self.candidate_multiplier = candidate_multiplier or config.search.candidate_multiplier

    def search(self, request: SearchRequest, query_vector: List[float]) -> List[SearchResult]:
        """
        Rank a user's memories against a query.

        Args:
            request: Validated search request
            query_vector: Embedding of the query text

        Returns:
            Ranked list of SearchResult, empty when nothing clears the threshold

        Raises:
            ValidationError: If the request or query vector is invalid
        """
        request.validate()
        if not query_vector:
            raise ValidationError('Query embedding is required')

        hits = self.memory_store.hybrid_search(query_text=request.query,
                                               query_vector=query_vector,
                                               user_id=request.user_id,
                                               top_k=request.limit,
                                               similarity_threshold=request.similarity_threshold,
                                               content_type=request.content_type,
                                               vector_weight=self.vector_weight,
                                               candidate_multiplier=self.candidate_multiplier)

        results = [to_search_result(hit) for hit in hits[:request.limit]]
        logger.debug(f'Search for user {request.user_id} returned {len(results)} results')
        return results
