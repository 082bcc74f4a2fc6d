"""
OpenSearch client wrapper for memory documents and hybrid similarity search.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import NotFoundError, OpenSearchException
from requests_aws4auth import AWS4Auth

from ..models.core import Memory
from ..services.similarity import cosine_similarity
from .config import OpenSearchConfig
from .logging_config import get_logger
from .timestamp_utils import to_iso

logger = get_logger(__name__)

# OpenSearch default index.max_result_window
MAX_RESULT_WINDOW = 10000


class OpenSearchError(Exception):
    """Custom exception for OpenSearch errors."""
    pass


def normalize_scores(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Min-max normalise ``score`` in place; equal scores all become 1.0."""
    if not results:
        return results
    scores = [r['score'] for r in results]
    min_score, max_score = min(scores), max(scores)
    for result in results:
        if max_score == min_score:
            result['score'] = 1.0
        else:
            result['score'] = (result['score'] - min_score) / (max_score - min_score)
    return results


class OpenSearchClient:
    """OpenSearch client with AWS authentication and error handling."""

    def __init__(self, config: OpenSearchConfig):
        """
        Initialize OpenSearch client.

        Args:
            config: OpenSearchConfig instance with connection parameters
        """
        self.config = config
        self.index_name = config.index_name

        credentials = boto3.Session().get_credentials()
        auth = AWS4Auth(region=config.region, service='aoss', refreshable_credentials=credentials)
        endpoint = config.endpoint
        if '://' in endpoint:
            endpoint = endpoint.split('://', 1)[1]

        self.client = OpenSearch(hosts=[{
            'host': endpoint,
            'port': config.port
        }],
                                 http_auth=auth,
                                 use_ssl=True,
                                 verify_certs=True,
                                 connection_class=RequestsHttpConnection,
                                 timeout=config.timeout)

        logger.info(f'Initialized OpenSearch client for endpoint: {config.endpoint}')

    def create_index_if_not_exists(self) -> str:
        """
        Create the memory index if it doesn't exist.

        Returns:
            'exists', 'created' or 'failed'
        """
        try:
            if self.client.indices.exists(index=self.index_name):
                logger.debug(f'Index {self.index_name} already exists')
                return 'exists'

            index_body = {
                'mappings': {
                    'properties': {
                        'id': {
                            'type': 'keyword'
                        },
                        'user_id': {
                            'type': 'keyword'
                        },
                        'content': {
                            'type': 'text'
                        },
                        'content_type': {
                            'type': 'keyword'
                        },
                        'tags': {
                            'type': 'keyword'
                        },
                        'embedding': {
                            'type': 'knn_vector',
                            'dimension': self.config.dimension,
                            'method': {
                                'name': 'hnsw',
                                'space_type': 'cosinesimil',
                                'engine': 'nmslib'
                            }
                        },
                        'created_at': {
                            'type': 'date'
                        },
                        'metadata': {
                            'type': 'object',
                            'enabled': False
                        }
                    }
                },
                'settings': {
                    'index': {
                        'knn': True,
                        'knn.algo_param.ef_search': 100
                    }
                }
            }

            response = self.client.indices.create(index=self.index_name, body=index_body)
            if response.get('acknowledged', False):
                logger.info(f'Created index {self.index_name}')
                return 'created'
            return 'failed'
        except OpenSearchException as e:
            logger.error(f'Error creating index {self.index_name}: {e}')
            raise OpenSearchError(f'Failed to create index: {e}')
        except Exception as e:
            logger.error(f'Unexpected error creating index {self.index_name}: {e}')
            raise OpenSearchError(f'Unexpected error creating index: {e}')

    def index_memory(self, memory: Memory) -> bool:
        """
        Index a memory document, using the memory id as the document id.

        Args:
            memory: Memory to index

        Returns:
            True if indexing was successful, False otherwise
        """
        try:
            response = self.client.index(index=self.index_name, id=memory.id, body=memory.to_document(), refresh=True)

            success = response.get('result') in ['created', 'updated']
            if success:
                logger.debug(f'Indexed memory {memory.id}')
            else:
                logger.warning(f'Unexpected result indexing memory: {response}')
            return success

        except OpenSearchException as e:
            logger.error(f'Error indexing memory {memory.id}: {e}')
            raise OpenSearchError(f'Failed to index memory: {e}')
        except Exception as e:
            logger.error(f'Unexpected error indexing memory {memory.id}: {e}')
            raise OpenSearchError(f'Unexpected error indexing memory: {e}')

    def _search(self, body: Dict[str, Any], action: str) -> List[Dict[str, Any]]:
        try:
            response = self.client.search(index=self.index_name, body=body)
        except OpenSearchException as e:
            logger.error(f'Error performing {action}: {e}')
            raise OpenSearchError(f'{action.capitalize()} failed: {e}')
        except Exception as e:
            logger.error(f'Unexpected error in {action}: {e}')
            raise OpenSearchError(f'Unexpected error in {action}: {e}')

        return [{'id': hit['_id'], 'score': hit.get('_score') or 0.0, 'document': hit['_source']}
                for hit in response['hits']['hits']]

    def list_memories(self,
                      user_id: str,
                      content_types: Optional[List[str]] = None,
                      date_from: Optional[datetime] = None,
                      date_to: Optional[datetime] = None,
                      limit: Optional[int] = None,
                      include_embedding: bool = False) -> List[Memory]:
        """
        List a user's memories, newest first.

        Args:
            user_id: User ID to filter results
            content_types: Only these content types (all if None)
            date_from: Inclusive lower bound on created_at
            date_to: Inclusive upper bound on created_at
            limit: Maximum number of memories (index maximum if None)
            include_embedding: Whether to return stored embeddings

        Returns:
            List of Memory objects
        """
        filters = [{'term': {'user_id': user_id}}]
        if content_types:
            filters.append({'terms': {'content_type': content_types}})
        if date_from or date_to:
            date_range = {}
            if date_from:
                date_range['gte'] = to_iso(date_from)
            if date_to:
                date_range['lte'] = to_iso(date_to)
            filters.append({'range': {'created_at': date_range}})

        search_body = {
            'size': min(limit or MAX_RESULT_WINDOW, MAX_RESULT_WINDOW),
            'query': {
                'bool': {
                    'filter': filters
                }
            },
            'sort': [{
                'created_at': {
                    'order': 'desc'
                }
            }]
        }
        if not include_embedding:
            search_body['_source'] = {'excludes': ['embedding']}

        results = self._search(search_body, 'memory listing')
        memories = [Memory.from_document(result['document']) for result in results]

        logger.debug(f'Listed {len(memories)} memories for user {user_id}')
        return memories

    def vector_search(self,
                      query_vector: List[float],
                      user_id: str,
                      top_k: int = 20,
                      content_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Perform k-NN similarity search, returning stored embeddings with each hit.

        Args:
            query_vector: Query vector for similarity search
            user_id: User ID to filter results
            top_k: Number of results to return
            content_type: Optional content type filter

        Returns:
            List of search results with scores and documents
        """
        filters = [{'term': {'user_id': user_id}}]
        if content_type:
            filters.append({'term': {'content_type': content_type}})

        search_body = {
            'size': top_k,
            'query': {
                'bool': {
                    'must': [{
                        'knn': {
                            'embedding': {
                                'vector': query_vector,
                                'k': top_k
                            }
                        }
                    }],
                    'filter': filters
                }
            }
        }

        results = self._search(search_body, 'vector search')
        logger.debug(f'Vector search returned {len(results)} results for user {user_id}')
        return results

    def keyword_search(self,
                       query_text: str,
                       user_id: str,
                       top_k: int = 20,
                       content_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Perform keyword search on memory content and tags.

        Args:
            query_text: Text query for keyword search
            user_id: User ID to filter results
            top_k: Number of results to return
            content_type: Optional content type filter

        Returns:
            List of search results with scores and documents
        """
        filters = [{'term': {'user_id': user_id}}]
        if content_type:
            filters.append({'term': {'content_type': content_type}})

        search_body = {
            'size': top_k,
            'query': {
                'bool': {
                    'must': [{
                        'multi_match': {
                            'query': query_text,
                            'fields': ['content', 'tags']
                        }
                    }],
                    'filter': filters
                }
            }
        }

        results = self._search(search_body, 'keyword search')
        logger.debug(f'Keyword search returned {len(results)} results for user {user_id}')
        return results

    def hybrid_search(self,
                      query_text: str,
                      query_vector: List[float],
                      user_id: str,
                      top_k: int = 20,
                      similarity_threshold: float = 0.0,
                      content_type: Optional[str] = None,
                      vector_weight: float = 0.5,
                      candidate_multiplier: int = 2) -> List[Dict[str, Any]]:
        """Rank memories by a blend of vector similarity and keyword relevance.

        Similarity is the cosine between the query vector and each candidate's
        stored embedding; candidates below ``similarity_threshold`` are dropped
        whichever search found them.

        Args:
            query_text: Text query for keyword search
            query_vector: Vector for similarity search
            user_id: User ID to filter results
            top_k: Number of results to return
            similarity_threshold: Minimum cosine similarity to keep a candidate
            content_type: Optional content type filter
            vector_weight: Weight for vector similarity (0-1)
            candidate_multiplier: Candidates fetched per search, as a multiple of top_k

        Returns:
            List of dicts with ``id``, ``score``, ``similarity`` and ``document``
        """
        pool_size = min(top_k * candidate_multiplier, MAX_RESULT_WINDOW)
        vector_results = self.vector_search(query_vector, user_id, pool_size, content_type)
        keyword_results = normalize_scores(self.keyword_search(query_text, user_id, pool_size, content_type))

        candidates = {}
        for result in vector_results:
            candidates[result['id']] = {'document': result['document'], 'keyword_score': 0.0}
        for result in keyword_results:
            if result['id'] in candidates:
                candidates[result['id']]['keyword_score'] = result['score']
            else:
                candidates[result['id']] = {'document': result['document'], 'keyword_score': result['score']}

        keyword_weight = 1.0 - vector_weight
        final_results = []
        for doc_id, data in candidates.items():
            document = data['document']
            similarity = cosine_similarity(query_vector, document.get('embedding'))
            if similarity < similarity_threshold:
                continue
            document = {key: value for key, value in document.items() if key != 'embedding'}
            final_results.append({
                'id': doc_id,
                'score': similarity * vector_weight + data['keyword_score'] * keyword_weight,
                'similarity': similarity,
                'document': document
            })

        final_results.sort(key=lambda x: x['score'], reverse=True)
        return final_results[:top_k]

    def delete_memory(self, memory_id: str) -> bool:
        """
        Delete a memory document.

        Args:
            memory_id: Memory ID (also the document id)

        Returns:
            True if deletion was successful, False if the document was not found
        """
        try:
            response = self.client.delete(index=self.index_name, id=memory_id, refresh=True)

            success = response.get('result') == 'deleted'
            if success:
                logger.debug(f'Deleted memory document {memory_id}')
            else:
                logger.warning(f'Memory document {memory_id} not found for deletion')
            return success

        except NotFoundError:
            logger.warning(f'Memory document {memory_id} not found for deletion')
            return False
        except OpenSearchException as e:
            logger.error(f'Error deleting memory document {memory_id}: {e}')
            raise OpenSearchError(f'Failed to delete memory: {e}')
        except Exception as e:
            logger.error(f'Unexpected error deleting memory document {memory_id}: {e}')
            raise OpenSearchError(f'Unexpected error deleting memory: {e}')

    def health_check(self) -> bool:
        """
        Perform a health check on the OpenSearch service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            response = self.client.indices.exists(index=self.index_name)
            return response in [True, False]

        except Exception as e:
            logger.error(f'OpenSearch health check failed: {e}')
            return False
