"""
Shared test fixtures: in-memory stand-ins for the memory index, the
connection graph and the embedding model.
"""

from datetime import datetime, timedelta, timezone

import pytest

from memory_graph.models.core import Memory
from memory_graph.utils.neptune_client import NeptuneError
from memory_graph.utils.opensearch_client import OpenSearchError

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_memory(memory_id, tags=(), embedding=None, days=0, content_type='research', content=None, user_id='user-1'):
    """Memory created ``days`` after BASE_TIME."""
    return Memory(id=memory_id,
                  user_id=user_id,
                  content=content if content is not None else f'Memory {memory_id}',
                  content_type=content_type,
                  tags=list(tags),
                  embedding=embedding,
                  created_at=BASE_TIME + timedelta(days=days))


class FakeMemoryStore:
    """Stands in for OpenSearchClient."""

    def __init__(self, memories=None, hits=None, fail=False):
        self.memories = list(memories or [])
        self.hits = list(hits or [])
        self.fail = fail
        self.list_calls = []
        self.search_calls = []
        self.indexed = []
        self.deleted = []

    def list_memories(self, user_id, content_types=None, date_from=None, date_to=None, limit=None, include_embedding=False):
        if self.fail:
            raise OpenSearchError('Memory listing failed: connection refused')
        self.list_calls.append({
            'user_id': user_id,
            'content_types': content_types,
            'date_from': date_from,
            'date_to': date_to,
            'limit': limit,
            'include_embedding': include_embedding
        })
        memories = [m for m in self.memories if m.user_id == user_id]
        if content_types:
            memories = [m for m in memories if m.content_type in content_types]
        if date_from:
            memories = [m for m in memories if m.created_at >= date_from]
        if date_to:
            memories = [m for m in memories if m.created_at <= date_to]
        memories.sort(key=lambda m: m.created_at, reverse=True)
        return memories[:limit] if limit else memories

    def hybrid_search(self, **kwargs):
        if self.fail:
            raise OpenSearchError('Vector search failed: connection refused')
        self.search_calls.append(kwargs)
        hits = [hit for hit in self.hits if hit['similarity'] >= kwargs['similarity_threshold']]
        return hits[:kwargs['top_k']]

    def index_memory(self, memory):
        if self.fail:
            raise OpenSearchError('Failed to index memory: connection refused')
        self.indexed.append(memory)
        self.memories.append(memory)
        return True

    def delete_memory(self, memory_id):
        self.deleted.append(memory_id)
        before = len(self.memories)
        self.memories = [m for m in self.memories if m.id != memory_id]
        return len(self.memories) < before


class FakeConnectionStore:
    """Stands in for NeptuneClient."""

    def __init__(self, connections=None, fail_reads=False, fail_on_batch=None, missing_vertices=(), fail_writes=False):
        self.connections = list(connections or [])
        self.fail_reads = fail_reads
        self.fail_on_batch = fail_on_batch
        self.missing_vertices = set(missing_vertices)
        self.fail_writes = fail_writes
        self.batches = []
        self.vertices = {}

    def get_pair_keys(self, user_id):
        if self.fail_reads:
            raise NeptuneError('Failed to get_pair_keys: timeout')
        return {c.pair_key for c in self.connections if c.user_id == user_id}

    def get_connections(self, user_id, memory_ids=None):
        if self.fail_reads:
            raise NeptuneError('Failed to get_connections: timeout')
        connections = [c for c in self.connections if c.user_id == user_id]
        if memory_ids is not None:
            wanted = set(memory_ids)
            connections = [c for c in connections if c.source_id in wanted or c.target_id in wanted]
        return connections

    def insert_connections(self, connections):
        if self.fail_on_batch is not None and len(self.batches) == self.fail_on_batch:
            raise NeptuneError('Failed to insert_connections: transport closed')
        self.batches.append(list(connections))
        existing = {c.pair_key for c in self.connections}
        created = []
        for connection in connections:
            if {connection.source_id, connection.target_id} & self.missing_vertices:
                continue
            if connection.pair_key not in existing:
                self.connections.append(connection)
                existing.add(connection.pair_key)
                created.append(connection.pair_key)
        return created

    def create_memory_vertex(self, memory_id, user_id, content_type, created_at=None):
        if self.fail_writes:
            raise NeptuneError('Failed to create_memory_vertex: transport closed')
        self.vertices[memory_id] = {'user_id': user_id, 'content_type': content_type, 'created_at': created_at}
        return True

    def delete_memory_vertex(self, memory_id, user_id):
        self.vertices.pop(memory_id, None)
        before = len(self.connections)
        self.connections = [c for c in self.connections if memory_id not in (c.source_id, c.target_id)]
        return before - len(self.connections)


class FakeEmbed:
    """Stands in for BedrockEmbed, returning a fixed vector."""

    def __init__(self, vector=(1.0, 0.0, 0.0)):
        self.vector = list(vector)
        self.documents = []
        self.queries = []

    def embed_document(self, text):
        self.documents.append(text)
        return list(self.vector)

    def embed_query(self, text):
        self.queries.append(text)
        return list(self.vector)


@pytest.fixture
def memory_store():
    return FakeMemoryStore()


@pytest.fixture
def connection_store():
    return FakeConnectionStore()


@pytest.fixture
def embed():
    return FakeEmbed()
