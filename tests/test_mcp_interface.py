"""
Interface tests: status codes and JSON bodies of each operation.
"""

import json

import pytest

from conftest import FakeConnectionStore, FakeEmbed, FakeMemoryStore, make_memory
from memory_graph import mcp_interface
from memory_graph.mcp_interface import (dispatch, handle_analytics, handle_auto_connect, handle_delete, handle_graph,
                                        handle_save, handle_search)
from memory_graph.services.memory_management import MemoryManagementService


@pytest.fixture
def stores():
    memories = [
        make_memory('a', tags=['graphs'], embedding=[1.0, 0.0], days=0),
        make_memory('b', tags=['graphs'], embedding=[1.0, 0.0], days=1),
    ]
    return FakeMemoryStore(memories), FakeConnectionStore()


@pytest.fixture(autouse=True)
def service(stores):
    memory_store, connection_store = stores
    service = MemoryManagementService(opensearch=memory_store, neptune=connection_store, embed=FakeEmbed())
    mcp_interface.set_service(service)
    yield service
    mcp_interface.set_service(None)


class TestDispatch:

    def test_auto_connect(self):
        status, body = dispatch('auto-connect memories', handle_auto_connect, {'userId': 'user-1'})

        assert status == 200
        assert body['connectionsCreated'] == 1
        assert body['connections'][0]['sourceId'] == 'a'

    def test_missing_user_id_is_400(self):
        status, body = dispatch('auto-connect memories', handle_auto_connect, {})

        assert status == 400
        assert body == {'error': 'userId is required'}

    def test_graph(self):
        status, body = dispatch('fetch memory graph', handle_graph, {'userId': 'user-1', 'filters': {'contentType': 'all'}})

        assert status == 200
        assert body['stats'] == {'nodeCount': 2, 'linkCount': 1, 'contentTypes': ['research']}

    def test_search_without_matches(self):
        status, body = dispatch('search memories', handle_search, {'userId': 'user-1', 'query': 'nothing here'})

        assert status == 200
        assert body == {'query': 'nothing here', 'results': [], 'count': 0}

    def test_search_without_query_is_400(self):
        status, body = dispatch('search memories', handle_search, {'userId': 'user-1'})

        assert status == 400
        assert body['error'] == 'Query text is required'

    def test_non_finite_limit_is_400(self):
        payload = json.loads('{"userId": "user-1", "query": "graphs", "limit": Infinity}')

        status, body = dispatch('search memories', handle_search, payload)

        assert status == 400
        assert body == {'error': 'limit must be a finite number'}

    def test_analytics(self):
        status, body = dispatch('calculate analytics', handle_analytics, {'userId': 'user-1'})

        assert status == 200
        assert body['totalMemories'] == 2
        assert body['topTags'] == [{'tag': 'graphs', 'count': 2}]

    def test_save(self, stores):
        status, body = dispatch('save memory', handle_save, {'userId': 'user-1', 'content': 'New note', 'tags': ['X']})

        assert status == 200
        assert body['memory']['contentType'] == 'manual'
        assert body['memory']['tags'] == ['x']
        assert stores[0].indexed[0].id == body['memory']['id']

    def test_delete(self):
        status, body = dispatch('delete memory', handle_delete, {'userId': 'user-1', 'memoryId': 'a'})

        assert status == 200
        assert body == {'deleted': True}

    def test_store_failure_is_500_with_details(self, stores):
        stores[1].fail_reads = True

        status, body = dispatch('calculate analytics', handle_analytics, {'userId': 'user-1'})

        assert status == 500
        assert body['error'] == 'Failed to calculate analytics'
        assert 'timeout' in body['details']

    def test_unexpected_error_is_500(self):

        def broken(payload):
            raise RuntimeError('boom')

        assert dispatch('do things', broken, {}) == (500, {'error': 'Failed to do things', 'details': 'boom'})


class TestRunTool:

    def test_success_returns_body(self):
        body = mcp_interface._run_tool('calculate analytics', handle_analytics, {'userId': 'user-1'})
        assert body['totalMemories'] == 2

    def test_failure_raises_with_message(self):
        with pytest.raises(Exception, match='userId is required'):
            mcp_interface._run_tool('calculate analytics', handle_analytics, {'userId': ''})
