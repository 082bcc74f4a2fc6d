"""
Request parsing tests.
"""

import json
from datetime import datetime, timezone

import pytest

from memory_graph.models.requests import (AnalyticsRequest, AutoConnectRequest, GraphRequest, SaveMemoryRequest,
                                          SearchRequest, ValidationError)


class TestAutoConnectRequest:

    def test_user_id_required(self):
        with pytest.raises(ValidationError, match='userId is required'):
            AutoConnectRequest.from_dict({})

    def test_blank_user_id_rejected(self):
        with pytest.raises(ValidationError):
            AutoConnectRequest.from_dict({'userId': '   '})

    def test_memory_ids_optional(self):
        request = AutoConnectRequest.from_dict({'userId': 'user-1'})
        assert request.memory_ids is None

    def test_memory_ids_parsed(self):
        request = AutoConnectRequest.from_dict({'userId': 'user-1', 'memoryIds': ['a', 'b']})
        assert request.memory_ids == ['a', 'b']

    def test_memory_ids_must_be_strings(self):
        with pytest.raises(ValidationError):
            AutoConnectRequest.from_dict({'userId': 'user-1', 'memoryIds': [1, 2]})

    def test_body_must_be_an_object(self):
        with pytest.raises(ValidationError):
            AutoConnectRequest.from_dict(['user-1'])


class TestGraphRequest:

    def test_no_filters(self):
        request = GraphRequest.from_dict({'userId': 'user-1'})
        assert request.filters.content_types is None
        assert request.filters.date_from is None

    def test_all_content_type_means_no_filter(self):
        request = GraphRequest.from_dict({'userId': 'user-1', 'filters': {'contentType': 'all'}})
        assert request.filters.content_types is None

    def test_content_type_list(self):
        request = GraphRequest.from_dict({'userId': 'user-1', 'filters': {'contentType': ['research', 'video']}})
        assert request.filters.content_types == ['research', 'video']

    def test_dates_parsed(self):
        request = GraphRequest.from_dict({
            'userId': 'user-1',
            'filters': {
                'dateFrom': '2024-01-01T00:00:00Z',
                'dateTo': '2024-02-01T00:00:00Z'
            }
        })
        assert request.filters.date_from == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert request.filters.date_to == datetime(2024, 2, 1, tzinfo=timezone.utc)

    def test_bad_date_rejected(self):
        with pytest.raises(ValidationError, match='dateFrom'):
            GraphRequest.from_dict({'userId': 'user-1', 'filters': {'dateFrom': 'last tuesday'}})

    def test_inverted_date_range_rejected(self):
        with pytest.raises(ValidationError):
            GraphRequest.from_dict({
                'userId': 'user-1',
                'filters': {
                    'dateFrom': '2024-02-01',
                    'dateTo': '2024-01-01'
                }
            })


class TestSearchRequest:

    def test_defaults(self):
        request = SearchRequest.from_dict({'userId': 'user-1', 'query': 'neptune'})
        assert request.limit == 20
        assert request.similarity_threshold == 0.7
        assert request.content_type is None

    def test_query_required(self):
        with pytest.raises(ValidationError, match='Query text is required'):
            SearchRequest.from_dict({'userId': 'user-1'})

    def test_blank_query_rejected(self):
        with pytest.raises(ValidationError):
            SearchRequest.from_dict({'userId': 'user-1', 'query': '   '})

    def test_user_id_required(self):
        with pytest.raises(ValidationError):
            SearchRequest.from_dict({'query': 'neptune'})

    def test_content_type_filter(self):
        request = SearchRequest.from_dict({'userId': 'user-1', 'query': 'q', 'filters': {'contentType': 'video'}})
        assert request.content_type == 'video'

    def test_all_content_type_means_no_filter(self):
        request = SearchRequest.from_dict({'userId': 'user-1', 'query': 'q', 'filters': {'contentType': 'all'}})
        assert request.content_type is None

    @pytest.mark.parametrize('limit', [0, -3, 2.5, 'ten', True])
    def test_bad_limit_rejected(self, limit):
        with pytest.raises(ValidationError):
            SearchRequest.from_dict({'userId': 'user-1', 'query': 'q', 'limit': limit})

    @pytest.mark.parametrize('body', [
        '{"userId": "u", "query": "q", "limit": Infinity}',
        '{"userId": "u", "query": "q", "limit": NaN}',
        '{"userId": "u", "query": "q", "similarityThreshold": NaN}',
        '{"userId": "u", "query": "q", "similarityThreshold": -Infinity}',
    ])
    def test_non_finite_numbers_rejected(self, body):
        with pytest.raises(ValidationError, match='finite'):
            SearchRequest.from_dict(json.loads(body))

    @pytest.mark.parametrize('threshold', [-0.1, 1.1, 'high'])
    def test_bad_threshold_rejected(self, threshold):
        with pytest.raises(ValidationError):
            SearchRequest.from_dict({'userId': 'user-1', 'query': 'q', 'similarityThreshold': threshold})

    def test_threshold_bounds_accepted(self):
        assert SearchRequest.from_dict({'userId': 'u', 'query': 'q', 'similarityThreshold': 0}).similarity_threshold == 0.0
        assert SearchRequest.from_dict({'userId': 'u', 'query': 'q', 'similarityThreshold': 1}).similarity_threshold == 1.0


class TestSaveMemoryRequest:

    def test_defaults_to_manual(self):
        request = SaveMemoryRequest.from_dict({'userId': 'user-1', 'content': 'a note'})
        assert request.content_type == 'manual'
        assert request.tags == []
        assert request.metadata == {}

    def test_tags_normalized(self):
        request = SaveMemoryRequest.from_dict({'userId': 'user-1', 'content': 'a note', 'tags': ['ML', ' ml ', 'Python']})
        assert request.tags == ['ml', 'python']

    def test_content_required(self):
        with pytest.raises(ValidationError, match='Content is required'):
            SaveMemoryRequest.from_dict({'userId': 'user-1', 'content': ''})

    def test_metadata_must_be_object(self):
        with pytest.raises(ValidationError):
            SaveMemoryRequest.from_dict({'userId': 'user-1', 'content': 'x', 'metadata': 'nope'})


def test_analytics_request_requires_user_id():
    assert AnalyticsRequest.from_dict({'userId': 'user-1'}).user_id == 'user-1'
    with pytest.raises(ValidationError):
        AnalyticsRequest.from_dict(None)
