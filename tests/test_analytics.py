"""
Analytics tests.
"""

from conftest import make_memory
from memory_graph.models.core import Connection, Memory
from memory_graph.services.analytics import aggregate, days_active


def connection(source, target):
    return Connection(source_id=source, target_id=target, user_id='user-1', connection_type='semantic', strength=0.6)


def test_empty_user():
    result = aggregate([], []).to_dict()

    assert result == {
        'totalMemories': 0,
        'totalConnections': 0,
        'uniqueTags': 0,
        'daysActive': 1,
        'typeDistribution': {},
        'topTags': [],
        'timeline': [],
        'avgConnectionsPerMemory': 0
    }


def test_counts_and_average():
    memories = [
        make_memory('a', tags=['python', 'ml'], content_type='research'),
        make_memory('b', tags=['python'], content_type='research'),
        make_memory('c', tags=['video-editing'], content_type='video'),
    ]

    result = aggregate(memories, [connection('a', 'b'), connection('b', 'c')])

    assert result.total_memories == 3
    assert result.total_connections == 2
    assert result.unique_tags == 3
    assert result.type_distribution == {'research': 2, 'video': 1}
    assert result.avg_connections_per_memory == 0.67


def test_memory_without_type_counts_as_manual():
    memory = Memory(id='a', user_id='user-1', content='untyped', content_type=None)

    assert aggregate([memory], []).type_distribution == {'manual': 1}


def test_top_tags_sorted_and_capped():
    memories = []
    for i in range(12):
        # tag-i appears i + 1 times
        memories.extend(make_memory(f'm{i}-{j}', tags=[f'tag-{i}']) for j in range(i + 1))

    top_tags = aggregate(memories, []).top_tags

    assert len(top_tags) == 10
    assert top_tags[0] == {'tag': 'tag-11', 'count': 12}
    assert top_tags[-1] == {'tag': 'tag-2', 'count': 3}
    counts = [entry['count'] for entry in top_tags]
    assert counts == sorted(counts, reverse=True)


def test_timeline_is_chronological():
    memories = [
        make_memory('apr', days=31),
        make_memory('feb', days=-1),
        make_memory('mar-1', days=0),
        make_memory('mar-2', days=5),
    ]

    timeline = aggregate(memories, []).timeline

    assert timeline == [
        {'month': '2024-02', 'count': 1},
        {'month': '2024-03', 'count': 2},
        {'month': '2024-04', 'count': 1},
    ]


class TestDaysActive:

    def test_single_memory(self):
        assert days_active([make_memory('a')]) == 1

    def test_whole_day_span_is_inclusive(self):
        assert days_active([make_memory('a', days=0), make_memory('b', days=10)]) == 11

    def test_partial_day_rounds_up(self):
        assert days_active([make_memory('a', days=0), make_memory('b', days=0.5)]) == 2

    def test_memories_without_timestamps_are_ignored(self):
        undated = Memory(id='x', user_id='user-1', content='undated')
        assert days_active([undated, make_memory('a', days=3), make_memory('b', days=1)]) == 3
