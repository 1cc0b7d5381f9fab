"""
Tests for the generic record store
"""
import uuid
from datetime import datetime, timedelta

import pytest

from campushub.errors import StoreError, ValidationError

T0 = datetime(2024, 1, 10, 8, 0)


@pytest.fixture
def channels(store):
    """Five channels one minute apart"""
    return [
        store.insert('chat_channels', {'name': f"ch-{i}", 'type': 'general' if i % 2 else 'context',
                                       'created_at': T0 + timedelta(minutes=i)})
        for i in range(5)
    ]


class TestWrites:
    """insert, insert_many, update and delete"""

    def test_insert_generates_id(self, store):
        row = store.insert('chat_channels', {'name': 'General'})
        assert isinstance(row['id'], uuid.UUID)
        assert row['type'] == 'general'
        assert store.get('chat_channels', str(row['id']))['name'] == 'General'

    def test_insert_many_keeps_input_order(self, store):
        names = ['c', 'a', 'b']
        rows = store.insert_many('chat_channels', [{'name': n} for n in names])
        assert [r['name'] for r in rows] == names
        assert store.insert_many('chat_channels', []) == []

    def test_update_returns_row(self, store):
        row = store.insert('chat_channels', {'name': 'old'})
        assert store.update('chat_channels', row['id'], {'name': 'new'})['name'] == 'new'
        assert store.update('chat_channels', uuid.uuid4(), {'name': 'x'}) is None

    def test_delete(self, store):
        row = store.insert('chat_channels', {'name': 'tmp'})
        assert store.delete('chat_channels', row['id']) is True
        assert store.delete('chat_channels', row['id']) is False
        assert store.get('chat_channels', row['id']) is None

    def test_delete_where_requires_filter(self, store, channels):
        with pytest.raises(ValidationError):
            store.delete_where('chat_channels', [])
        assert store.delete_where('chat_channels', [('type', 'context')]) == 3
        assert store.count('chat_channels') == 2


class TestReads:
    """Filters, ordering and counting"""

    @pytest.mark.parametrize('filters,expected', [
        ([('name', 'eq', 'ch-1')], ['ch-1']),
        ([('type', 'neq', 'general')], ['ch-0', 'ch-2', 'ch-4']),
        ([('created_at', 'gte', T0 + timedelta(minutes=3))], ['ch-3', 'ch-4']),
        ([('created_at', 'lt', T0 + timedelta(minutes=1))], ['ch-0']),
        ([('name', 'in', ['ch-0', 'ch-4', 'missing'])], ['ch-0', 'ch-4']),
        ([('context_id', 'is_null', True), ('type', 'general')], ['ch-1', 'ch-3']),
    ])
    def test_filters(self, store, channels, filters, expected):
        rows = store.query('chat_channels', filters, order_by='created_at')
        assert [r['name'] for r in rows] == expected

    def test_iso_strings_are_coerced(self, store, channels):
        """Timestamps may be given as ISO strings"""
        cutoff = (T0 + timedelta(minutes=2)).isoformat()
        assert store.count('chat_channels', [('created_at', 'gt', cutoff)]) == 2

    def test_descending_with_limit(self, store, channels):
        rows = store.query('chat_channels', order_by='created_at', descending=True, limit=2)
        assert [r['name'] for r in rows] == ['ch-4', 'ch-3']

    def test_count(self, store, channels):
        assert store.count('chat_channels') == 5
        assert store.count('chat_channels', [('type', 'general')]) == 2

    @pytest.mark.parametrize('call', [
        lambda s: s.query('no_such_table'),
        lambda s: s.query('chat_channels', [('nope', 'eq', 1)]),
        lambda s: s.query('chat_channels', [('name', 'like', 'x')]),
        lambda s: s.query('chat_channels', order_by='nope'),
        lambda s: s.get('chat_channels', 'not-a-uuid'),
        lambda s: s.insert('chat_channels', {'name': 'x', 'colour': 'red'}),
        lambda s: s.query('chat_channels', [('created_at', 'gt', 'yesterday')]),
        lambda s: s.query('od_requests', [('from_date', 'eq', '2024-13-40')]),
        lambda s: s.query('od_requests', [('from_time', 'lt', '25:99')]),
    ])
    def test_bad_requests_are_validation_errors(self, store, call):
        with pytest.raises(ValidationError):
            call(store)


class TestFailures:
    """Backend failures surface as StoreError"""

    def test_constraint_violation(self, store):
        with pytest.raises(StoreError):
            store.insert('chat_channels', {'name': None})

    def test_unique_violation(self, store):
        pin_id, user_id = uuid.uuid4(), uuid.uuid4()
        store.insert('votes', {'pin_id': pin_id, 'user_id': user_id, 'vote_type': 'tick'})
        with pytest.raises(StoreError) as exc:
            store.insert('votes', {'pin_id': pin_id, 'user_id': user_id, 'vote_type': 'cross'})
        assert exc.value.status_code == 503
        assert exc.value.details['collection'] == 'votes'
