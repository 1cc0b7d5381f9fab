"""
Tests for the optimistic write queue
"""
import pytest

from campushub.errors import StoreError, ValidationError
from campushub.pending_ops import CONFIRMED, PROVISIONAL, ROLLED_BACK, PendingOperationQueue


class TestPendingOperationQueue:
    """Provisional entries, confirmation and rollback"""

    def test_provisional_then_confirmed(self):
        queue = PendingOperationQueue()
        op = queue.add({'body': 'hello'})
        assert op.state == PROVISIONAL
        assert op.temp_id.startswith('temp-')
        assert queue.provisional() == [op]
        queue.confirm(op.temp_id, {'id': 'srv-1', 'body': 'hello'})
        assert op.state == CONFIRMED
        assert queue.provisional() == []

    def test_run_rolls_back_on_store_error(self):
        queue = PendingOperationQueue()

        def send(payload):
            raise StoreError('backend down')

        with pytest.raises(StoreError):
            queue.run({'body': 'lost'}, send)
        assert queue.provisional() == []
        assert queue.merge([]) == []

    def test_rollback_marks_entry(self):
        queue = PendingOperationQueue()
        op = queue.add({'body': 'x'})
        rolled = queue.rollback(op.temp_id, 'failed')
        assert rolled.state == ROLLED_BACK
        assert rolled.error == 'failed'
        with pytest.raises(KeyError):
            queue.confirm(op.temp_id, {})

    def test_merge_drops_confirmed_seen_on_server(self):
        """Once the server list includes a confirmed record it is not shown twice"""
        queue = PendingOperationQueue()
        sent = queue.run({'body': 'one'}, lambda p: {'id': 'srv-1', **p})
        waiting = queue.add({'body': 'two'})
        merged = queue.merge([])
        assert [m['body'] for m in merged] == ['one', 'two']
        assert merged[1] == {'body': 'two', 'id': waiting.temp_id, 'pending': True}

        merged = queue.merge([sent.record])
        assert [m['id'] for m in merged] == ['srv-1', waiting.temp_id]
        assert queue.merge([sent.record]) == merged

    def test_rejected_write_rolls_back(self):
        """Server-side validation failures also remove the provisional entry"""
        queue = PendingOperationQueue()

        def send(payload):
            raise ValidationError('Message cannot be empty')

        with pytest.raises(ValidationError):
            queue.run({'body': ' '}, send)
        assert queue.merge([]) == []
