"""
Tests for the lost & found service
"""
import itertools
from datetime import datetime, timedelta

import pytest

from campushub.errors import (
    NotFoundError,
    PartialWriteError,
    PermissionDeniedError,
    PreconditionError,
    StoreError,
    ValidationError,
)
from campushub.schemas.lost_found import PinInput, ReportItemRequest
from campushub.services.lost_found import LostFoundService
from campushub.store import RecordStore


class FailingPinsStore(RecordStore):
    """Store whose batch insert always fails"""

    def insert_many(self, collection, rows):
        raise StoreError('backend down', collection=collection)


class FailingVotesStore(RecordStore):
    """Store whose vote writes fail for the given operations"""

    def __init__(self, *operations):
        super().__init__()
        self.operations = set(operations)

    def insert(self, collection, values):
        if collection == 'votes' and 'insert' in self.operations:
            raise StoreError('backend down', collection=collection)
        return super().insert(collection, values)

    def update(self, collection, record_id, values):
        if collection == 'votes' and 'update' in self.operations:
            raise StoreError('backend down', collection=collection)
        return super().update(collection, record_id, values)


class FailingAuditStore(RecordStore):
    """Store whose audit log inserts fail"""

    def insert(self, collection, values):
        if collection == 'audit_logs':
            raise StoreError('backend down', collection=collection)
        return super().insert(collection, values)


def _report(svc, actor, pins=None, **kwargs):
    pins = pins if pins is not None else [PinInput(floor=1, x=20, y=30)]
    return svc.report_item(actor, ReportItemRequest(title=kwargs.pop('title', 'Black umbrella'), pins=pins, **kwargs))


def _ticking_clock(start=datetime(2024, 3, 1, 9, 0)):
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def svc(store):
    return LostFoundService(store, clock=_ticking_clock())


class TestReportItem:
    """Reporting an item with its pins"""

    def test_primary_floor_is_most_pinned(self, svc, student):
        """The item's floor is the floor holding most pins"""
        item, pins = _report(svc, student, pins=[
            PinInput(floor=2, x=10, y=10), PinInput(floor=0, x=5, y=5), PinInput(floor=2, x=90, y=90),
        ])
        assert item.floor == 2
        assert item.status == 'open'
        assert len(pins) == 3

    def test_report_order_drives_numbering(self, svc, student):
        """Pins keep the order they were reported in"""
        item, pins = _report(svc, student, pins=[PinInput(floor=f % 3, x=f, y=f) for f in range(5)])
        detail = svc.get_detail(student, item.id)
        assert [v.pin.id for v in detail.pins] == [p.id for p in pins]
        assert [v.pin_number for v in detail.pins] == [1, 2, 3, 4, 5]

    @pytest.mark.parametrize('pins', [
        [],
        [PinInput(floor=3, x=10, y=10)],
        [PinInput(floor=0, x=101, y=10)],
        [PinInput(floor=0, x=10, y=-1)],
    ])
    def test_invalid_pins(self, svc, student, pins):
        """Missing pins or out-of-range positions are rejected"""
        with pytest.raises(ValidationError):
            _report(svc, student, pins=pins)

    def test_invalid_category(self, svc, student):
        """Only the known categories are accepted"""
        with pytest.raises(ValidationError):
            _report(svc, student, category='pets')

    def test_pin_failure_is_partial_write(self, student):
        """The item stays committed when its pins fail"""
        store = FailingPinsStore()
        svc = LostFoundService(store)
        with pytest.raises(PartialWriteError) as exc:
            _report(svc, student)
        assert exc.value.step == 'pins'
        item_id = exc.value.committed['item_id']
        assert store.get('lost_items', item_id) is not None
        assert store.count('pins', [('item_id', 'eq', item_id)]) == 0


class TestPinsAndVotes:
    """Adding pins and voting on them"""

    def test_add_pin_notifies_reporter(self, svc, store, student, other_student):
        """A suggested location notifies the reporter"""
        item, _ = _report(svc, student)
        pin = svc.add_pin(other_student, item.id, 0, 50, 50)
        assert pin.item_id == item.id
        notes = store.query('notifications', [('user_id', 'eq', student.id)])
        assert [n['type'] for n in notes] == ['pin_added']

    def test_reporter_not_notified_of_own_pin(self, svc, store, student):
        """Nobody is notified about their own action"""
        item, _ = _report(svc, student)
        svc.add_pin(student, item.id, 1, 10, 10)
        assert store.count('notifications') == 0

    def test_add_pin_unknown_item(self, svc, student):
        """Pins need an existing item"""
        with pytest.raises(NotFoundError):
            svc.add_pin(student, '00000000-0000-0000-0000-000000000000', 0, 1, 1)

    def test_add_pin_to_returned_item_is_allowed(self, svc, student, other_student):
        """Item status does not gate new pins"""
        item, _ = _report(svc, student)
        svc.update_status(student, item.id, 'returned')
        assert svc.add_pin(other_student, item.id, 0, 5, 5) is not None

    def test_two_voters(self, svc, make_actor, student):
        """One tick and one cross is 0.5 and suggested"""
        item, pins = _report(svc, student)
        svc.cast_vote(make_actor(), pins[0].id, 'tick')
        view = svc.cast_vote(make_actor(), pins[0].id, 'cross')
        assert (view.tally.tick, view.tally.cross) == (1, 1)
        assert view.confidence == 0.5
        assert view.bucket == 'suggested'

    def test_single_tick_verified(self, svc, student, other_student):
        """One tick and nothing else is verified"""
        _, pins = _report(svc, student)
        view = svc.cast_vote(other_student, pins[0].id, 'tick')
        assert view.confidence == 1.0
        assert view.bucket == 'verified'
        assert view.my_vote == 'tick'

    def test_same_vote_twice_toggles_off(self, svc, store, student, other_student):
        """Re-casting the same vote removes it"""
        _, pins = _report(svc, student)
        svc.cast_vote(other_student, pins[0].id, 'tick')
        view = svc.cast_vote(other_student, pins[0].id, 'tick')
        assert view.tally.total == 0
        assert view.confidence is None
        assert view.my_vote is None
        assert store.count('votes', [('pin_id', 'eq', pins[0].id)]) == 0

    def test_changing_vote_replaces_it(self, svc, store, student, other_student):
        """A different vote type replaces the old one"""
        _, pins = _report(svc, student)
        svc.cast_vote(other_student, pins[0].id, 'tick')
        view = svc.cast_vote(other_student, pins[0].id, 'cross')
        assert (view.tally.tick, view.tally.cross) == (0, 1)
        assert view.bucket == 'low_confidence'
        assert store.count('votes', [('pin_id', 'eq', pins[0].id), ('user_id', 'eq', other_student.id)]) == 1

    def test_changing_vote_needs_no_insert(self, svc, store, student, other_student):
        """Switching tick to cross rewrites the existing row"""
        _, pins = _report(svc, student)
        svc.cast_vote(other_student, pins[0].id, 'tick')
        flaky = LostFoundService(FailingVotesStore('insert'), clock=_ticking_clock(datetime(2024, 3, 2)))
        view = flaky.cast_vote(other_student, pins[0].id, 'cross')
        assert (view.tally.tick, view.tally.cross) == (0, 1)
        votes = store.query('votes', [('pin_id', 'eq', pins[0].id)])
        assert [v['vote_type'] for v in votes] == ['cross']

    def test_failed_vote_change_keeps_prior_vote(self, svc, store, student, other_student):
        """A failed switch leaves the earlier vote in place"""
        _, pins = _report(svc, student)
        svc.cast_vote(other_student, pins[0].id, 'tick')
        flaky = LostFoundService(FailingVotesStore('update'))
        with pytest.raises(StoreError):
            flaky.cast_vote(other_student, pins[0].id, 'cross')
        votes = store.query('votes', [('pin_id', 'eq', pins[0].id)])
        assert [v['vote_type'] for v in votes] == ['tick']

    def test_invalid_vote_type(self, svc, student):
        """Only tick and cross are votes"""
        _, pins = _report(svc, student)
        with pytest.raises(ValidationError):
            svc.cast_vote(student, pins[0].id, 'maybe')


class TestStatus:
    """Owner-only status transitions"""

    def test_open_matched_returned(self, svc, student):
        """The happy path runs open, matched, returned"""
        item, _ = _report(svc, student)
        assert svc.update_status(student, item.id, 'matched').status == 'matched'
        assert svc.update_status(student, item.id, 'returned').status == 'returned'

    def test_open_straight_to_returned(self, svc, student):
        """Returned is reachable from open"""
        item, _ = _report(svc, student)
        assert svc.update_status(student, item.id, 'returned').status == 'returned'

    @pytest.mark.parametrize('path', [['matched', 'matched'], ['returned', 'matched'], ['returned', 'returned'], ['open']])
    def test_illegal_transitions(self, svc, student, path):
        """Other transitions are precondition failures"""
        item, _ = _report(svc, student)
        for status in path[:-1]:
            svc.update_status(student, item.id, status)
        with pytest.raises(PreconditionError):
            svc.update_status(student, item.id, path[-1])

    def test_non_owner_denied(self, svc, student, other_student, admin):
        """Only the reporter may change status, admin included"""
        item, _ = _report(svc, student)
        for actor in (other_student, admin):
            with pytest.raises(PermissionDeniedError):
                svc.update_status(actor, item.id, 'matched')

    def test_audit_failure_reports_saved_status(self, svc, store, student):
        """The status change stands and the caller learns the audit step failed"""
        item, _ = _report(svc, student)
        flaky = LostFoundService(FailingAuditStore())
        with pytest.raises(PartialWriteError) as exc:
            flaky.update_status(student, item.id, 'matched')
        assert exc.value.step == 'audit'
        assert exc.value.committed == {'item_id': str(item.id), 'status': 'matched'}
        assert store.get('lost_items', item.id)['status'] == 'matched'
        with pytest.raises(PreconditionError):
            svc.update_status(student, item.id, 'matched')

    def test_votes_do_not_change_status(self, svc, make_actor, student):
        """Consensus never moves the item automatically"""
        item, pins = _report(svc, student)
        for _ in range(3):
            svc.cast_vote(make_actor(), pins[0].id, 'tick')
        assert svc.get_detail(student, item.id).item.status == 'open'


class TestComments:
    """Pin comments"""

    def test_comments_ascending(self, svc, store, student, other_student):
        """Comments list oldest first and notify the pin creator"""
        _, pins = _report(svc, student)
        svc.add_comment(other_student, pins[0].id, 'Saw it near the lab')
        svc.add_comment(other_student, pins[0].id, 'Still there at noon')
        bodies = [c.body for c in svc.list_comments(pins[0].id)]
        assert bodies == ['Saw it near the lab', 'Still there at noon']
        assert store.count('notifications', [('type', 'eq', 'pin_comment')]) == 2

    def test_empty_comment(self, svc, student):
        """Blank comments are rejected"""
        _, pins = _report(svc, student)
        with pytest.raises(ValidationError):
            svc.add_comment(student, pins[0].id, '  ')
