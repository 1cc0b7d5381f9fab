"""
Unit tests for location-consensus calculations
"""
import uuid
from datetime import datetime, timedelta

import pytest

from campushub.schemas.lost_found import LostItem, Pin, Tally, Vote
from campushub.services import consensus

T0 = datetime(2024, 3, 1, 10, 0)


def _item(floor=1) -> LostItem:
    return LostItem(id=uuid.uuid4(), title='Blue bottle', category='other', reporter_id=uuid.uuid4(), floor=floor)


def _pin(item, floor, minutes=0, pin_id=None) -> Pin:
    return Pin(id=pin_id or uuid.uuid4(), item_id=item.id, floor=floor, x=50, y=50,
               created_by=uuid.uuid4(), created_at=T0 + timedelta(minutes=minutes))


def _vote(pin, vote_type, user_id=None) -> Vote:
    return Vote(id=uuid.uuid4(), pin_id=pin.id, user_id=user_id or uuid.uuid4(), vote_type=vote_type)


class TestConfidence:
    """Tally, confidence and buckets"""

    def test_no_votes(self):
        """No votes means no confidence and the suggested bucket"""
        t = consensus.tally([])
        assert consensus.confidence(t) is None
        assert consensus.confidence_bucket(None) == consensus.BUCKET_SUGGESTED

    def test_single_tick_is_verified(self):
        """One tick gives full confidence"""
        pin = _pin(_item(), 0)
        t = consensus.tally([_vote(pin, 'tick')])
        assert consensus.confidence(t) == 1.0
        assert consensus.confidence_bucket(1.0) == consensus.BUCKET_VERIFIED

    def test_even_split_is_suggested(self):
        """One tick and one cross sits in the suggested band"""
        pin = _pin(_item(), 0)
        t = consensus.tally([_vote(pin, 'tick'), _vote(pin, 'cross')])
        assert (t.tick, t.cross) == (1, 1)
        assert consensus.confidence(t) == 0.5
        assert consensus.confidence_bucket(0.5) == consensus.BUCKET_SUGGESTED

    def test_all_crosses_is_low_confidence(self):
        """Zero ticks with votes is low confidence, not suggested"""
        assert consensus.confidence(Tally(tick=0, cross=3)) == 0.0
        assert consensus.confidence_bucket(0.0) == consensus.BUCKET_LOW

    @pytest.mark.parametrize('value,bucket', [
        (0.70, consensus.BUCKET_VERIFIED),
        (0.6999, consensus.BUCKET_SUGGESTED),
        (0.40, consensus.BUCKET_SUGGESTED),
        (0.3999, consensus.BUCKET_LOW),
    ])
    def test_thresholds(self, value, bucket):
        """Band edges are inclusive at the lower bound"""
        assert consensus.confidence_bucket(value) == bucket


class TestPinNumbering:
    """Global numbering and per-floor grouping"""

    def test_numbers_follow_insertion_across_floors(self):
        """Pin numbers are global, not per floor"""
        item = _item()
        first, second, third = _pin(item, 2, 0), _pin(item, 0, 1), _pin(item, 2, 2)
        numbers = consensus.number_pins([third, first, second])
        assert [numbers[p.id] for p in (first, second, third)] == [1, 2, 3]
        on_two = consensus.pins_on_floor([first, second, third], 2)
        assert [numbers[p.id] for p in on_two] == [1, 3]

    def test_ties_broken_by_id(self):
        """Same timestamp falls back to id order"""
        item = _item()
        a = _pin(item, 0, 0, pin_id=uuid.UUID(int=1))
        b = _pin(item, 0, 0, pin_id=uuid.UUID(int=2))
        assert consensus.number_pins([b, a]) == {a.id: 1, b.id: 2}

    def test_null_floor_falls_back_to_item_floor(self):
        """Pins without a floor count toward the item's floor"""
        item = _item(floor=1)
        pins = [_pin(item, None, 0), _pin(item, 1, 1), _pin(item, 0, 2)]
        assert consensus.floor_histogram(pins, item.floor) == {0: 1, 1: 2}
        assert len(consensus.pins_on_floor(pins, 1, item.floor)) == 2

    def test_primary_floor(self):
        """Most pins wins; ties go to the lowest floor"""
        assert consensus.primary_floor([2, 2, 0]) == 2
        assert consensus.primary_floor([2, 0]) == 0
        assert consensus.primary_floor([None]) is None


class TestPinViews:
    """Combined view used by item detail"""

    def test_views_carry_viewer_vote(self):
        """Each view has its number, bucket and the viewer's own vote"""
        item = _item()
        viewer = uuid.uuid4()
        p1, p2 = _pin(item, 0, 0), _pin(item, 1, 1)
        votes = [_vote(p1, 'tick', viewer), _vote(p1, 'cross'), _vote(p2, 'cross')]
        views = consensus.build_pin_views(item, [p2, p1], votes, viewer_id=viewer)
        assert [v.pin_number for v in views] == [1, 2]
        assert views[0].my_vote == 'tick'
        assert views[0].bucket == consensus.BUCKET_SUGGESTED
        assert views[1].my_vote is None
        assert views[1].bucket == consensus.BUCKET_LOW
