"""
Tests for the change-event hub
"""
import anyio

from campushub.services.change_feed import ChangeHub


class FakeSocket:
    def __init__(self, alive=True):
        self.alive = alive
        self.sent = []

    async def send_json(self, data):
        if not self.alive:
            raise RuntimeError('socket closed')
        self.sent.append(data)


class TestChangeHub:
    """Subscription routing"""

    def test_routes_by_collection_and_wildcard(self):
        hub = ChangeHub()
        chat, everything, other = FakeSocket(), FakeSocket(), FakeSocket()

        async def scenario():
            await hub.subscribe(chat, 'chat_messages')
            await hub.subscribe(everything)
            await hub.subscribe(other, 'lost_items')
            return await hub.publish('chat_messages', 'abc', 'insert')

        assert anyio.run(scenario) == 2
        assert chat.sent[0]['data']['collection'] == 'chat_messages'
        assert chat.sent[0]['data']['record_id'] == 'abc'
        assert everything.sent[0]['data']['action'] == 'insert'
        assert other.sent == []

    def test_dead_sockets_are_dropped(self):
        hub = ChangeHub()
        dead = FakeSocket(alive=False)

        async def scenario():
            await hub.subscribe(dead, 'queries')
            return await hub.publish('queries', 1, 'update')

        assert anyio.run(scenario) == 0
        assert hub.subscriber_count('queries') == 0

    def test_unsubscribe(self):
        hub = ChangeHub()
        ws = FakeSocket()

        async def scenario():
            await hub.subscribe(ws, 'od_requests')
            await hub.unsubscribe(ws, 'od_requests')

        anyio.run(scenario)
        assert hub.subscriber_count('od_requests') == 0
