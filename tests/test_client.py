"""
Tests for the API client, run against the app in-process
"""
import threading
import uuid

import pytest

from campushub.client import CampusHubClient
from campushub.errors import NotFoundError, PermissionDeniedError, ValidationError
from conftest import TEST_PASSWORD, auth_headers


@pytest.fixture
def api(client, student):
    api = CampusHubClient(base_url='http://testserver', http=client)
    api.login(student.email, TEST_PASSWORD)
    return api


class TestCampusHubClient:
    """Authenticated calls, optimistic sends and polling"""

    def test_login_sets_token(self, api):
        assert api.token
        assert set(api.dashboard()) == {'announcements', 'queries', 'od_requests', 'chat', 'lost_found'}

    def test_optimistic_send_confirms(self, api):
        channel = api.general_channel()
        op = api.send_chat_message(channel['id'], 'hello campus')
        assert op.state == 'confirmed'
        assert op.record['body'] == 'hello campus'
        merged = api.chat_queue.merge(api.chat_messages(channel['id']))
        assert [m['body'] for m in merged] == ['hello campus']

    def test_rejected_send_rolls_back(self, api):
        channel = api.general_channel()
        with pytest.raises(ValidationError):
            api.send_chat_message(channel['id'], '   ')
        with pytest.raises(NotFoundError):
            api.send_chat_message(str(uuid.uuid4()), 'into the void')
        assert api.chat_queue.provisional() == []

    def test_error_mapping(self, api, student):
        with pytest.raises(PermissionDeniedError):
            api._request('GET', '/audit')
        with pytest.raises(ValidationError):
            api.create_od_request({'reason': 'x', 'date_range': {'from': '2024-01-02', 'to': '2024-01-01'}})

    def test_poll_chat_until_stopped(self, api, client, other_student):
        channel = api.general_channel()
        client.post(f"/chat/channels/{channel['id']}/messages", json={'body': 'first'}, headers=auth_headers(other_student))
        stop = threading.Event()
        batches = []

        def on_messages(messages):
            batches.append([m['body'] for m in messages])
            stop.set()

        api.poll_chat(channel['id'], on_messages, stop, interval=0)
        assert batches == [['first']]

    def test_poll_dashboard_until_stopped(self, api):
        stop = threading.Event()
        seen = []

        def on_counters(counters):
            seen.append(counters)
            if len(seen) == 2:
                stop.set()

        api.poll_dashboard(on_counters, stop, interval=0)
        assert len(seen) == 2
