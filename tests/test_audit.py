"""
Tests for the append-only audit log
"""
import uuid

from campushub.services.audit import compute_diff, create_audit_log, get_audit_logs, verify_audit_log


class TestAuditLog:
    """Integrity hashing and retrieval"""

    def test_round_trip_verifies(self, store, hod):
        entity_id = uuid.uuid4()
        create_audit_log(store, 'od_request', entity_id, 'APPROVE', actor=hod,
                         changes_json={'department_status': {'before': 'pending', 'after': 'approved'}})
        [row] = get_audit_logs(store, entity_type='od_request', entity_id=str(entity_id))
        assert row['actor_role'] == 'hod'
        assert verify_audit_log(row)

    def test_tampering_detected(self, store, hod):
        row = create_audit_log(store, 'od_request', uuid.uuid4(), 'REJECT', actor=hod)
        tampered = dict(row, action='APPROVE')
        assert not verify_audit_log(tampered)
        assert not verify_audit_log(row, secret='another-secret')

    def test_system_entries(self, store):
        row = create_audit_log(store, 'lost_item', uuid.uuid4(), 'STATUS', source='system')
        assert row['actor_id'] is None
        assert row['actor_role'] == 'system'

    def test_compute_diff(self):
        diff = compute_diff({'a': 1, 'b': 2}, {'a': 1, 'b': 3, 'c': 4})
        assert diff == {'b': {'before': 2, 'after': 3}, 'c': {'before': None, 'after': 4}}
