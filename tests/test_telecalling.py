"""
Tests for leads, call logs, follow-ups and telecalling stats.
"""

from datetime import date, timedelta


def _lead(client, headers, code='L001', **extra):
    payload = {'lead_code': code, 'company_name': f'Company {code}', 'mobile_no': '9700000000', **extra}
    return client.post('/api/leads', headers=headers, json=payload)


class TestLeads:
    """Lead capture and visibility."""

    def test_staff_lead_assigned_to_self(self, client, staff_headers, users):
        """Field staff cannot hand a lead to someone else."""
        response = _lead(client, staff_headers, assigned_to=users['staff2'])
        assert response.status_code == 201
        assert response.get_json()['assigned_to'] == users['staff']

    def test_manager_assigns(self, client, manager_headers, staff2_headers, staff_headers, users):
        """A manager-assigned lead is only visible to the assignee among staff."""
        _lead(client, manager_headers, assigned_to=users['staff2'])
        assert [lead['lead_code'] for lead in client.get('/api/leads', headers=staff2_headers).get_json()] == ['L001']
        assert client.get('/api/leads', headers=staff_headers).get_json() == []

    def test_duplicate_and_invalid(self, client, staff_headers):
        """Lead codes are unique; status and value are validated."""
        assert _lead(client, staff_headers).status_code == 201
        assert _lead(client, staff_headers).status_code == 400
        assert _lead(client, staff_headers, code='L002', lead_status='hot').status_code == 400
        assert _lead(client, staff_headers, code='L003', estimated_value=-5).status_code == 400
        assert client.post('/api/leads', headers=staff_headers, json={'lead_code': 'L004'}).status_code == 400

    def test_entities_mix_customers_and_leads(self, client, staff_headers, sample):
        """The picker lists visible customers followed by visible leads."""
        _lead(client, staff_headers, code='L010')
        entities = client.get('/api/telecalling/entities', headers=staff_headers).get_json()
        assert [(e['entity_type'], e['code']) for e in entities] == [('customer', 'C001'), ('lead', 'L010')]

        filtered = client.get('/api/telecalling/entities?q=L010', headers=staff_headers).get_json()
        assert [e['code'] for e in filtered] == ['L010']


class TestCallLogs:
    """Call history."""

    def test_log_call_against_customer(self, client, staff_headers, sample):
        """Defaults fill in type, purpose and status."""
        response = client.post('/api/telecalling/call-logs', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'],
            'call_duration': 95, 'call_outcome': 'positive', 'discussion_points': 'Wants a price list',
        })
        assert response.status_code == 201
        log = response.get_json()
        assert log['entity_name'] == 'Sharma Stores'
        assert (log['call_type'], log['call_purpose'], log['call_status']) == ('outgoing', 'follow_up', 'completed')
        assert log['recorded_by'] == 'Test Staff'

    def test_cannot_log_hidden_customer(self, client, staff2_headers, sample):
        """Staff can only call customers assigned to them."""
        response = client.post('/api/telecalling/call-logs', headers=staff2_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'],
        })
        assert response.status_code == 400

    def test_validation(self, client, staff_headers, sample):
        """Unknown picklist values and negative durations are rejected."""
        base = {'entity_type': 'customer', 'entity_id': sample['retail']}
        assert client.post('/api/telecalling/call-logs', headers=staff_headers,
                           json={**base, 'call_status': 'ringing'}).status_code == 400
        assert client.post('/api/telecalling/call-logs', headers=staff_headers,
                           json={**base, 'call_duration': -1}).status_code == 400
        assert client.post('/api/telecalling/call-logs', headers=staff_headers,
                           json={**base, 'entity_type': 'supplier'}).status_code == 400
        assert client.post('/api/telecalling/call-logs', headers=staff_headers,
                           json={**base, 'call_date': 'yesterday'}).status_code == 400

    def test_update_and_scoping(self, client, staff_headers, staff2_headers, manager_headers, sample):
        """Owners edit their logs; other staff get 404; managers see all."""
        log = client.post('/api/telecalling/call-logs', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'],
        }).get_json()

        updated = client.put(f"/api/telecalling/call-logs/{log['id']}", headers=staff_headers,
                             json={'call_status': 'callback_requested', 'next_action': 'Call Friday'})
        assert updated.status_code == 200
        assert updated.get_json()['call_status'] == 'callback_requested'

        assert client.put(f"/api/telecalling/call-logs/{log['id']}", headers=staff2_headers,
                          json={'call_status': 'busy'}).status_code == 404
        assert client.get('/api/telecalling/call-logs', headers=staff2_headers).get_json() == []
        assert len(client.get('/api/telecalling/call-logs', headers=manager_headers).get_json()) == 1


class TestFollowUps:
    """Scheduled follow-ups."""

    def test_create_defaults(self, client, staff_headers, sample):
        """Assignee defaults to the creator; subject is required."""
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        response = client.post('/api/telecalling/follow-ups', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'],
            'follow_up_date': tomorrow, 'follow_up_time': '10:30', 'subject': 'Share new rates',
        })
        assert response.status_code == 201
        follow_up = response.get_json()
        assert follow_up['follow_up_time'] == '10:30'
        assert follow_up['status'] == 'pending'
        assert follow_up['assigned_to_name'] == 'Test Staff'

        missing = client.post('/api/telecalling/follow-ups', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'],
        })
        assert missing.status_code == 400

    def test_bad_time(self, client, staff_headers, sample):
        """Times are HH:MM."""
        response = client.post('/api/telecalling/follow-ups', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'], 'subject': 'x', 'follow_up_time': '25:99',
        })
        assert response.status_code == 400

    def test_complete_follow_up(self, client, staff_headers, sample):
        """Status changes are filtered on list."""
        created = client.post('/api/telecalling/follow-ups', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'], 'subject': 'Visit shop',
        }).get_json()
        client.put(f"/api/telecalling/follow-ups/{created['id']}", headers=staff_headers,
                   json={'status': 'completed'})
        pending = client.get('/api/telecalling/follow-ups?status=pending', headers=staff_headers).get_json()
        done = client.get('/api/telecalling/follow-ups?status=completed', headers=staff_headers).get_json()
        assert pending == []
        assert [f['id'] for f in done] == [created['id']]


class TestStats:
    """Dashboard counters."""

    def test_stats_scoped_to_user(self, client, staff_headers, manager_headers, sample):
        """Staff count their own work; managers count everyone's."""
        client.post('/api/telecalling/call-logs', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'],
        })
        client.post('/api/telecalling/follow-ups', headers=staff_headers, json={
            'entity_type': 'customer', 'entity_id': sample['retail'], 'subject': 'Check stock',
        })
        client.post('/api/telecalling/call-logs', headers=manager_headers, json={
            'entity_type': 'customer', 'entity_id': sample['wholesale'],
            'call_date': '2024-01-15T10:00:00+05:30',
        })

        staff_stats = client.get('/api/telecalling/stats', headers=staff_headers).get_json()
        assert staff_stats == {'total_calls': 1, 'pending_follow_ups': 1, 'calls_today': 1}

        manager_stats = client.get('/api/telecalling/stats', headers=manager_headers).get_json()
        assert manager_stats['total_calls'] == 2
        assert manager_stats['calls_today'] == 1
