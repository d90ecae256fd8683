"""
Tests for the dashboard endpoints: calls, stats, dispatch board and settings
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

from database.connection import get_db_session
from services.call_repository import CallRepository


def create_ticket(firm_id, intake, status='READY', started_at=None):
    with get_db_session() as session:
        repo = CallRepository(session, firm_id)
        call = repo.create_call('+15551234567')
        call.intake_json = intake
        if started_at:
            call.started_at = started_at
        repo.open_ticket(call, ticket_number='HVAC-2026-0101-0001')
        call.ticket_status = status
        return call.id


@pytest.mark.integration
class TestAuth:
    """Dashboard endpoints need X-User-Id"""

    @pytest.mark.parametrize('method,path', [
        ('get', '/api/calls'),
        ('get', '/api/dashboard/stats'),
        ('get', '/api/tickets'),
        ('patch', '/api/tickets/abc/status'),
        ('get', '/api/settings'),
        ('put', '/api/settings'),
        ('post', '/api/twilio/update-webhooks'),
    ])
    def test_unauthenticated(self, client, method, path):
        response = getattr(client, method)(path, json={})
        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Unauthorized'}


@pytest.mark.integration
class TestCalls:
    """GET /api/calls, /api/calls/<id>, /api/dashboard/stats"""

    def test_list_calls(self, client, firm_id, user_headers):
        create_ticket(firm_id, {'callerName': 'Ann Lee'})
        create_ticket(firm_id, {'callerName': 'Bob Ray'})

        data = client.get('/api/calls?limit=1', headers=user_headers).get_json()
        assert data['count'] == 1
        assert data['calls'][0]['firm_id'] == firm_id

    def test_list_calls_without_firm(self, client, other_user_headers):
        data = client.get('/api/calls', headers=other_user_headers).get_json()
        assert data == {'success': True, 'calls': [], 'count': 0}

    def test_bad_query_params(self, client, firm_id, user_headers):
        assert client.get('/api/calls?limit=ten', headers=user_headers).status_code == 400
        assert client.get('/api/calls?start=someday', headers=user_headers).status_code == 400

    def test_call_detail_is_firm_scoped(self, client, firm_id, user_headers, other_user_headers):
        call_id = create_ticket(firm_id, {'callerName': 'Ann Lee'})

        data = client.get(f'/api/calls/{call_id}', headers=user_headers).get_json()
        assert data['call']['intake'] == {'callerName': 'Ann Lee'}
        assert isinstance(data['history'], list)

        assert client.get(f'/api/calls/{call_id}', headers=other_user_headers).status_code == 404

    def test_dashboard_stats(self, client, firm_id, user_headers):
        create_ticket(firm_id, {'callerName': 'Ann Lee', 'issueCategory': 'No heat', 'urgency': 'can wait'})
        create_ticket(firm_id, {'callerName': 'Bob Ray', 'urgency': 'ASAP'}, status='COMPLETED')
        create_ticket(firm_id, {'callerName': 'Old Caller'}, started_at=datetime.utcnow() - timedelta(days=90))

        start = (datetime.utcnow() - timedelta(days=30)).date().isoformat()
        stats = client.get(f'/api/dashboard/stats?start={start}', headers=user_headers).get_json()['stats']

        assert stats['total_calls'] == 2
        assert stats['leads'] == 2
        assert stats['urgent_calls'] == 2
        assert stats['tickets']['COMPLETED'] == 1

    def test_dashboard_stats_without_firm(self, client, other_user_headers):
        assert client.get('/api/dashboard/stats', headers=other_user_headers).status_code == 404


@pytest.mark.integration
class TestDispatchBoard:
    """GET /api/tickets and PATCH /api/tickets/<id>/status"""

    def test_board_columns(self, client, firm_id, user_headers):
        normal = create_ticket(firm_id, {'issueCategory': 'Leak'})
        urgent = create_ticket(firm_id, {'issueCategory': 'No cool', 'urgency': 'ASAP'},
                               started_at=datetime.utcnow() - timedelta(hours=5))
        done = create_ticket(firm_id, {'issueCategory': 'Furnace'}, status='COMPLETED')

        board = client.get('/api/tickets', headers=user_headers).get_json()
        assert [t['id'] for t in board['columns']['READY']] == [urgent, normal]
        assert [t['id'] for t in board['columns']['COMPLETED']] == [done]
        assert board['counts'] == {'READY': 2, 'DISPATCHED': 0, 'COMPLETED': 1}

        urgent_board = client.get('/api/tickets?urgent_only=true', headers=user_headers).get_json()
        assert urgent_board['counts'] == {'READY': 1, 'DISPATCHED': 0, 'COMPLETED': 0}

    def test_board_for_user_without_firm(self, client, other_user_headers):
        board = client.get('/api/tickets', headers=other_user_headers).get_json()
        assert board['counts'] == {'READY': 0, 'DISPATCHED': 0, 'COMPLETED': 0}

    def test_move_ticket(self, client, firm_id, user_headers):
        ticket_id = create_ticket(firm_id, {'issueCategory': 'Leak'})

        response = client.patch(f'/api/tickets/{ticket_id}/status', json={'status': 'DISPATCHED'},
                                headers=user_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert data['changed'] is True
        assert data['ticket']['ticket_status'] == 'DISPATCHED'

        history = client.get(f'/api/calls/{ticket_id}', headers=user_headers).get_json()
        assert history['call']['ticket_status'] == 'DISPATCHED'

    def test_same_status_is_noop(self, client, firm_id, user_headers):
        ticket_id = create_ticket(firm_id, {'issueCategory': 'Leak'})

        data = client.patch(f'/api/tickets/{ticket_id}/status', json={'status': 'READY'},
                            headers=user_headers).get_json()
        assert data['success'] is True
        assert data['changed'] is False

    def test_backward_move(self, client, firm_id, user_headers):
        ticket_id = create_ticket(firm_id, {'issueCategory': 'Leak'}, status='COMPLETED')

        response = client.patch(f'/api/tickets/{ticket_id}/status', json={'status': 'READY'},
                                headers=user_headers)
        assert response.status_code == 409
        assert response.get_json()['status'] == 'COMPLETED'

        response = client.patch(f'/api/tickets/{ticket_id}/status', json={'status': 'READY', 'reopen': True},
                                headers=user_headers)
        assert response.status_code == 200

    def test_invalid_status(self, client, firm_id, user_headers):
        ticket_id = create_ticket(firm_id, {'issueCategory': 'Leak'})
        response = client.patch(f'/api/tickets/{ticket_id}/status', json={'status': 'ARCHIVED'},
                                headers=user_headers)
        assert response.status_code == 400

    def test_missing_status(self, client, firm_id, user_headers):
        ticket_id = create_ticket(firm_id, {'issueCategory': 'Leak'})
        response = client.patch(f'/api/tickets/{ticket_id}/status', json={'reopen': True},
                                headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Missing required fields: status'

    def test_other_users_ticket(self, client, firm_id, other_user_headers):
        ticket_id = create_ticket(firm_id, {'issueCategory': 'Leak'})
        response = client.patch(f'/api/tickets/{ticket_id}/status', json={'status': 'DISPATCHED'},
                                headers=other_user_headers)
        assert response.status_code == 403

    def test_missing_ticket(self, client, firm_id, user_headers):
        response = client.patch('/api/tickets/missing/status', json={'status': 'DISPATCHED'},
                                headers=user_headers)
        assert response.status_code == 404


@pytest.mark.integration
class TestSettings:
    """GET/PUT /api/settings and the voice agent sync"""

    def test_no_firm_yet(self, client, other_user_headers):
        data = client.get('/api/settings', headers=other_user_headers).get_json()
        assert data == {'success': True, 'firm': None}

    def test_first_save_creates_firm(self, client, other_user_headers):
        response = client.put('/api/settings', headers=other_user_headers, json={
            'firm_name': 'Cool Air Co',
            'notify_emails': 'Dispatch@CoolAir.com; ops@coolair.com',
            'twilio_number': '(555) 777-8888',
        })
        assert response.status_code == 200

        data = response.get_json()
        assert data['firm']['firm_name'] == 'Cool Air Co'
        assert data['firm']['owner_user_id'] == 'user-other-2'
        assert data['firm']['notify_emails'] == ['dispatch@coolair.com', 'ops@coolair.com']
        assert data['firm']['twilio_number'] == '+15557778888'
        assert data['voice_agent'] == {'synced': False, 'error': 'Voice platform not configured'}

    def test_first_save_needs_name(self, client, other_user_headers):
        response = client.put('/api/settings', headers=other_user_headers, json={'agent_name': 'Sam'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'firm_name'

    def test_update(self, client, firm_id, user_headers):
        response = client.put('/api/settings', headers=user_headers, json={
            'service_call_fee': '$95',
            'send_incomplete_tickets': True,
            'unknown_key': 'ignored',
        })
        data = response.get_json()
        assert data['changed'] == ['send_incomplete_tickets', 'service_call_fee']
        assert data['firm']['service_call_fee'] == 95.0

        assert client.get('/api/settings', headers=user_headers).get_json()['firm']['send_incomplete_tickets'] is True

    def test_validation_error(self, client, firm_id, user_headers):
        response = client.put('/api/settings', headers=user_headers, json={'notify_emails': ['not-an-email']})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'notify_emails'

    def test_voice_change_syncs_agent(self, app, client, firm_id, user_headers):
        app.config['VAPI_API_KEY'] = 'vapi-key'
        with patch('services.vapi_agent.requests.request') as mock_request:
            mock_request.return_value = Mock(content=b'{}', json=Mock(return_value={'id': 'asst_1'}))
            data = client.put('/api/settings', headers=user_headers, json={'agent_name': 'Sam'}).get_json()

        assert data['voice_agent'] == {'synced': True, 'assistant_id': 'asst_1', 'created': True}
        assert data['firm']['vapi_assistant_id'] == 'asst_1'
        assert mock_request.call_args[0][0] == 'POST'

    def test_sync_not_configured(self, client, firm_id, user_headers):
        response = client.post('/api/settings/voice-agent/sync', headers=user_headers)
        assert response.status_code == 503

    def test_sync_platform_error(self, app, client, firm_id, user_headers):
        from services.vapi_agent import VapiError

        app.config['VAPI_API_KEY'] = 'vapi-key'
        with patch('services.vapi_agent.VapiClient.create_assistant', side_effect=VapiError('bad request')):
            response = client.post('/api/settings/voice-agent/sync', headers=user_headers)

        assert response.status_code == 502
        assert response.get_json()['details'] == 'bad request'
