from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils.dateparse import parse_datetime
from rest_framework.test import APIClient

from runner import views
from runner.lifecycle import SessionLifecycleController
from runner.models import ExamSession

from .conftest import T0


@pytest.fixture(autouse=True)
def fixed_controller(monkeypatch, clock):
    monkeypatch.setattr(views, 'get_controller', lambda: SessionLifecycleController(clock=clock))


@pytest.fixture
def client(student):
    api = APIClient()
    api.force_authenticate(user=student)
    return api


@pytest.fixture
def started(client, exam):
    response = client.post(reverse('runner:start_session', args=[exam.id]), {}, format='json')
    assert response.status_code == 201
    return response.json()


def post(client, name, token, data=None):
    return client.post(reverse(f'runner:{name}'), data or {}, format='json', HTTP_X_SESSION_TOKEN=token)


def test_start_returns_token_and_questions_without_answers(started, exam):
    assert len(started['session_token']) == 64
    assert started['status'] == 'in_progress'
    assert started['time_remaining_seconds'] == 3600
    assert len(started['questions']) == 10
    assert all('correct_answer' not in q for q in started['questions'])
    assert [q['id'] for q in started['questions']] == started['question_sequence']


def test_second_start_conflicts(client, exam, started):
    response = client.post(reverse('runner:start_session', args=[exam.id]), {}, format='json')
    assert response.status_code == 409
    assert response.json()['error'] == 'already_attempted'


def test_start_requires_login(exam):
    response = APIClient().post(reverse('runner:start_session', args=[exam.id]), {}, format='json')
    assert response.status_code in (401, 403)


def test_draft_exam_cannot_be_started(client, exam):
    exam.status = 'draft'
    exam.save()
    response = client.post(reverse('runner:start_session', args=[exam.id]), {}, format='json')
    assert response.status_code == 404


def test_answer_and_submit_flow(client, started):
    token = started['session_token']
    for question_id in started['question_sequence']:
        response = post(client, 'record_answer', token, {'question_id': question_id, 'selected_option': 'A'})
        assert response.status_code == 200
        assert response.json()['version'] == 1

    response = post(client, 'submit_session', token)
    assert response.status_code == 200
    body = response.json()
    assert body['status'] == 'submitted'
    assert body['total_score'] == '10.00'
    assert body['passed'] is True


def test_bad_token_is_rejected(client, started):
    response = post(client, 'record_answer', 'x' * 64, {'question_id': started['question_sequence'][0],
                                                         'selected_option': 'A'})
    assert response.status_code == 404
    assert response.json() == {
        'error': 'invalid_token',
        'detail': 'Token de sesión inválido o sesión no activa.',
        'retryable': False,
    }


def test_missing_token_is_rejected(client, started):
    response = client.post(reverse('runner:submit_session'), {}, format='json')
    assert response.status_code == 404


def test_late_answer_tells_client_to_recover(client, started, clock):
    clock.advance(minutes=61)
    response = post(client, 'record_answer', started['session_token'],
                    {'question_id': started['question_sequence'][0], 'selected_option': 'A'})
    assert response.status_code == 409
    assert response.json()['error'] == 'time_expired'
    assert response.json()['next_action'] == 'recover'
    assert ExamSession.objects.get().status == ExamSession.Status.AUTO_SUBMITTED


def test_unknown_violation_type_is_ignored(client, started):
    response = post(client, 'record_violation', started['session_token'], {'violation_type': 'telepathy'})
    assert response.json() == {'status': 'ignored'}
    assert ExamSession.objects.get().violation_count == 0

    response = post(client, 'record_violation', started['session_token'], {'violation_type': 'tab_switch'})
    assert response.json() == {'status': 'ok', 'violation_count': 1, 'flagged_for_review': False}


def test_recover_returns_snapshot_and_answers(client, started, clock):
    token = started['session_token']
    first = started['question_sequence'][0]
    post(client, 'record_answer', token, {'question_id': first, 'selected_option': 'B'})
    post(client, 'record_answer', token, {'question_id': first, 'selected_option': 'C'})
    assert post(client, 'take_snapshot', token, {'client_state': {'scroll': 10}}).status_code == 201
    clock.advance(minutes=5)

    response = client.get(reverse('runner:recover_session'), HTTP_X_SESSION_TOKEN=token)
    assert response.status_code == 200
    body = response.json()
    assert body['time_remaining_seconds'] == 55 * 60
    assert body['answers'] == [
        {
            'question_id': first, 'answer_text': None, 'selected_option': 'C', 'is_flagged': False,
            'version': 2, 'time_spent_seconds': None,
            'first_answered_at': body['answers'][0]['first_answered_at'],
            'last_updated_at': body['answers'][0]['last_updated_at'],
        },
    ]
    assert body['snapshot']['snapshot_type'] == 'manual'
    assert body['snapshot']['snapshot_data']['client_state'] == {'scroll': 10}


def test_heartbeat_and_flag(client, started):
    token = started['session_token']
    response = post(client, 'heartbeat', token, {'current_question_index': 2})
    assert response.json() == {'status': 'ok', 'time_remaining_seconds': 3600}

    question_id = started['question_sequence'][3]
    response = post(client, 'flag_question', token, {'question_id': question_id})
    assert response.json()['questions_flagged'] == [question_id]


def test_answer_after_idle_interrupt_reconnects(client, started, clock):
    clock.advance(minutes=10)
    assert SessionLifecycleController(clock=clock).interrupt_idle() == 1

    response = post(client, 'record_answer', started['session_token'],
                    {'question_id': started['question_sequence'][0], 'selected_option': 'A'})
    assert response.status_code == 200
    assert response.json()['time_remaining_seconds'] == 50 * 60
    assert ExamSession.objects.get().status == ExamSession.Status.IN_PROGRESS


def test_grading_requires_staff(client, started, django_user_model):
    session = ExamSession.objects.get()
    url = reverse('runner:grade_answer', args=[session.uuid])
    data = {'question_id': session.question_sequence[0], 'points_awarded': '1'}
    assert client.post(url, data, format='json').status_code == 403

    staff = django_user_model.objects.create_user(username='docente', is_staff=True)
    staff_client = APIClient()
    staff_client.force_authenticate(user=staff)
    response = staff_client.post(url, data, format='json')
    # Sesión aún abierta
    assert response.status_code == 409
    assert response.json()['error'] == 'grading_not_allowed'


def test_health_check(client):
    assert client.get('/health/').status_code == 200


def test_scheduled_end_is_reported(started):
    assert parse_datetime(started['scheduled_end_time']) == T0 + timedelta(hours=1)
