from datetime import timedelta

from runner import tasks
from runner.lifecycle import SessionLifecycleController
from runner.models import ActivityLog, ExamSession

from .conftest import T0


def test_beat_schedule_points_to_sweep(settings):
    entry = settings.CELERY_BEAT_SCHEDULE['sweep-expired-sessions']
    assert entry['task'] == 'runner.tasks.sweep_expired_sessions'


def test_sweep_task_interrupts_idle_sessions(session, clock, monkeypatch, django_capture_on_commit_callbacks):
    monkeypatch.setattr(tasks, 'SessionLifecycleController', lambda: SessionLifecycleController(clock=clock))
    clock.set(T0 + timedelta(minutes=20))

    with django_capture_on_commit_callbacks(execute=True):
        result = tasks.sweep_expired_sessions.apply().get()
    assert result == {'auto_submitted': 0, 'failed': 0, 'interrupted': 1}
    session.refresh_from_db()
    assert session.status == ExamSession.Status.INTERRUPTED
    assert ActivityLog.objects.filter(session=session, action='interrupted').exists()


def test_sweep_task_finishes_interrupted_sessions_after_deadline(session, clock, monkeypatch):
    monkeypatch.setattr(tasks, 'SessionLifecycleController', lambda: SessionLifecycleController(clock=clock))
    clock.set(T0 + timedelta(minutes=20))
    tasks.sweep_expired_sessions()

    clock.set(T0 + timedelta(hours=2))
    result = tasks.sweep_expired_sessions()
    assert result == {'auto_submitted': 1, 'failed': 0, 'interrupted': 0}
    session.refresh_from_db()
    assert session.status == ExamSession.Status.AUTO_SUBMITTED
    assert session.total_score == 0
