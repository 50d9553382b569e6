from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest

from exams.models import Exam, ExamQuestion, Question
from runner.clock import FixedClock
from runner.lifecycle import SessionLifecycleController

T0 = datetime(2026, 3, 2, 13, 0, tzinfo=dt_timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def controller(clock):
    return SessionLifecycleController(clock=clock)


@pytest.fixture
def student(db, django_user_model):
    return django_user_model.objects.create_user(username='alumno', password='clave-segura-123')


@pytest.fixture
def make_question(db):
    def _make(question_type=Question.QuestionType.MULTIPLE_CHOICE, correct='A', points=1, options=None):
        if options is None and question_type == Question.QuestionType.MULTIPLE_CHOICE:
            options = [{'key': k, 'value': f'Opción {k}'} for k in 'ABCD']
        return Question.objects.create(
            question_type=question_type,
            text=f'Pregunta {Question.objects.count() + 1}',
            options=options,
            correct_answer=correct,
            points=Decimal(str(points)),
        )
    return _make


@pytest.fixture
def make_exam(db, make_question):
    def _make(questions=None, n_questions=10, duration_minutes=60, start=None, end=None,
              total_marks=None, passing_marks=5, randomize=True):
        if questions is None:
            questions = [make_question() for _ in range(n_questions)]
        if total_marks is None:
            total_marks = sum(q.points for q in questions)
        exam = Exam.objects.create(
            title='Parcial de Sistemas',
            status='published',
            start_time=start or T0 - timedelta(hours=1),
            end_time=end or T0 + timedelta(hours=3),
            duration_minutes=duration_minutes,
            total_marks=Decimal(str(total_marks)),
            passing_marks=Decimal(str(passing_marks)),
            randomize_questions=randomize,
            randomize_options=randomize,
        )
        for question in questions:
            ExamQuestion.objects.create(exam=exam, question=question)
        return exam
    return _make


@pytest.fixture
def exam(make_exam):
    return make_exam()


@pytest.fixture
def session(controller, exam, student):
    return controller.start(exam, student, ip_address='10.0.0.7', user_agent='pytest')
