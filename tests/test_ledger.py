from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction

from runner.ledger import AnswerLedger
from runner.models import Answer

from .conftest import T0


@pytest.fixture
def ledger():
    return AnswerLedger()


def test_versions_start_at_one_without_gaps(ledger, session):
    question_id = session.question_sequence[0]
    versions = [
        ledger.put(session, question_id, {'selected_option': key}, T0 + timedelta(seconds=i))
        for i, key in enumerate('ABCA')
    ]
    assert versions == [1, 2, 3, 4]
    assert [a.version for a in ledger.history(session, question_id)] == [1, 2, 3, 4]


def test_exactly_one_final_row_after_each_write(ledger, session):
    question_id = session.question_sequence[0]
    for key in 'ABB':
        ledger.put(session, question_id, {'selected_option': key}, T0)
        finals = Answer.objects.filter(session=session, question_id=question_id, is_final=True)
        assert finals.count() == 1

    final = ledger.final_version(session, question_id)
    assert final.version == 3
    assert final.selected_option == 'B'
    # Las versiones anteriores se conservan para auditoría
    assert Answer.objects.filter(session=session, question_id=question_id).count() == 3


def test_first_answered_at_is_kept_across_versions(ledger, session):
    question_id = session.question_sequence[0]
    ledger.put(session, question_id, {'selected_option': 'A'}, T0)
    ledger.put(session, question_id, {'selected_option': 'B'}, T0 + timedelta(minutes=5))

    final = ledger.final_version(session, question_id)
    assert final.first_answered_at == T0
    assert final.last_updated_at == T0 + timedelta(minutes=5)


def test_all_final_returns_one_row_per_question(ledger, session):
    first, second = session.question_sequence[:2]
    ledger.put(session, first, {'selected_option': 'A'}, T0)
    ledger.put(session, first, {'selected_option': 'C'}, T0)
    ledger.put(session, second, {'selected_option': 'D'}, T0)

    finals = ledger.all_final(session)
    assert sorted(a.question_id for a in finals) == sorted([first, second])
    assert {a.question_id: a.selected_option for a in finals}[first] == 'C'


def test_final_version_is_none_before_first_write(ledger, session):
    assert ledger.final_version(session, session.question_sequence[0]) is None
    assert ledger.history(session, session.question_sequence[0]) == []


def test_database_rejects_a_second_final_row(session):
    question_id = session.question_sequence[0]
    Answer.objects.create(
        session=session, question_id=question_id, selected_option='A',
        version=1, is_final=True, first_answered_at=T0, last_updated_at=T0,
    )
    with pytest.raises(IntegrityError):
        with transaction.atomic():
            Answer.objects.create(
                session=session, question_id=question_id, selected_option='B',
                version=2, is_final=True, first_answered_at=T0, last_updated_at=T0,
            )
