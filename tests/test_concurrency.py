import threading
import time

import pytest
from django.db import connections

from runner.exceptions import StorageUnavailable
from runner.ledger import AnswerLedger
from runner.models import Answer

WRITERS = 4
RETRIES = 25


def save_concurrently(controller, token, question_id, options):
    """Lanza un guardado por hilo sobre la misma pregunta, todos a la vez."""
    barrier = threading.Barrier(len(options))
    outcomes = [None] * len(options)

    def worker(index, option):
        try:
            barrier.wait()
            for attempt in range(RETRIES):
                try:
                    outcomes[index] = controller.record_answer(token, question_id, selected_option=option).version
                    return
                except StorageUnavailable as exc:
                    # Base ocupada: el cliente reintenta
                    outcomes[index] = exc
                    time.sleep(0.005 * (attempt + index + 1))
        except Exception as exc:
            outcomes[index] = exc
        finally:
            connections.close_all()

    threads = [threading.Thread(target=worker, args=(i, option)) for i, option in enumerate(options)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes


@pytest.mark.django_db(transaction=True)
def test_concurrent_saves_keep_versions_contiguous(controller, session):
    question_id = session.question_sequence[0]
    outcomes = save_concurrently(controller, session.session_token, question_id, 'ABCD'[:WRITERS])

    # Cada guardado terminó bien o con un error reintentable, nunca otra cosa
    assert all(isinstance(o, (int, StorageUnavailable)) for o in outcomes), outcomes
    versions = sorted(o for o in outcomes if isinstance(o, int))
    assert versions
    assert versions == list(range(1, len(versions) + 1))

    finals = Answer.objects.filter(session=session, question_id=question_id, is_final=True)
    assert finals.count() == 1
    assert finals.get().version == versions[-1]

    history = AnswerLedger().history(session, question_id)
    assert [answer.version for answer in history] == versions

    session.refresh_from_db()
    assert session.questions_answered == 1
