"""
Libro mayor de respuestas (AnswerLedger).

Cada guardado agrega una versión nueva para (sesión, pregunta). La versión
anterior deja de ser final y la nueva pasa a serlo dentro de la misma
transacción, con la fila de la sesión bloqueada. Si aun así aparecieran dos
finales, la restricción única condicional de la base lo rechaza y se
levanta InvariantViolation: no se intenta reparar.
"""
from django.db import IntegrityError, transaction
from django.db.models import Max

from .exceptions import InvariantViolation
from .models import Answer, ExamSession


class AnswerLedger:

    def put(self, session, question_id, content, now, is_flagged=False, time_spent_seconds=None):
        """
        Agrega una versión y la marca como final.
        `content` es {'answer_text': ...} o {'selected_option': ...}.
        Devuelve el número de versión creado (1, 2, 3...).
        """
        try:
            with transaction.atomic():
                # Serializa contra otros guardados de la misma sesión
                ExamSession.objects.select_for_update().filter(pk=session.pk).first()

                history = Answer.objects.filter(session=session, question_id=question_id)
                last_version = history.aggregate(last=Max('version'))['last'] or 0
                first = history.filter(version=1).values_list('first_answered_at', flat=True).first()

                history.filter(is_final=True).update(is_final=False)
                answer = Answer.objects.create(
                    session=session,
                    question_id=question_id,
                    answer_text=content.get('answer_text'),
                    selected_option=content.get('selected_option'),
                    is_flagged=is_flagged,
                    time_spent_seconds=time_spent_seconds,
                    version=last_version + 1,
                    is_final=True,
                    first_answered_at=first or now,
                    last_updated_at=now,
                )

                finals = history.filter(is_final=True).count()
                if finals != 1:
                    raise InvariantViolation(
                        f"Pregunta {question_id}: {finals} respuestas finales en la sesión {session.pk}"
                    )
        except IntegrityError as exc:
            raise InvariantViolation(
                f"Pregunta {question_id}: versión o final duplicado en la sesión {session.pk}"
            ) from exc
        return answer.version

    def final_version(self, session, question_id):
        return Answer.objects.filter(session=session, question_id=question_id, is_final=True).first()

    def all_final(self, session):
        return list(Answer.objects.filter(session=session, is_final=True).order_by('question_id'))

    def history(self, session, question_id):
        return list(Answer.objects.filter(session=session, question_id=question_id).order_by('version'))

    def set_flag(self, session, question_id, flagged):
        """Alinea la marca de la respuesta final con la sesión (sin versión nueva)."""
        return Answer.objects.filter(
            session=session, question_id=question_id, is_final=True,
        ).update(is_flagged=flagged)
