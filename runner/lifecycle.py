"""
Controlador del ciclo de vida de una sesión de examen.

Estados: not_started -> in_progress -> submitted | auto_submitted | interrupted.
Una sesión interrumpida vuelve a in_progress si el alumno reconecta antes del
fin programado. Pasado el plazo, toda sesión abierta termina en auto_submitted.

Cada operación que modifica una sesión corre en una transacción con la fila
de la sesión bloqueada (select_for_update): la sesión es la unidad de
exclusión mutua. Sesiones distintas no se bloquean entre sí.
"""
import functools
import hashlib
import logging
import random
from collections import namedtuple
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, InterfaceError, OperationalError, DatabaseError, transaction

from exams.models import Question
from . import signals
from .clock import default_clock
from .exceptions import (
    AlreadyAttempted, AlreadyTerminal, GradingNotAllowed, InvalidAnswer, InvalidToken,
    OutsideExamWindow, StorageUnavailable, TimeExpired, UnknownQuestion,
)
from .ledger import AnswerLedger
from .models import ExamSession, SessionSnapshot, generate_session_token
from .scoring import quantize, requires_manual_grading, score_session
from .snapshots import SnapshotRecorder
from .violations import ViolationMonitor

logger = logging.getLogger(__name__)

AnswerReceipt = namedtuple('AnswerReceipt', ['version', 'questions_answered', 'time_remaining_seconds'])
ViolationReceipt = namedtuple('ViolationReceipt', ['violation_count', 'flagged_for_review'])
RecoveryState = namedtuple('RecoveryState', ['session', 'snapshot', 'final_answers', 'time_remaining_seconds'])

MANUAL = 'manual'
AUTO = 'auto'


def storage_guard(func):
    """Traduce caídas de la base a StorageUnavailable (reintentable)."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            logger.warning("Base no disponible en %s: %s", func.__name__, exc)
            raise StorageUnavailable() from exc
    return wrapper


def seed_for_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def build_question_order(exam, token):
    """
    Arma la secuencia personalizada y la copia congelada del banco.
    El azar sale de una semilla derivada del token: el mismo token
    reconstruye siempre el mismo orden.
    """
    links = list(exam.examquestion_set.select_related('question').order_by('order', 'id'))
    rng = random.Random(seed_for_token(token))
    if exam.randomize_questions:
        rng.shuffle(links)

    sequence = []
    bank = {}
    for link in links:
        question = link.question
        options = list(question.options or [])
        if exam.randomize_options and question.question_type == Question.QuestionType.MULTIPLE_CHOICE:
            rng.shuffle(options)
        sequence.append(question.id)
        bank[str(question.id)] = {
            'type': question.question_type,
            'options': options,
            'correct_answer': question.correct_answer,
            'points': str(link.effective_points),
            'is_required': link.is_required,
        }
    return sequence, bank


class SessionLifecycleController:

    def __init__(self, clock=None, ledger=None, recorder=None, monitor=None):
        self.clock = clock or default_clock
        self.ledger = ledger or AnswerLedger()
        self.recorder = recorder or SnapshotRecorder()
        self.monitor = monitor or ViolationMonitor()

    # --- Helpers internos ---

    def _lock(self, **lookup):
        session = (
            ExamSession.objects.select_for_update(of=('self',))
            .select_related('exam')
            .filter(**lookup)
            .first()
        )
        if session is None:
            raise InvalidToken()
        return session

    def _lock_token(self, token):
        if not token:
            raise InvalidToken()
        return self._lock(session_token=token)

    def _emit(self, session, action, description='', **metadata):
        # Se publica al confirmar: un rollback no anuncia transiciones que no ocurrieron
        transaction.on_commit(functools.partial(self._publish, session, action, description, metadata))

    def _publish(self, session, action, description, metadata):
        results = signals.session_event.send_robust(
            sender=self.__class__,
            session=session,
            action=action,
            description=description,
            metadata=metadata,
        )
        for receiver, response in results:
            if isinstance(response, Exception):
                logger.error("Receptor %r falló para %s (%s): %s", receiver, action, session.uuid, response)

    def _expire_if_due(self, session, now):
        """
        Si la sesión abierta ya venció, la envía como auto_submitted.
        Devuelve True en ese caso: el llamador debe levantar TimeExpired
        después de confirmar la transacción.
        """
        if session.status in ExamSession.OPEN_STATUSES and session.is_timed_out(now):
            self._finalize(session, auto=True, now=now)
            return True
        return False

    def _check_writable(self, session, now):
        """
        Devuelve True si la sesión venció (y quedó auto-enviada).
        Una escritura sobre una sesión interrumpida y en plazo cuenta como reconexión.
        """
        if session.is_writable(now):
            return False
        if session.status not in ExamSession.OPEN_STATUSES:
            raise InvalidToken()
        if self._expire_if_due(session, now):
            return True
        self._reopen(session, now)
        return False

    def _finalize(self, session, auto, now):
        if session.is_terminal:
            raise AlreadyTerminal()
        session.status = ExamSession.Status.AUTO_SUBMITTED if auto else ExamSession.Status.SUBMITTED
        session.submitted_at = now
        session.actual_end_time = now
        score_session(session, self.ledger.all_final(session), settings.CBT_SCORE_UNANSWERED_AS_ZERO)
        session.save()
        action = signals.AUTO_SUBMITTED if auto else signals.SUBMITTED
        self._emit(
            session, action,
            total_score=str(session.total_score) if session.total_score is not None else None,
            percentage=str(session.percentage) if session.percentage is not None else None,
            fully_graded=session.is_fully_graded,
        )

    def _position_of(self, session, question_id):
        return session.question_sequence.index(question_id)

    def _clamp_index(self, session, index):
        if not session.question_sequence:
            return 0
        return max(0, min(int(index), len(session.question_sequence) - 1))

    def _validate_content(self, definition, answer_text, selected_option):
        if (answer_text is None) == (selected_option is None):
            raise InvalidAnswer("Envíe answer_text o selected_option (uno solo).")
        if definition['type'] in Question.TEXT_TYPES:
            if answer_text is None:
                raise InvalidAnswer("Esta pregunta se responde con texto.")
            return {'answer_text': answer_text}
        if selected_option is None:
            raise InvalidAnswer("Esta pregunta se responde eligiendo opciones.")
        return {'selected_option': selected_option}

    def _snapshot_payload(self, session, client_state, now):
        answers = {
            str(answer.question_id): {
                'answer_text': answer.answer_text,
                'selected_option': answer.selected_option,
                'version': answer.version,
                'is_flagged': answer.is_flagged,
            }
            for answer in self.ledger.all_final(session)
        }
        return {
            'session': str(session.uuid),
            'question_sequence': session.question_sequence,
            'current_question_index': session.current_question_index,
            'questions_answered': session.questions_answered,
            'questions_flagged': session.questions_flagged,
            'elapsed_seconds': session.elapsed_seconds(now),
            'time_remaining_seconds': session.time_remaining_seconds(now),
            'answers': answers,
            'client_state': client_state or {},
            'captured_at': now.isoformat(),
        }

    def _reopen(self, session, now):
        session.status = ExamSession.Status.IN_PROGRESS
        session.last_activity_at = now
        session.save(update_fields=['status', 'last_activity_at', 'updated_at'])
        self._emit(session, signals.RESUMED)

    # --- Operaciones del cliente ---

    @storage_guard
    def start(self, exam, student, ip_address=None, user_agent='', device_fingerprint=''):
        now = self.clock.now()
        if exam.has_not_started(now) or exam.has_ended(now):
            raise OutsideExamWindow()

        with transaction.atomic():
            existing = ExamSession.objects.select_for_update().filter(exam=exam, student=student).first()
            if existing is not None:
                can_resume = (
                    settings.CBT_ALLOW_RESUME_INTERRUPTED
                    and existing.is_interrupted
                    and not existing.is_timed_out(now)
                )
                if not can_resume:
                    raise AlreadyAttempted()
                self._reopen(existing, now)
                return existing

            token = generate_session_token()
            sequence, bank = build_question_order(exam, token)
            scheduled_end = min(now + timedelta(minutes=exam.duration_minutes), exam.end_time)
            try:
                with transaction.atomic():
                    session = ExamSession.objects.create(
                        exam=exam,
                        student=student,
                        session_token=token,
                        started_at=now,
                        scheduled_end_time=scheduled_end,
                        last_activity_at=now,
                        question_sequence=sequence,
                        question_bank=bank,
                        total_marks=exam.total_marks,
                        passing_marks=exam.passing_marks,
                        status=ExamSession.Status.IN_PROGRESS,
                        ip_address=ip_address,
                        user_agent=user_agent or '',
                        device_fingerprint=device_fingerprint or '',
                    )
            except IntegrityError as exc:
                # Otro request creó la sesión en paralelo
                raise AlreadyAttempted() from exc

            self._emit(session, signals.STARTED, questions=len(sequence))
        return session

    @storage_guard
    def record_answer(self, token, question_id, answer_text=None, selected_option=None,
                      is_flagged=None, time_spent_seconds=None, current_question_index=None,
                      recovery_data=None, checkpoint=False, client_state=None):
        now = self.clock.now()
        with transaction.atomic():
            session = self._lock_token(token)
            expired = self._check_writable(session, now)
            if not expired:
                definition = session.question_definition(question_id)
                if definition is None:
                    raise UnknownQuestion()
                content = self._validate_content(definition, answer_text, selected_option)

                if is_flagged is None:
                    # Sin dato del cliente se conserva la marca vigente
                    flag = question_id in (session.questions_flagged or [])
                else:
                    flag = bool(is_flagged)
                version = self.ledger.put(
                    session, question_id, content, now,
                    is_flagged=flag,
                    time_spent_seconds=time_spent_seconds,
                )

                if version == 1:
                    session.questions_answered += 1
                if is_flagged is not None:
                    flagged = set(session.questions_flagged or [])
                    if is_flagged:
                        flagged.add(question_id)
                    else:
                        flagged.discard(question_id)
                    session.questions_flagged = sorted(flagged)
                if current_question_index is None:
                    session.current_question_index = self._position_of(session, question_id)
                else:
                    session.current_question_index = self._clamp_index(session, current_question_index)
                if recovery_data is not None:
                    session.recovery_data = recovery_data
                session.last_activity_at = now
                session.save(update_fields=[
                    'questions_answered', 'questions_flagged', 'current_question_index',
                    'recovery_data', 'last_activity_at', 'updated_at',
                ])
        if expired:
            raise TimeExpired()

        if checkpoint:
            self._best_effort_snapshot(session, SessionSnapshot.SnapshotType.AUTO_SAVE, client_state, now)
        return AnswerReceipt(version, session.questions_answered, session.time_remaining_seconds(now))

    def _best_effort_snapshot(self, session, snapshot_type, client_state, now):
        # Fuera de la transacción del libro mayor: si falla, la respuesta ya quedó
        try:
            payload = self._snapshot_payload(session, client_state, now)
            return self.recorder.capture(session, snapshot_type, payload, now)
        except DatabaseError:
            logger.exception("No se pudo guardar el snapshot de la sesión %s", session.uuid)
            return None

    @storage_guard
    def snapshot(self, token, snapshot_type=SessionSnapshot.SnapshotType.MANUAL, client_state=None):
        now = self.clock.now()
        snapshot_id = None
        with transaction.atomic():
            session = self._lock_token(token)
            expired = self._check_writable(session, now)
            if not expired:
                payload = self._snapshot_payload(session, client_state, now)
                snapshot_id = self.recorder.capture(session, snapshot_type, payload, now)
        if expired:
            raise TimeExpired()
        return snapshot_id

    @storage_guard
    def record_violation(self, token, violation_type, description=None):
        """
        Agrega una violación sin forzar el envío.
        Los reportes que llegan tarde no se pierden: se aceptan hasta
        CBT_VIOLATION_GRACE_SECONDS después del fin programado o, si la
        sesión ya fue enviada, después de su fin real (el que ocurra antes).
        Pueden marcar para revisión una sesión ya enviada.
        """
        now = self.clock.now()
        grace = timedelta(seconds=settings.CBT_VIOLATION_GRACE_SECONDS)
        late = False
        with transaction.atomic():
            session = self._lock_token(token)
            was_terminal = session.is_terminal
            end = session.scheduled_end_time
            if was_terminal and session.actual_end_time:
                end = min(end, session.actual_end_time)
            if now >= end + grace:
                late = True
                self._expire_if_due(session, now)
            else:
                count = self.monitor.report(session, violation_type, description, now)
                if count > settings.CBT_MAX_VIOLATION_COUNT and not session.flagged_for_review:
                    session.flagged_for_review = True
                    session.flagged_at = now
                    session.save(update_fields=['flagged_for_review', 'flagged_at', 'updated_at'])
                    logger.warning("Sesión %s marcada para revisión (%s violaciones)", session.uuid, count)
                    self._emit(session, signals.FLAGGED_FOR_REVIEW, violation_count=count)
        if late:
            raise AlreadyTerminal() if was_terminal else TimeExpired()
        return ViolationReceipt(session.violation_count, session.flagged_for_review)

    @storage_guard
    def submit(self, token, mode=MANUAL):
        if not token:
            raise InvalidToken()
        return self._submit(mode, session_token=token)

    def _submit(self, mode, **lookup):
        now = self.clock.now()
        with transaction.atomic():
            session = self._lock(**lookup)
            auto = mode == AUTO or session.is_timed_out(now)
            try:
                self._finalize(session, auto=auto, now=now)
            except AlreadyTerminal:
                # Ya enviada: se devuelve el resultado guardado
                logger.debug("Sesión %s ya estaba en %s", session.uuid, session.status)
        return session

    @storage_guard
    def recover(self, token):
        """Estado para que el cliente retome donde estaba. No modifica nada."""
        session = ExamSession.objects.select_related('exam').filter(session_token=token).first() if token else None
        if session is None:
            raise InvalidToken()
        now = self.clock.now()
        return RecoveryState(
            session=session,
            snapshot=self.recorder.latest(session),
            final_answers=self.ledger.all_final(session),
            time_remaining_seconds=session.time_remaining_seconds(now),
        )

    @storage_guard
    def resume(self, token):
        now = self.clock.now()
        with transaction.atomic():
            session = self._lock_token(token)
            if session.is_terminal:
                raise InvalidToken()
            expired = self._expire_if_due(session, now)
            if not expired:
                if session.is_interrupted:
                    self._reopen(session, now)
                else:
                    session.last_activity_at = now
                    session.save(update_fields=['last_activity_at', 'updated_at'])
        if expired:
            raise TimeExpired()
        return session

    @storage_guard
    def heartbeat(self, token, current_question_index=None):
        now = self.clock.now()
        with transaction.atomic():
            session = self._lock_token(token)
            expired = self._check_writable(session, now)
            if not expired:
                if current_question_index is not None:
                    session.current_question_index = self._clamp_index(session, current_question_index)
                session.last_activity_at = now
                session.save(update_fields=['current_question_index', 'last_activity_at', 'updated_at'])
        if expired:
            raise TimeExpired()
        return session.time_remaining_seconds(now)

    @storage_guard
    def flag_question(self, token, question_id, flagged=True):
        now = self.clock.now()
        with transaction.atomic():
            session = self._lock_token(token)
            expired = self._check_writable(session, now)
            if not expired:
                if session.question_definition(question_id) is None:
                    raise UnknownQuestion()
                marked = set(session.questions_flagged or [])
                if flagged:
                    marked.add(question_id)
                else:
                    marked.discard(question_id)
                session.questions_flagged = sorted(marked)
                session.last_activity_at = now
                session.save(update_fields=['questions_flagged', 'last_activity_at', 'updated_at'])
                self.ledger.set_flag(session, question_id, bool(flagged))
        if expired:
            raise TimeExpired()
        return session.questions_flagged

    # --- Corrección manual (docentes) ---

    @storage_guard
    def grade_answer(self, session, question_id, points_awarded, is_correct=None):
        with transaction.atomic():
            session = self._lock(pk=session.pk)
            if not session.is_terminal:
                raise GradingNotAllowed("La sesión todavía no fue enviada.")
            definition = session.question_definition(question_id)
            if definition is None:
                raise UnknownQuestion()
            if not requires_manual_grading(definition):
                raise GradingNotAllowed("La pregunta se corrige automáticamente.")
            answer = self.ledger.final_version(session, question_id)
            if answer is None:
                raise GradingNotAllowed("La pregunta no tiene respuesta final.")

            max_points = quantize(definition['points'])
            points = quantize(points_awarded)
            if points < 0 or points > max_points:
                raise GradingNotAllowed(f"El puntaje debe estar entre 0 y {max_points}.")

            answer.points_awarded = points
            answer.is_correct = is_correct if is_correct is not None else points == max_points
            answer.save(update_fields=['points_awarded', 'is_correct'])

            score_session(session, self.ledger.all_final(session), settings.CBT_SCORE_UNANSWERED_AS_ZERO)
            session.save()
            self._emit(
                session, signals.GRADED,
                question_id=question_id,
                points=str(points),
                fully_graded=session.is_fully_graded,
            )
        return session

    # --- Barrido en segundo plano ---

    def sweep_expired(self):
        """
        Envía como auto_submitted toda sesión abierta con el plazo vencido.
        Un error en una sesión se registra y el barrido sigue.
        """
        now = self.clock.now()
        due_ids = list(
            ExamSession.objects.filter(
                status__in=ExamSession.OPEN_STATUSES,
                scheduled_end_time__lte=now,
            ).values_list('id', flat=True)
        )
        submitted = failed = 0
        for session_id in due_ids:
            try:
                self._submit(AUTO, pk=session_id)
                submitted += 1
            except Exception:
                failed += 1
                logger.exception("Falló el auto-envío de la sesión %s", session_id)
        if due_ids:
            logger.info("Barrido: %s sesiones auto-enviadas, %s con error", submitted, failed)
        return {'auto_submitted': submitted, 'failed': failed}

    def interrupt_idle(self):
        """Marca como interrumpidas las sesiones sin actividad reciente."""
        now = self.clock.now()
        cutoff = now - timedelta(seconds=settings.CBT_IDLE_INTERRUPT_SECONDS)
        idle_ids = list(
            ExamSession.objects.filter(
                status=ExamSession.Status.IN_PROGRESS,
                last_activity_at__lt=cutoff,
                scheduled_end_time__gt=now,
            ).values_list('id', flat=True)
        )
        interrupted = 0
        for session_id in idle_ids:
            try:
                with transaction.atomic():
                    session = self._lock(pk=session_id)
                    # Revalidar con la fila bloqueada
                    if session.is_in_progress and session.last_activity_at < cutoff:
                        session.status = ExamSession.Status.INTERRUPTED
                        session.save(update_fields=['status', 'updated_at'])
                        self._emit(session, signals.INTERRUPTED, idle_since=session.last_activity_at.isoformat())
                        interrupted += 1
            except Exception:
                logger.exception("No se pudo interrumpir la sesión %s", session_id)
        return interrupted
