import uuid
import secrets
from django.db import models
from django.conf import settings
from exams.models import Exam


def generate_session_token():
    # 256 bits aleatorios, sin relación con el id
    return secrets.token_hex(32)


class ExamSession(models.Model):
    """
    Representa el intento de un alumno (uno solo por examen y alumno).
    Es el registro de auditoría del intento: nunca se borra.
    """

    class Status(models.TextChoices):
        NOT_STARTED = 'not_started', 'Sin iniciar'
        IN_PROGRESS = 'in_progress', 'En curso'
        SUBMITTED = 'submitted', 'Enviado'
        AUTO_SUBMITTED = 'auto_submitted', 'Enviado por tiempo'
        INTERRUPTED = 'interrupted', 'Interrumpido'

    TERMINAL_STATUSES = (Status.SUBMITTED, Status.AUTO_SUBMITTED)
    OPEN_STATUSES = (Status.IN_PROGRESS, Status.INTERRUPTED)

    uuid = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

    # Relaciones
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='sessions')
    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='exam_sessions')

    # Credencial del cliente (bearer). Nunca se expone salvo al iniciar.
    session_token = models.CharField(max_length=64, unique=True, default=generate_session_token, editable=False)

    # Tiempos
    started_at = models.DateTimeField(verbose_name="Inicio")
    scheduled_end_time = models.DateTimeField(verbose_name="Fin programado")
    submitted_at = models.DateTimeField(null=True, blank=True, verbose_name="Enviado el")
    actual_end_time = models.DateTimeField(null=True, blank=True, verbose_name="Fin real")
    last_activity_at = models.DateTimeField(verbose_name="Última actividad")

    # Orden personalizado de preguntas + copia congelada del banco
    question_sequence = models.JSONField(default=list)
    question_bank = models.JSONField(default=dict)
    total_marks = models.DecimalField(max_digits=6, decimal_places=2)
    passing_marks = models.DecimalField(max_digits=6, decimal_places=2)

    # Progreso
    current_question_index = models.PositiveIntegerField(default=0)
    questions_answered = models.PositiveIntegerField(default=0)
    questions_flagged = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.IN_PROGRESS)

    # Estado completo del cliente para recuperación ante caídas
    recovery_data = models.JSONField(null=True, blank=True)

    # Puntaje (se completa al enviar / corregir)
    total_score = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    is_fully_graded = models.BooleanField(default=False)
    passed = models.BooleanField(null=True, blank=True)

    # Integridad / dispositivo
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    device_fingerprint = models.CharField(max_length=255, blank=True)

    # Violaciones (bitácora embebida)
    has_violations = models.BooleanField(default=False)
    violation_count = models.PositiveIntegerField(default=0)
    violations = models.JSONField(default=list, blank=True)
    flagged_for_review = models.BooleanField(default=False)
    flagged_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-started_at']
        constraints = [
            models.UniqueConstraint(fields=['exam', 'student'], name='unique_session'),
        ]
        indexes = [
            models.Index(fields=['exam', 'status'], name='idx_sessions_exam_status'),
            models.Index(fields=['status', 'scheduled_end_time'], name='idx_sessions_deadline'),
            models.Index(fields=['last_activity_at'], name='idx_sessions_activity'),
        ]

    def __str__(self):
        return f"{self.student} - {self.exam.title} ({self.status})"

    # --- Estado ---

    @property
    def is_in_progress(self):
        return self.status == self.Status.IN_PROGRESS

    @property
    def is_interrupted(self):
        return self.status == self.Status.INTERRUPTED

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def is_timed_out(self, now):
        return now >= self.scheduled_end_time

    def is_writable(self, now):
        """Único predicado de escritura: en curso y antes del fin programado."""
        return self.status == self.Status.IN_PROGRESS and now < self.scheduled_end_time

    def time_remaining_seconds(self, now):
        if self.is_terminal or self.is_timed_out(now):
            return 0
        return int((self.scheduled_end_time - now).total_seconds())

    def elapsed_seconds(self, now):
        end = self.actual_end_time or now
        return max(0, int((end - self.started_at).total_seconds()))

    @property
    def total_questions(self):
        return len(self.question_sequence or [])

    def question_definition(self, question_id):
        return (self.question_bank or {}).get(str(question_id))


class Answer(models.Model):
    """
    Libro mayor de respuestas (solo se agregan filas).
    Cada guardado crea una versión nueva; una sola es la final por pregunta.
    """
    session = models.ForeignKey(ExamSession, on_delete=models.CASCADE, related_name='answers')
    # Sin FK: la corrección usa la copia congelada en la sesión
    question_id = models.BigIntegerField()

    # Contenido (uno u otro según el tipo de pregunta)
    answer_text = models.TextField(null=True, blank=True)
    selected_option = models.JSONField(null=True, blank=True)

    is_flagged = models.BooleanField(default=False)
    time_spent_seconds = models.PositiveIntegerField(null=True, blank=True)

    # Versionado (auto-guardado)
    version = models.PositiveIntegerField(default=1)
    is_final = models.BooleanField(default=False)

    # Corrección
    is_correct = models.BooleanField(null=True, blank=True)
    points_awarded = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    first_answered_at = models.DateTimeField()
    last_updated_at = models.DateTimeField()

    class Meta:
        ordering = ['question_id', 'version']
        constraints = [
            models.UniqueConstraint(fields=['session', 'question_id', 'version'], name='unique_answer_version'),
            models.UniqueConstraint(
                fields=['session', 'question_id'],
                condition=models.Q(is_final=True),
                name='unique_final_answer',
            ),
        ]
        indexes = [
            models.Index(fields=['session', 'is_final'], name='idx_answers_final'),
        ]

    def __str__(self):
        return f"Sesión {self.session_id} · P{self.question_id} v{self.version}"


class SessionSnapshot(models.Model):
    """
    Foto completa del estado del cliente para retomar tras una caída.
    Inmutable: se crea y nunca se modifica.
    """

    class SnapshotType(models.TextChoices):
        AUTO_SAVE = 'auto_save', 'Auto-guardado'
        MANUAL = 'manual', 'Guardado manual'
        RECOVERY = 'recovery', 'Punto de recuperación'
        CHECKPOINT = 'checkpoint', 'Hito'

    session = models.ForeignKey(ExamSession, on_delete=models.CASCADE, related_name='snapshots')
    snapshot_data = models.JSONField()
    snapshot_type = models.CharField(max_length=20, choices=SnapshotType.choices)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['session', 'created_at'], name='idx_snapshots_created'),
        ]

    def __str__(self):
        return f"{self.get_snapshot_type_display()} - {self.created_at.strftime('%H:%M:%S')}"


class ActivityLog(models.Model):
    """
    Bitácora de auditoría (Caja Negra).
    Recibe los eventos del ciclo de vida de cada sesión.
    """
    session = models.ForeignKey(ExamSession, on_delete=models.SET_NULL, null=True, blank=True, related_name='activity')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)

    action = models.CharField(max_length=100, db_index=True)
    description = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.action} - {self.created_at.strftime('%H:%M:%S')}"
