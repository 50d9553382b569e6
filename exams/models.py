import uuid
from django.db import models
from django.conf import settings


class Question(models.Model):
    """
    Una Pregunta en el Banco de Preguntas.
    El motor de sesiones la congela al iniciar cada intento (ver runner).
    """
    class QuestionType(models.TextChoices):
        MULTIPLE_CHOICE = 'multiple_choice', 'Opción Múltiple'
        TRUE_FALSE = 'true_false', 'Verdadero / Falso'
        FILL_IN_BLANK = 'fill_in_blank', 'Completar'
        ESSAY = 'essay', 'Ensayo'
        MATCHING = 'matching', 'Unir con flechas'

    class Difficulty(models.TextChoices):
        EASY = 'easy', 'Fácil'
        MEDIUM = 'medium', 'Media'
        HARD = 'hard', 'Difícil'

    # Tipos que se responden con texto libre (el resto con opciones)
    TEXT_TYPES = (QuestionType.ESSAY, QuestionType.FILL_IN_BLANK)
    # Tipos que requieren corrección humana
    MANUAL_GRADING_TYPES = (QuestionType.ESSAY, QuestionType.MATCHING)

    uuid = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)

    # Contenido
    question_type = models.CharField(max_length=20, choices=QuestionType.choices, default=QuestionType.MULTIPLE_CHOICE)
    text = models.TextField(verbose_name="Enunciado")
    options = models.JSONField(null=True, blank=True, help_text="Opciones (ej. [{'key': 'A', 'value': 'Texto'}, ...])")
    correct_answer = models.JSONField(null=True, blank=True, help_text="Valor único, o lista si hay varias correctas")

    # Configuración
    points = models.DecimalField(max_digits=5, decimal_places=2, default=1)
    difficulty = models.CharField(max_length=10, choices=Difficulty.choices, null=True, blank=True)
    is_active = models.BooleanField(default=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Pregunta"
        verbose_name_plural = "Banco de Preguntas"

    def __str__(self):
        return self.text[:60]


class Exam(models.Model):
    """
    Un Examen: colección ordenada de Preguntas con ventana horaria y reglas.
    """

    STATUS_CHOICES = [
        ('draft', 'Borrador'),
        ('published', 'Publicado'),
        ('archived', 'Archivado'),
    ]

    status = models.CharField(
        max_length=10,
        choices=STATUS_CHOICES,
        default='draft',
        db_index=True
    )

    uuid = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)

    # Contenido
    title = models.CharField(max_length=255)
    instructions = models.TextField(blank=True)

    # Agenda: ventana global + duración por alumno
    start_time = models.DateTimeField(verbose_name="Apertura")
    end_time = models.DateTimeField(verbose_name="Cierre")
    duration_minutes = models.PositiveIntegerField(verbose_name="Duración por alumno (min)")

    # Puntaje
    total_marks = models.DecimalField(max_digits=6, decimal_places=2)
    passing_marks = models.DecimalField(max_digits=6, decimal_places=2)

    randomize_questions = models.BooleanField(
        default=True,
        verbose_name="Mezclar preguntas"
    )

    randomize_options = models.BooleanField(
        default=True,
        verbose_name="Mezclar opciones"
    )

    questions = models.ManyToManyField(
        Question,
        through='ExamQuestion',
        related_name='exams'
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Examen"
        verbose_name_plural = "Exámenes"
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F('start_time')),
                name='valid_exam_time',
            ),
        ]

    def __str__(self):
        return self.title

    def has_not_started(self, now):
        return now < self.start_time

    def has_ended(self, now):
        return now >= self.end_time


class ExamQuestion(models.Model):
    """
    Tabla intermedia (Through model) que conecta Exam y Question.
    Puede pisar el puntaje de la pregunta para este examen.
    """
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE)
    question = models.ForeignKey(Question, on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=0)
    points = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    is_required = models.BooleanField(default=True)

    class Meta:
        ordering = ['order']
        unique_together = ('exam', 'question')

    def save(self, *args, **kwargs):
        if self.order == 0:
            last_link = ExamQuestion.objects.filter(exam=self.exam).order_by('-order').first()
            self.order = (last_link.order + 1) if last_link else 1
        super().save(*args, **kwargs)

    @property
    def effective_points(self):
        return self.points if self.points is not None else self.question.points
