from django.contrib import admin
from .models import Question, Exam, ExamQuestion

class ExamQuestionInline(admin.TabularInline):
    """
    Permite agregar Preguntas directamente DENTRO del formulario del Examen.
    """
    model = ExamQuestion
    raw_id_fields = ('question',) # Usa un buscador para las preguntas, no un dropdown
    extra = 1
    ordering = ('order',)

@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ('text', 'question_type', 'points', 'difficulty', 'is_active', 'created_at')
    list_filter = ('question_type', 'difficulty', 'is_active')
    search_fields = ('text',)

@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ('title', 'status', 'start_time', 'end_time', 'duration_minutes', 'total_marks')
    list_filter = ('status',)
    search_fields = ('title',)
    inlines = [ExamQuestionInline]
