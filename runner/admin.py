from django.contrib import admin
from .models import ExamSession, Answer, SessionSnapshot, ActivityLog

class AnswerInline(admin.TabularInline):
    model = Answer
    extra = 0
    can_delete = False
    readonly_fields = ('question_id', 'version', 'is_final', 'answer_text', 'selected_option',
                       'is_correct', 'points_awarded', 'last_updated_at')
    fields = readonly_fields

@admin.register(ExamSession)
class ExamSessionAdmin(admin.ModelAdmin):
    list_display = ('uuid', 'exam', 'student', 'status', 'started_at', 'total_score',
                    'violation_count', 'flagged_for_review')
    list_filter = ('exam', 'status', 'flagged_for_review', 'has_violations')
    search_fields = ('student__username', 'student__email', 'uuid')
    exclude = ('session_token',)
    inlines = [AnswerInline]

@admin.register(SessionSnapshot)
class SessionSnapshotAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'snapshot_type', 'session')
    list_filter = ('snapshot_type',)

@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'session', 'user')
    list_filter = ('action',)
