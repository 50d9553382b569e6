import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import runner.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('exams', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ExamSession',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('session_token', models.CharField(default=runner.models.generate_session_token, editable=False, max_length=64, unique=True)),
                ('started_at', models.DateTimeField(verbose_name='Inicio')),
                ('scheduled_end_time', models.DateTimeField(verbose_name='Fin programado')),
                ('submitted_at', models.DateTimeField(blank=True, null=True, verbose_name='Enviado el')),
                ('actual_end_time', models.DateTimeField(blank=True, null=True, verbose_name='Fin real')),
                ('last_activity_at', models.DateTimeField(verbose_name='Última actividad')),
                ('question_sequence', models.JSONField(default=list)),
                ('question_bank', models.JSONField(default=dict)),
                ('total_marks', models.DecimalField(decimal_places=2, max_digits=6)),
                ('passing_marks', models.DecimalField(decimal_places=2, max_digits=6)),
                ('current_question_index', models.PositiveIntegerField(default=0)),
                ('questions_answered', models.PositiveIntegerField(default=0)),
                ('questions_flagged', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[
                    ('not_started', 'Sin iniciar'),
                    ('in_progress', 'En curso'),
                    ('submitted', 'Enviado'),
                    ('auto_submitted', 'Enviado por tiempo'),
                    ('interrupted', 'Interrumpido'),
                ], default='in_progress', max_length=20)),
                ('recovery_data', models.JSONField(blank=True, null=True)),
                ('total_score', models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ('percentage', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('is_fully_graded', models.BooleanField(default=False)),
                ('passed', models.BooleanField(blank=True, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('device_fingerprint', models.CharField(blank=True, max_length=255)),
                ('has_violations', models.BooleanField(default=False)),
                ('violation_count', models.PositiveIntegerField(default=0)),
                ('violations', models.JSONField(blank=True, default=list)),
                ('flagged_for_review', models.BooleanField(default=False)),
                ('flagged_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('exam', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sessions', to='exams.exam')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='exam_sessions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-started_at'],
                'indexes': [
                    models.Index(fields=['exam', 'status'], name='idx_sessions_exam_status'),
                    models.Index(fields=['status', 'scheduled_end_time'], name='idx_sessions_deadline'),
                    models.Index(fields=['last_activity_at'], name='idx_sessions_activity'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('exam', 'student'), name='unique_session'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Answer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('question_id', models.BigIntegerField()),
                ('answer_text', models.TextField(blank=True, null=True)),
                ('selected_option', models.JSONField(blank=True, null=True)),
                ('is_flagged', models.BooleanField(default=False)),
                ('time_spent_seconds', models.PositiveIntegerField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('is_final', models.BooleanField(default=False)),
                ('is_correct', models.BooleanField(blank=True, null=True)),
                ('points_awarded', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('first_answered_at', models.DateTimeField()),
                ('last_updated_at', models.DateTimeField()),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='answers', to='runner.examsession')),
            ],
            options={
                'ordering': ['question_id', 'version'],
                'indexes': [
                    models.Index(fields=['session', 'is_final'], name='idx_answers_final'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('session', 'question_id', 'version'), name='unique_answer_version'),
                    models.UniqueConstraint(condition=models.Q(('is_final', True)), fields=('session', 'question_id'), name='unique_final_answer'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SessionSnapshot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('snapshot_data', models.JSONField()),
                ('snapshot_type', models.CharField(choices=[
                    ('auto_save', 'Auto-guardado'),
                    ('manual', 'Guardado manual'),
                    ('recovery', 'Punto de recuperación'),
                    ('checkpoint', 'Hito'),
                ], max_length=20)),
                ('created_at', models.DateTimeField()),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='snapshots', to='runner.examsession')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['session', 'created_at'], name='idx_snapshots_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ActivityLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(db_index=True, max_length=100)),
                ('description', models.TextField(blank=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('session', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='activity', to='runner.examsession')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['created_at'],
            },
        ),
    ]
