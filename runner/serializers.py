from rest_framework import serializers

from .models import ExamSession, Answer, SessionSnapshot
from .violations import VALID_VIOLATION_TYPES


# --- Entrada del cliente ---

class StartSerializer(serializers.Serializer):
    device_fingerprint = serializers.CharField(required=False, allow_blank=True, max_length=255)


class AnswerInputSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    answer_text = serializers.CharField(required=False, allow_null=True, allow_blank=True, trim_whitespace=False)
    selected_option = serializers.JSONField(required=False, allow_null=True)
    is_flagged = serializers.BooleanField(required=False, allow_null=True, default=None)
    time_spent_seconds = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    current_question_index = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    recovery_data = serializers.JSONField(required=False, allow_null=True)
    checkpoint = serializers.BooleanField(required=False, default=False)
    client_state = serializers.JSONField(required=False, allow_null=True)


class SnapshotInputSerializer(serializers.Serializer):
    snapshot_type = serializers.ChoiceField(
        choices=SessionSnapshot.SnapshotType.choices,
        default=SessionSnapshot.SnapshotType.MANUAL,
    )
    client_state = serializers.JSONField(required=False, allow_null=True)


class ViolationInputSerializer(serializers.Serializer):
    violation_type = serializers.CharField(max_length=50)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def is_known_type(self):
        return self.validated_data['violation_type'] in VALID_VIOLATION_TYPES


class HeartbeatSerializer(serializers.Serializer):
    current_question_index = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class FlagSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    flagged = serializers.BooleanField(default=True)


class GradeSerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    points_awarded = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0)
    is_correct = serializers.BooleanField(required=False, allow_null=True, default=None)


# --- Salida ---

class AnswerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Answer
        fields = ['question_id', 'answer_text', 'selected_option', 'is_flagged', 'version',
                  'time_spent_seconds', 'first_answered_at', 'last_updated_at']


class SnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = SessionSnapshot
        fields = ['id', 'snapshot_type', 'snapshot_data', 'created_at']


class QuestionViewSerializer(serializers.Serializer):
    """Pregunta tal como la ve el alumno (sin la respuesta correcta)."""
    id = serializers.IntegerField()
    type = serializers.CharField()
    options = serializers.ListField()
    points = serializers.CharField()


class ExamSessionSerializer(serializers.ModelSerializer):
    exam_title = serializers.CharField(source='exam.title', read_only=True)
    total_questions = serializers.IntegerField(read_only=True)
    time_remaining_seconds = serializers.SerializerMethodField()
    questions = serializers.SerializerMethodField()

    class Meta:
        model = ExamSession
        fields = [
            'uuid', 'exam_id', 'exam_title', 'status', 'started_at', 'scheduled_end_time',
            'submitted_at', 'question_sequence', 'questions', 'total_questions',
            'current_question_index', 'questions_answered', 'questions_flagged',
            'time_remaining_seconds', 'violation_count', 'recovery_data',
        ]

    def get_time_remaining_seconds(self, obj):
        now = self.context.get('now')
        return obj.time_remaining_seconds(now) if now else None

    def get_questions(self, obj):
        items = []
        for question_id in obj.question_sequence:
            definition = obj.question_definition(question_id)
            items.append({
                'id': question_id,
                'type': definition['type'],
                'options': definition.get('options') or [],
                'points': definition['points'],
            })
        return QuestionViewSerializer(items, many=True).data


class SessionResultSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExamSession
        fields = [
            'uuid', 'status', 'submitted_at', 'actual_end_time', 'questions_answered',
            'total_score', 'percentage', 'is_fully_graded', 'passed',
            'violation_count', 'flagged_for_review',
        ]
