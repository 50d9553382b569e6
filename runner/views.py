import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import exception_handler

from exams.models import Exam
from .exceptions import SessionError, TimeExpired
from .lifecycle import SessionLifecycleController, MANUAL
from .models import ExamSession
from .serializers import (
    StartSerializer, AnswerInputSerializer, SnapshotInputSerializer, ViolationInputSerializer,
    HeartbeatSerializer, FlagSerializer, GradeSerializer,
    ExamSessionSerializer, SessionResultSerializer, AnswerSerializer, SnapshotSerializer,
)

logger = logging.getLogger(__name__)

TOKEN_HEADER = 'X-Session-Token'


# --- FUNCIONES AUXILIARES ---

def get_controller():
    return SessionLifecycleController()


def session_token(request):
    return request.headers.get(TOKEN_HEADER, '').strip()


def session_exception_handler(exc, context):
    """
    Respuesta tipada para los errores del motor.
    `retryable` le dice al cliente si puede repetir la misma llamada.
    """
    if isinstance(exc, SessionError):
        data = {'error': exc.code, 'detail': exc.detail, 'retryable': exc.retryable}
        if isinstance(exc, TimeExpired):
            # No reintentar: enviar o recuperar
            data['next_action'] = 'recover'
        return Response(data, status=exc.http_status)
    return exception_handler(exc, context)


def token_api(methods):
    """Rutas del examen: se autentican con el token de sesión (header)."""
    def decorator(view):
        view = permission_classes([AllowAny])(view)
        view = authentication_classes([])(view)
        return api_view(methods)(view)
    return decorator


# ==========================================
# SECCIÓN ALUMNO (CLIENTE DEL EXAMEN)
# ==========================================

# 1. INICIAR
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def start_session(request, exam_id):
    exam = get_object_or_404(Exam, pk=exam_id, status='published')
    serializer = StartSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    controller = get_controller()
    session = controller.start(
        exam, request.user,
        ip_address=request.META.get('REMOTE_ADDR'),
        user_agent=request.META.get('HTTP_USER_AGENT', ''),
        device_fingerprint=serializer.validated_data.get('device_fingerprint', ''),
    )
    data = ExamSessionSerializer(session, context={'now': controller.clock.now()}).data
    # Único lugar donde se entrega el token
    data['session_token'] = session.session_token
    return Response(data, status=status.HTTP_201_CREATED)


# 2. GUARDAR RESPUESTA (auto-guardado)
@token_api(['POST'])
def record_answer(request):
    serializer = AnswerInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    receipt = get_controller().record_answer(session_token(request), **serializer.validated_data)
    return Response({'status': 'ok', **receipt._asdict()})


# 3. SNAPSHOT
@token_api(['POST'])
def take_snapshot(request):
    serializer = SnapshotInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    snapshot_id = get_controller().snapshot(
        session_token(request),
        serializer.validated_data['snapshot_type'],
        client_state=serializer.validated_data.get('client_state'),
    )
    return Response({'status': 'ok', 'snapshot_id': snapshot_id}, status=status.HTTP_201_CREATED)


# 4. LOG DE SEGURIDAD
@token_api(['POST'])
def record_violation(request):
    serializer = ViolationInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    if not serializer.is_known_type():
        return Response({'status': 'ignored'}, status=status.HTTP_200_OK)
    receipt = get_controller().record_violation(
        session_token(request),
        serializer.validated_data['violation_type'],
        serializer.validated_data.get('description'),
    )
    return Response({'status': 'ok', **receipt._asdict()})


# 5. FINALIZAR
@token_api(['POST'])
def submit_session(request):
    session = get_controller().submit(session_token(request), MANUAL)
    return Response(SessionResultSerializer(session).data)


# 6. RECUPERAR (reconexión tras caída)
@token_api(['GET'])
def recover_session(request):
    controller = get_controller()
    state = controller.recover(session_token(request))
    return Response({
        'session': ExamSessionSerializer(state.session, context={'now': controller.clock.now()}).data,
        'snapshot': SnapshotSerializer(state.snapshot).data if state.snapshot else None,
        'answers': AnswerSerializer(state.final_answers, many=True).data,
        'time_remaining_seconds': state.time_remaining_seconds,
    })


# 7. RETOMAR
@token_api(['POST'])
def resume_session(request):
    controller = get_controller()
    session = controller.resume(session_token(request))
    return Response(ExamSessionSerializer(session, context={'now': controller.clock.now()}).data)


# 8. LATIDO
@token_api(['POST'])
def heartbeat(request):
    serializer = HeartbeatSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    remaining = get_controller().heartbeat(
        session_token(request),
        serializer.validated_data.get('current_question_index'),
    )
    return Response({'status': 'ok', 'time_remaining_seconds': remaining})


# 9. MARCAR PARA REVISAR
@token_api(['POST'])
def flag_question(request):
    serializer = FlagSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    flagged = get_controller().flag_question(
        session_token(request),
        serializer.validated_data['question_id'],
        serializer.validated_data['flagged'],
    )
    return Response({'status': 'ok', 'questions_flagged': flagged})


# ==========================================
# SECCIÓN DOCENTE
# ==========================================

# 10. CORRECCIÓN MANUAL
@api_view(['POST'])
@permission_classes([IsAdminUser])
def grade_answer(request, session_uuid):
    session = get_object_or_404(ExamSession, uuid=session_uuid)
    serializer = GradeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    session = get_controller().grade_answer(session, **serializer.validated_data)
    logger.info("Sesión %s corregida por %s", session.uuid, request.user)
    return Response(SessionResultSerializer(session).data)
