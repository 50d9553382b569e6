"""
Errores del motor de sesiones.

Cada error sabe qué código HTTP le corresponde y si el cliente puede
reintentar la misma operación (solo StorageUnavailable).
"""


class SessionError(Exception):
    code = 'session_error'
    http_status = 400
    retryable = False
    default_detail = 'Error en la sesión de examen.'

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AlreadyAttempted(SessionError):
    code = 'already_attempted'
    http_status = 409
    default_detail = 'El alumno ya tiene un intento para este examen.'


class OutsideExamWindow(SessionError):
    code = 'outside_exam_window'
    http_status = 403
    default_detail = 'El examen no está disponible en este horario.'


class InvalidToken(SessionError):
    code = 'invalid_token'
    http_status = 404
    default_detail = 'Token de sesión inválido o sesión no activa.'


class TimeExpired(SessionError):
    code = 'time_expired'
    http_status = 409
    default_detail = 'El tiempo del examen terminó. Envíe o recupere la sesión.'


class AlreadyTerminal(SessionError):
    """La sesión ya fue enviada. Submit lo trata como éxito."""
    code = 'already_terminal'
    http_status = 409
    default_detail = 'La sesión ya fue enviada.'


class UnknownQuestion(SessionError):
    code = 'unknown_question'
    default_detail = 'La pregunta no pertenece a esta sesión.'


class InvalidAnswer(SessionError):
    code = 'invalid_answer'
    default_detail = 'El contenido no corresponde al tipo de pregunta.'


class GradingNotAllowed(SessionError):
    code = 'grading_not_allowed'
    http_status = 409
    default_detail = 'La respuesta no se puede corregir manualmente.'


class StorageUnavailable(SessionError):
    code = 'storage_unavailable'
    http_status = 503
    retryable = True
    default_detail = 'Base de datos no disponible. Reintente.'


class InvariantViolation(SessionError):
    """Nunca debería ocurrir: indica un bug de concurrencia. No se repara."""
    code = 'invariant_violation'
    http_status = 500
    default_detail = 'Estado inconsistente de la sesión.'
