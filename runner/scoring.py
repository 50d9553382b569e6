"""
Corrección automática de una sesión.

Usa la copia del banco congelada al iniciar la sesión (session.question_bank),
nunca las preguntas actuales: una edición posterior no cambia la nota.
"""
from decimal import Decimal, ROUND_HALF_UP

from exams.models import Question

TWO_PLACES = Decimal('0.01')
MANUAL_GRADING_TYPES = {str(t) for t in Question.MANUAL_GRADING_TYPES}


def quantize(value):
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _normalize(value):
    if isinstance(value, dict):
        value = value.get('key', value.get('value'))
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return ''
    return str(value).strip().lower()


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def requires_manual_grading(definition):
    return definition['type'] in MANUAL_GRADING_TYPES


def is_answer_correct(definition, answer):
    """
    True/False según la definición congelada.
    Devuelve None para preguntas de corrección manual.
    """
    question_type = definition['type']
    correct = definition.get('correct_answer')

    if question_type in MANUAL_GRADING_TYPES:
        return None

    if question_type == Question.QuestionType.FILL_IN_BLANK:
        accepted = {_normalize(v) for v in _as_list(correct)}
        return _normalize(answer.answer_text) in accepted

    selected = answer.selected_option
    if question_type == Question.QuestionType.MULTIPLE_CHOICE and isinstance(correct, list) and len(correct) > 1:
        # Selección múltiple: igualdad de conjuntos
        return {_normalize(v) for v in _as_list(selected)} == {_normalize(v) for v in correct}

    # Verdadero/Falso y opción única: coincidencia exacta
    if isinstance(correct, list):
        correct = correct[0] if correct else None
    if isinstance(selected, list):
        if len(selected) != 1:
            return False
        selected = selected[0]
    return _normalize(selected) == _normalize(correct)


def missing_required(session, final_answers):
    answered = {a.question_id for a in final_answers}
    return [
        question_id for question_id in session.question_sequence
        if session.question_definition(question_id).get('is_required', True) and question_id not in answered
    ]


def score_session(session, final_answers, unanswered_as_zero=True):
    """
    Corrige las respuestas finales y actualiza (sin guardar) los totales de
    la sesión. Las respuestas corregidas sí se guardan.
    Devuelve True si se pudo calcular un puntaje.
    """
    if missing_required(session, final_answers) and not unanswered_as_zero:
        session.total_score = None
        session.percentage = None
        session.is_fully_graded = False
        session.passed = None
        return False

    total = Decimal('0')
    pending_manual = False
    finals = {a.question_id: a for a in final_answers}

    for question_id in session.question_sequence:
        answer = finals.get(question_id)
        if answer is None:
            # Sin respuesta: cuenta como cero
            continue

        definition = session.question_definition(question_id)
        if requires_manual_grading(definition):
            if answer.points_awarded is None:
                pending_manual = True
            else:
                total += answer.points_awarded
            continue

        points = Decimal(str(definition['points']))
        answer.is_correct = is_answer_correct(definition, answer)
        answer.points_awarded = quantize(points if answer.is_correct else 0)
        answer.save(update_fields=['is_correct', 'points_awarded'])
        total += answer.points_awarded

    session.total_score = quantize(total)
    if session.total_marks:
        session.percentage = quantize(total / Decimal(session.total_marks) * 100)
    else:
        session.percentage = quantize(0)
    session.is_fully_graded = not pending_manual
    # Aprobado/desaprobado solo con la corrección cerrada
    session.passed = session.total_score >= session.passing_marks if session.is_fully_graded else None
    return True
