"""
Monitor de integridad (ViolationMonitor).
Solo agrega entradas a la bitácora de la sesión; nunca las edita ni borra.
"""
from django.db import transaction

# Tipos de eventos que reporta el cliente
VIOLATION_TYPES = [
    ('tab_switch', 'Cambio de pestaña'),
    ('focus_lost', 'Pérdida de foco'),
    ('fullscreen_exit', 'Salida de pantalla completa'),
    ('copy_paste', 'Copiar / pegar'),
    ('right_click', 'Click derecho'),
    ('disconnect', 'Desconexión'),
    ('multiple_faces', 'Múltiples rostros detectados'),
    ('no_face', 'Rostro no detectado'),
    ('audio_spike', 'Sonido/Voz detectada'),
    ('devtools_open', 'Herramientas de desarrollo abiertas'),
]
VALID_VIOLATION_TYPES = {value for value, _label in VIOLATION_TYPES}


class ViolationMonitor:

    def report(self, session, violation_type, description, now):
        """
        Agrega la violación a la sesión (que el llamador ya bloqueó)
        y devuelve el contador actualizado.
        """
        if violation_type not in VALID_VIOLATION_TYPES:
            raise ValueError(f"Tipo de violación desconocido: {violation_type}")

        with transaction.atomic():
            violations = list(session.violations or [])
            violations.append({
                'type': violation_type,
                'description': description or None,
                'timestamp': now.isoformat(),
            })
            session.violations = violations
            session.violation_count = len(violations)
            session.has_violations = session.violation_count > 0
            session.save(update_fields=['violations', 'violation_count', 'has_violations', 'updated_at'])
        return session.violation_count
