from django.dispatch import Signal

# Eventos del ciclo de vida de una sesión para auditoría / notificaciones.
# Argumentos: session, action, description, metadata
session_event = Signal()

STARTED = 'started'
RESUMED = 'resumed'
INTERRUPTED = 'interrupted'
SUBMITTED = 'submitted'
AUTO_SUBMITTED = 'auto_submitted'
FLAGGED_FOR_REVIEW = 'flagged_for_review'
GRADED = 'graded'
