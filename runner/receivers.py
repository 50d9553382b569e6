import logging

from django.db import transaction
from django.dispatch import receiver

from .models import ActivityLog
from .signals import session_event

logger = logging.getLogger(__name__)


@receiver(session_event)
def record_activity(sender, session, action, description='', metadata=None, **kwargs):
    """Deja constancia del evento en la bitácora de auditoría."""
    # Savepoint propio: si falla, no arrastra la transacción de la sesión
    with transaction.atomic():
        ActivityLog.objects.create(
            session=session,
            user_id=session.student_id,
            action=action,
            description=description,
            metadata=metadata or {},
        )
    logger.info("Sesión %s: %s %s", session.uuid, action, description)
