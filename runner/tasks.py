import logging

from celery import shared_task

from .lifecycle import SessionLifecycleController

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=False)
def sweep_expired_sessions(self):
    """
    Barrido periódico (Celery beat).
    1. Auto-envía las sesiones abiertas con el plazo vencido.
    2. Marca como interrumpidas las sesiones inactivas.
    Nadie más fuerza el paso in_progress -> auto_submitted si el cliente desaparece.
    """
    controller = SessionLifecycleController()
    result = controller.sweep_expired()
    result['interrupted'] = controller.interrupt_idle()
    logger.debug("Barrido %s: %s", self.request.id, result)
    return result
