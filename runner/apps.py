from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class RunnerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'runner'
    verbose_name = _('Motor de Sesiones de Examen')

    def ready(self):
        # Conecta los receptores de auditoría
        from . import receivers  # noqa: F401
