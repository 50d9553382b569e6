"""
Fuente de tiempo del motor de sesiones.
Todas las validaciones de plazo piden la hora acá, nunca a datetime directo.
"""
from datetime import timedelta

from django.utils import timezone


class SystemClock:
    def now(self):
        return timezone.now()


class FixedClock:
    """Reloj manual para tests y re-ejecuciones."""

    def __init__(self, current):
        self.current = current

    def now(self):
        return self.current

    def set(self, current):
        self.current = current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


default_clock = SystemClock()
