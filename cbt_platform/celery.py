"""
Configuración de la app de Celery para la plataforma CBT.
El worker ejecuta el barrido de sesiones vencidas (runner.tasks).
"""

import os
from celery import Celery

# Apuntar a la configuración de Django
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'cbt_platform.settings')

app = Celery('cbt_platform')

# Usar la configuración de django (prefijo 'CELERY_')
# (Lee CELERY_BROKER_URL, CELERY_RESULT_BACKEND y CELERY_BEAT_SCHEDULE de settings.py)
app.config_from_object('django.conf:settings', namespace='CELERY')

# Descubrir tareas automáticamente en todas las apps de Django (tasks.py)
app.autodiscover_tasks()
