"""
Configuración de Django para el proyecto Plataforma CBT.
Motor de sesiones de examen (runner) + banco de preguntas (exams).
"""

import os
from pathlib import Path
import dj_database_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Clave secreta
SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-placeholder-key-cbt')

# DEBUG
DEBUG = os.environ.get('DJANGO_DEBUG', 'False') == 'True'

# Hosts
ALLOWED_HOSTS = ['localhost', '127.0.0.1']
RENDER_EXTERNAL_HOSTNAME = os.environ.get('RENDER_EXTERNAL_HOSTNAME')
if RENDER_EXTERNAL_HOSTNAME:
    ALLOWED_HOSTS.append(RENDER_EXTERNAL_HOSTNAME)

# CSRF
CSRF_TRUSTED_ORIGINS = [f"https://{RENDER_EXTERNAL_HOSTNAME}"] if RENDER_EXTERNAL_HOSTNAME else []


# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'django_celery_results',
    'exams.apps.ExamsConfig',
    'runner.apps.RunnerConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'cbt_platform.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'cbt_platform.wsgi.application'


# Database
# En Render viene DATABASE_URL (Postgres). Local y tests caen a SQLite.
DATABASES = {
    'default': dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
        ssl_require=os.environ.get('DATABASE_SSL_REQUIRE', 'False') == 'True',
    )
}


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'es-ar'
TIME_ZONE = 'America/Argentina/Buenos_Aires'
USE_I18N = True
USE_TZ = True


# Static files (solo el admin; WhiteNoise los sirve)
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# --- 1. Configuración de Celery ---
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL')
CELERY_RESULT_BACKEND = 'django-db'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = os.environ.get('CELERY_TASK_ALWAYS_EAGER', 'False') == 'True'

# --- 2. Motor de sesiones de examen ---
# Políticas del motor de sesiones (sobrescribibles por entorno).
CBT_MAX_VIOLATION_COUNT = int(os.environ.get('CBT_MAX_VIOLATION_COUNT', 10))
CBT_VIOLATION_GRACE_SECONDS = int(os.environ.get('CBT_VIOLATION_GRACE_SECONDS', 30))
CBT_MAX_SNAPSHOTS_PER_SESSION = int(os.environ.get('CBT_MAX_SNAPSHOTS_PER_SESSION', 50))
CBT_IDLE_INTERRUPT_SECONDS = int(os.environ.get('CBT_IDLE_INTERRUPT_SECONDS', 300))
CBT_SWEEP_INTERVAL_SECONDS = int(os.environ.get('CBT_SWEEP_INTERVAL_SECONDS', 30))
CBT_ALLOW_RESUME_INTERRUPTED = os.environ.get('CBT_ALLOW_RESUME_INTERRUPTED', 'True') == 'True'
CBT_SCORE_UNANSWERED_AS_ZERO = os.environ.get('CBT_SCORE_UNANSWERED_AS_ZERO', 'True') == 'True'

# Barrido periódico: fuerza auto_submitted en sesiones vencidas
CELERY_BEAT_SCHEDULE = {
    'sweep-expired-sessions': {
        'task': 'runner.tasks.sweep_expired_sessions',
        'schedule': CBT_SWEEP_INTERVAL_SECONDS,
    },
}

# --- 3. Django REST Framework ---
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'runner.views.session_exception_handler',
}

# --- 4. Configuración de Logging ---
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'runner': {
            'handlers': ['console'],
            'level': os.getenv('CBT_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

# --- 5. Configuración de Login ---
LOGIN_URL = '/admin/login/'
