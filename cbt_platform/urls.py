"""
Definiciones de URL principales para la plataforma CBT.
"""
from django.contrib import admin
from django.urls import path, include
from django.http import HttpResponse

# Ruta de Health Check para Render
def health_check(request):
    return HttpResponse("OK: Web Service activo.", content_type="text/plain")

urlpatterns = [
    # Panel de Admin
    path('admin/', admin.site.urls),

    # Health Check
    path('health/', health_check, name='health_check'),

    # API del motor de sesiones (cliente del examen + corrección manual)
    path('api/', include('runner.urls')),
]
