from django.urls import path
from . import views

app_name = 'runner'

urlpatterns = [
    # Inicio del intento (alumno autenticado)
    path('exams/<int:exam_id>/start/', views.start_session, name='start_session'),

    # APIs del examen (header X-Session-Token)
    path('session/answer/', views.record_answer, name='record_answer'),
    path('session/snapshot/', views.take_snapshot, name='take_snapshot'),
    path('session/violation/', views.record_violation, name='record_violation'),
    path('session/submit/', views.submit_session, name='submit_session'),
    path('session/recover/', views.recover_session, name='recover_session'),
    path('session/resume/', views.resume_session, name='resume_session'),
    path('session/heartbeat/', views.heartbeat, name='heartbeat'),
    path('session/flag/', views.flag_question, name='flag_question'),

    # Corrección manual (docentes)
    path('sessions/<uuid:session_uuid>/grade/', views.grade_answer, name='grade_answer'),
]
