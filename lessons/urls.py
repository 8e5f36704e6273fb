# lessons/urls.py
from django.urls import path
from . import views

app_name = 'lessons'

urlpatterns = [
    # Sessions
    path('sessions/', views.sessions_view, name='sessions'),
    path('sessions/<int:session_id>/', views.session_detail_view, name='session_detail'),
    path('sessions/<int:session_id>/status/', views.session_status_view, name='session_status'),
    path('sessions/<int:session_id>/reschedule/', views.session_reschedule_view, name='session_reschedule'),
    path('sessions/<int:session_id>/students/', views.session_students_view, name='session_students'),

    # Scheduling helpers
    path('conflicts/check/', views.conflict_check_view, name='conflict_check'),
    path('teachers/<int:teacher_id>/available-slots/', views.teacher_slots_view, name='teacher_slots'),

    # Session packs
    path('packs/', views.packs_view, name='packs'),
    path('packs/<int:pack_id>/', views.pack_detail_view, name='pack_detail'),
]
