# bulk_uploads/urls.py
from django.urls import path
from . import views

app_name = 'bulk_uploads'

urlpatterns = [
    path('', views.bulk_uploads_view, name='uploads'),
    path('<int:upload_id>/', views.bulk_upload_detail_view, name='upload_detail'),
]
