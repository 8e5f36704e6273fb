# billing/urls.py
from django.urls import path
from . import views

app_name = 'billing'

urlpatterns = [
    # Fee plans
    path('fee-plans/', views.fee_plans_view, name='fee_plans'),
    path('fee-plans/<int:plan_id>/', views.fee_plan_detail_view, name='fee_plan_detail'),
    path('fee-plans/<int:plan_id>/summary/', views.fee_plan_summary_view, name='fee_plan_summary'),

    # Payments
    path('payments/', views.payments_view, name='payments'),
    path('payments/<int:payment_id>/', views.payment_detail_view, name='payment_detail'),

    # Reminders
    path('reminders/payments/', views.payment_reminders_view, name='payment_reminders'),
]
