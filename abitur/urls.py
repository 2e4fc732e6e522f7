from django.urls import path
from . import views

urlpatterns = [
    # --- API ENDPOINTS ---
    path('api/risk-report/', views.risk_report_api, name='risk_report_api'),
    path('api/rulesets/', views.rulesets_api, name='rulesets_api'),
]
