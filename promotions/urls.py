"""
URL routing for promotion API endpoints.
"""
from django.urls import path
from . import views

app_name = 'promotions'

urlpatterns = [
    path('promotions/active/', views.ActivePromotionListView.as_view(), name='promotion-active'),
    path('promotions/validate/', views.PromotionValidateView.as_view(), name='promotion-validate'),
]
