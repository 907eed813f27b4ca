"""
URL routing for notification API endpoints.
"""
from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('notifications/', views.NotificationListView.as_view(), name='notification-list'),
    path('notifications/read-all/', views.NotificationReadAllView.as_view(), name='notification-read-all'),
    path('notifications/<int:pk>/read/', views.NotificationReadView.as_view(), name='notification-read'),
]
