"""
Celery application for GiftHarmony.

Reads every CELERY_* setting from Django settings and picks up
the tasks.py module of each installed app.
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('giftharmony')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
