"""
Celery application for asynchronous order side effects.
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('grocery_orders')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
