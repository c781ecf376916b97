"""
Stockroom — Celery Application

Worker:  celery -A config worker --loglevel=info
Beat:    celery -A config beat --loglevel=info

Settings are read from the CELERY_* keys of the Django settings module;
the beat schedule lives in django_celery_beat (DatabaseScheduler).

@file config/celery.py
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('stockroom')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
