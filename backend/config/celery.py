"""
Celery app for rxgate workers and beat.

    celery -A config worker -l info   # decision notifications
    celery -A config beat -l info     # cancel_timed_out_orders (CELERY_BEAT_SCHEDULE)
"""
import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('rxgate', include=['rxgate.tasks'])
app.config_from_object('django.conf:settings', namespace='CELERY')
