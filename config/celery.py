"""
Celery configuration for the dumpster back office.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat Schedule
app.conf.beat_schedule = {
    'sync-dumpster-statuses': {
        'task': 'apps.rentals.tasks.sync_dumpster_statuses',
        # Shortly after midnight so rentals starting today flip to Rented
        'schedule': crontab(hour='0', minute='5'),
    },
}
