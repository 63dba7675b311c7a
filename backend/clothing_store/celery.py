"""
Celery Configuration for the Clothing Store backend
===================================================
Asynchronous task queue setup with Redis broker.
"""

import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'clothing_store.settings')

app = Celery('clothing_store')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()

app.conf.task_routes = {
    'cms.sync_backend_data': {'queue': 'maintenance'},
    'payments.expire_stale_payments': {'queue': 'maintenance'},
}

app.conf.result_expires = 3600

# Tasks acknowledged after completion, requeued if the worker dies
app.conf.task_acks_late = True
app.conf.task_reject_on_worker_lost = True
app.conf.worker_prefetch_multiplier = 1


@app.task(name='celery.ping')
def ping():
    """Health check task to verify Celery is running."""
    return 'pong'
