"""
Celery Configuration for PrintMarket
Background task processing with Redis broker
"""
import os
from celery import Celery
from celery.schedules import crontab

# Get Redis URL from environment or use local default
REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

# Create Celery instance
celery = Celery(
    'printmarket',
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=['printmarket.tasks']
)

# Celery Configuration
celery.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per batch
    task_soft_time_limit=540,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,
)

# Celery Beat Schedule (Periodic Tasks)
celery.conf.beat_schedule = {
    'settle-ended-auctions-every-minute': {
        'task': 'printmarket.tasks.settle_ended_auctions',
        'schedule': crontab(minute='*'),
        'options': {
            'expires': 50,  # Skip if the next run is already due
        }
    },
    'activate-scheduled-listings-every-5-minutes': {
        'task': 'printmarket.tasks.activate_scheduled_listings',
        'schedule': crontab(minute='*/5'),
        'options': {
            'expires': 60 * 4,
        }
    },
}

if __name__ == '__main__':
    celery.start()
