import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'BidCycle.settings')

app = Celery('BidCycle')
# picks up CELERY_BEAT_SCHEDULE, which runs the auction sweep
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
