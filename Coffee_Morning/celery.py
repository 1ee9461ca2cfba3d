import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Coffee_Morning.settings')

app = Celery('Coffee_Morning')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
