# wahfa_lab/celery.py
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "wahfa_lab.settings")

app = Celery("wahfa_lab")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
