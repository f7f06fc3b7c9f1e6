import os
from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "signal_relay.settings")

app = Celery("signal_relay")

# CELERY_* keys in Django settings; eager mode in tests runs notification
# dispatch inline in the caller's thread.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up notifications.tasks.
app.autodiscover_tasks()
