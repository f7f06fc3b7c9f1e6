# signal_relay/asgi.py
import os
from django.core.asgi import get_asgi_application

# Set the DJANGO_SETTINGS_MODULE environment variable.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'signal_relay.settings')

application = get_asgi_application()
