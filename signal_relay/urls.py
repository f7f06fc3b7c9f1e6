"""
URL configuration for the signal_relay project.

The MT5 Expert Advisor posts to ``webhook/mt5/events``; the admin is kept for
managing subscriptions, users and message templates.
"""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path("admin/", admin.site.urls),
    path("webhook/", include("messaging.urls")),
]
