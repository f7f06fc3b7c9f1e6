from django.urls import re_path

from .views import HealthView, MT5EventView, TestEventView

# The EA posts without a trailing slash; accept both forms.
urlpatterns = [
    re_path(r"^mt5/events/?$", MT5EventView.as_view(), name="mt5-events"),
    re_path(r"^mt5/test/?$", TestEventView.as_view(), name="mt5-test"),
    re_path(r"^health/?$", HealthView.as_view(), name="webhook-health"),
]
