from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'ticket_id', 'position_id', 'account', 'symbol', 'order_type', 'lots', 'event_type', 'profit', 'sector', 'updated_at')
    list_filter = ('event_type', 'order_type', 'sector', 'broker')
    search_fields = ('ticket_id__iexact', 'position_id__iexact', 'account__iexact', 'symbol__iexact')
    readonly_fields = ('id', 'lookup_key', 'created_at', 'updated_at')
