from django.contrib import admin
from .models import Subscription, TelegramUser


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'scope', 'created_at')
    search_fields = ('name__icontains',)


@admin.register(TelegramUser)
class TelegramUserAdmin(admin.ModelAdmin):
    list_display = ('telegram_id', 'username', 'lang', 'subscription', 'subscription_expires_at', 'is_active_subscriber', 'created_at')
    list_filter = ('lang', 'subscription')
    search_fields = ('username__icontains', 'first_name__icontains', 'last_name__icontains')
    autocomplete_fields = ['subscription']

    @admin.display(boolean=True, description='Active')
    def is_active_subscriber(self, obj):
        return obj.has_active_subscription()
