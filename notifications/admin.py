from django.contrib import admin
from .models import MessageTemplate


@admin.register(MessageTemplate)
class MessageTemplateAdmin(admin.ModelAdmin):
    list_display = ('id', 'type', 'lang', 'message')
    list_filter = ('type', 'lang')
    search_fields = ('message__icontains',)
