"""
Django Admin configuration for core models.
"""
from django.contrib import admin
from .models import SequenceCounter


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ['key', 'last_value', 'updated_at']
    search_fields = ['key']
    ordering = ['key']
    readonly_fields = ['key', 'last_value', 'updated_at']
