from django.contrib import admin

from .models import BookingRequest, JoinRequest


@admin.register(BookingRequest)
class BookingRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'venue_id', 'court_id', 'host', 'requester', 'date', 'start_time', 'capacity_filled', 'capacity_total', 'status']
    list_filter = ['status', 'date', 'created_at']
    search_fields = ['venue_id', 'court_id', 'host__name', 'requester__name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'decided_at']
    ordering = ['-created_at']


@admin.register(JoinRequest)
class JoinRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'booking', 'requester', 'host', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['requester__name', 'host__name']
    readonly_fields = ['id', 'created_at', 'updated_at', 'responded_at']
    ordering = ['-created_at']
