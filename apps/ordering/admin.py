# ==========================================
# apps/ordering/admin.py
# ==========================================

from django.contrib import admin
from apps.ordering.models import OrderPeriod, CircleRequest, RequestLine


class RequestLineInline(admin.TabularInline):
    """Inline admin for request lines."""
    model = RequestLine
    extra = 0
    fields = ['article', 'qty', 'qty_validated', 'qty_received', 'delivery_date', 'reception_status']
    readonly_fields = ['qty_validated', 'qty_received', 'reception_status']


@admin.register(OrderPeriod)
class OrderPeriodAdmin(admin.ModelAdmin):
    """Admin interface for ordering periods."""

    list_display = ['name', 'cutoff_date', 'status', 'request_count', 'created_at']
    list_filter = ['status']
    search_fields = ['name']
    # Status changes go through the lifecycle services
    readonly_fields = ['status', 'created_at', 'updated_at']
    date_hierarchy = 'cutoff_date'
    ordering = ['-cutoff_date']

    def request_count(self, obj):
        """Show number of requests."""
        return obj.requests.count()
    request_count.short_description = 'Requests'


@admin.register(CircleRequest)
class CircleRequestAdmin(admin.ModelAdmin):
    """Admin interface for circle requests."""

    list_display = ['circle', 'period', 'created_by', 'status', 'line_count', 'updated_at']
    list_filter = ['status', 'circle', 'period']
    search_fields = ['circle__name', 'period__name', 'created_by__email']
    readonly_fields = ['status', 'created_at', 'updated_at']
    inlines = [RequestLineInline]
    ordering = ['-created_at']

    def line_count(self, obj):
        """Show number of lines."""
        return obj.lines.count()
    line_count.short_description = 'Lines'

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('circle', 'period', 'created_by')


@admin.register(RequestLine)
class RequestLineAdmin(admin.ModelAdmin):
    """Admin interface for request lines."""

    list_display = [
        'article',
        'request',
        'qty',
        'qty_validated',
        'qty_received',
        'delivery_date',
        'reception_status',
    ]
    list_filter = ['reception_status', 'delivery_date']
    search_fields = ['article__label', 'request__circle__name']
    readonly_fields = ['created_at', 'reception_date', 'reception_user']

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('article', 'request__circle', 'request__period')
