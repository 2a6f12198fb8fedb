# ==========================================
# apps/circles/admin.py
# ==========================================

from django.contrib import admin
from apps.circles.models import Circle, CircleMembership


class CircleMembershipInline(admin.TabularInline):
    """Inline admin for circle memberships."""
    model = CircleMembership
    extra = 0
    fields = ['user', 'joined_at']
    readonly_fields = ['joined_at']


@admin.register(Circle)
class CircleAdmin(admin.ModelAdmin):
    """Admin interface for Circles."""
    
    list_display = ['name', 'member_count', 'created_at']
    search_fields = ['name']
    readonly_fields = ['created_at']
    inlines = [CircleMembershipInline]
    ordering = ['name']
    
    def member_count(self, obj):
        """Show number of members."""
        return obj.memberships.count()
    member_count.short_description = 'Members'


@admin.register(CircleMembership)
class CircleMembershipAdmin(admin.ModelAdmin):
    """Admin interface for Circle Memberships."""
    
    list_display = ['user', 'circle', 'joined_at']
    list_filter = ['circle']
    search_fields = ['user__email', 'circle__name']
    readonly_fields = ['joined_at']
    ordering = ['-joined_at']
    
    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('user', 'circle')
