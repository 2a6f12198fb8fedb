# ==========================================
# apps/catalog/admin.py
# ==========================================

from django.contrib import admin
from apps.catalog.models import Article


@admin.register(Article)
class ArticleAdmin(admin.ModelAdmin):
    """Admin interface for catalog articles."""
    
    list_display = ['label', 'reference', 'supplier', 'unit_price', 'active']
    list_filter = ['active', 'supplier']
    search_fields = ['label', 'reference', 'supplier']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['label']
    
    actions = ['activate_articles', 'deactivate_articles']
    
    @admin.action(description='Activate selected articles')
    def activate_articles(self, request, queryset):
        count = queryset.update(active=True)
        self.message_user(request, f'Activated {count} article(s).')
    
    @admin.action(description='Deactivate selected articles')
    def deactivate_articles(self, request, queryset):
        count = queryset.update(active=False)
        self.message_user(request, f'Deactivated {count} article(s).')
