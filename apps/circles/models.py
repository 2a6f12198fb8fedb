# ==========================================
# apps/circles/models.py
# ==========================================

from django.conf import settings
from django.db import models
import uuid


class Circle(models.Model):
    """Sub-group of members submitting requests together each period."""
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    
    class Meta:
        db_table = 'circles'
        ordering = ['name']
    
    def __str__(self):
        return self.name
    
    @property
    def is_finadmin(self):
        return self.name == settings.FINADMIN_CIRCLE_NAME


class CircleMembership(models.Model):
    """A member belongs to zero or more circles."""
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='circle_memberships')
    circle = models.ForeignKey(Circle, on_delete=models.CASCADE, related_name='memberships')
    joined_at = models.DateTimeField(auto_now_add=True)
    
    class Meta:
        db_table = 'user_circles'
        unique_together = [['user', 'circle']]
        ordering = ['joined_at']
    
    def __str__(self):
        return f"{self.user.get_display_name()} in {self.circle.name}"
