# ==========================================
# apps/ordering/models.py
# ==========================================

from django.db import models
from django.core.validators import MinValueValidator
import uuid


class PeriodStatus(models.TextChoices):
    OPEN = 'open', 'Open'
    ORDERED = 'ordered', 'Ordered'
    WAITING = 'waiting', 'Awaiting delivery'
    CLOSED = 'closed', 'Closed'
    ARCHIVED = 'archived', 'Archived'


class RequestStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    SUBMITTED = 'submitted', 'Submitted'
    VALIDATED = 'validated', 'Ordered'
    WAITING = 'waiting', 'Partially received'
    RECEIVED = 'received', 'Received'
    CANCELLED = 'cancelled', 'Cancelled'


class ReceptionStatus(models.TextChoices):
    FULL = 'totaly', 'Fully received'
    PARTIAL = 'partialy', 'Partially received'
    NONE = 'none', 'Not received'


class OrderPeriod(models.Model):
    """Half-month ordering window."""
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    
    # Natural key, e.g. "01 janv. - 15 janv. 2025"
    name = models.CharField(max_length=100, unique=True)
    cutoff_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=PeriodStatus.choices,
        default=PeriodStatus.OPEN
    )
    
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        db_table = 'order_periods'
        indexes = [
            models.Index(fields=['status', 'cutoff_date'], name='order_periods_status_idx'),
        ]
        ordering = ['-cutoff_date']
    
    def __str__(self):
        return f"{self.name} ({self.get_status_display()})"
    
    @property
    def is_open(self):
        return self.status == PeriodStatus.OPEN


class CircleRequest(models.Model):
    """One member's cart for one circle and one period."""
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    circle = models.ForeignKey(
        'circles.Circle',
        on_delete=models.CASCADE,
        related_name='requests'
    )
    period = models.ForeignKey(
        OrderPeriod,
        on_delete=models.PROTECT,
        related_name='requests'
    )
    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='circle_requests'
    )
    status = models.CharField(
        max_length=20,
        choices=RequestStatus.choices,
        default=RequestStatus.DRAFT
    )
    
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        db_table = 'circle_requests'
        unique_together = [['circle', 'period', 'created_by']]
        indexes = [
            models.Index(fields=['period', 'status'], name='circle_requests_period_idx'),
        ]
        ordering = ['created_at']
    
    def __str__(self):
        return f"{self.circle.name} / {self.period.name} ({self.get_status_display()})"
    
    @property
    def is_draft(self):
        return self.status == RequestStatus.DRAFT


class RequestLine(models.Model):
    """Article and quantity within a request, with approval and reception tracking."""
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request = models.ForeignKey(
        CircleRequest,
        on_delete=models.CASCADE,
        related_name='lines'
    )
    article = models.ForeignKey(
        'catalog.Article',
        on_delete=models.PROTECT,
        related_name='request_lines'
    )
    
    # Quantities
    qty = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    qty_validated = models.PositiveIntegerField(null=True, blank=True)
    qty_received = models.PositiveIntegerField(null=True, blank=True)
    
    # Expected shipment
    delivery_date = models.DateField(null=True, blank=True)
    
    # Reception tracking
    reception_status = models.CharField(
        max_length=10,
        choices=ReceptionStatus.choices,
        null=True,
        blank=True
    )
    reception_comment = models.TextField(blank=True)
    reception_date = models.DateTimeField(null=True, blank=True)
    reception_user = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_lines'
    )
    
    created_at = models.DateTimeField(auto_now_add=True)
    
    class Meta:
        db_table = 'request_lines'
        indexes = [
            models.Index(fields=['article', 'delivery_date'], name='request_lines_article_idx'),
        ]
        ordering = ['created_at', 'id']
    
    def __str__(self):
        return f"{self.qty} x {self.article.label}"
    
    @property
    def effective_qty(self):
        """Approved quantity when set, requested quantity otherwise."""
        return self.qty if self.qty_validated is None else self.qty_validated
    
    @property
    def remaining_qty(self):
        """Quantity still expected from the supplier."""
        return max(0, self.effective_qty - (self.qty_received or 0))
