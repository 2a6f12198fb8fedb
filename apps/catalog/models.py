# ==========================================
# apps/catalog/models.py
# ==========================================

from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import uuid


class Article(models.Model):
    """
    Orderable supplier article.

    Owned by catalog management; the ordering core reads it only for
    identity and unit price.
    """
    
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    label = models.CharField(max_length=200, db_index=True)
    reference = models.CharField(max_length=100, blank=True)
    supplier = models.CharField(max_length=200, blank=True, db_index=True)
    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    link = models.URLField(blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        db_table = 'articles'
        indexes = [
            models.Index(fields=['supplier', 'label'], name='articles_supplier_label_idx'),
        ]
        ordering = ['label']
    
    def __str__(self):
        if self.reference:
            return f"{self.label} ({self.reference})"
        return self.label
