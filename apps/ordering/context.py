"""
Per-call context for ordering services.

Every service receives the acting member and the clock explicitly
instead of reading a current user or calling ``timezone.now()`` itself.
Tests pin ``now`` to move across half-month boundaries.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from functools import cached_property
from typing import Optional

from django.utils import timezone

from apps.accounts.models import User
from apps.circles.services import is_finadmin


@dataclass(frozen=True)
class OrderingContext:
    actor: Optional[User]
    now: datetime = field(default_factory=timezone.now)

    @property
    def today(self) -> date:
        """Calendar date of ``now`` in the project time zone."""
        if timezone.is_aware(self.now):
            return timezone.localdate(self.now)
        return self.now.date()

    @cached_property
    def is_finadmin(self) -> bool:
        return is_finadmin(user=self.actor)

    @classmethod
    def from_request(cls, request) -> 'OrderingContext':
        return cls(actor=request.user)
