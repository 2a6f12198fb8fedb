"""
Circle membership services.

Circles are reference data for the ordering core: it only needs to know
which circles a member belongs to and whether the member is a FinAdmin.
"""

from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db.models import QuerySet

from apps.accounts.models import User
from apps.circles.models import Circle, CircleMembership


def get_user_circles(*, user: User) -> QuerySet[Circle]:
    """Circles the user belongs to, ordered by name."""
    return Circle.objects.filter(memberships__user=user).distinct().order_by('name')


def is_circle_member(*, user: User, circle_id: UUID) -> bool:
    return CircleMembership.objects.filter(user=user, circle_id=circle_id).exists()


def is_finadmin(*, user: User, circle_name: Optional[str] = None) -> bool:
    """
    Whether the user may approve aggregates, order, and record receptions.

    Membership of the FinAdmin circle grants the role; superusers always
    have it.

    Args:
        user: Member to check
        circle_name: Name of the FinAdmin circle, defaults to
            ``settings.FINADMIN_CIRCLE_NAME``

    Returns:
        True if the user holds the FinAdmin role
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    name = circle_name or settings.FINADMIN_CIRCLE_NAME
    return CircleMembership.objects.filter(user=user, circle__name=name).exists()
