"""
Period clock.

Each month is split into two fixed windows, days 1-15 and 16-end of
month. The window label is the period's natural key, so at most one
OrderPeriod row exists per half-month.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from django.db import transaction, IntegrityError
from django.db.models import QuerySet

from apps.ordering.context import OrderingContext
from apps.ordering.models import OrderPeriod, PeriodStatus

from .exceptions import (
    OrderingValidationError,
    InsufficientPermissionsError,
    DuplicatePeriodError,
)

logger = logging.getLogger(__name__)

# Fixed table so labels do not depend on the process locale
FRENCH_SHORT_MONTHS = (
    'janv.', 'févr.', 'mars', 'avr.', 'mai', 'juin',
    'juil.', 'août', 'sept.', 'oct.', 'nov.', 'déc.',
)


@dataclass(frozen=True)
class PeriodWindow:
    start: date
    end: date

    @property
    def name(self) -> str:
        """Label such as ``01 janv. - 15 janv. 2025``."""
        return (
            f"{_day_label(self.start)} - {_day_label(self.end)} {self.end.year}"
        )


def _day_label(day: date) -> str:
    return f"{day.day:02d} {FRENCH_SHORT_MONTHS[day.month - 1]}"


def current_period_window(today: date) -> PeriodWindow:
    """Half-month window containing ``today``."""
    if today.day <= 15:
        return PeriodWindow(
            start=today.replace(day=1),
            end=today.replace(day=15),
        )
    last_day = calendar.monthrange(today.year, today.month)[1]
    return PeriodWindow(
        start=today.replace(day=16),
        end=today.replace(day=last_day),
    )


def next_period_window(today: date) -> PeriodWindow:
    """Window immediately following the one containing ``today``."""
    current = current_period_window(today)
    return current_period_window(current.end + timedelta(days=1))


def ensure_period_exists(window: PeriodWindow) -> OrderPeriod:
    """
    Return the period named after ``window``, creating it if absent.

    Idempotent by name. A concurrent insert that loses the race hits the
    unique constraint on ``name``; the winner's row is returned instead.

    Args:
        window: Half-month window

    Returns:
        The OrderPeriod for the window
    """
    name = window.name
    period = OrderPeriod.objects.filter(name=name).first()
    if period is not None:
        return period

    try:
        with transaction.atomic():
            period = OrderPeriod.objects.create(
                name=name,
                cutoff_date=window.end,
                status=PeriodStatus.OPEN,
            )
    except IntegrityError:
        return OrderPeriod.objects.get(name=name)

    logger.info("Created period %s (cutoff %s)", period.name, period.cutoff_date)
    return period


def get_current_period(ctx: OrderingContext) -> OrderPeriod:
    """Period the member's cart targets right now."""
    return ensure_period_exists(current_period_window(ctx.today))


def ensure_upcoming_periods(ctx: OrderingContext) -> tuple[OrderPeriod, OrderPeriod]:
    """
    Ensure the current and the next period rows exist.

    Run at session start and by the ``ensure_periods`` scheduled command
    so the next window exists before its first day.

    Returns:
        (current period, next period)
    """
    current = ensure_period_exists(current_period_window(ctx.today))
    upcoming = ensure_period_exists(next_period_window(ctx.today))
    return current, upcoming


@transaction.atomic
def create_period(
    ctx: OrderingContext,
    *,
    name: str,
    cutoff_date: Optional[date]
) -> OrderPeriod:
    """
    Manually create a period (FinAdmin only).

    Args:
        ctx: Acting member and clock
        name: Period label, must be unique
        cutoff_date: Last day requests are accepted

    Returns:
        Created OrderPeriod with status ``open``

    Raises:
        InsufficientPermissionsError: If the actor is not a FinAdmin
        OrderingValidationError: If name or cutoff date is missing
        DuplicatePeriodError: If a period with that name exists
    """
    if not ctx.is_finadmin:
        raise InsufficientPermissionsError("Only FinAdmin members can create periods")

    name = (name or '').strip()
    if not name or cutoff_date is None:
        raise OrderingValidationError("Period name and cutoff date are required")

    if OrderPeriod.objects.filter(name=name).exists():
        raise DuplicatePeriodError(f"Period '{name}' already exists")

    try:
        with transaction.atomic():
            period = OrderPeriod.objects.create(
                name=name,
                cutoff_date=cutoff_date,
                status=PeriodStatus.OPEN,
            )
    except IntegrityError:
        raise DuplicatePeriodError(f"Period '{name}' already exists")

    logger.info("Period %s created manually by %s", period.name, ctx.actor.email)
    return period


def list_periods(*, include_archived: bool = False) -> QuerySet[OrderPeriod]:
    """Periods by cutoff date, newest first. Archived periods are hidden by default."""
    periods = OrderPeriod.objects.all().order_by('-cutoff_date', '-created_at')
    if not include_archived:
        periods = periods.exclude(status=PeriodStatus.ARCHIVED)
    return periods
